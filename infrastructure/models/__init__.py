"""Infrastructure models package exports."""
from .base import Base, metadata
from .payment import PaymentModel, SubscriptionModel
from .coupon import CouponModel, CouponUsageModel
from .enrollment import EnrollmentModel
from .refund import RefundRequestModel
from .settings import PlatformSettingModel
from .payout import InstructorBalanceModel, BalanceTransactionModel
from .course import CourseModel

__all__ = [
    "Base",
    "metadata",
    "PaymentModel",
    "SubscriptionModel",
    "CouponModel",
    "CouponUsageModel",
    "EnrollmentModel",
    "RefundRequestModel",
    "PlatformSettingModel",
    "InstructorBalanceModel",
    "BalanceTransactionModel",
    "CourseModel",
]
