"""Coupon domain exports."""
from .entity import Coupon, CouponUsage, DiscountType, normalize_code
from .repository import CouponRepository, CouponUsageRepository
from .service import CouponEngine, CouponErrorKind, CouponValidation

__all__ = [
    "Coupon",
    "CouponUsage",
    "DiscountType",
    "normalize_code",
    "CouponRepository",
    "CouponUsageRepository",
    "CouponEngine",
    "CouponErrorKind",
    "CouponValidation",
]
