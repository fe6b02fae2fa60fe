"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.catalog import CourseCatalog
from domain.coupon.repository import CouponRepository, CouponUsageRepository
from domain.enrollment.repository import EnrollmentRepository
from domain.payment.repository import PaymentRepository
from domain.payout.repository import InstructorBalanceRepository
from domain.refund.repository import RefundRequestRepository
from domain.settings.repository import PlatformSettingRepository
from domain.subscription.repository import SubscriptionRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界控制抽象"""

    payment_repository: PaymentRepository
    coupon_repository: CouponRepository
    coupon_usage_repository: CouponUsageRepository
    subscription_repository: SubscriptionRepository
    enrollment_repository: EnrollmentRepository
    refund_repository: RefundRequestRepository
    setting_repository: PlatformSettingRepository
    balance_repository: InstructorBalanceRepository
    course_catalog: CourseCatalog

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.payment_repository = None  # type: ignore[assignment]
        self.coupon_repository = None  # type: ignore[assignment]
        self.coupon_usage_repository = None  # type: ignore[assignment]
        self.subscription_repository = None  # type: ignore[assignment]
        self.enrollment_repository = None  # type: ignore[assignment]
        self.refund_repository = None  # type: ignore[assignment]
        self.setting_repository = None  # type: ignore[assignment]
        self.balance_repository = None  # type: ignore[assignment]
        self.course_catalog = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        else:
            # 只在非只读且未显式提交时自动提交
            if not self._readonly and not self._committed:
                await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        """提交事务"""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """回滚事务"""
        ...
