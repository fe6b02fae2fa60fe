"""SQLAlchemy Unit of Work

一个 UoW 对应一个 AsyncSession 与一个事务：正常退出提交，异常退出回滚。
只读模式不显式 BEGIN，会话关闭时丢弃自动开启的事务。
"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.course_catalog import SQLAlchemyCourseCatalog
from infrastructure.repositories.coupon_repository import (
    SQLAlchemyCouponRepository,
    SQLAlchemyCouponUsageRepository,
)
from infrastructure.repositories.enrollment_repository import SQLAlchemyEnrollmentRepository
from infrastructure.repositories.payment_repository import (
    SQLAlchemyPaymentRepository,
    SQLAlchemySubscriptionRepository,
)
from infrastructure.repositories.payout_repository import SQLAlchemyInstructorBalanceRepository
from infrastructure.repositories.refund_repository import SQLAlchemyRefundRequestRepository
from infrastructure.repositories.settings_repository import SQLAlchemyPlatformSettingRepository


REPOSITORIES = {
    "payment_repository": SQLAlchemyPaymentRepository,
    "coupon_repository": SQLAlchemyCouponRepository,
    "coupon_usage_repository": SQLAlchemyCouponUsageRepository,
    "subscription_repository": SQLAlchemySubscriptionRepository,
    "enrollment_repository": SQLAlchemyEnrollmentRepository,
    "refund_repository": SQLAlchemyRefundRequestRepository,
    "setting_repository": SQLAlchemyPlatformSettingRepository,
    "balance_repository": SQLAlchemyInstructorBalanceRepository,
    "course_catalog": SQLAlchemyCourseCatalog,
}


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._owns_session = session is None
        self.session: Optional[AsyncSession] = session

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        for name, repository_cls in REPOSITORIES.items():
            setattr(self, name, repository_cls(self.session))
        if not self._readonly and not self.session.in_transaction():
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._owns_session and self.session is not None:
                await self.session.close()
                self.session = None
            for name in REPOSITORIES:
                setattr(self, name, None)

    async def commit(self) -> None:
        if not self._readonly and self.session is not None and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
