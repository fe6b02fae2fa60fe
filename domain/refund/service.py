"""
退款工作流（RefundWorkflow）- 资格校验与状态流转

create 的校验失败返回具体的错误类型而不是抛异常；
状态流转全部是基于期望状态的比较并交换，竞争失败抛 RefundStateConflictException。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

import structlog

from domain.common.exceptions import (
    RefundOwnershipException,
    RefundRequestNotFoundException,
    RefundStateConflictException,
)
from domain.common.values import utcnow
from domain.payment.entity import PaymentStatus
from domain.payment.repository import PaymentRepository
from domain.settings.service import PlatformSettingsReader

from .entity import RefundRequest, RefundStatus
from .repository import RefundRequestRepository

logger = structlog.get_logger(__name__)


class RefundErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    NOT_OWNER = "NOT_OWNER"
    NOT_COMPLETED = "NOT_COMPLETED"
    WINDOW_EXPIRED = "WINDOW_EXPIRED"
    ALREADY_REQUESTED = "ALREADY_REQUESTED"


@dataclass(frozen=True)
class RefundCreation:
    refund: Optional[RefundRequest] = None
    error_kind: Optional[RefundErrorKind] = None
    refund_days_limit: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.refund is not None


class RefundWorkflow:
    def __init__(
        self,
        refund_repository: RefundRequestRepository,
        payment_repository: PaymentRepository,
        settings_reader: PlatformSettingsReader,
    ):
        self.refund_repository = refund_repository
        self.payment_repository = payment_repository
        self.settings_reader = settings_reader

    async def create(
        self,
        payment_id: str,
        user_id: str,
        reason: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> RefundCreation:
        """按顺序校验：NOT_FOUND, NOT_OWNER, NOT_COMPLETED, WINDOW_EXPIRED, ALREADY_REQUESTED"""
        payment = await self.payment_repository.get_by_id(payment_id)
        if payment is None:
            return RefundCreation(error_kind=RefundErrorKind.NOT_FOUND)
        if payment.user_id != user_id:
            return RefundCreation(error_kind=RefundErrorKind.NOT_OWNER)
        if payment.status != PaymentStatus.COMPLETED:
            return RefundCreation(error_kind=RefundErrorKind.NOT_COMPLETED)

        limit = await self.settings_reader.refund_days_limit()
        if payment.age_in_days(now or utcnow()) > limit:
            return RefundCreation(error_kind=RefundErrorKind.WINDOW_EXPIRED, refund_days_limit=limit)

        if await self.refund_repository.has_active_for_payment(payment_id):
            return RefundCreation(error_kind=RefundErrorKind.ALREADY_REQUESTED)

        refund = RefundRequest.create(
            payment_id=payment_id,
            user_id=user_id,
            amount=payment.amount,
            reason=reason,
        )
        created = await self.refund_repository.insert_if_no_active(refund)
        if created is None:
            # a concurrent request won the partial unique index
            logger.info("refund_request_race_lost", payment_id=payment_id, user_id=user_id)
            return RefundCreation(error_kind=RefundErrorKind.ALREADY_REQUESTED)

        logger.info("refund_request_created", refund_id=created.id, payment_id=payment_id, user_id=user_id)
        return RefundCreation(refund=created, refund_days_limit=limit)

    async def get(self, refund_id: str) -> RefundRequest:
        refund = await self.refund_repository.get_by_id(refund_id)
        if refund is None:
            raise RefundRequestNotFoundException(refund_id)
        return refund

    async def list_for_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[RefundRequest]:
        return await self.refund_repository.list_by_user(user_id, skip=skip, limit=limit)

    async def list(self, status: Optional[RefundStatus] = None, skip: int = 0, limit: int = 100) -> List[RefundRequest]:
        return await self.refund_repository.list(status=status, skip=skip, limit=limit)

    async def _transition(
        self,
        refund_id: str,
        action: str,
        change: Callable[[RefundRequest], RefundRequest],
    ) -> RefundRequest:
        current = await self.get(refund_id)
        updated = change(current)
        if not await self.refund_repository.compare_and_set(updated, expected=current.status):
            latest = await self.get(refund_id)
            logger.warning(
                "refund_transition_conflict",
                refund_id=refund_id,
                action=action,
                status=latest.status.value,
            )
            raise RefundStateConflictException(refund_id, latest.status.value, action)
        logger.info(
            "refund_transition_applied",
            refund_id=refund_id,
            action=action,
            previous=current.status.value,
            status=updated.status.value,
        )
        return updated

    async def approve(self, refund_id: str, admin_id: str, notes: Optional[str] = None) -> RefundRequest:
        return await self._transition(refund_id, "approve", lambda r: r.approved(admin_id, notes))

    async def reject(self, refund_id: str, admin_id: str, notes: Optional[str] = None) -> RefundRequest:
        return await self._transition(refund_id, "reject", lambda r: r.rejected(admin_id, notes))

    async def cancel(self, refund_id: str, user_id: str) -> RefundRequest:
        current = await self.get(refund_id)
        if current.user_id != user_id:
            raise RefundOwnershipException(refund_id)
        return await self._transition(refund_id, "cancel", lambda r: r.cancelled(user_id))

    async def mark_as_processed(
        self,
        refund_id: str,
        admin_id: str,
        external_refund_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> RefundRequest:
        return await self._transition(
            refund_id,
            "process",
            lambda r: r.processed(admin_id, external_refund_id, notes),
        )

    async def mark_as_failed(self, refund_id: str, admin_id: str, notes: Optional[str] = None) -> RefundRequest:
        return await self._transition(refund_id, "fail", lambda r: r.failed(admin_id, notes))
