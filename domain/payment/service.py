"""
支付领域服务 - 支付状态机（PaymentLedger）

Transitions never raise for duplicate or out-of-order gateway events. They
report an outcome instead so a webhook replay can not corrupt state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

import structlog
from domain.common.exceptions import (
    DomainValidationException,
    ExternalPaymentIdConflictException,
    PaymentNotFoundException,
)

from .entity import ALLOWED_SOURCES, Payment, PaymentStatus, PaymentType
from .events import PaymentCompleted, PaymentEvent, PaymentFailed, PaymentRefunded
from .repository import PaymentRepository

logger = structlog.get_logger(__name__)


class TransitionOutcome(str, Enum):
    APPLIED = "APPLIED"
    NOOP = "NOOP"
    ILLEGAL = "ILLEGAL"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class TransitionResult:
    outcome: TransitionOutcome
    payment: Optional[Payment] = None
    previous_status: Optional[PaymentStatus] = None
    events: List[PaymentEvent] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED


def _event_for(payment: Payment) -> Optional[PaymentEvent]:
    kwargs = dict(
        payment_id=payment.id,
        user_id=payment.user_id,
        course_id=payment.course_id,
        payment_type=payment.payment_type,
        external_payment_id=payment.external_payment_id,
    )
    if payment.status == PaymentStatus.COMPLETED:
        return PaymentCompleted(**kwargs)
    if payment.status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
        return PaymentFailed(status=payment.status, **kwargs)
    if payment.status == PaymentStatus.REFUNDED:
        return PaymentRefunded(**kwargs)
    return None


class PaymentLedger:
    """
    支付领域服务 - 编排支付生命周期

    职责：
    1. 创建 PENDING 支付
    2. 绑定网关支付ID（唯一，幂等）
    3. 条件更新实现的状态转换，产生领域事件
    """

    def __init__(self, payment_repository: PaymentRepository):
        self.payment_repository = payment_repository

    async def create(
        self,
        *,
        user_id: str,
        course_id: str,
        amount: Decimal,
        currency: str,
        payment_type: PaymentType,
        payment_method: Optional[str] = None,
        gateway_provider: Optional[str] = None,
        platform_fee_amount: Optional[Decimal] = None,
        instructor_amount: Optional[Decimal] = None,
        external_payment_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Payment:
        payment = Payment.create(
            user_id=user_id,
            course_id=course_id,
            amount=amount,
            currency=currency,
            payment_type=payment_type,
            payment_method=payment_method,
            gateway_provider=gateway_provider,
            platform_fee_amount=platform_fee_amount,
            instructor_amount=instructor_amount,
            external_payment_id=external_payment_id,
            metadata=metadata,
        )
        return await self.payment_repository.create(payment)

    async def get(self, payment_id: str) -> Payment:
        payment = await self.payment_repository.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundException(f"id={payment_id}")
        return payment

    async def list_for_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Payment]:
        return await self.payment_repository.list_by_user(user_id, skip=skip, limit=limit)

    async def attach_external_id(
        self,
        payment_id: str,
        external_payment_id: str,
        external_order_id: Optional[str] = None,
    ) -> Payment:
        """绑定网关支付ID；相同ID重复绑定为幂等操作，不同ID视为冲突"""
        if not external_payment_id:
            raise DomainValidationException("external_payment_id is required", field="external_payment_id")
        payment = await self.get(payment_id)
        if payment.external_payment_id == external_payment_id:
            return payment
        if payment.external_payment_id is not None:
            raise ExternalPaymentIdConflictException(payment_id, external_payment_id)

        written = await self.payment_repository.set_external_reference(
            payment_id, external_payment_id, external_order_id
        )
        current = await self.get(payment_id)
        if not written and current.external_payment_id != external_payment_id:
            raise ExternalPaymentIdConflictException(payment_id, external_payment_id)
        logger.info(
            "payment_external_id_attached",
            payment_id=payment_id,
            external_payment_id=external_payment_id,
        )
        return current

    async def transition(
        self,
        new_status: PaymentStatus,
        *,
        payment_id: Optional[str] = None,
        external_payment_id: Optional[str] = None,
    ) -> TransitionResult:
        """
        状态转换（幂等）

        - APPLIED: 本次调用实际改变了状态，附带领域事件
        - NOOP: 已处于目标状态
        - ILLEGAL: 非法边（例如 COMPLETED -> FAILED），状态保持不变
        - NOT_FOUND: 支付不存在
        """
        if payment_id is None and external_payment_id is None:
            raise DomainValidationException("payment_id or external_payment_id is required")

        if payment_id is not None:
            payment = await self.payment_repository.get_by_id(payment_id)
        else:
            payment = await self.payment_repository.get_by_external_id(external_payment_id)
        if payment is None:
            logger.warning(
                "payment_transition_not_found",
                payment_id=payment_id,
                external_payment_id=external_payment_id,
                target=new_status.value,
            )
            return TransitionResult(outcome=TransitionOutcome.NOT_FOUND)

        sources = ALLOWED_SOURCES[new_status]
        updated = False
        if sources:
            updated = await self.payment_repository.compare_and_set_status(
                payment.id, sources, new_status
            )

        current = await self.payment_repository.get_by_id(payment.id)
        if updated:
            logger.info(
                "payment_transition_applied",
                payment_id=payment.id,
                previous=payment.status.value,
                status=new_status.value,
            )
            event = _event_for(current)
            return TransitionResult(
                outcome=TransitionOutcome.APPLIED,
                payment=current,
                previous_status=payment.status,
                events=[event] if event else [],
            )

        if current is not None and current.status == new_status:
            logger.info("payment_transition_noop", payment_id=payment.id, status=new_status.value)
            return TransitionResult(
                outcome=TransitionOutcome.NOOP,
                payment=current,
                previous_status=current.status,
            )

        logger.warning(
            "payment_transition_illegal",
            payment_id=payment.id,
            current=current.status.value if current else None,
            target=new_status.value,
        )
        return TransitionResult(
            outcome=TransitionOutcome.ILLEGAL,
            payment=current,
            previous_status=current.status if current else None,
        )
