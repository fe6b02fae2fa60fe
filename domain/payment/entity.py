"""
支付领域实体 - 支付聚合根

Payments are immutable snapshots: every state change produces a new
``Payment`` through ``dataclasses.replace`` so callers can keep the previous
snapshot for auditing.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.common.values import ensure_utc, to_money, utcnow


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentType(str, Enum):
    ONE_TIME = "ONE_TIME"
    SUBSCRIPTION = "SUBSCRIPTION"


# target status -> statuses it may be reached from
ALLOWED_SOURCES: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.CANCELLED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.REFUNDED: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.PENDING: frozenset(),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return current in ALLOWED_SOURCES[target]


@dataclass(frozen=True)
class Payment:
    """
    支付聚合根 - 一次购买尝试

    业务规则：
    1. external_payment_id 全局唯一，是 webhook 的幂等键
    2. 金额必须 >= 0
    3. 状态只能沿 PENDING -> {COMPLETED, FAILED, CANCELLED}、COMPLETED -> REFUNDED 前进
    """

    id: str
    user_id: str
    course_id: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    payment_type: PaymentType
    payment_method: Optional[str] = None
    gateway_provider: Optional[str] = None
    external_payment_id: Optional[str] = None
    external_order_id: Optional[str] = None
    platform_fee_amount: Optional[Decimal] = None
    instructor_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.amount < 0:
            raise DomainValidationException(
                f"Payment amount must be >= 0: {self.amount}",
                field="amount",
            )
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"Invalid currency code: {self.currency}",
                field="currency",
            )
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))
        object.__setattr__(self, "updated_at", ensure_utc(self.updated_at))
        if self.metadata is None:
            object.__setattr__(self, "metadata", {})

    @classmethod
    def create(
        cls,
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
    ) -> "Payment":
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            course_id=course_id,
            amount=to_money(amount),
            currency=currency.upper(),
            status=PaymentStatus.PENDING,
            payment_type=payment_type,
            payment_method=payment_method,
            gateway_provider=gateway_provider,
            external_payment_id=external_payment_id,
            platform_fee_amount=platform_fee_amount,
            instructor_amount=instructor_amount,
            created_at=now,
            updated_at=now,
            metadata=metadata or {},
        )

    def with_status(self, status: PaymentStatus) -> "Payment":
        if not can_transition(self.status, status):
            raise DomainValidationException(
                f"Illegal payment transition {self.status.value} -> {status.value}",
                field="status",
            )
        return replace(self, status=status, updated_at=utcnow())

    def with_external_reference(
        self,
        external_payment_id: str,
        external_order_id: Optional[str] = None,
    ) -> "Payment":
        return replace(
            self,
            external_payment_id=external_payment_id,
            external_order_id=external_order_id or self.external_order_id,
            updated_at=utcnow(),
        )

    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    def is_subscription(self) -> bool:
        return self.payment_type == PaymentType.SUBSCRIPTION

    def age_in_days(self, now: Optional[datetime] = None) -> int:
        """Whole days elapsed since creation (floor)."""
        reference = ensure_utc(now) or utcnow()
        created = self.created_at or reference
        return int((reference - created).total_seconds() // 86400)
