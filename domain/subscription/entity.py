"""
订阅领域实体 - 周期性支付的状态快照

CANCELLED 为终态：之后的状态变更会被拒绝。
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException, SubscriptionTerminatedException
from domain.common.values import ensure_utc, utcnow


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    UNPAID = "UNPAID"
    CANCELLED = "CANCELLED"
    INCOMPLETE = "INCOMPLETE"


# Gateway subscription vocabulary; anything unknown is INCOMPLETE
GATEWAY_SUBSCRIPTION_STATUS = {
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.UNPAID,
    "canceled": SubscriptionStatus.CANCELLED,
    "cancelled": SubscriptionStatus.CANCELLED,
}


def map_gateway_status(raw: Optional[str]) -> SubscriptionStatus:
    return GATEWAY_SUBSCRIPTION_STATUS.get((raw or "").lower(), SubscriptionStatus.INCOMPLETE)


# statuses that cut off course access
ACCESS_REVOKING = frozenset({SubscriptionStatus.UNPAID, SubscriptionStatus.CANCELLED})


@dataclass(frozen=True)
class Subscription:
    id: str
    payment_id: str
    external_subscription_id: str
    status: SubscriptionStatus
    external_customer_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.external_subscription_id:
            raise DomainValidationException(
                "external_subscription_id is required",
                field="external_subscription_id",
            )
        for name in ("current_period_start", "current_period_end", "cancelled_at", "created_at", "updated_at"):
            object.__setattr__(self, name, ensure_utc(getattr(self, name)))

    @classmethod
    def create(
        cls,
        *,
        payment_id: str,
        external_subscription_id: str,
        external_customer_id: Optional[str] = None,
        status: SubscriptionStatus = SubscriptionStatus.INCOMPLETE,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
    ) -> "Subscription":
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            payment_id=payment_id,
            external_subscription_id=external_subscription_id,
            external_customer_id=external_customer_id,
            status=status,
            current_period_start=current_period_start,
            current_period_end=current_period_end,
            created_at=now,
            updated_at=now,
        )

    def is_cancelled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED

    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    def grants_access(self) -> bool:
        return self.status not in ACCESS_REVOKING

    def _ensure_open(self) -> None:
        if self.is_cancelled():
            raise SubscriptionTerminatedException(self.id)

    def with_status(self, status: SubscriptionStatus) -> "Subscription":
        if status == SubscriptionStatus.CANCELLED:
            return self.cancelled()
        self._ensure_open()
        return replace(self, status=status, updated_at=utcnow())

    def with_period(self, start: Optional[datetime], end: Optional[datetime]) -> "Subscription":
        self._ensure_open()
        return replace(
            self,
            current_period_start=start if start is not None else self.current_period_start,
            current_period_end=end if end is not None else self.current_period_end,
            updated_at=utcnow(),
        )

    def cancelled(self) -> "Subscription":
        if self.is_cancelled():
            return self
        now = utcnow()
        return replace(self, status=SubscriptionStatus.CANCELLED, cancelled_at=now, updated_at=now)

    def scheduled_cancel(self) -> "Subscription":
        """到期取消：只打标记，状态保持不变，直到网关报告取消"""
        self._ensure_open()
        return replace(self, cancel_at_period_end=True, updated_at=utcnow())

    def resumed(self) -> "Subscription":
        """撤销到期取消"""
        self._ensure_open()
        return replace(self, cancel_at_period_end=False, updated_at=utcnow())
