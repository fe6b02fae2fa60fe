"""
退款申请实体

状态机：
    PENDING -> APPROVED -> PROCESSED | FAILED
    PENDING -> REJECTED | CANCELLED
终态不再流转。
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import RefundStateConflictException
from domain.common.values import ensure_utc, to_money, utcnow


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


ACTIVE_REFUND_STATUSES = frozenset({RefundStatus.PENDING, RefundStatus.APPROVED})


@dataclass(frozen=True)
class RefundRequest:
    id: str
    payment_id: str
    user_id: str
    amount: Decimal
    status: RefundStatus
    reason: Optional[str] = None
    external_refund_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        for name in ("processed_at", "created_at", "updated_at"):
            object.__setattr__(self, name, ensure_utc(getattr(self, name)))

    @classmethod
    def create(cls, *, payment_id: str, user_id: str, amount: Decimal, reason: Optional[str] = None) -> "RefundRequest":
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            payment_id=payment_id,
            user_id=user_id,
            amount=to_money(amount),
            status=RefundStatus.PENDING,
            reason=reason,
            created_at=now,
            updated_at=now,
        )

    def is_active(self) -> bool:
        return self.status in ACTIVE_REFUND_STATUSES

    def _require(self, expected: RefundStatus, action: str) -> None:
        if self.status != expected:
            raise RefundStateConflictException(self.id, self.status.value, action)

    def _moved(self, status: RefundStatus, **changes) -> "RefundRequest":
        now = utcnow()
        return replace(self, status=status, updated_at=now, **changes)

    def approved(self, admin_id: str, notes: Optional[str] = None) -> "RefundRequest":
        self._require(RefundStatus.PENDING, "approve")
        return self._moved(RefundStatus.APPROVED, processed_by=admin_id, notes=notes or self.notes)

    def rejected(self, admin_id: str, notes: Optional[str] = None) -> "RefundRequest":
        self._require(RefundStatus.PENDING, "reject")
        return self._moved(RefundStatus.REJECTED, processed_by=admin_id, processed_at=utcnow(), notes=notes or self.notes)

    def cancelled(self, user_id: str) -> "RefundRequest":
        self._require(RefundStatus.PENDING, "cancel")
        return self._moved(RefundStatus.CANCELLED, processed_by=user_id, processed_at=utcnow())

    def processed(
        self,
        admin_id: str,
        external_refund_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> "RefundRequest":
        self._require(RefundStatus.APPROVED, "process")
        return self._moved(
            RefundStatus.PROCESSED,
            processed_by=admin_id,
            processed_at=utcnow(),
            external_refund_id=external_refund_id,
            notes=notes or self.notes,
        )

    def failed(self, admin_id: str, notes: Optional[str] = None) -> "RefundRequest":
        self._require(RefundStatus.APPROVED, "fail")
        return self._moved(RefundStatus.FAILED, processed_by=admin_id, processed_at=utcnow(), notes=notes or self.notes)
