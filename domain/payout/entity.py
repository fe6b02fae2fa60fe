"""
讲师余额与流水

新入账先进入 pending，持有期（BALANCE_HOLD_DAYS）结束后转入 available。
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.values import ensure_utc, to_money, utcnow

ZERO = Decimal("0.00")


class BalanceTransactionType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    RELEASE = "RELEASE"
    WITHDRAWAL = "WITHDRAWAL"


class PayoutMethod(str, Enum):
    PIX = "PIX"
    BANK_TRANSFER = "BANK_TRANSFER"


@dataclass(frozen=True)
class InstructorBalance:
    instructor_id: str
    available: Decimal = ZERO
    pending: Decimal = ZERO
    total_earnings: Decimal = ZERO
    total_withdrawn: Decimal = ZERO
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BalanceTransaction:
    id: str
    instructor_id: str
    type: BalanceTransactionType
    amount: Decimal
    payment_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))

    @classmethod
    def create(
        cls,
        *,
        instructor_id: str,
        type: BalanceTransactionType,
        amount: Decimal,
        payment_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> "BalanceTransaction":
        return cls(
            id=str(uuid.uuid4()),
            instructor_id=instructor_id,
            type=type,
            amount=to_money(amount),
            payment_id=payment_id,
            description=description,
            created_at=utcnow(),
        )
