"""
Instructor balance DTOs.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from application.dtos.base import DTOBase
from domain.payout.entity import PayoutMethod


class InstructorBalanceDTO(DTOBase):
    instructor_id: str
    available: Decimal
    pending: Decimal
    total_earnings: Decimal
    total_withdrawn: Decimal

    @classmethod
    def from_entity(cls, balance) -> "InstructorBalanceDTO":
        return cls(
            instructor_id=balance.instructor_id,
            available=balance.available,
            pending=balance.pending,
            total_earnings=balance.total_earnings,
            total_withdrawn=balance.total_withdrawn,
        )


class BalanceTransactionDTO(DTOBase):
    id: str
    type: str
    amount: Decimal
    payment_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, transaction) -> "BalanceTransactionDTO":
        return cls(
            id=transaction.id,
            type=transaction.type.value,
            amount=transaction.amount,
            payment_id=transaction.payment_id,
            description=transaction.description,
            created_at=transaction.created_at,
        )


class PayoutRequestDTO(DTOBase):
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    method: PayoutMethod = PayoutMethod.PIX


class PayoutDTO(DTOBase):
    transaction: BalanceTransactionDTO
    balance: InstructorBalanceDTO
