"""
Refund DTOs.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from application.dtos.base import DTOBase


class RefundCreateDTO(DTOBase):
    payment_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(default=None, max_length=1000)


class RefundDecisionDTO(DTOBase):
    notes: Optional[str] = Field(default=None, max_length=1000)


class RefundProcessDTO(DTOBase):
    external_refund_id: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=1000)


class RefundRequestDTO(DTOBase):
    id: str
    payment_id: str
    user_id: str
    amount: Decimal
    status: str
    reason: Optional[str] = None
    external_refund_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, refund) -> "RefundRequestDTO":
        return cls(
            id=refund.id,
            payment_id=refund.payment_id,
            user_id=refund.user_id,
            amount=refund.amount,
            status=refund.status.value,
            reason=refund.reason,
            external_refund_id=refund.external_refund_id,
            processed_at=refund.processed_at,
            processed_by=refund.processed_by,
            notes=refund.notes,
            created_at=refund.created_at,
            updated_at=refund.updated_at,
        )


class RefundCreationDTO(DTOBase):
    success: bool
    refund: Optional[RefundRequestDTO] = None
    error_kind: Optional[str] = None
    refund_days_limit: Optional[int] = None


class RefundProcessedDTO(DTOBase):
    refund: RefundRequestDTO
    payment_status: Optional[str] = None
    enrollment_action: Optional[str] = None
