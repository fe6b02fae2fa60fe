"""
Coupon DTOs - validation requests/results and management payloads.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, model_validator

from application.dtos.base import DTOBase
from domain.coupon.entity import DiscountType


class CouponValidateRequestDTO(DTOBase):
    code: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., ge=0)
    course_id: Optional[str] = None


class CouponValidationDTO(DTOBase):
    is_valid: bool
    code: str
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    error_kind: Optional[str] = None
    coupon_id: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None

    @classmethod
    def from_validation(cls, code: str, validation) -> "CouponValidationDTO":
        coupon = validation.coupon if validation.is_valid else None
        return cls(
            is_valid=validation.is_valid,
            code=code.strip().upper(),
            original_amount=validation.original_amount,
            discount_amount=validation.discount_amount,
            final_amount=validation.final_amount,
            error_kind=validation.error_kind.value if validation.error_kind else None,
            coupon_id=coupon.id if coupon else None,
            discount_type=coupon.discount_type.value if coupon else None,
            discount_value=coupon.discount_value if coupon else None,
        )


class CouponCreateDTO(DTOBase):
    code: str = Field(..., min_length=1, max_length=64)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(default=None, max_length=500)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    course_id: Optional[str] = None


class CouponUpdateDTO(DTOBase):
    code: Optional[str] = Field(default=None, min_length=1, max_length=64)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, max_length=500)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None
    course_id: Optional[str] = None

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        return self


class CouponDTO(DTOBase):
    id: str
    code: str
    discount_type: str
    discount_value: Decimal
    description: Optional[str] = None
    max_uses: Optional[int] = None
    used_count: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    course_id: Optional[str] = None
    created_by_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, coupon) -> "CouponDTO":
        return cls(
            id=coupon.id,
            code=coupon.code,
            discount_type=coupon.discount_type.value,
            discount_value=coupon.discount_value,
            description=coupon.description,
            max_uses=coupon.max_uses,
            used_count=coupon.used_count,
            valid_from=coupon.valid_from,
            valid_until=coupon.valid_until,
            is_active=coupon.is_active,
            course_id=coupon.course_id,
            created_by_id=coupon.created_by_id,
            created_at=coupon.created_at,
            updated_at=coupon.updated_at,
        )


class CouponUsageDTO(DTOBase):
    id: str
    coupon_id: str
    user_id: str
    payment_id: str
    discount_amount: Decimal
    used_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, usage) -> "CouponUsageDTO":
        return cls(
            id=usage.id,
            coupon_id=usage.coupon_id,
            user_id=usage.user_id,
            payment_id=usage.payment_id,
            discount_amount=usage.discount_amount,
            used_at=usage.used_at,
        )
