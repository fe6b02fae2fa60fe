"""
Checkout DTOs - fee quotes, payment option table, checkout requests.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from application.dtos.base import DTOBase
from application.dtos.payments import PaymentDTO, SubscriptionDTO
from domain.payment.entity import PaymentType


class FeeQuoteRequestDTO(DTOBase):
    course_price: Decimal = Field(..., ge=0)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: Optional[str] = None


class PaymentOptionDTO(DTOBase):
    method: str
    description: str
    fee: Decimal
    fee_label: str
    net_amount: Decimal
    recommended: bool = False

    @classmethod
    def from_option(cls, option) -> "PaymentOptionDTO":
        return cls(
            method=option.method.value,
            description=option.description,
            fee=option.fee,
            fee_label=option.fee_label,
            net_amount=option.net_amount,
            recommended=option.recommended,
        )


class FeeBreakdownDTO(DTOBase):
    course_price: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    requested_method: str
    payment_method: str
    gateway_fee: Decimal
    gateway_fee_percentage: Decimal
    gateway_fixed_fee: Decimal
    net_amount: Decimal
    platform_fee_percentage: Decimal
    platform_fee: Decimal
    instructor_amount: Decimal
    instructor_percentage: Decimal
    total_fees: Decimal

    @classmethod
    def from_breakdown(cls, breakdown) -> "FeeBreakdownDTO":
        return cls(
            course_price=breakdown.price,
            discount_amount=breakdown.discount_amount,
            final_amount=breakdown.final_amount,
            requested_method=breakdown.requested_method,
            payment_method=breakdown.payment_method.value,
            gateway_fee=breakdown.gateway_fee.total,
            gateway_fee_percentage=breakdown.gateway_fee.percentage,
            gateway_fixed_fee=breakdown.gateway_fee.fixed_fee,
            net_amount=breakdown.net_amount,
            platform_fee_percentage=breakdown.platform_fee_percentage,
            platform_fee=breakdown.platform_fee,
            instructor_amount=breakdown.instructor_amount,
            instructor_percentage=breakdown.instructor_percentage,
            total_fees=breakdown.total_fees,
        )


class FeeQuoteDTO(DTOBase):
    breakdown: FeeBreakdownDTO
    options: List[PaymentOptionDTO]
    cheapest_method: str


class CheckoutRequestDTO(DTOBase):
    course_id: str = Field(..., min_length=1)
    payment_method: Optional[str] = None
    payment_type: PaymentType = PaymentType.ONE_TIME
    coupon_code: Optional[str] = None
    gateway_provider: Optional[str] = None


class CheckoutResultDTO(DTOBase):
    payment: PaymentDTO
    breakdown: FeeBreakdownDTO
    coupon_code: Optional[str] = None


class SubscriptionReferenceDTO(DTOBase):
    external_subscription_id: str = Field(..., min_length=1)
    external_customer_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None


class GatewayReferenceDTO(DTOBase):
    external_payment_id: str = Field(..., min_length=1)
    external_order_id: Optional[str] = None
    subscription: Optional[SubscriptionReferenceDTO] = None


class GatewayReferenceResultDTO(DTOBase):
    payment: PaymentDTO
    subscription: Optional[SubscriptionDTO] = None
