"""
Payment DTOs (Pydantic v2) used at application boundaries.

``GatewayEvent`` is the provider-neutral shape every webhook adapter
produces; the reconciler only ever sees this shape.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field

from application.dtos.base import DTOBase


class GatewayEventKind(str, Enum):
    PAYMENT = "PAYMENT"
    INVOICE_SUCCEEDED = "INVOICE_SUCCEEDED"
    INVOICE_FAILED = "INVOICE_FAILED"
    SUBSCRIPTION_UPDATED = "SUBSCRIPTION_UPDATED"
    SUBSCRIPTION_DELETED = "SUBSCRIPTION_DELETED"
    UNSUPPORTED = "UNSUPPORTED"


class GatewayEvent(DTOBase):
    provider: str
    kind: GatewayEventKind
    event_id: Optional[str] = None
    event_type: Optional[str] = None

    # payment-scoped
    external_payment_id: Optional[str] = None
    external_status: Optional[str] = None

    # subscription-scoped
    external_subscription_id: Optional[str] = None
    subscription_status: Optional[str] = None
    attempt_count: int = 0
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None

    raw: Optional[dict[str, Any]] = Field(default=None, exclude=True)

    model_config = ConfigDict(arbitrary_types_allowed=True)


class WebhookResult(str, Enum):
    APPLIED = "APPLIED"
    NOOP = "NOOP"
    IGNORED = "IGNORED"
    ILLEGAL = "ILLEGAL"


class WebhookOutcome(DTOBase):
    provider: str
    result: WebhookResult
    event_kind: GatewayEventKind
    event_id: Optional[str] = None
    payment_id: Optional[str] = None
    payment_status: Optional[str] = None
    subscription_id: Optional[str] = None
    subscription_status: Optional[str] = None
    enrollment_action: Optional[str] = None
    detail: Optional[str] = None


class PaymentDTO(DTOBase):
    id: str
    user_id: str
    course_id: str
    amount: Decimal
    currency: str
    status: str
    payment_type: str
    payment_method: Optional[str] = None
    gateway_provider: Optional[str] = None
    external_payment_id: Optional[str] = None
    external_order_id: Optional[str] = None
    platform_fee_amount: Optional[Decimal] = None
    instructor_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, payment) -> "PaymentDTO":
        return cls(
            id=payment.id,
            user_id=payment.user_id,
            course_id=payment.course_id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status.value,
            payment_type=payment.payment_type.value,
            payment_method=payment.payment_method,
            gateway_provider=payment.gateway_provider,
            external_payment_id=payment.external_payment_id,
            external_order_id=payment.external_order_id,
            platform_fee_amount=payment.platform_fee_amount,
            instructor_amount=payment.instructor_amount,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class SubscriptionDTO(DTOBase):
    id: str
    payment_id: str
    external_subscription_id: str
    external_customer_id: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, subscription) -> "SubscriptionDTO":
        return cls(
            id=subscription.id,
            payment_id=subscription.payment_id,
            external_subscription_id=subscription.external_subscription_id,
            external_customer_id=subscription.external_customer_id,
            status=subscription.status.value,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
            cancelled_at=subscription.cancelled_at,
        )
