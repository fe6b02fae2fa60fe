"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Settlement errors (21xxx)
    PAYMENT_NOT_FOUND = 21000
    PAYMENT_ALREADY_EXISTS = 21001
    ILLEGAL_TRANSITION = 21002
    EXTERNAL_ID_CONFLICT = 21003
    COURSE_NOT_FOUND = 21004

    # Coupon errors (22xxx)
    COUPON_NOT_FOUND = 22000
    COUPON_EXPIRED_OR_EXHAUSTED = 22001
    COUPON_ALREADY_USED = 22002
    COUPON_CODE_EXISTS = 22003
    COUPON_NOT_APPLICABLE = 22004

    # Refund errors (23xxx)
    REFUND_NOT_FOUND = 23000
    REFUND_NOT_OWNER = 23001
    REFUND_NOT_COMPLETED = 23002
    REFUND_WINDOW_EXPIRED = 23003
    REFUND_ALREADY_REQUESTED = 23004
    REFUND_STATE_CONFLICT = 23005

    # Subscription errors (24xxx)
    SUBSCRIPTION_NOT_FOUND = 24000
    SUBSCRIPTION_TERMINATED = 24001

    # Payout errors (25xxx)
    INSUFFICIENT_BALANCE = 25000

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    RATE_LIMITED = 60004


# Provider status -> normalised gateway vocabulary consumed by the reconciler
PROVIDER_STATUS_TO_INTERNAL = {
    "stripe": {
        "requires_payment_method": "rejected",
        "requires_action": "pending",
        "processing": "pending",
        "requires_capture": "pending",
        "succeeded": "approved",
        "canceled": "cancelled",
    },
    "mercadopago": {
        "pending": "pending",
        "approved": "approved",
        "authorized": "approved",
        "in_process": "pending",
        "in_mediation": "pending",
        "rejected": "rejected",
        "cancelled": "cancelled",
        "refunded": "refunded",
        "charged_back": "refunded",
    },
}
