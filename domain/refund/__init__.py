"""Refund domain exports."""
from .entity import ACTIVE_REFUND_STATUSES, RefundRequest, RefundStatus
from .repository import RefundRequestRepository
from .service import RefundCreation, RefundErrorKind, RefundWorkflow

__all__ = [
    "ACTIVE_REFUND_STATUSES",
    "RefundRequest",
    "RefundStatus",
    "RefundRequestRepository",
    "RefundCreation",
    "RefundErrorKind",
    "RefundWorkflow",
]
