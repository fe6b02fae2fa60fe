"""
Payment domain events.

Dataclass events record important payment lifecycle facts for downstream handling
(enrollment reconciliation, instructor balance). Domain remains free of
infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid

from .entity import PaymentStatus, PaymentType


@dataclass
class PaymentEvent:
    payment_id: str
    user_id: str
    course_id: str
    payment_type: PaymentType
    external_payment_id: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PaymentCompleted(PaymentEvent):
    pass


@dataclass
class PaymentFailed(PaymentEvent):
    status: PaymentStatus = PaymentStatus.FAILED


@dataclass
class PaymentRefunded(PaymentEvent):
    pass
