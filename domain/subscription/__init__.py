"""Subscription domain exports."""
from .entity import Subscription, SubscriptionStatus, map_gateway_status
from .repository import SubscriptionRepository
from .service import SubscriptionLedger, SubscriptionUpdate

__all__ = [
    "Subscription",
    "SubscriptionStatus",
    "map_gateway_status",
    "SubscriptionRepository",
    "SubscriptionLedger",
    "SubscriptionUpdate",
]
