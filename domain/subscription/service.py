"""
订阅领域服务（SubscriptionLedger）

All updates go through ``save_if_open`` so a late gateway event can never
resurrect a cancelled subscription.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog

from domain.common.exceptions import SubscriptionTerminatedException
from domain.payment.service import TransitionOutcome

from .entity import Subscription, SubscriptionStatus, map_gateway_status
from .repository import SubscriptionRepository

logger = structlog.get_logger(__name__)

# invoice attempts after which the gateway gives up retrying
UNPAID_ATTEMPT_THRESHOLD = 4


@dataclass(frozen=True)
class SubscriptionUpdate:
    outcome: TransitionOutcome
    subscription: Optional[Subscription] = None
    previous_status: Optional[SubscriptionStatus] = None

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED

    @property
    def revoked_access(self) -> bool:
        """True when this update moved the subscription into an access-revoking status."""
        return (
            self.applied
            and self.subscription is not None
            and not self.subscription.grants_access()
            and (self.previous_status is None or self.previous_status not in (
                SubscriptionStatus.UNPAID, SubscriptionStatus.CANCELLED,
            ))
        )


class SubscriptionLedger:
    def __init__(self, subscription_repository: SubscriptionRepository):
        self.subscription_repository = subscription_repository

    async def create_for_payment(
        self,
        *,
        payment_id: str,
        external_subscription_id: str,
        external_customer_id: Optional[str] = None,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
    ) -> Subscription:
        existing = await self.subscription_repository.get_by_payment_id(payment_id)
        if existing is not None:
            return existing
        subscription = Subscription.create(
            payment_id=payment_id,
            external_subscription_id=external_subscription_id,
            external_customer_id=external_customer_id,
            current_period_start=current_period_start,
            current_period_end=current_period_end,
        )
        return await self.subscription_repository.create(subscription)

    async def get_by_external_id(self, external_subscription_id: str) -> Optional[Subscription]:
        return await self.subscription_repository.get_by_external_id(external_subscription_id)

    async def _apply(
        self,
        external_subscription_id: str,
        change: Callable[[Subscription], Subscription],
        event: str,
    ) -> SubscriptionUpdate:
        current = await self.subscription_repository.get_by_external_id(external_subscription_id)
        if current is None:
            logger.warning("subscription_not_found", external_subscription_id=external_subscription_id, trigger=event)
            return SubscriptionUpdate(outcome=TransitionOutcome.NOT_FOUND)

        try:
            updated = change(current)
        except SubscriptionTerminatedException:
            logger.warning("subscription_update_after_cancel", subscription_id=current.id, trigger=event)
            return SubscriptionUpdate(
                outcome=TransitionOutcome.ILLEGAL,
                subscription=current,
                previous_status=current.status,
            )

        if updated is current:
            return SubscriptionUpdate(TransitionOutcome.NOOP, current, current.status)

        if not await self.subscription_repository.save_if_open(updated):
            # lost a race against a cancellation
            latest = await self.subscription_repository.get_by_id(current.id)
            logger.warning("subscription_update_after_cancel", subscription_id=current.id, trigger=event)
            return SubscriptionUpdate(TransitionOutcome.ILLEGAL, latest, current.status)

        outcome = TransitionOutcome.APPLIED
        if (
            updated.status == current.status
            and updated.current_period_start == current.current_period_start
            and updated.current_period_end == current.current_period_end
            and updated.cancel_at_period_end == current.cancel_at_period_end
        ):
            outcome = TransitionOutcome.NOOP
        logger.info(
            "subscription_updated",
            subscription_id=current.id,
            trigger=event,
            previous=current.status.value,
            status=updated.status.value,
            outcome=outcome.value,
        )
        return SubscriptionUpdate(outcome, updated, current.status)

    async def mark_invoice_paid(self, external_subscription_id: str) -> SubscriptionUpdate:
        return await self._apply(
            external_subscription_id,
            lambda s: s.with_status(SubscriptionStatus.ACTIVE),
            "invoice_paid",
        )

    async def mark_invoice_failed(self, external_subscription_id: str, attempt_count: int) -> SubscriptionUpdate:
        status = SubscriptionStatus.UNPAID if attempt_count >= UNPAID_ATTEMPT_THRESHOLD else SubscriptionStatus.PAST_DUE
        return await self._apply(
            external_subscription_id,
            lambda s: s.with_status(status),
            "invoice_failed",
        )

    async def apply_gateway_update(
        self,
        external_subscription_id: str,
        gateway_status: Optional[str],
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
        cancel_at_period_end: Optional[bool] = None,
    ) -> SubscriptionUpdate:
        status = map_gateway_status(gateway_status)

        def change(s: Subscription) -> Subscription:
            if status == SubscriptionStatus.CANCELLED:
                return s.cancelled()
            updated = s.with_status(status).with_period(period_start, period_end)
            if cancel_at_period_end is True and not updated.cancel_at_period_end:
                updated = updated.scheduled_cancel()
            elif cancel_at_period_end is False and updated.cancel_at_period_end:
                updated = updated.resumed()
            return updated

        return await self._apply(external_subscription_id, change, "subscription_updated")

    async def cancel(self, external_subscription_id: str) -> SubscriptionUpdate:
        return await self._apply(external_subscription_id, lambda s: s.cancelled(), "subscription_deleted")

    async def schedule_cancel(self, external_subscription_id: str) -> SubscriptionUpdate:
        return await self._apply(external_subscription_id, lambda s: s.scheduled_cancel(), "cancel_scheduled")
