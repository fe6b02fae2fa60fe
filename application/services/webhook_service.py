"""
Webhook 对账服务（WebhookReconciler）

Gateway adapters authenticate and normalise the notification; this service
applies it to the ledgers inside a single Unit of Work. Duplicate and
out-of-order deliveries are absorbed by the compare-and-set transitions, so
every attempted processing answers the gateway with success.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from application.dtos.payments import (
    GatewayEvent,
    GatewayEventKind,
    WebhookOutcome,
    WebhookResult,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.settlement_effects import SettlementEffects
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.enrollment.entity import EnrollmentAction
from domain.enrollment.service import EnrollmentReconciler
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.service import PaymentLedger, TransitionOutcome, TransitionResult
from domain.subscription.entity import SubscriptionStatus
from domain.subscription.service import SubscriptionLedger, SubscriptionUpdate


logger = get_logger(__name__)


# normalised gateway status -> internal payment status; anything else is a no-op
GATEWAY_STATUS_TO_PAYMENT = {
    "approved": PaymentStatus.COMPLETED,
    "authorized": PaymentStatus.COMPLETED,
    "rejected": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.FAILED,
    "refunded": PaymentStatus.REFUNDED,
    "charged_back": PaymentStatus.REFUNDED,
}

_OUTCOME_TO_RESULT = {
    TransitionOutcome.APPLIED: WebhookResult.APPLIED,
    TransitionOutcome.NOOP: WebhookResult.NOOP,
    TransitionOutcome.ILLEGAL: WebhookResult.ILLEGAL,
    TransitionOutcome.NOT_FOUND: WebhookResult.IGNORED,
}


class WebhookReconciler:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway_resolver: Callable[[str], PaymentGateway],
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway_resolver = gateway_resolver

    async def handle(self, provider: str, headers: dict[str, Any], body: bytes) -> WebhookOutcome:
        """Authenticate + parse with the provider adapter, then reconcile."""
        gateway = self._gateway_resolver(provider)
        try:
            event = await gateway.parse_webhook(headers, body)
        finally:
            await gateway.aclose()
        return await self.reconcile(event)

    async def reconcile(self, event: GatewayEvent) -> WebhookOutcome:
        handlers = {
            GatewayEventKind.PAYMENT: self._on_payment,
            GatewayEventKind.INVOICE_SUCCEEDED: self._on_invoice_succeeded,
            GatewayEventKind.INVOICE_FAILED: self._on_invoice_failed,
            GatewayEventKind.SUBSCRIPTION_UPDATED: self._on_subscription_updated,
            GatewayEventKind.SUBSCRIPTION_DELETED: self._on_subscription_deleted,
        }
        handler = handlers.get(event.kind)
        if handler is None:
            logger.info(
                "webhook_event_unsupported",
                provider=event.provider,
                event_id=event.event_id,
                event_type=event.event_type,
            )
            return self._outcome(event, WebhookResult.IGNORED, detail="unsupported event")

        async with self._uow_factory() as uow:
            outcome = await handler(uow, event)

        logger.info(
            "webhook_reconciled",
            provider=event.provider,
            event_id=event.event_id,
            kind=event.kind.value,
            result=outcome.result.value,
            payment_id=outcome.payment_id,
            subscription_id=outcome.subscription_id,
        )
        return outcome

    # ------------------------------------------------------------------
    # payments
    # ------------------------------------------------------------------
    async def _on_payment(self, uow: AbstractUnitOfWork, event: GatewayEvent) -> WebhookOutcome:
        status = (event.external_status or "").lower()
        target = GATEWAY_STATUS_TO_PAYMENT.get(status)
        if target is None or not event.external_payment_id:
            logger.info(
                "webhook_status_ignored",
                provider=event.provider,
                external_payment_id=event.external_payment_id,
                external_status=event.external_status,
            )
            return self._outcome(event, WebhookResult.IGNORED, detail=f"status {status or 'missing'} not actionable")

        result = await PaymentLedger(uow.payment_repository).transition(
            target, external_payment_id=event.external_payment_id
        )
        if result.outcome == TransitionOutcome.NOT_FOUND:
            logger.warning(
                "webhook_payment_unknown",
                provider=event.provider,
                external_payment_id=event.external_payment_id,
            )
            return self._outcome(event, WebhookResult.IGNORED, detail="payment not found")

        action = None
        if result.applied:
            action = await SettlementEffects(uow).dispatch(result)
        return self._payment_outcome(event, result, action)

    # ------------------------------------------------------------------
    # subscriptions
    # ------------------------------------------------------------------
    async def _on_invoice_succeeded(self, uow: AbstractUnitOfWork, event: GatewayEvent) -> WebhookOutcome:
        update = await SubscriptionLedger(uow.subscription_repository).mark_invoice_paid(
            event.external_subscription_id or ""
        )
        if update.outcome in (TransitionOutcome.NOT_FOUND, TransitionOutcome.ILLEGAL):
            return self._subscription_outcome(event, update)

        payment = await uow.payment_repository.get_by_id(update.subscription.payment_id)
        if payment is None:
            logger.warning("subscription_payment_missing", subscription_id=update.subscription.id)
            return self._subscription_outcome(event, update)

        effects = SettlementEffects(uow)
        applied_payment = False
        action = EnrollmentAction.NO_ACTION
        if payment.status == PaymentStatus.PENDING:
            transition = await PaymentLedger(uow.payment_repository).transition(
                PaymentStatus.COMPLETED, payment_id=payment.id
            )
            if transition.applied:
                applied_payment = True
                payment = transition.payment
                action = await effects.dispatch(transition)
        elif payment.status == PaymentStatus.COMPLETED:
            # renewal of an already completed payment: only (re)activate access
            action = await effects.enrollments.on_payment_approved(payment.user_id, payment.course_id)

        applied = update.applied or applied_payment or action != EnrollmentAction.NO_ACTION
        return self._subscription_outcome(
            event,
            update,
            result=WebhookResult.APPLIED if applied else WebhookResult.NOOP,
            payment=payment,
            action=action,
        )

    async def _on_invoice_failed(self, uow: AbstractUnitOfWork, event: GatewayEvent) -> WebhookOutcome:
        # only the subscription moves; the linked payment stays open for the gateway's retries
        update = await SubscriptionLedger(uow.subscription_repository).mark_invoice_failed(
            event.external_subscription_id or "", event.attempt_count
        )
        if update.outcome in (TransitionOutcome.NOT_FOUND, TransitionOutcome.ILLEGAL):
            return self._subscription_outcome(event, update)

        payment = await uow.payment_repository.get_by_id(update.subscription.payment_id)
        action = EnrollmentAction.NO_ACTION
        if payment is not None and update.revoked_access:
            action = await EnrollmentReconciler(uow.enrollment_repository).on_subscription_lapsed(
                payment.user_id, payment.course_id
            )
        return self._subscription_outcome(event, update, payment=payment, action=action)

    async def _on_subscription_updated(self, uow: AbstractUnitOfWork, event: GatewayEvent) -> WebhookOutcome:
        update = await SubscriptionLedger(uow.subscription_repository).apply_gateway_update(
            event.external_subscription_id or "",
            event.subscription_status,
            event.period_start,
            event.period_end,
            event.cancel_at_period_end,
        )
        return await self._after_subscription_change(uow, event, update)

    async def _on_subscription_deleted(self, uow: AbstractUnitOfWork, event: GatewayEvent) -> WebhookOutcome:
        update = await SubscriptionLedger(uow.subscription_repository).cancel(
            event.external_subscription_id or ""
        )
        return await self._after_subscription_change(uow, event, update)

    async def _after_subscription_change(
        self,
        uow: AbstractUnitOfWork,
        event: GatewayEvent,
        update: SubscriptionUpdate,
    ) -> WebhookOutcome:
        if not update.applied:
            return self._subscription_outcome(event, update)

        payment = await uow.payment_repository.get_by_id(update.subscription.payment_id)
        if payment is None:
            return self._subscription_outcome(event, update)

        enrollments = EnrollmentReconciler(uow.enrollment_repository)
        action = EnrollmentAction.NO_ACTION
        if update.revoked_access:
            action = await enrollments.on_subscription_lapsed(payment.user_id, payment.course_id)
        elif (
            update.previous_status == SubscriptionStatus.UNPAID
            and update.subscription.status == SubscriptionStatus.ACTIVE
            and payment.status == PaymentStatus.COMPLETED
        ):
            action = await enrollments.on_payment_approved(payment.user_id, payment.course_id)
        return self._subscription_outcome(event, update, payment=payment, action=action)

    # ------------------------------------------------------------------
    # outcomes
    # ------------------------------------------------------------------
    @staticmethod
    def _outcome(event: GatewayEvent, result: WebhookResult, **fields) -> WebhookOutcome:
        return WebhookOutcome(
            provider=event.provider,
            result=result,
            event_kind=event.kind,
            event_id=event.event_id,
            **fields,
        )

    def _payment_outcome(
        self,
        event: GatewayEvent,
        result: TransitionResult,
        action: Optional[EnrollmentAction],
    ) -> WebhookOutcome:
        return self._outcome(
            event,
            _OUTCOME_TO_RESULT[result.outcome],
            payment_id=result.payment.id if result.payment else None,
            payment_status=result.payment.status.value if result.payment else None,
            enrollment_action=action.value if action else None,
        )

    def _subscription_outcome(
        self,
        event: GatewayEvent,
        update: SubscriptionUpdate,
        *,
        result: Optional[WebhookResult] = None,
        payment: Optional[Payment] = None,
        action: Optional[EnrollmentAction] = None,
    ) -> WebhookOutcome:
        if update.outcome == TransitionOutcome.NOT_FOUND:
            logger.warning(
                "webhook_subscription_unknown",
                provider=event.provider,
                external_subscription_id=event.external_subscription_id,
            )
        subscription = update.subscription
        return self._outcome(
            event,
            result or _OUTCOME_TO_RESULT[update.outcome],
            subscription_id=subscription.id if subscription else None,
            subscription_status=subscription.status.value if subscription else None,
            payment_id=payment.id if payment else None,
            payment_status=payment.status.value if payment else None,
            enrollment_action=action.value if action else None,
            detail="subscription not found" if update.outcome == TransitionOutcome.NOT_FOUND else None,
        )
