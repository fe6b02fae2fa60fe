"""
Stripe webhook adapter using the official stripe-python SDK.

Webhook verification uses ``stripe.Webhook.construct_event`` with the
``Stripe-Signature`` header; once verified, the raw body is decoded and
normalised into a ``GatewayEvent``.
"""
from __future__ import annotations

import json
from typing import Any, Optional

import stripe

from application.dtos.payments import GatewayEvent, GatewayEventKind
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentSignatureError


PAYMENT_INTENT_EVENTS = {
    "payment_intent.succeeded": "approved",
    "payment_intent.payment_failed": "rejected",
    "payment_intent.canceled": "cancelled",
}


class StripeClient(BasePaymentClient):
    provider = "stripe"

    def __init__(self, config=None):
        super().__init__(config)
        if self.config.stripe.secret_key:
            stripe.api_key = self.config.stripe.secret_key

    def _verify(self, headers: dict[str, Any], body: bytes) -> None:
        secret = self.config.stripe.webhook_secret
        if not secret:
            raise PaymentSignatureError("Missing STRIPE__WEBHOOK_SECRET", provider=self.provider)
        sig = self._header(headers, "Stripe-Signature")
        if not sig:
            raise PaymentSignatureError("Missing Stripe-Signature header", provider=self.provider)
        try:
            stripe.Webhook.construct_event(
                payload=body,
                sig_header=sig,
                secret=secret,
                tolerance=self.config.webhook.tolerance_seconds,
            )
        except (stripe.SignatureVerificationError, ValueError) as exc:
            raise PaymentSignatureError(str(exc), provider=self.provider) from exc

    async def parse_webhook(self, headers: dict[str, Any], body: bytes) -> GatewayEvent:  # type: ignore[override]
        self._verify(headers, body)
        try:
            event = json.loads(body)
        except ValueError as exc:
            raise PaymentSignatureError("Webhook body is not JSON", provider=self.provider) from exc

        event_type = str(event.get("type") or "")
        obj = (event.get("data") or {}).get("object") or {}
        base = {
            "provider": self.provider,
            "event_id": event.get("id"),
            "event_type": event_type,
            "raw": event,
        }
        self._log("stripe_webhook_received", event_id=event.get("id"), event_type=event_type)

        if event_type in PAYMENT_INTENT_EVENTS:
            return GatewayEvent(
                kind=GatewayEventKind.PAYMENT,
                external_payment_id=obj.get("id"),
                external_status=PAYMENT_INTENT_EVENTS[event_type],
                **base,
            )
        if event_type == "charge.refunded":
            return GatewayEvent(
                kind=GatewayEventKind.PAYMENT,
                external_payment_id=obj.get("payment_intent") or obj.get("id"),
                external_status="refunded",
                **base,
            )
        if event_type in {"invoice.payment_succeeded", "invoice.paid", "invoice.payment_failed"}:
            succeeded = event_type != "invoice.payment_failed"
            return GatewayEvent(
                kind=GatewayEventKind.INVOICE_SUCCEEDED if succeeded else GatewayEventKind.INVOICE_FAILED,
                external_subscription_id=self._invoice_subscription(obj),
                external_payment_id=obj.get("payment_intent"),
                attempt_count=int(obj.get("attempt_count") or 0),
                **base,
            )
        if event_type == "customer.subscription.updated":
            start, end = self._subscription_period(obj)
            return GatewayEvent(
                kind=GatewayEventKind.SUBSCRIPTION_UPDATED,
                external_subscription_id=obj.get("id"),
                subscription_status=obj.get("status"),
                period_start=start,
                period_end=end,
                cancel_at_period_end=obj.get("cancel_at_period_end"),
                **base,
            )
        if event_type == "customer.subscription.deleted":
            return GatewayEvent(
                kind=GatewayEventKind.SUBSCRIPTION_DELETED,
                external_subscription_id=obj.get("id"),
                subscription_status=obj.get("status"),
                **base,
            )
        return GatewayEvent(kind=GatewayEventKind.UNSUPPORTED, **base)

    @staticmethod
    def _invoice_subscription(invoice: dict[str, Any]) -> Optional[str]:
        if invoice.get("subscription"):
            return invoice["subscription"]
        # newer API versions nest it under parent.subscription_details
        details = ((invoice.get("parent") or {}).get("subscription_details") or {})
        return details.get("subscription")

    def _subscription_period(self, subscription: dict[str, Any]):
        start = subscription.get("current_period_start")
        end = subscription.get("current_period_end")
        if start is None and end is None:
            items = (subscription.get("items") or {}).get("data") or []
            if items:
                start = items[0].get("current_period_start")
                end = items[0].get("current_period_end")
        return self._from_timestamp(start), self._from_timestamp(end)
