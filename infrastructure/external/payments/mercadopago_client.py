"""
Mercado Pago webhook adapter.

Notifications only carry ``data.id``; the authoritative payment status is
fetched from ``GET /v1/payments/{id}``. Signatures follow the
``x-signature: ts=...,v1=...`` scheme (HMAC-SHA256 over a manifest built
from the notification id, ``x-request-id`` and ``ts``).
"""
from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Optional

from application.dtos.payments import GatewayEvent, GatewayEventKind
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentSignatureError,
)


class MercadoPagoClient(BasePaymentClient):
    provider = "mercadopago"

    @property
    def _cfg(self):
        return self.config.mercadopago

    @staticmethod
    def _parse_signature(header: str) -> dict[str, str]:
        parts: dict[str, str] = {}
        for chunk in header.split(","):
            key, sep, value = chunk.strip().partition("=")
            if sep:
                parts[key.strip()] = value.strip()
        return parts

    def _verify(self, headers: dict[str, Any], data_id: str) -> None:
        secret = self._cfg.webhook_secret
        if not secret:
            raise PaymentSignatureError("Missing MERCADOPAGO__WEBHOOK_SECRET", provider=self.provider)
        header = self._header(headers, "x-signature")
        if not header:
            raise PaymentSignatureError("Missing x-signature header", provider=self.provider)
        parts = self._parse_signature(header)
        ts, received = parts.get("ts"), parts.get("v1")
        if not ts or not received:
            raise PaymentSignatureError("Malformed x-signature header", provider=self.provider)

        manifest = f"id:{data_id};"
        request_id = self._header(headers, "x-request-id")
        if request_id:
            manifest += f"request-id:{request_id};"
        manifest += f"ts:{ts};"
        expected = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected, received):
            raise PaymentSignatureError("Invalid webhook signature", provider=self.provider)

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        if not self._cfg.access_token:
            raise PaymentProviderError("MERCADOPAGO__ACCESS_TOKEN not configured", provider=self.provider)
        return await self.get_json(
            f"{self._cfg.api_base.rstrip('/')}/v1/payments/{payment_id}",
            headers={"Authorization": f"Bearer {self._cfg.access_token}"},
            context={"payment_id": payment_id},
        )

    async def parse_webhook(self, headers: dict[str, Any], body: bytes) -> GatewayEvent:  # type: ignore[override]
        try:
            payload = json.loads(body or b"{}")
        except ValueError as exc:
            raise PaymentSignatureError("Webhook body is not JSON", provider=self.provider) from exc

        data_id: Optional[str] = str((payload.get("data") or {}).get("id") or "") or None
        topic = payload.get("type") or payload.get("topic") or ""
        if not data_id:
            raise PaymentSignatureError("Notification without data.id", provider=self.provider)
        self._verify(headers, data_id)

        base = {
            "provider": self.provider,
            "event_id": str(payload.get("id") or data_id),
            "event_type": f"{topic}.{payload.get('action') or ''}".rstrip("."),
            "raw": payload,
        }
        self._log("mercadopago_webhook_received", data_id=data_id, topic=topic)

        if topic != "payment":
            return GatewayEvent(kind=GatewayEventKind.UNSUPPORTED, **base)

        gateway_payment = await self.fetch_payment(data_id)
        return GatewayEvent(
            kind=GatewayEventKind.PAYMENT,
            external_payment_id=str(gateway_payment.get("id") or data_id),
            external_status=self._map_status(gateway_payment.get("status")),
            **base,
        )
