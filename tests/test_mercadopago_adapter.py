import hashlib
import hmac
import json

import httpx
import pytest

from application.dtos.payments import GatewayEventKind
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
    PaymentSignatureError,
)
from infrastructure.external.payments.mercadopago_client import MercadoPagoClient


SECRET = "mp_webhook_secret"


def _signed_headers(data_id: str, request_id: str = "req-1", ts: str = "1742505638683") -> dict:
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    digest = hmac.new(SECRET.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return {"X-Signature": f"ts={ts},v1={digest}", "X-Request-Id": request_id}


def _body(data_id="123", topic="payment") -> bytes:
    return json.dumps({"id": 9001, "type": topic, "action": "payment.updated", "data": {"id": data_id}}).encode()


def _client(handler) -> MercadoPagoClient:
    client = MercadoPagoClient()
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


@pytest.mark.asyncio
async def test_signed_notification_fetches_authoritative_status():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 123, "status": "authorized"})

    client = _client(handler)
    try:
        event = await client.parse_webhook(_signed_headers("123"), _body("123"))
    finally:
        await client.aclose()

    assert event.kind == GatewayEventKind.PAYMENT
    assert event.external_payment_id == "123"
    assert event.external_status == "approved"
    assert event.event_id == "9001"
    assert seen[0].url.path == "/v1/payments/123"
    assert seen[0].headers["Authorization"] == "Bearer TEST-access-token"


@pytest.mark.asyncio
async def test_tampered_signature_is_rejected_before_fetch():
    def handler(request):
        raise AssertionError("gateway must not be called")

    headers = _signed_headers("123")
    headers["X-Signature"] = headers["X-Signature"][:-1] + ("0" if headers["X-Signature"][-1] != "0" else "1")
    with pytest.raises(PaymentSignatureError):
        await _client(handler).parse_webhook(headers, _body("123"))


@pytest.mark.asyncio
async def test_signature_binds_the_notification_id():
    with pytest.raises(PaymentSignatureError):
        await MercadoPagoClient().parse_webhook(_signed_headers("999"), _body("123"))


@pytest.mark.asyncio
async def test_missing_or_malformed_signature():
    with pytest.raises(PaymentSignatureError):
        await MercadoPagoClient().parse_webhook({}, _body())
    with pytest.raises(PaymentSignatureError):
        await MercadoPagoClient().parse_webhook({"x-signature": "garbage"}, _body())
    with pytest.raises(PaymentSignatureError):
        await MercadoPagoClient().parse_webhook(_signed_headers("123"), b"{}")


@pytest.mark.asyncio
async def test_non_payment_topic_is_unsupported():
    event = await MercadoPagoClient().parse_webhook(_signed_headers("77"), _body("77", topic="merchant_order"))
    assert event.kind == GatewayEventKind.UNSUPPORTED


@pytest.mark.asyncio
async def test_gateway_errors_are_classified():
    unavailable = _client(lambda request: httpx.Response(503))
    with pytest.raises(PaymentRecoverableError):
        await unavailable.fetch_payment("123")

    missing = _client(lambda request: httpx.Response(404, json={"message": "not found"}))
    with pytest.raises(PaymentProviderError):
        await missing.fetch_payment("123")
