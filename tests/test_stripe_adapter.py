import json

import pytest
import stripe

from application.dtos.payments import GatewayEventKind
from infrastructure.external.payments.exceptions import PaymentSignatureError
from infrastructure.external.payments.stripe_client import StripeClient


HEADERS = {"Stripe-Signature": "t=1,v1=deadbeef"}


@pytest.fixture
def verified(monkeypatch):
    calls = []

    def fake_construct_event(payload, sig_header, secret, tolerance=None, **kwargs):
        calls.append((payload, sig_header, secret, tolerance))
        return json.loads(payload)

    monkeypatch.setattr(stripe.Webhook, "construct_event", fake_construct_event)
    return calls


def _body(event_type, obj, event_id="evt_1") -> bytes:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode()


@pytest.mark.asyncio
async def test_payment_intent_succeeded(verified):
    event = await StripeClient().parse_webhook(HEADERS, _body("payment_intent.succeeded", {"id": "pi_1"}))
    assert event.kind == GatewayEventKind.PAYMENT
    assert event.external_payment_id == "pi_1"
    assert event.external_status == "approved"
    assert event.event_id == "evt_1"
    _, sig, secret, tolerance = verified[0]
    assert (sig, secret, tolerance) == ("t=1,v1=deadbeef", "whsec_test", 300)


@pytest.mark.asyncio
async def test_charge_refunded_points_at_payment_intent(verified):
    event = await StripeClient().parse_webhook(
        HEADERS, _body("charge.refunded", {"id": "ch_1", "payment_intent": "pi_9"})
    )
    assert event.external_payment_id == "pi_9"
    assert event.external_status == "refunded"


@pytest.mark.asyncio
async def test_invoice_failed_carries_attempt_count(verified):
    event = await StripeClient().parse_webhook(
        HEADERS, _body("invoice.payment_failed", {"id": "in_1", "subscription": "sub_1", "attempt_count": 4})
    )
    assert event.kind == GatewayEventKind.INVOICE_FAILED
    assert event.external_subscription_id == "sub_1"
    assert event.attempt_count == 4


@pytest.mark.asyncio
async def test_invoice_subscription_from_parent_details(verified):
    invoice = {"id": "in_2", "parent": {"subscription_details": {"subscription": "sub_2"}}}
    event = await StripeClient().parse_webhook(HEADERS, _body("invoice.paid", invoice))
    assert event.kind == GatewayEventKind.INVOICE_SUCCEEDED
    assert event.external_subscription_id == "sub_2"


@pytest.mark.asyncio
async def test_subscription_updated_reads_item_period(verified):
    subscription = {
        "id": "sub_3",
        "status": "past_due",
        "cancel_at_period_end": True,
        "items": {"data": [{"current_period_start": 1767225600, "current_period_end": 1769904000}]},
    }
    event = await StripeClient().parse_webhook(HEADERS, _body("customer.subscription.updated", subscription))
    assert event.kind == GatewayEventKind.SUBSCRIPTION_UPDATED
    assert event.subscription_status == "past_due"
    assert event.cancel_at_period_end is True
    assert event.period_start.year == 2026
    assert event.period_end > event.period_start


@pytest.mark.asyncio
async def test_unhandled_type_is_unsupported(verified):
    event = await StripeClient().parse_webhook(HEADERS, _body("customer.created", {"id": "cus_1"}))
    assert event.kind == GatewayEventKind.UNSUPPORTED


@pytest.mark.asyncio
async def test_missing_signature_header():
    with pytest.raises(PaymentSignatureError):
        await StripeClient().parse_webhook({}, _body("payment_intent.succeeded", {"id": "pi_1"}))


@pytest.mark.asyncio
async def test_invalid_signature(monkeypatch):
    def reject(payload, sig_header, secret, tolerance=None, **kwargs):
        raise stripe.SignatureVerificationError("bad signature", sig_header)

    monkeypatch.setattr(stripe.Webhook, "construct_event", reject)
    with pytest.raises(PaymentSignatureError):
        await StripeClient().parse_webhook(HEADERS, _body("payment_intent.succeeded", {"id": "pi_1"}))
