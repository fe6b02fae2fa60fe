from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import jwt
import pytest
from fastapi.testclient import TestClient

from api.dependencies import (
    get_checkout_service,
    get_coupon_service,
    get_payout_service,
    get_refund_service,
    get_webhook_reconciler,
)
from application.dtos.payments import GatewayEvent, GatewayEventKind
from application.services.checkout_service import CheckoutService
from application.services.coupon_service import CouponApplicationService
from application.services.payout_service import PayoutApplicationService
from application.services.refund_service import RefundApplicationService
from application.services.webhook_service import WebhookReconciler
from domain.common.values import utcnow
from domain.coupon.entity import Coupon, DiscountType
from domain.payment.entity import Payment, PaymentStatus, PaymentType
from domain.payout.entity import InstructorBalance
from infrastructure.external.payments.exceptions import PaymentSignatureError
from main import app


def _token(user_id: str, role: str = "STUDENT", expires_in: int = 3600) -> dict:
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return {"Authorization": f"Bearer {jwt.encode(payload, 'test-secret-key', algorithm='HS256')}"}


class StaticGateway:
    provider = "mercadopago"

    def __init__(self, event=None, error=None):
        self.event = event
        self.error = error

    async def parse_webhook(self, headers, body):
        if self.error is not None:
            raise self.error
        return self.event

    async def aclose(self):
        return None


@pytest.fixture
def gateway():
    return StaticGateway()


@pytest.fixture
def client(uow_factory, gateway):
    app.dependency_overrides[get_checkout_service] = lambda: CheckoutService(uow_factory)
    app.dependency_overrides[get_coupon_service] = lambda: CouponApplicationService(uow_factory)
    app.dependency_overrides[get_refund_service] = lambda: RefundApplicationService(uow_factory)
    app.dependency_overrides[get_payout_service] = lambda: PayoutApplicationService(uow_factory)
    app.dependency_overrides[get_webhook_reconciler] = lambda: WebhookReconciler(uow_factory, lambda provider: gateway)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _completed_payment(store, user_id="student-1", age_days=1, external_id=None) -> Payment:
    payment = replace(
        Payment.create(
            user_id=user_id,
            course_id="course-1",
            amount=Decimal("100.00"),
            currency="BRL",
            payment_type=PaymentType.ONE_TIME,
            external_payment_id=external_id,
            instructor_amount=Decimal("89.11"),
        ),
        status=PaymentStatus.COMPLETED,
        created_at=utcnow() - timedelta(days=age_days),
    )
    store.payments[payment.id] = payment
    return payment


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_fee_quote_is_public(client):
    response = client.post("/api/v1/checkout/fees", json={"course_price": "100", "payment_method": "PIX"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    breakdown = body["data"]["breakdown"]
    assert Decimal(str(breakdown["platform_fee"])) == Decimal("9.90")
    assert Decimal(str(breakdown["instructor_amount"])) == Decimal("89.11")
    assert body["data"]["cheapest_method"] == "PIX"


def test_fee_options(client):
    response = client.get("/api/v1/checkout/fees/options", params={"amount": "1000"})
    assert response.status_code == 200
    recommended = [o["method"] for o in response.json()["data"] if o["recommended"]]
    assert recommended == ["BOLETO"]


def test_checkout_requires_authentication(client):
    response = client.post("/api/v1/checkout", json={"course_id": "course-1"})
    assert response.status_code == 401
    assert response.json()["success"] is False

    expired = client.post("/api/v1/checkout", json={"course_id": "course-1"}, headers=_token("student-1", expires_in=-60))
    assert expired.status_code == 401
    assert expired.json()["error"]["type"] == "TokenExpired"


def test_checkout_and_history(client, store):
    response = client.post(
        "/api/v1/checkout",
        json={"course_id": "course-1", "payment_method": "PIX"},
        headers=_token("student-1"),
    )
    assert response.status_code == 201
    payment = response.json()["data"]["payment"]
    assert payment["status"] == "PENDING"

    history = client.get("/api/v1/payments/me", headers=_token("student-1"))
    assert [p["id"] for p in history.json()["data"]["items"]] == [payment["id"]]

    other = client.get(f"/api/v1/payments/{payment['id']}", headers=_token("student-2"))
    assert other.status_code == 404
    admin = client.get(f"/api/v1/payments/{payment['id']}", headers=_token("admin-1", "ADMIN"))
    assert admin.status_code == 200


def test_checkout_unknown_course(client):
    response = client.post("/api/v1/checkout", json={"course_id": "missing"}, headers=_token("student-1"))
    assert response.status_code == 404
    assert response.json()["error"]["type"] == "CourseNotFound"


def test_coupon_validation_and_management(client, store):
    student, instructor = _token("student-1"), _token("instructor-1", "INSTRUCTOR")

    forbidden = client.post(
        "/api/v1/coupons",
        json={"code": "SAVE20", "discount_type": "PERCENTAGE", "discount_value": "20"},
        headers=student,
    )
    assert forbidden.status_code == 403

    created = client.post(
        "/api/v1/coupons",
        json={"code": "save20", "discount_type": "PERCENTAGE", "discount_value": "20"},
        headers=instructor,
    )
    assert created.status_code == 201
    assert created.json()["data"]["code"] == "SAVE20"

    validation = client.post("/api/v1/coupons/validate", json={"code": "SAVE20", "amount": "100"}, headers=student)
    data = validation.json()["data"]
    assert data["is_valid"] is True
    assert Decimal(str(data["final_amount"])) == Decimal("80.00")

    unknown = client.post("/api/v1/coupons/validate", json={"code": "NOPE", "amount": "100"}, headers=student)
    assert unknown.status_code == 200
    assert unknown.json()["data"]["error_kind"] == "NOT_FOUND"

    duplicate = client.post(
        "/api/v1/coupons",
        json={"code": "SAVE20", "discount_type": "FLAT_RATE", "discount_value": "5"},
        headers=instructor,
    )
    assert duplicate.status_code == 409


def test_coupon_owned_by_another_instructor(client, store):
    coupon = Coupon.create(code="MINE", discount_type=DiscountType.FLAT_RATE, discount_value=Decimal("5"), created_by_id="instructor-1")
    store.coupons[coupon.id] = coupon
    response = client.get(f"/api/v1/coupons/{coupon.id}", headers=_token("instructor-2", "INSTRUCTOR"))
    assert response.status_code == 403
    admin = client.delete(f"/api/v1/coupons/{coupon.id}", headers=_token("admin-1", "ADMIN"))
    assert admin.status_code == 200
    assert admin.json()["data"]["is_active"] is False


def test_refund_outside_window_is_reported(client, store):
    payment = _completed_payment(store, age_days=8)
    response = client.post("/api/v1/refunds", json={"payment_id": payment.id}, headers=_token("student-1"))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["success"] is False
    assert data["error_kind"] == "WINDOW_EXPIRED"
    assert data["refund_days_limit"] == 7


def test_refund_admin_flow(client, store):
    payment = _completed_payment(store)
    created = client.post("/api/v1/refunds", json={"payment_id": payment.id, "reason": "duplicate"}, headers=_token("student-1"))
    refund_id = created.json()["data"]["refund"]["id"]

    assert client.post(f"/api/v1/refunds/{refund_id}/approve", json={}, headers=_token("student-1")).status_code == 403

    admin = _token("admin-1", "ADMIN")
    assert client.post(f"/api/v1/refunds/{refund_id}/approve", json={"notes": "ok"}, headers=admin).status_code == 200
    processed = client.post(f"/api/v1/refunds/{refund_id}/process", json={"external_refund_id": "re_1"}, headers=admin)
    assert processed.status_code == 200
    assert processed.json()["data"]["payment_status"] == "REFUNDED"

    again = client.post(f"/api/v1/refunds/{refund_id}/process", json={}, headers=admin)
    assert again.status_code == 409

    listed = client.get("/api/v1/refunds", params={"status": "PROCESSED"}, headers=admin)
    assert [r["id"] for r in listed.json()["data"]["items"]] == [refund_id]


def test_webhook_applies_event(client, store, gateway):
    payment = replace(_completed_payment(store, external_id="ext-1"), status=PaymentStatus.PENDING)
    store.payments[payment.id] = payment
    gateway.event = GatewayEvent(
        provider="mercadopago",
        kind=GatewayEventKind.PAYMENT,
        external_payment_id="ext-1",
        external_status="approved",
    )

    response = client.post("/api/v1/payments/webhooks/mercadopago", content=b'{"data": {"id": "ext-1"}}')
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["result"] == "APPLIED"
    assert data["payment_id"] == payment.id

    replay = client.post("/api/v1/payments/webhooks/mp", content=b'{"data": {"id": "ext-1"}}')
    assert replay.json()["data"]["result"] == "NOOP"
    assert len(store.enrollments) == 1
    assert store.balances["instructor-1"].pending == Decimal("89.11")


def test_webhook_signature_failure_asks_for_redelivery(client, gateway):
    gateway.error = PaymentSignatureError("Invalid webhook signature", provider="mercadopago")
    response = client.post("/api/v1/payments/webhooks/mercadopago", content=b"{}")
    assert response.status_code == 500
    assert response.json()["error"]["type"] == "PaymentSignatureError"


def test_webhook_unknown_provider(client):
    response = client.post("/api/v1/payments/webhooks/paypal", content=b"{}")
    assert response.status_code == 404


def test_instructor_balance(client, store):
    response = client.get("/api/v1/payouts/me/balance", headers=_token("instructor-1", "INSTRUCTOR"))
    assert response.status_code == 200
    assert Decimal(str(response.json()["data"]["pending"])) == Decimal("0.00")
    assert client.get("/api/v1/payouts/me/balance", headers=_token("student-1")).status_code == 403



def test_payout_request_and_history(client, store):
    store.balances["instructor-1"] = InstructorBalance("instructor-1", available=Decimal("80.00"), total_earnings=Decimal("80.00"))
    headers = _token("instructor-1", "INSTRUCTOR")

    too_small = client.post("/api/v1/payouts/me/requests", json={"amount": "20"}, headers=headers)
    assert too_small.status_code == 422
    assert too_small.json()["error"]["field"] == "amount"

    too_big = client.post("/api/v1/payouts/me/requests", json={"amount": "90"}, headers=headers)
    assert too_big.status_code == 409
    assert too_big.json()["error"]["type"] == "InsufficientBalance"

    response = client.post("/api/v1/payouts/me/requests", json={"amount": "60", "method": "PIX"}, headers=headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert Decimal(str(data["balance"]["available"])) == Decimal("20.00")
    assert Decimal(str(data["balance"]["total_withdrawn"])) == Decimal("60.00")

    history = client.get("/api/v1/payouts/me/transactions", headers=headers).json()["data"]
    assert [t["type"] for t in history["items"]] == ["WITHDRAWAL"]


def test_request_validation_error(client):
    response = client.post("/api/v1/refunds", json={}, headers=_token("student-1"))
    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationError"
