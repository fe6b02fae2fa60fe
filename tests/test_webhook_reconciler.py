from dataclasses import replace
from decimal import Decimal

import pytest

from application.dtos.payments import GatewayEvent, GatewayEventKind, WebhookResult
from application.services.webhook_service import WebhookReconciler
from domain.enrollment.entity import Enrollment
from domain.payment.entity import Payment, PaymentStatus, PaymentType
from domain.payout.entity import BalanceTransactionType
from domain.subscription.entity import Subscription, SubscriptionStatus


class RecordingGateway:
    provider = "mercadopago"

    def __init__(self, event: GatewayEvent):
        self.event = event
        self.closed = False
        self.seen = None

    async def parse_webhook(self, headers, body):
        self.seen = (headers, body)
        return self.event

    async def aclose(self):
        self.closed = True


def _payment(store, *, external_id="ext-1", status=PaymentStatus.PENDING, payment_type=PaymentType.ONE_TIME) -> Payment:
    payment = Payment.create(
        user_id="student-1",
        course_id="course-1",
        amount=Decimal("100.00"),
        currency="BRL",
        payment_type=payment_type,
        payment_method="PIX",
        gateway_provider="mercadopago",
        external_payment_id=external_id,
        platform_fee_amount=Decimal("9.90"),
        instructor_amount=Decimal("89.11"),
    )
    payment = replace(payment, status=status)
    store.payments[payment.id] = payment
    return payment


def _subscription(store, payment, status=SubscriptionStatus.ACTIVE) -> Subscription:
    subscription = replace(
        Subscription.create(payment_id=payment.id, external_subscription_id="sub_1"),
        status=status,
    )
    store.subscriptions[subscription.id] = subscription
    return subscription


def _payment_event(status, external_id="ext-1") -> GatewayEvent:
    return GatewayEvent(
        provider="mercadopago",
        kind=GatewayEventKind.PAYMENT,
        event_id="evt-1",
        external_payment_id=external_id,
        external_status=status,
    )


def _invoice_event(kind, attempt_count=0) -> GatewayEvent:
    return GatewayEvent(
        provider="stripe",
        kind=kind,
        event_id="evt_inv",
        external_subscription_id="sub_1",
        attempt_count=attempt_count,
    )


@pytest.fixture
def reconciler(uow_factory):
    return WebhookReconciler(uow_factory, gateway_resolver=lambda provider: None)


@pytest.mark.asyncio
async def test_duplicate_approval_enrolls_and_credits_once(reconciler, store):
    payment = _payment(store)

    first = await reconciler.reconcile(_payment_event("approved"))
    assert first.result == WebhookResult.APPLIED
    assert first.enrollment_action == "enrolled"
    assert first.payment_status == "COMPLETED"

    second = await reconciler.reconcile(_payment_event("approved"))
    assert second.result == WebhookResult.NOOP

    assert len(store.enrollments) == 1
    credits = [t for t in store.transactions.values() if t.type == BalanceTransactionType.CREDIT]
    assert len(credits) == 1
    balance = store.balances["instructor-1"]
    assert balance.pending == Decimal("89.11")
    assert balance.available == Decimal("0.00")

    late = await reconciler.reconcile(_payment_event("rejected"))
    assert late.result == WebhookResult.ILLEGAL
    assert store.payments[payment.id].status == PaymentStatus.COMPLETED


@pytest.mark.asyncio
async def test_rejected_one_time_payment_fails_without_enrollment(reconciler, store):
    payment = _payment(store)
    outcome = await reconciler.reconcile(_payment_event("rejected"))
    assert outcome.result == WebhookResult.APPLIED
    assert outcome.enrollment_action == "no_action"
    assert store.payments[payment.id].status == PaymentStatus.FAILED
    assert store.enrollments == {}


@pytest.mark.asyncio
async def test_unknown_payment_and_pending_status_are_ignored(reconciler, store):
    missing = await reconciler.reconcile(_payment_event("approved", external_id="nope"))
    assert missing.result == WebhookResult.IGNORED
    assert missing.detail == "payment not found"

    _payment(store)
    pending = await reconciler.reconcile(_payment_event("in_process"))
    assert pending.result == WebhookResult.IGNORED
    assert store.enrollments == {}


@pytest.mark.asyncio
async def test_unsupported_event_does_not_open_a_transaction(reconciler):
    outcome = await reconciler.reconcile(GatewayEvent(provider="stripe", kind=GatewayEventKind.UNSUPPORTED, event_type="charge.updated"))
    assert outcome.result == WebhookResult.IGNORED


@pytest.mark.asyncio
async def test_invoice_failed_fourth_attempt_pauses_enrollment(reconciler, store):
    payment = _payment(store, status=PaymentStatus.COMPLETED, payment_type=PaymentType.SUBSCRIPTION)
    subscription = _subscription(store, payment)
    store.enrollments[("student-1", "course-1")] = replace(
        Enrollment.create("student-1", "course-1"), progress=Decimal("60")
    )

    early = await reconciler.reconcile(_invoice_event(GatewayEventKind.INVOICE_FAILED, attempt_count=2))
    assert early.subscription_status == "PAST_DUE"
    assert store.enrollments[("student-1", "course-1")].is_active

    outcome = await reconciler.reconcile(_invoice_event(GatewayEventKind.INVOICE_FAILED, attempt_count=4))
    assert outcome.result == WebhookResult.APPLIED
    assert outcome.subscription_status == "UNPAID"
    assert outcome.enrollment_action == "paused"
    assert store.subscriptions[subscription.id].status == SubscriptionStatus.UNPAID
    enrollment = store.enrollments[("student-1", "course-1")]
    assert not enrollment.is_active
    assert enrollment.progress == Decimal("60")


@pytest.mark.asyncio
async def test_invoice_paid_completes_first_payment(reconciler, store):
    payment = _payment(store, payment_type=PaymentType.SUBSCRIPTION)
    subscription = _subscription(store, payment, status=SubscriptionStatus.INCOMPLETE)

    outcome = await reconciler.reconcile(_invoice_event(GatewayEventKind.INVOICE_SUCCEEDED))
    assert outcome.result == WebhookResult.APPLIED
    assert outcome.enrollment_action == "enrolled"
    assert store.payments[payment.id].status == PaymentStatus.COMPLETED
    assert store.subscriptions[subscription.id].status == SubscriptionStatus.ACTIVE
    assert store.balances["instructor-1"].pending == Decimal("89.11")


@pytest.mark.asyncio
async def test_invoice_paid_after_unpaid_resumes_access(reconciler, store):
    payment = _payment(store, status=PaymentStatus.COMPLETED, payment_type=PaymentType.SUBSCRIPTION)
    _subscription(store, payment, status=SubscriptionStatus.UNPAID)
    store.enrollments[("student-1", "course-1")] = replace(
        Enrollment.create("student-1", "course-1"), is_active=False
    )

    outcome = await reconciler.reconcile(_invoice_event(GatewayEventKind.INVOICE_SUCCEEDED))
    assert outcome.result == WebhookResult.APPLIED
    assert outcome.enrollment_action == "resumed"
    assert store.enrollments[("student-1", "course-1")].is_active


@pytest.mark.asyncio
async def test_subscription_deleted_is_terminal(reconciler, store):
    payment = _payment(store, status=PaymentStatus.COMPLETED, payment_type=PaymentType.SUBSCRIPTION)
    _subscription(store, payment)
    store.enrollments[("student-1", "course-1")] = Enrollment.create("student-1", "course-1")

    deleted = await reconciler.reconcile(_invoice_event(GatewayEventKind.SUBSCRIPTION_DELETED))
    assert deleted.result == WebhookResult.APPLIED
    assert deleted.enrollment_action == "paused"

    late = await reconciler.reconcile(_invoice_event(GatewayEventKind.INVOICE_SUCCEEDED))
    assert late.result == WebhookResult.ILLEGAL
    assert not store.enrollments[("student-1", "course-1")].is_active


@pytest.mark.asyncio
async def test_unknown_subscription_is_ignored(reconciler):
    outcome = await reconciler.reconcile(_invoice_event(GatewayEventKind.INVOICE_FAILED, attempt_count=1))
    assert outcome.result == WebhookResult.IGNORED
    assert outcome.detail == "subscription not found"


@pytest.mark.asyncio
async def test_handle_parses_with_provider_gateway_and_closes_it(uow_factory, store):
    _payment(store)
    gateway = RecordingGateway(_payment_event("approved"))
    reconciler = WebhookReconciler(uow_factory, gateway_resolver=lambda provider: gateway)

    outcome = await reconciler.handle("mercadopago", {"x-signature": "ts=1,v1=abc"}, b"{}")
    assert outcome.result == WebhookResult.APPLIED
    assert gateway.closed
    assert gateway.seen == ({"x-signature": "ts=1,v1=abc"}, b"{}")


@pytest.mark.asyncio
async def test_failed_invoice_retry_then_paid_completes_payment(reconciler, store):
    payment = _payment(store, payment_type=PaymentType.SUBSCRIPTION)
    subscription = _subscription(store, payment, status=SubscriptionStatus.INCOMPLETE)

    failed = await reconciler.reconcile(_invoice_event(GatewayEventKind.INVOICE_FAILED, attempt_count=1))
    assert failed.result == WebhookResult.APPLIED
    assert failed.subscription_status == "PAST_DUE"
    assert store.payments[payment.id].status == PaymentStatus.PENDING

    paid = await reconciler.reconcile(_invoice_event(GatewayEventKind.INVOICE_SUCCEEDED))
    assert paid.result == WebhookResult.APPLIED
    assert paid.enrollment_action == "enrolled"
    assert store.payments[payment.id].status == PaymentStatus.COMPLETED
    assert store.subscriptions[subscription.id].status == SubscriptionStatus.ACTIVE
    assert store.enrollments[("student-1", "course-1")].is_active


@pytest.mark.asyncio
async def test_subscription_update_clears_scheduled_cancel(reconciler, store):
    payment = _payment(store, status=PaymentStatus.COMPLETED, payment_type=PaymentType.SUBSCRIPTION)
    subscription = replace(_subscription(store, payment), cancel_at_period_end=True)
    store.subscriptions[subscription.id] = subscription

    outcome = await reconciler.reconcile(GatewayEvent(
        provider="stripe",
        kind=GatewayEventKind.SUBSCRIPTION_UPDATED,
        event_id="evt_sub",
        external_subscription_id="sub_1",
        subscription_status="active",
        cancel_at_period_end=False,
    ))
    assert outcome.result == WebhookResult.APPLIED
    assert not store.subscriptions[subscription.id].cancel_at_period_end
