from dataclasses import replace
from decimal import Decimal

import pytest

from application.services.settlement_effects import SettlementEffects
from domain.enrollment.entity import EnrollmentAction
from domain.payment.entity import Payment, PaymentStatus, PaymentType
from domain.payment.service import PaymentLedger, TransitionOutcome, TransitionResult
from tests.fakes import FakePaymentRepository


async def _pending(store) -> Payment:
    return await PaymentLedger(FakePaymentRepository(store)).create(
        user_id="student-1",
        course_id="course-1",
        amount=Decimal("100"),
        currency="BRL",
        payment_type=PaymentType.ONE_TIME,
        instructor_amount=Decimal("89.11"),
    )


@pytest.mark.asyncio
async def test_effects_follow_transition_events(uow_factory, store):
    payment = await _pending(store)
    ledger = PaymentLedger(FakePaymentRepository(store))

    async with uow_factory() as uow:
        completed = await ledger.transition(PaymentStatus.COMPLETED, payment_id=payment.id)
        assert await SettlementEffects(uow).dispatch(completed) == EnrollmentAction.ENROLLED
    assert store.enrollments[("student-1", "course-1")].is_active
    assert store.balances["instructor-1"].pending == Decimal("89.11")

    async with uow_factory() as uow:
        refunded = await ledger.transition(PaymentStatus.REFUNDED, payment_id=payment.id)
        assert await SettlementEffects(uow).dispatch(refunded) == EnrollmentAction.PAUSED
    assert not store.enrollments[("student-1", "course-1")].is_active
    assert store.balances["instructor-1"].pending == Decimal("0.00")


@pytest.mark.asyncio
async def test_results_without_events_change_nothing(uow_factory, store):
    payment = await _pending(store)
    # a replayed approval: the payment is COMPLETED but the transition carried no event
    noop = TransitionResult(
        outcome=TransitionOutcome.NOOP,
        payment=replace(payment, status=PaymentStatus.COMPLETED),
    )
    async with uow_factory() as uow:
        assert await SettlementEffects(uow).dispatch(noop) == EnrollmentAction.NO_ACTION
    assert store.enrollments == {}
    assert store.balances == {}
