from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest

from application.dtos.payouts import PayoutRequestDTO
from application.services.payout_service import PayoutApplicationService
from domain.common.exceptions import DomainValidationException, InsufficientBalanceException
from domain.common.values import utcnow
from domain.payment.entity import Payment, PaymentStatus, PaymentType
from domain.payout.entity import BalanceTransactionType, PayoutMethod
from domain.payout.service import InstructorBalanceService
from domain.settings.entity import PlatformSetting, SettingType
from tests.fakes import FakeBalanceRepository


def _payment(instructor_amount="89.11") -> Payment:
    payment = Payment.create(
        user_id="student-1",
        course_id="course-1",
        amount=Decimal("100"),
        currency="BRL",
        payment_type=PaymentType.ONE_TIME,
        instructor_amount=Decimal(instructor_amount),
    )
    return replace(payment, status=PaymentStatus.COMPLETED)


def _age_transactions(store, days):
    for key, t in list(store.transactions.items()):
        store.transactions[key] = replace(t, created_at=t.created_at - timedelta(days=days))


@pytest.fixture
def balances(store):
    return InstructorBalanceService(FakeBalanceRepository(store))


@pytest.mark.asyncio
async def test_credit_is_idempotent_per_payment(balances):
    payment = _payment()
    assert await balances.credit_for_payment(payment, "instructor-1") is not None
    assert await balances.credit_for_payment(payment, "instructor-1") is None
    balance = await balances.get_balance("instructor-1")
    assert balance.pending == Decimal("89.11")
    assert balance.total_earnings == Decimal("89.11")


@pytest.mark.asyncio
async def test_zero_instructor_amount_is_not_credited(balances, store):
    assert await balances.credit_for_payment(_payment("0"), "instructor-1") is None
    assert store.transactions == {}


@pytest.mark.asyncio
async def test_release_moves_matured_credits_once(balances, store):
    old, fresh = _payment("50.00"), _payment("30.00")
    await balances.credit_for_payment(old, "instructor-1")
    _age_transactions(store, 31)
    await balances.credit_for_payment(fresh, "instructor-1")

    assert await balances.release_matured(30) == Decimal("50.00")
    balance = await balances.get_balance("instructor-1")
    assert balance.available == Decimal("50.00")
    assert balance.pending == Decimal("30.00")

    assert await balances.release_matured(30) == Decimal("0.00")


@pytest.mark.asyncio
async def test_refund_after_release_debits_available(balances, store):
    payment = _payment("40.00")
    await balances.credit_for_payment(payment, "instructor-1")
    _age_transactions(store, 40)
    await balances.release_matured(30)

    debit = await balances.debit_for_refund(payment)
    assert debit.type == BalanceTransactionType.DEBIT
    assert await balances.debit_for_refund(payment) is None
    balance = await balances.get_balance("instructor-1")
    assert balance.available == Decimal("0.00")
    assert balance.pending == Decimal("0.00")


@pytest.mark.asyncio
async def test_refunded_credit_is_never_released(balances, store):
    payment = _payment("40.00")
    await balances.credit_for_payment(payment, "instructor-1")
    await balances.debit_for_refund(payment)
    _age_transactions(store, 40)
    assert await balances.release_matured(30) == Decimal("0.00")


@pytest.mark.asyncio
async def test_application_service_uses_hold_days_setting(uow_factory, store):
    store.settings["BALANCE_HOLD_DAYS"] = PlatformSetting("BALANCE_HOLD_DAYS", "7", SettingType.NUMBER)
    balances = InstructorBalanceService(FakeBalanceRepository(store))
    await balances.credit_for_payment(_payment("25.00"), "instructor-1")
    _age_transactions(store, 8)

    service = PayoutApplicationService(uow_factory)
    assert await service.release_matured_balances(now=utcnow()) == Decimal("25.00")
    dto = await service.get_balance("instructor-1")
    assert dto.available == Decimal("25.00")
    assert dto.pending == Decimal("0.00")

    empty = await service.get_balance("nobody")
    assert empty.available == Decimal("0.00")


async def _available(balances, store, amount):
    await balances.credit_for_payment(_payment(amount), "instructor-1")
    _age_transactions(store, 31)
    await balances.release_matured(30)


@pytest.mark.asyncio
async def test_payout_moves_available_to_withdrawn(balances, store):
    await _available(balances, store, "120.00")

    withdrawal = await balances.request_payout("instructor-1", Decimal("70"), PayoutMethod.PIX, Decimal("50"))
    assert withdrawal.type == BalanceTransactionType.WITHDRAWAL
    assert withdrawal.amount == Decimal("70.00")
    balance = await balances.get_balance("instructor-1")
    assert balance.available == Decimal("50.00")
    assert balance.total_withdrawn == Decimal("70.00")
    assert balance.total_earnings == Decimal("120.00")


@pytest.mark.asyncio
async def test_payout_below_minimum_or_above_available_is_refused(balances, store):
    await _available(balances, store, "60.00")
    await balances.credit_for_payment(_payment("500.00"), "instructor-1")

    with pytest.raises(DomainValidationException) as exc:
        await balances.request_payout("instructor-1", Decimal("49.99"), PayoutMethod.PIX, Decimal("50"))
    assert exc.value.field == "amount"

    # pending money cannot be withdrawn
    with pytest.raises(InsufficientBalanceException):
        await balances.request_payout("instructor-1", Decimal("61"), PayoutMethod.BANK_TRANSFER, Decimal("50"))
    with pytest.raises(InsufficientBalanceException):
        await balances.request_payout("nobody", Decimal("60"), PayoutMethod.PIX, Decimal("50"))

    balance = await balances.get_balance("instructor-1")
    assert balance.available == Decimal("60.00")
    assert balance.total_withdrawn == Decimal("0.00")


@pytest.mark.asyncio
async def test_application_service_applies_minimum_setting_and_lists_history(uow_factory, store):
    store.settings["MINIMUM_PAYOUT_AMOUNT"] = PlatformSetting("MINIMUM_PAYOUT_AMOUNT", "100", SettingType.NUMBER)
    balances = InstructorBalanceService(FakeBalanceRepository(store))
    await _available(balances, store, "150.00")

    service = PayoutApplicationService(uow_factory)
    with pytest.raises(DomainValidationException):
        await service.request_payout("instructor-1", PayoutRequestDTO(amount=Decimal("80")))

    payout = await service.request_payout("instructor-1", PayoutRequestDTO(amount=Decimal("100"), method="BANK_TRANSFER"))
    assert payout.balance.available == Decimal("50.00")
    assert payout.transaction.description == "Payout via BANK_TRANSFER"

    history = await service.list_transactions("instructor-1")
    assert sorted(t.type for t in history) == ["CREDIT", "RELEASE", "WITHDRAWAL"]
    assert history[-1].type == "CREDIT"
