"""Repository contracts against a real database (aiosqlite).

The conditional updates and unique indexes are what keep concurrent webhook
deliveries and checkouts safe, so they are exercised on SQL rather than fakes.
"""
import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import StaticPool

from application.dtos.checkout import CheckoutRequestDTO
from application.dtos.payments import GatewayEvent, GatewayEventKind, WebhookResult
from application.services.checkout_service import CheckoutService
from application.services.webhook_service import WebhookReconciler
from domain.common.exceptions import CouponExhaustedException, CouponRejectedException, DomainValidationException
from domain.coupon.entity import Coupon, DiscountType
from domain.enrollment.entity import Enrollment
from domain.payment.entity import PaymentStatus
from domain.refund.entity import RefundRequest, RefundStatus
from infrastructure.database import build_engine, create_tables, drop_tables
from infrastructure.models import CourseModel
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


async def _prepare(engine):
    await create_tables(engine)
    factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with factory() as session:
        session.add(CourseModel(id="course-1", instructor_id="instructor-1", price=Decimal("100.00"), currency="BRL"))
        await session.commit()
    return factory


@pytest.fixture
async def session_factory():
    engine = build_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    factory = await _prepare(engine)
    yield factory
    await drop_tables(engine)
    await engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    def factory(readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory=session_factory, readonly=readonly)
    return factory


async def _create_coupon(uow_factory, **overrides) -> Coupon:
    fields = dict(code="ONCE", discount_type=DiscountType.FLAT_RATE, discount_value=Decimal("10"), created_by_id="instructor-1")
    fields.update(overrides)
    async with uow_factory() as uow:
        return await uow.coupon_repository.create(Coupon.create(**fields))


@pytest.mark.asyncio
async def test_try_increment_usage_respects_max_uses(uow_factory):
    coupon = await _create_coupon(uow_factory, max_uses=1)
    async with uow_factory() as uow:
        assert await uow.coupon_repository.try_increment_usage(coupon.id) is True
        assert await uow.coupon_repository.try_increment_usage(coupon.id) is False
    async with uow_factory(readonly=True) as uow:
        assert (await uow.coupon_repository.get_by_id(coupon.id)).used_count == 1


@pytest.mark.asyncio
async def test_checkout_with_single_use_coupon(uow_factory):
    await _create_coupon(uow_factory, max_uses=1)
    service = CheckoutService(uow_factory)

    first = await service.checkout("student-1", CheckoutRequestDTO(course_id="course-1", payment_method="PIX", coupon_code="once"))
    assert first.payment.amount == Decimal("90.00")

    with pytest.raises(CouponRejectedException) as exc:
        await service.checkout("student-2", CheckoutRequestDTO(course_id="course-1", payment_method="PIX", coupon_code="ONCE"))
    assert exc.value.details["error_kind"] == "EXPIRED_OR_EXHAUSTED"

    async with uow_factory(readonly=True) as uow:
        assert len(await uow.payment_repository.list_by_user("student-2")) == 0
        assert len(await uow.coupon_usage_repository.list_by_user("student-1")) == 1


@pytest.mark.asyncio
async def test_insert_if_absent_survives_duplicate(uow_factory):
    async with uow_factory() as uow:
        first, created = await uow.enrollment_repository.insert_if_absent(Enrollment.create("u1", "course-1"))
        assert created
        again, created_again = await uow.enrollment_repository.insert_if_absent(Enrollment.create("u1", "course-1"))
        assert not created_again
        assert again.id == first.id
        # the session is still usable after the savepoint rollback
        assert await uow.enrollment_repository.set_active("u1", "course-1", False) is True
        assert await uow.enrollment_repository.set_active("u1", "course-1", False) is False


@pytest.mark.asyncio
async def test_one_active_refund_per_payment(uow_factory):
    checkout = await CheckoutService(uow_factory).checkout("student-1", CheckoutRequestDTO(course_id="course-1", payment_method="PIX"))
    payment_id = checkout.payment.id

    async with uow_factory() as uow:
        repo = uow.refund_repository
        first = await repo.insert_if_no_active(RefundRequest.create(payment_id=payment_id, user_id="student-1", amount=Decimal("100")))
        assert first is not None
        assert await repo.insert_if_no_active(RefundRequest.create(payment_id=payment_id, user_id="student-1", amount=Decimal("100"))) is None

        cancelled = first.cancelled("student-1")
        assert await repo.compare_and_set(cancelled, expected=RefundStatus.PENDING) is True
        assert await repo.compare_and_set(cancelled, expected=RefundStatus.PENDING) is False

        third = await repo.insert_if_no_active(RefundRequest.create(payment_id=payment_id, user_id="student-1", amount=Decimal("100")))
        assert third is not None
        assert await repo.has_active_for_payment(payment_id)


@pytest.mark.asyncio
async def test_webhook_replay_against_database(uow_factory):
    checkout = await CheckoutService(uow_factory).checkout("student-1", CheckoutRequestDTO(course_id="course-1", payment_method="PIX"))
    async with uow_factory() as uow:
        await uow.payment_repository.set_external_reference(checkout.payment.id, "ext-1")

    reconciler = WebhookReconciler(uow_factory, gateway_resolver=lambda provider: None)
    event = GatewayEvent(provider="mercadopago", kind=GatewayEventKind.PAYMENT, external_payment_id="ext-1", external_status="approved")

    assert (await reconciler.reconcile(event)).result == WebhookResult.APPLIED
    assert (await reconciler.reconcile(event)).result == WebhookResult.NOOP
    rejected = event.model_copy(update={"external_status": "rejected"})
    assert (await reconciler.reconcile(rejected)).result == WebhookResult.ILLEGAL

    async with uow_factory(readonly=True) as uow:
        payment = await uow.payment_repository.get_by_external_id("ext-1")
        assert payment.status == PaymentStatus.COMPLETED
        enrollment = await uow.enrollment_repository.get_by_user_and_course("student-1", "course-1")
        assert enrollment is not None and enrollment.is_active
        balance = await uow.balance_repository.get_balance("instructor-1")
        assert balance.pending == Decimal("89.11")


@pytest.mark.asyncio
async def test_update_refuses_max_uses_below_redemptions(uow_factory):
    coupon = await _create_coupon(uow_factory, max_uses=10)
    async with uow_factory() as uow:
        for _ in range(5):
            assert await uow.coupon_repository.try_increment_usage(coupon.id)

    # the snapshot still says used_count=0, as if read before the redemptions
    with pytest.raises(DomainValidationException) as exc:
        async with uow_factory() as uow:
            await uow.coupon_repository.update(coupon.with_changes(max_uses=2))
    assert exc.value.field == "max_uses"

    async with uow_factory(readonly=True) as uow:
        stored = await uow.coupon_repository.get_by_id(coupon.id)
    assert (stored.used_count, stored.max_uses) == (5, 10)


@pytest.fixture
async def file_session_factory(tmp_path):
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}",
        sqlite_begin="BEGIN IMMEDIATE",
        connect_args={"timeout": 30},
    )
    factory = await _prepare(engine)
    yield factory
    await drop_tables(engine)
    await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_checkouts_never_overspend_coupon(file_session_factory):
    def uow_factory(readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory=file_session_factory, readonly=readonly)

    max_uses, extra = 3, 4
    coupon = await _create_coupon(uow_factory, max_uses=max_uses)
    service = CheckoutService(uow_factory)

    results = await asyncio.gather(
        *(
            service.checkout(
                f"student-{i}",
                CheckoutRequestDTO(course_id="course-1", payment_method="PIX", coupon_code="ONCE"),
            )
            for i in range(max_uses + extra)
        ),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(failures) == extra
    assert all(isinstance(f, (CouponExhaustedException, CouponRejectedException)) for f in failures)

    async with uow_factory(readonly=True) as uow:
        assert (await uow.coupon_repository.get_by_id(coupon.id)).used_count == max_uses
        assert len(await uow.coupon_usage_repository.list_by_coupon(coupon.id)) == max_uses
