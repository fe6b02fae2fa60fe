from dataclasses import replace
from decimal import Decimal

import pytest

from domain.enrollment.entity import EnrollmentAction
from domain.enrollment.service import EnrollmentReconciler
from domain.payment.entity import PaymentType
from tests.fakes import FakeEnrollmentRepository


@pytest.fixture
def reconciler(store):
    return EnrollmentReconciler(FakeEnrollmentRepository(store))


@pytest.mark.asyncio
async def test_approval_enrolls_once(reconciler, store):
    assert await reconciler.on_payment_approved("u1", "course-1") == EnrollmentAction.ENROLLED
    assert await reconciler.on_payment_approved("u1", "course-1") == EnrollmentAction.NO_ACTION
    assert len(store.enrollments) == 1


@pytest.mark.asyncio
async def test_one_time_failure_keeps_access(reconciler, store):
    await reconciler.on_payment_approved("u1", "course-1")
    assert await reconciler.on_payment_failed("u1", "course-1", PaymentType.ONE_TIME) == EnrollmentAction.NO_ACTION
    assert store.enrollments[("u1", "course-1")].is_active


@pytest.mark.asyncio
async def test_pause_and_resume_keep_progress(reconciler, store):
    await reconciler.on_payment_approved("u1", "course-1")
    key = ("u1", "course-1")
    store.enrollments[key] = replace(store.enrollments[key], progress=Decimal("42.5"))

    assert await reconciler.on_payment_failed("u1", "course-1", PaymentType.SUBSCRIPTION) == EnrollmentAction.PAUSED
    assert not store.enrollments[key].is_active
    assert await reconciler.on_subscription_lapsed("u1", "course-1") == EnrollmentAction.NO_ACTION

    assert await reconciler.on_payment_approved("u1", "course-1") == EnrollmentAction.RESUMED
    assert store.enrollments[key].is_active
    assert store.enrollments[key].progress == Decimal("42.5")


@pytest.mark.asyncio
async def test_refund_pauses_and_missing_enrollment_is_noop(reconciler):
    assert await reconciler.on_refunded("ghost", "course-1") == EnrollmentAction.NO_ACTION
    await reconciler.on_payment_approved("u1", "course-1")
    assert await reconciler.on_refunded("u1", "course-1") == EnrollmentAction.PAUSED
