"""In-memory repositories and Unit of Work used by service tests.

They honour the same contracts as the SQLAlchemy implementations
(conditional updates, idempotency keys) so services behave identically.
"""
from __future__ import annotations

import copy
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from domain.catalog import CourseCatalog, CourseInfo
from domain.common.exceptions import CouponAlreadyUsedException, CouponCodeExistsException, CouponNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.values import utcnow
from domain.coupon.entity import Coupon, CouponUsage
from domain.coupon.repository import CouponRepository, CouponUsageRepository
from domain.enrollment.entity import Enrollment
from domain.enrollment.repository import EnrollmentRepository
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.repository import PaymentRepository
from domain.payout.entity import BalanceTransaction, BalanceTransactionType, InstructorBalance
from domain.payout.repository import InstructorBalanceRepository
from domain.refund.entity import RefundRequest, RefundStatus
from domain.refund.repository import RefundRequestRepository
from domain.settings.entity import PlatformSetting
from domain.settings.repository import PlatformSettingRepository
from domain.subscription.entity import Subscription, SubscriptionStatus
from domain.subscription.repository import SubscriptionRepository


class InMemoryStore:
    def __init__(self) -> None:
        self.payments: Dict[str, Payment] = {}
        self.coupons: Dict[str, Coupon] = {}
        self.usages: Dict[str, CouponUsage] = {}
        self.subscriptions: Dict[str, Subscription] = {}
        self.enrollments: Dict[Tuple[str, str], Enrollment] = {}
        self.refunds: Dict[str, RefundRequest] = {}
        self.settings: Dict[str, PlatformSetting] = {}
        self.balances: Dict[str, InstructorBalance] = {}
        self.transactions: Dict[str, BalanceTransaction] = {}
        self.courses: Dict[str, CourseInfo] = {}

    _TABLES = (
        "payments", "coupons", "usages", "subscriptions", "enrollments",
        "refunds", "settings", "balances", "transactions", "courses",
    )

    def snapshot(self) -> dict:
        return {name: copy.copy(getattr(self, name)) for name in self._TABLES}

    def restore(self, snapshot: dict) -> None:
        for name, table in snapshot.items():
            setattr(self, name, table)


class FakePaymentRepository(PaymentRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, payment: Payment) -> Payment:
        self.store.payments[payment.id] = payment
        return payment

    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        return self.store.payments.get(payment_id)

    async def get_by_external_id(self, external_payment_id: str) -> Optional[Payment]:
        for p in self.store.payments.values():
            if p.external_payment_id == external_payment_id:
                return p
        return None

    async def list_by_user(self, user_id, skip=0, limit=100, status=None) -> List[Payment]:
        rows = [p for p in self.store.payments.values() if p.user_id == user_id and (status is None or p.status == status)]
        rows.sort(key=lambda p: p.created_at, reverse=True)
        return rows[skip: skip + limit]

    async def compare_and_set_status(self, payment_id: str, expected: Iterable[PaymentStatus], target: PaymentStatus) -> bool:
        current = self.store.payments.get(payment_id)
        if current is None or current.status not in set(expected):
            return False
        self.store.payments[payment_id] = replace(current, status=target, updated_at=utcnow())
        return True

    async def set_external_reference(self, payment_id, external_payment_id, external_order_id=None) -> bool:
        current = self.store.payments.get(payment_id)
        if current is None or current.external_payment_id is not None:
            return False
        if await self.get_by_external_id(external_payment_id) is not None:
            return False
        self.store.payments[payment_id] = current.with_external_reference(external_payment_id, external_order_id)
        return True


class FakeCouponRepository(CouponRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, coupon: Coupon) -> Coupon:
        if any(c.code == coupon.code for c in self.store.coupons.values()):
            raise CouponCodeExistsException(coupon.code)
        self.store.coupons[coupon.id] = coupon
        return coupon

    async def get_by_id(self, coupon_id: str) -> Optional[Coupon]:
        return self.store.coupons.get(coupon_id)

    async def get_by_code(self, code: str) -> Optional[Coupon]:
        for c in self.store.coupons.values():
            if c.code == code:
                return c
        return None

    async def find_active_by_code(self, code: str, now: datetime) -> Optional[Coupon]:
        coupon = await self.get_by_code(code)
        if coupon is None or not coupon.is_active or not coupon.is_within_window(now):
            return None
        return coupon

    async def list(self, *, created_by_id=None, skip=0, limit=100) -> List[Coupon]:
        rows = [c for c in self.store.coupons.values() if created_by_id is None or c.created_by_id == created_by_id]
        return rows[skip: skip + limit]

    async def update(self, coupon: Coupon) -> Coupon:
        current = self.store.coupons.get(coupon.id)
        if current is None:
            raise CouponNotFoundException(coupon.id)
        saved = replace(coupon, used_count=current.used_count)
        self.store.coupons[coupon.id] = saved
        return saved

    async def try_increment_usage(self, coupon_id: str) -> bool:
        current = self.store.coupons.get(coupon_id)
        if current is None or not current.is_active:
            return False
        if current.max_uses is not None and current.used_count >= current.max_uses:
            return False
        self.store.coupons[coupon_id] = replace(current, used_count=current.used_count + 1)
        return True


class FakeCouponUsageRepository(CouponUsageRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, usage: CouponUsage) -> CouponUsage:
        if await self.exists_for_user(usage.coupon_id, usage.user_id):
            raise CouponAlreadyUsedException(usage.coupon_id, usage.user_id)
        self.store.usages[usage.id] = usage
        return usage

    async def exists_for_user(self, coupon_id: str, user_id: str) -> bool:
        return any(u.coupon_id == coupon_id and u.user_id == user_id for u in self.store.usages.values())

    async def list_by_user(self, user_id, skip=0, limit=100) -> List[CouponUsage]:
        return [u for u in self.store.usages.values() if u.user_id == user_id][skip: skip + limit]

    async def list_by_coupon(self, coupon_id, skip=0, limit=100) -> List[CouponUsage]:
        return [u for u in self.store.usages.values() if u.coupon_id == coupon_id][skip: skip + limit]


class FakeSubscriptionRepository(SubscriptionRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def create(self, subscription: Subscription) -> Subscription:
        self.store.subscriptions[subscription.id] = subscription
        return subscription

    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        return self.store.subscriptions.get(subscription_id)

    async def get_by_external_id(self, external_subscription_id: str) -> Optional[Subscription]:
        for s in self.store.subscriptions.values():
            if s.external_subscription_id == external_subscription_id:
                return s
        return None

    async def get_by_payment_id(self, payment_id: str) -> Optional[Subscription]:
        for s in self.store.subscriptions.values():
            if s.payment_id == payment_id:
                return s
        return None

    async def save_if_open(self, subscription: Subscription) -> bool:
        current = self.store.subscriptions.get(subscription.id)
        if current is None or current.status == SubscriptionStatus.CANCELLED:
            return False
        self.store.subscriptions[subscription.id] = subscription
        return True


class FakeEnrollmentRepository(EnrollmentRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_by_user_and_course(self, user_id, course_id) -> Optional[Enrollment]:
        return self.store.enrollments.get((user_id, course_id))

    async def insert_if_absent(self, enrollment: Enrollment) -> Tuple[Enrollment, bool]:
        key = (enrollment.user_id, enrollment.course_id)
        existing = self.store.enrollments.get(key)
        if existing is not None:
            return existing, False
        self.store.enrollments[key] = enrollment
        return enrollment, True

    async def set_active(self, user_id, course_id, active) -> bool:
        current = self.store.enrollments.get((user_id, course_id))
        if current is None or current.is_active == active:
            return False
        self.store.enrollments[(user_id, course_id)] = replace(current, is_active=active)
        return True


class FakeRefundRepository(RefundRequestRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def insert_if_no_active(self, refund: RefundRequest) -> Optional[RefundRequest]:
        if await self.has_active_for_payment(refund.payment_id):
            return None
        self.store.refunds[refund.id] = refund
        return refund

    async def get_by_id(self, refund_id: str) -> Optional[RefundRequest]:
        return self.store.refunds.get(refund_id)

    async def has_active_for_payment(self, payment_id: str) -> bool:
        return any(r.payment_id == payment_id and r.is_active() for r in self.store.refunds.values())

    async def list_by_user(self, user_id, skip=0, limit=100) -> List[RefundRequest]:
        return [r for r in self.store.refunds.values() if r.user_id == user_id][skip: skip + limit]

    async def list(self, status=None, skip=0, limit=100) -> List[RefundRequest]:
        return [r for r in self.store.refunds.values() if status is None or r.status == status][skip: skip + limit]

    async def compare_and_set(self, refund: RefundRequest, expected: RefundStatus) -> bool:
        current = self.store.refunds.get(refund.id)
        if current is None or current.status != expected:
            return False
        self.store.refunds[refund.id] = refund
        return True


class FakeSettingRepository(PlatformSettingRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def find_by_key(self, key: str) -> Optional[PlatformSetting]:
        return self.store.settings.get(key)

    async def list_all(self) -> List[PlatformSetting]:
        return list(self.store.settings.values())

    async def upsert(self, setting: PlatformSetting) -> PlatformSetting:
        self.store.settings[setting.key] = setting
        return setting


class FakeBalanceRepository(InstructorBalanceRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_balance(self, instructor_id: str) -> Optional[InstructorBalance]:
        return self.store.balances.get(instructor_id)

    async def record_transaction(self, transaction: BalanceTransaction) -> bool:
        if transaction.payment_id is not None and await self.get_transaction(transaction.payment_id, transaction.type):
            return False
        self.store.transactions[transaction.id] = transaction
        return True

    async def get_transaction(self, payment_id, type) -> Optional[BalanceTransaction]:
        for t in self.store.transactions.values():
            if t.payment_id == payment_id and t.type == type:
                return t
        return None

    async def adjust_balance(self, instructor_id, *, available=Decimal("0"), pending=Decimal("0"), total_earnings=Decimal("0")) -> None:
        current = self.store.balances.get(instructor_id) or InstructorBalance(instructor_id=instructor_id)
        self.store.balances[instructor_id] = replace(
            current,
            available=current.available + available,
            pending=current.pending + pending,
            total_earnings=current.total_earnings + total_earnings,
            updated_at=utcnow(),
        )

    async def try_withdraw(self, instructor_id, amount) -> bool:
        current = self.store.balances.get(instructor_id)
        if current is None or current.available < amount:
            return False
        self.store.balances[instructor_id] = replace(
            current,
            available=current.available - amount,
            total_withdrawn=current.total_withdrawn + amount,
            updated_at=utcnow(),
        )
        return True

    async def list_matured_credits(self, created_before: datetime, limit: int = 500) -> List[BalanceTransaction]:
        settled = {
            t.payment_id for t in self.store.transactions.values()
            if t.type in (BalanceTransactionType.RELEASE, BalanceTransactionType.DEBIT)
        }
        rows = [
            t for t in self.store.transactions.values()
            if t.type == BalanceTransactionType.CREDIT and t.created_at <= created_before and t.payment_id not in settled
        ]
        return sorted(rows, key=lambda t: t.created_at)[:limit]

    async def list_transactions(self, instructor_id, skip=0, limit=20) -> List[BalanceTransaction]:
        rows = [t for t in self.store.transactions.values() if t.instructor_id == instructor_id]
        rows.sort(key=lambda t: t.created_at, reverse=True)
        return rows[skip: skip + limit]


class FakeCourseCatalog(CourseCatalog):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def get_course(self, course_id: str) -> Optional[CourseInfo]:
        return self.store.courses.get(course_id)


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Snapshot on enter, restore on rollback."""

    def __init__(self, store: InMemoryStore, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self.store = store
        self._snapshot: Optional[dict] = None
        self.commits = 0
        self.rollbacks = 0

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        self._snapshot = self.store.snapshot()
        self.payment_repository = FakePaymentRepository(self.store)
        self.coupon_repository = FakeCouponRepository(self.store)
        self.coupon_usage_repository = FakeCouponUsageRepository(self.store)
        self.subscription_repository = FakeSubscriptionRepository(self.store)
        self.enrollment_repository = FakeEnrollmentRepository(self.store)
        self.refund_repository = FakeRefundRepository(self.store)
        self.setting_repository = FakeSettingRepository(self.store)
        self.balance_repository = FakeBalanceRepository(self.store)
        self.course_catalog = FakeCourseCatalog(self.store)
        return self

    async def commit(self) -> None:
        self.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self.rollbacks += 1
        if self._snapshot is not None:
            self.store.restore(self._snapshot)
        self._committed = False


def make_uow_factory(store: InMemoryStore):
    def factory(readonly: bool = False) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store, readonly=readonly)
    return factory
