"""
支付状态变更后的下游动作：选课对账 + 讲师余额

由 PaymentLedger.transition 产生的领域事件驱动；只有 APPLIED 的转换带事件，
webhook 与退款处理共用。
"""
from __future__ import annotations

from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.enrollment.entity import EnrollmentAction
from domain.enrollment.service import EnrollmentReconciler
from domain.payment.entity import Payment
from domain.payment.events import PaymentCompleted, PaymentEvent, PaymentFailed, PaymentRefunded
from domain.payment.service import TransitionResult
from domain.payout.service import InstructorBalanceService


logger = get_logger(__name__)


class SettlementEffects:
    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow
        self.enrollments = EnrollmentReconciler(uow.enrollment_repository)
        self.balances = InstructorBalanceService(uow.balance_repository)
        self._handlers = {
            PaymentCompleted: self._on_completed,
            PaymentFailed: self._on_failed,
            PaymentRefunded: self._on_refunded,
        }

    async def dispatch(self, result: TransitionResult) -> EnrollmentAction:
        action = EnrollmentAction.NO_ACTION
        for event in result.events:
            handler = self._handlers.get(type(event))
            if handler is None:
                logger.warning("payment_event_unhandled", event_type=type(event).__name__, payment_id=event.payment_id)
                continue
            action = await handler(event, result.payment)
        return action

    async def _on_completed(self, event: PaymentEvent, payment: Payment) -> EnrollmentAction:
        action = await self.enrollments.on_payment_approved(event.user_id, event.course_id)
        await self._credit_instructor(payment)
        return action

    async def _on_failed(self, event: PaymentEvent, payment: Payment) -> EnrollmentAction:
        return await self.enrollments.on_payment_failed(event.user_id, event.course_id, event.payment_type)

    async def _on_refunded(self, event: PaymentEvent, payment: Payment) -> EnrollmentAction:
        action = await self.enrollments.on_refunded(event.user_id, event.course_id)
        await self.balances.debit_for_refund(payment)
        return action

    async def _credit_instructor(self, payment: Payment) -> None:
        course = await self.uow.course_catalog.get_course(payment.course_id)
        if course is None:
            logger.warning("instructor_credit_course_missing", payment_id=payment.id, course_id=payment.course_id)
            return
        await self.balances.credit_for_payment(payment, course.instructor_id)
