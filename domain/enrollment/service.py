"""
选课对账（EnrollmentReconciler）- 根据支付/订阅状态创建、暂停、恢复选课
"""
from __future__ import annotations

import structlog

from domain.payment.entity import PaymentType

from .entity import Enrollment, EnrollmentAction
from .repository import EnrollmentRepository

logger = structlog.get_logger(__name__)


class EnrollmentReconciler:
    def __init__(self, enrollment_repository: EnrollmentRepository):
        self.enrollment_repository = enrollment_repository

    async def on_payment_approved(self, user_id: str, course_id: str) -> EnrollmentAction:
        """幂等：不存在则创建；已暂停则恢复；否则无操作"""
        enrollment, created = await self.enrollment_repository.insert_if_absent(
            Enrollment.create(user_id, course_id)
        )
        if created:
            logger.info("enrollment_created", user_id=user_id, course_id=course_id, enrollment_id=enrollment.id)
            return EnrollmentAction.ENROLLED

        if await self.enrollment_repository.set_active(user_id, course_id, True):
            logger.info("enrollment_resumed", user_id=user_id, course_id=course_id)
            return EnrollmentAction.RESUMED
        return EnrollmentAction.NO_ACTION

    async def on_payment_failed(self, user_id: str, course_id: str, payment_type: PaymentType) -> EnrollmentAction:
        # one-time purchases keep access; only recurring access is paused
        if payment_type != PaymentType.SUBSCRIPTION:
            return EnrollmentAction.NO_ACTION
        return await self._pause(user_id, course_id, reason="payment_failed")

    async def on_subscription_lapsed(self, user_id: str, course_id: str) -> EnrollmentAction:
        return await self._pause(user_id, course_id, reason="subscription_lapsed")

    async def on_refunded(self, user_id: str, course_id: str) -> EnrollmentAction:
        return await self._pause(user_id, course_id, reason="refunded")

    async def _pause(self, user_id: str, course_id: str, *, reason: str) -> EnrollmentAction:
        if await self.enrollment_repository.set_active(user_id, course_id, False):
            logger.info("enrollment_paused", user_id=user_id, course_id=course_id, reason=reason)
            return EnrollmentAction.PAUSED
        return EnrollmentAction.NO_ACTION
