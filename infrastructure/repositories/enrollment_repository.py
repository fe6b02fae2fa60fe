"""
选课仓储实现 - 依赖 (user_id, course_id) 唯一约束实现原子“不存在则插入”
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.enrollment.entity import Enrollment
from domain.enrollment.repository import EnrollmentRepository
from infrastructure.models.enrollment import EnrollmentModel


logger = get_logger(__name__)


class SQLAlchemyEnrollmentRepository(EnrollmentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: EnrollmentModel) -> Enrollment:
        return Enrollment(
            id=model.id,
            user_id=model.user_id,
            course_id=model.course_id,
            is_active=bool(model.is_active),
            progress=Decimal(str(model.progress or 0)),
            enrolled_at=model.enrolled_at,
            completed_at=model.completed_at,
        )

    async def get_by_user_and_course(self, user_id: str, course_id: str) -> Optional[Enrollment]:
        result = await self.session.execute(
            select(EnrollmentModel)
            .where(EnrollmentModel.user_id == user_id, EnrollmentModel.course_id == course_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def insert_if_absent(self, enrollment: Enrollment) -> Tuple[Enrollment, bool]:
        model = EnrollmentModel(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            is_active=enrollment.is_active,
            progress=enrollment.progress,
            enrolled_at=enrollment.enrolled_at,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(model)
                await self.session.flush()
        except IntegrityError:
            existing = await self.get_by_user_and_course(enrollment.user_id, enrollment.course_id)
            if existing is None:
                raise
            logger.debug("enrollment_already_exists", user_id=enrollment.user_id, course_id=enrollment.course_id)
            return existing, False
        return self._to_entity(model), True

    async def set_active(self, user_id: str, course_id: str, active: bool) -> bool:
        result = await self.session.execute(
            update(EnrollmentModel)
            .where(
                EnrollmentModel.user_id == user_id,
                EnrollmentModel.course_id == course_id,
                EnrollmentModel.is_active.is_(not active),
            )
            .values(is_active=active, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
