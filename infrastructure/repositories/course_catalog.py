"""
课程目录只读实现 - 读取课程价格与讲师
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.catalog import CourseCatalog, CourseInfo
from infrastructure.models.course import CourseModel


class SQLAlchemyCourseCatalog(CourseCatalog):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_course(self, course_id: str) -> Optional[CourseInfo]:
        model = await self.session.get(CourseModel, course_id)
        if model is None:
            return None
        return CourseInfo(
            id=model.id,
            instructor_id=model.instructor_id,
            price=Decimal(str(model.price)),
            currency=model.currency,
            title=model.title,
            is_published=bool(model.is_published),
        )
