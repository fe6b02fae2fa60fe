"""
选课数据库模型（表归课程模块所有，结算只写 is_active 与新建行）
"""
from sqlalchemy import Boolean, Column, String, Numeric, DateTime, UniqueConstraint

from .base import Base, utcnow


class EnrollmentModel(Base):
    __tablename__ = "enrollments"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    course_id = Column(String(64), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    progress = Column(Numeric(precision=5, scale=2), nullable=False, default=0)
    enrolled_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )
