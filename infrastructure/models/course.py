"""
课程数据库模型（只读视图：由课程管理模块维护，结算只读取价格与讲师）
"""
from sqlalchemy import Boolean, Column, String, DateTime

from .base import Base, Money, utcnow


class CourseModel(Base):
    __tablename__ = "courses"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=True)
    instructor_id = Column(String(64), nullable=False, index=True)
    price = Column(Money(), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="BRL")
    is_published = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
