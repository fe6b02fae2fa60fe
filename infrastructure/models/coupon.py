"""
优惠券数据库模型
"""
from sqlalchemy import (
    Boolean, Column, String, Integer, DateTime, Text, ForeignKey, UniqueConstraint
)

from .base import Base, Money, utcnow


class CouponModel(Base):
    __tablename__ = "coupons"

    id = Column(String(36), primary_key=True)
    code = Column(String(64), nullable=False, unique=True, index=True, comment="大写归一化的券码")
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False, comment="PERCENTAGE/FLAT_RATE")
    discount_value = Column(Money(), nullable=False)
    max_uses = Column(Integer, nullable=True, comment="为空表示不限")
    used_count = Column(Integer, nullable=False, default=0)
    valid_from = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    course_id = Column(String(64), nullable=True, index=True, comment="为空表示全站通用")
    created_by_id = Column(String(64), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<CouponModel(code={self.code}, used={self.used_count}/{self.max_uses})>"


class CouponUsageModel(Base):
    __tablename__ = "coupon_usages"

    id = Column(String(36), primary_key=True)
    coupon_id = Column(String(36), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    payment_id = Column(String(36), ForeignKey("payments.id", ondelete="CASCADE"), nullable=False)
    discount_amount = Column(Money(), nullable=False)
    used_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "coupon_id", name="uq_coupon_usage_user_coupon"),
    )
