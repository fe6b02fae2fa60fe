"""
退款申请数据库模型
"""
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index, text

from .base import Base, Money, utcnow


_ACTIVE = text("status IN ('PENDING', 'APPROVED')")


class RefundRequestModel(Base):
    __tablename__ = "refund_requests"

    id = Column(String(36), primary_key=True)
    payment_id = Column(String(36), ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    amount = Column(Money(), nullable=False)
    status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        index=True,
        comment="PENDING/APPROVED/REJECTED/PROCESSED/FAILED/CANCELLED",
    )
    external_refund_id = Column(String(200), nullable=True, comment="网关退款ID")
    processed_at = Column(DateTime(timezone=True), nullable=True)
    processed_by = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # 每笔支付最多一条活动（PENDING/APPROVED）申请
        Index(
            "uq_refund_requests_active_payment",
            "payment_id",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
    )
