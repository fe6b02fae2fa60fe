"""
支付/订阅数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Boolean, Column, String, DateTime, JSON, Index, ForeignKey
)

from .base import Base, Money, utcnow


class PaymentModel(Base):
    """
    支付数据库模型

    所有业务规则都在 domain.payment.entity.Payment 中
    """
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True)

    user_id = Column(String(64), nullable=False, index=True, comment="用户ID")
    course_id = Column(String(64), nullable=False, index=True, comment="课程ID")

    # 网关信息；external_payment_id 是 webhook 幂等键
    external_payment_id = Column(String(200), nullable=True, unique=True, comment="网关支付ID")
    external_order_id = Column(String(200), nullable=True, comment="网关订单ID")
    gateway_provider = Column(String(50), nullable=True, comment="支付网关: stripe/mercadopago")
    payment_method = Column(String(50), nullable=True, comment="支付方式: PIX/CREDIT_CARD/DEBIT_CARD/BOLETO")

    # 金额（Numeric 存储精确金额）
    amount = Column(Money(), nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, default="BRL", comment="货币代码 ISO-4217")
    platform_fee_amount = Column(Money(), nullable=True, comment="平台费用")
    instructor_amount = Column(Money(), nullable=True, comment="讲师所得")

    status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        index=True,
        comment="PENDING/COMPLETED/FAILED/CANCELLED/REFUNDED",
    )
    payment_type = Column(String(20), nullable=False, default="ONE_TIME", comment="ONE_TIME/SUBSCRIPTION")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    extra_metadata = Column("metadata", JSON, nullable=True, comment="扩展元数据")

    __table_args__ = (
        Index("ix_payments_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return f"<PaymentModel(id={self.id}, status={self.status}, amount={self.amount})>"


class SubscriptionModel(Base):
    """订阅数据库模型（与 Payment 一对一）"""
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True)
    payment_id = Column(
        String(36),
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    external_subscription_id = Column(String(200), nullable=False, unique=True, comment="网关订阅ID")
    external_customer_id = Column(String(200), nullable=True, comment="网关客户ID")
    status = Column(String(20), nullable=False, default="INCOMPLETE", index=True)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<SubscriptionModel(id={self.id}, status={self.status})>"
