"""
讲师余额/流水数据库模型
"""
from sqlalchemy import Column, String, DateTime, Text, Index, UniqueConstraint

from .base import Base, Money, utcnow


class InstructorBalanceModel(Base):
    __tablename__ = "instructor_balances"

    instructor_id = Column(String(64), primary_key=True)
    available = Column(Money(), nullable=False, default=0)
    pending = Column(Money(), nullable=False, default=0)
    total_earnings = Column(Money(), nullable=False, default=0)
    total_withdrawn = Column(Money(), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class BalanceTransactionModel(Base):
    __tablename__ = "balance_transactions"

    id = Column(String(36), primary_key=True)
    instructor_id = Column(String(64), nullable=False, index=True)
    type = Column(String(20), nullable=False, comment="CREDIT/DEBIT/RELEASE/WITHDRAWAL")
    amount = Column(Money(), nullable=False)
    payment_id = Column(String(36), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        # 幂等键：每笔支付每种流水只记一次
        UniqueConstraint("payment_id", "type", name="uq_balance_tx_payment_type"),
        Index("ix_balance_tx_type_created", "type", "created_at"),
    )
