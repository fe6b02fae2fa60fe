"""create_settlement_tables

Revision ID: 5c1e7a2b9d40
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5c1e7a2b9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MONEY = sa.Numeric(precision=15, scale=2)


def upgrade() -> None:
    # courses / enrollments mirror tables owned by the course module
    op.create_table(
        'courses',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('instructor_id', sa.String(length=64), nullable=False),
        sa.Column('price', MONEY, nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='BRL'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_courses_instructor_id', 'courses', ['instructor_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='用户ID'),
        sa.Column('course_id', sa.String(length=64), nullable=False, comment='课程ID'),
        sa.Column('external_payment_id', sa.String(length=200), nullable=True, comment='网关支付ID'),
        sa.Column('external_order_id', sa.String(length=200), nullable=True, comment='网关订单ID'),
        sa.Column('gateway_provider', sa.String(length=50), nullable=True, comment='支付网关: stripe/mercadopago'),
        sa.Column('payment_method', sa.String(length=50), nullable=True, comment='支付方式: PIX/CREDIT_CARD/DEBIT_CARD/BOLETO'),
        sa.Column('amount', MONEY, nullable=False, comment='支付金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='BRL', comment='货币代码 ISO-4217'),
        sa.Column('platform_fee_amount', MONEY, nullable=True, comment='平台费用'),
        sa.Column('instructor_amount', MONEY, nullable=True, comment='讲师所得'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING',
                  comment='PENDING/COMPLETED/FAILED/CANCELLED/REFUNDED'),
        sa.Column('payment_type', sa.String(length=20), nullable=False, server_default='ONE_TIME', comment='ONE_TIME/SUBSCRIPTION'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='扩展元数据'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_payment_id'),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_course_id', 'payments', ['course_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])
    op.create_index('ix_payments_user_status', 'payments', ['user_id', 'status'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=False),
        sa.Column('external_subscription_id', sa.String(length=200), nullable=False, comment='网关订阅ID'),
        sa.Column('external_customer_id', sa.String(length=200), nullable=True, comment='网关客户ID'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='INCOMPLETE'),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_id'),
        sa.UniqueConstraint('external_subscription_id'),
    )
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    op.create_table(
        'coupons',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False, comment='大写归一化的券码'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=20), nullable=False, comment='PERCENTAGE/FLAT_RATE'),
        sa.Column('discount_value', MONEY, nullable=False),
        sa.Column('max_uses', sa.Integer(), nullable=True, comment='为空表示不限'),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('valid_from', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('course_id', sa.String(length=64), nullable=True, comment='为空表示全站通用'),
        sa.Column('created_by_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_coupons_code', 'coupons', ['code'], unique=True)
    op.create_index('ix_coupons_is_active', 'coupons', ['is_active'])
    op.create_index('ix_coupons_course_id', 'coupons', ['course_id'])
    op.create_index('ix_coupons_created_by_id', 'coupons', ['created_by_id'])

    op.create_table(
        'coupon_usages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('coupon_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=False),
        sa.Column('discount_amount', MONEY, nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['coupon_id'], ['coupons.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'coupon_id', name='uq_coupon_usage_user_coupon'),
    )
    op.create_index('ix_coupon_usages_coupon_id', 'coupon_usages', ['coupon_id'])
    op.create_index('ix_coupon_usages_user_id', 'coupon_usages', ['user_id'])

    op.create_table(
        'enrollments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('course_id', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('progress', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_enrollment_user_course'),
    )
    op.create_index('ix_enrollments_user_id', 'enrollments', ['user_id'])
    op.create_index('ix_enrollments_course_id', 'enrollments', ['course_id'])

    op.create_table(
        'refund_requests',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING',
                  comment='PENDING/APPROVED/REJECTED/PROCESSED/FAILED/CANCELLED'),
        sa.Column('external_refund_id', sa.String(length=200), nullable=True, comment='网关退款ID'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_by', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_refund_requests_payment_id', 'refund_requests', ['payment_id'])
    op.create_index('ix_refund_requests_user_id', 'refund_requests', ['user_id'])
    op.create_index('ix_refund_requests_status', 'refund_requests', ['status'])
    op.create_index('ix_refund_requests_created_at', 'refund_requests', ['created_at'])
    # at most one PENDING/APPROVED request per payment
    op.create_index(
        'uq_refund_requests_active_payment',
        'refund_requests',
        ['payment_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'APPROVED')"),
        sqlite_where=sa.text("status IN ('PENDING', 'APPROVED')"),
    )

    op.create_table(
        'platform_settings',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False, server_default='STRING', comment='STRING/NUMBER/BOOLEAN'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('key'),
    )

    op.create_table(
        'instructor_balances',
        sa.Column('instructor_id', sa.String(length=64), nullable=False),
        sa.Column('available', MONEY, nullable=False, server_default='0'),
        sa.Column('pending', MONEY, nullable=False, server_default='0'),
        sa.Column('total_earnings', MONEY, nullable=False, server_default='0'),
        sa.Column('total_withdrawn', MONEY, nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('instructor_id'),
    )

    op.create_table(
        'balance_transactions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('instructor_id', sa.String(length=64), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False, comment='CREDIT/DEBIT/RELEASE/WITHDRAWAL'),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_id', 'type', name='uq_balance_tx_payment_type'),
    )
    op.create_index('ix_balance_transactions_instructor_id', 'balance_transactions', ['instructor_id'])
    op.create_index('ix_balance_tx_type_created', 'balance_transactions', ['type', 'created_at'])

    # default platform configuration
    op.bulk_insert(
        sa.table(
            'platform_settings',
            sa.column('key', sa.String),
            sa.column('value', sa.Text),
            sa.column('type', sa.String),
            sa.column('description', sa.Text),
        ),
        [
            {'key': 'PLATFORM_FEE_PERCENTAGE', 'value': '10', 'type': 'NUMBER', 'description': '平台抽成百分比'},
            {'key': 'REFUND_DAYS_LIMIT', 'value': '7', 'type': 'NUMBER', 'description': '可申请退款的天数'},
            {'key': 'BALANCE_HOLD_DAYS', 'value': '30', 'type': 'NUMBER', 'description': '讲师收入冻结天数'},
            {'key': 'MINIMUM_PAYOUT_AMOUNT', 'value': '50', 'type': 'NUMBER', 'description': '最低提现金额'},
        ],
    )


def downgrade() -> None:
    op.drop_table('balance_transactions')
    op.drop_table('instructor_balances')
    op.drop_table('platform_settings')
    op.drop_index('uq_refund_requests_active_payment', table_name='refund_requests')
    op.drop_table('refund_requests')
    op.drop_table('enrollments')
    op.drop_table('coupon_usages')
    op.drop_table('coupons')
    op.drop_table('subscriptions')
    op.drop_table('payments')
    op.drop_table('courses')
