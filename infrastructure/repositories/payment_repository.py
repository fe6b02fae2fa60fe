"""
支付/订阅仓储实现 - 使用SQLAlchemy实现数据访问

状态变更全部使用条件 UPDATE（比较并交换），不做先读后写。
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import ExternalPaymentIdConflictException
from domain.payment.entity import Payment, PaymentStatus, PaymentType
from domain.payment.repository import PaymentRepository
from domain.subscription.entity import Subscription, SubscriptionStatus
from domain.subscription.repository import SubscriptionRepository
from infrastructure.models.payment import PaymentModel, SubscriptionModel


logger = get_logger(__name__)


def _dec(value) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


class SQLAlchemyPaymentRepository(PaymentRepository):
    """支付仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentModel) -> Payment:
        """将数据库模型转换为领域实体"""
        return Payment(
            id=model.id,
            user_id=model.user_id,
            course_id=model.course_id,
            amount=_dec(model.amount),
            currency=model.currency,
            status=PaymentStatus(model.status),
            payment_type=PaymentType(model.payment_type),
            payment_method=model.payment_method,
            gateway_provider=model.gateway_provider,
            external_payment_id=model.external_payment_id,
            external_order_id=model.external_order_id,
            platform_fee_amount=_dec(model.platform_fee_amount),
            instructor_amount=_dec(model.instructor_amount),
            created_at=model.created_at,
            updated_at=model.updated_at,
            metadata=model.extra_metadata or {},
        )

    def _to_model(self, entity: Payment) -> PaymentModel:
        """将领域实体转换为数据库模型"""
        return PaymentModel(
            id=entity.id,
            user_id=entity.user_id,
            course_id=entity.course_id,
            amount=entity.amount,
            currency=entity.currency,
            status=entity.status.value,
            payment_type=entity.payment_type.value,
            payment_method=entity.payment_method,
            gateway_provider=entity.gateway_provider,
            external_payment_id=entity.external_payment_id,
            external_order_id=entity.external_order_id,
            platform_fee_amount=entity.platform_fee_amount,
            instructor_amount=entity.instructor_amount,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            extra_metadata=entity.metadata,
        )

    async def _fetch_one(self, *criteria) -> Optional[Payment]:
        result = await self.session.execute(
            select(PaymentModel)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def create(self, payment: Payment) -> Payment:
        """创建支付记录"""
        db_payment = self._to_model(payment)
        try:
            async with self.session.begin_nested():
                self.session.add(db_payment)
                await self.session.flush()
        except IntegrityError:
            logger.warning(
                "payment_create_conflict",
                payment_id=payment.id,
                external_payment_id=payment.external_payment_id,
            )
            raise ExternalPaymentIdConflictException(payment.id, payment.external_payment_id or "")
        await self.session.refresh(db_payment)
        logger.info(
            "payment_created",
            payment_id=db_payment.id,
            user_id=db_payment.user_id,
            course_id=db_payment.course_id,
            amount=str(db_payment.amount),
        )
        return self._to_entity(db_payment)

    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        """根据ID获取支付"""
        return await self._fetch_one(PaymentModel.id == payment_id)

    async def get_by_external_id(self, external_payment_id: str) -> Optional[Payment]:
        """根据网关支付ID获取支付"""
        return await self._fetch_one(PaymentModel.external_payment_id == external_payment_id)

    async def list_by_user(
        self,
        user_id: str,
        skip: int = 0,
        limit: int = 100,
        status: Optional[PaymentStatus] = None,
    ) -> List[Payment]:
        """获取用户的支付列表"""
        query = select(PaymentModel).where(PaymentModel.user_id == user_id)

        if status:
            query = query.where(PaymentModel.status == status.value)

        query = query.order_by(PaymentModel.created_at.desc()).offset(skip).limit(limit)

        result = await self.session.execute(query)
        return [self._to_entity(p) for p in result.scalars().all()]

    async def compare_and_set_status(
        self,
        payment_id: str,
        expected: Iterable[PaymentStatus],
        target: PaymentStatus,
    ) -> bool:
        result = await self.session.execute(
            update(PaymentModel)
            .where(
                PaymentModel.id == payment_id,
                PaymentModel.status.in_([s.value for s in expected]),
            )
            .values(status=target.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_external_reference(
        self,
        payment_id: str,
        external_payment_id: str,
        external_order_id: Optional[str] = None,
    ) -> bool:
        values = {
            "external_payment_id": external_payment_id,
            "updated_at": datetime.now(timezone.utc),
        }
        if external_order_id is not None:
            values["external_order_id"] = external_order_id
        try:
            async with self.session.begin_nested():
                result = await self.session.execute(
                    update(PaymentModel)
                    .where(
                        PaymentModel.id == payment_id,
                        PaymentModel.external_payment_id.is_(None),
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError:
            # the gateway id already belongs to another payment
            logger.warning(
                "payment_external_id_taken",
                payment_id=payment_id,
                external_payment_id=external_payment_id,
            )
            raise ExternalPaymentIdConflictException(payment_id, external_payment_id)
        return result.rowcount == 1


class SQLAlchemySubscriptionRepository(SubscriptionRepository):
    """订阅仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: SubscriptionModel) -> Subscription:
        return Subscription(
            id=model.id,
            payment_id=model.payment_id,
            external_subscription_id=model.external_subscription_id,
            external_customer_id=model.external_customer_id,
            status=SubscriptionStatus(model.status),
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            cancel_at_period_end=bool(model.cancel_at_period_end),
            cancelled_at=model.cancelled_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def _fetch_one(self, *criteria) -> Optional[Subscription]:
        result = await self.session.execute(
            select(SubscriptionModel)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def create(self, subscription: Subscription) -> Subscription:
        model = SubscriptionModel(
            id=subscription.id,
            payment_id=subscription.payment_id,
            external_subscription_id=subscription.external_subscription_id,
            external_customer_id=subscription.external_customer_id,
            status=subscription.status.value,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
            cancelled_at=subscription.cancelled_at,
            created_at=subscription.created_at,
            updated_at=subscription.updated_at,
        )
        self.session.add(model)
        await self.session.flush()
        logger.info(
            "subscription_created",
            subscription_id=model.id,
            payment_id=model.payment_id,
            external_subscription_id=model.external_subscription_id,
        )
        return self._to_entity(model)

    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        return await self._fetch_one(SubscriptionModel.id == subscription_id)

    async def get_by_external_id(self, external_subscription_id: str) -> Optional[Subscription]:
        return await self._fetch_one(SubscriptionModel.external_subscription_id == external_subscription_id)

    async def get_by_payment_id(self, payment_id: str) -> Optional[Subscription]:
        return await self._fetch_one(SubscriptionModel.payment_id == payment_id)

    async def save_if_open(self, subscription: Subscription) -> bool:
        result = await self.session.execute(
            update(SubscriptionModel)
            .where(
                SubscriptionModel.id == subscription.id,
                SubscriptionModel.status != SubscriptionStatus.CANCELLED.value,
            )
            .values(
                status=subscription.status.value,
                current_period_start=subscription.current_period_start,
                current_period_end=subscription.current_period_end,
                cancel_at_period_end=subscription.cancel_at_period_end,
                cancelled_at=subscription.cancelled_at,
                updated_at=subscription.updated_at or datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
