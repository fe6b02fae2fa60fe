"""
退款申请仓储实现
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.refund.entity import ACTIVE_REFUND_STATUSES, RefundRequest, RefundStatus
from domain.refund.repository import RefundRequestRepository
from infrastructure.models.refund import RefundRequestModel


logger = get_logger(__name__)


class SQLAlchemyRefundRequestRepository(RefundRequestRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: RefundRequestModel) -> RefundRequest:
        return RefundRequest(
            id=model.id,
            payment_id=model.payment_id,
            user_id=model.user_id,
            reason=model.reason,
            amount=Decimal(str(model.amount)),
            status=RefundStatus(model.status),
            external_refund_id=model.external_refund_id,
            processed_at=model.processed_at,
            processed_by=model.processed_by,
            notes=model.notes,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def insert_if_no_active(self, refund: RefundRequest) -> Optional[RefundRequest]:
        model = RefundRequestModel(
            id=refund.id,
            payment_id=refund.payment_id,
            user_id=refund.user_id,
            reason=refund.reason,
            amount=refund.amount,
            status=refund.status.value,
            created_at=refund.created_at,
            updated_at=refund.updated_at,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(model)
                await self.session.flush()
        except IntegrityError:
            logger.info("refund_request_active_exists", payment_id=refund.payment_id)
            return None
        return self._to_entity(model)

    async def get_by_id(self, refund_id: str) -> Optional[RefundRequest]:
        result = await self.session.execute(
            select(RefundRequestModel)
            .where(RefundRequestModel.id == refund_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def has_active_for_payment(self, payment_id: str) -> bool:
        result = await self.session.execute(
            select(
                exists().where(
                    RefundRequestModel.payment_id == payment_id,
                    RefundRequestModel.status.in_([s.value for s in ACTIVE_REFUND_STATUSES]),
                )
            )
        )
        return bool(result.scalar())

    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[RefundRequest]:
        result = await self.session.execute(
            select(RefundRequestModel)
            .where(RefundRequestModel.user_id == user_id)
            .order_by(RefundRequestModel.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list(self, status: Optional[RefundStatus] = None, skip: int = 0, limit: int = 100) -> List[RefundRequest]:
        query = select(RefundRequestModel)
        if status:
            query = query.where(RefundRequestModel.status == status.value)
        query = query.order_by(RefundRequestModel.created_at.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def compare_and_set(self, refund: RefundRequest, expected: RefundStatus) -> bool:
        result = await self.session.execute(
            update(RefundRequestModel)
            .where(
                RefundRequestModel.id == refund.id,
                RefundRequestModel.status == expected.value,
            )
            .values(
                status=refund.status.value,
                external_refund_id=refund.external_refund_id,
                processed_at=refund.processed_at,
                processed_by=refund.processed_by,
                notes=refund.notes,
                updated_at=refund.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
