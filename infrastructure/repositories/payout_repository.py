"""
讲师余额仓储实现 - 余额用 SET x = x + delta 原子增量，流水以 (payment_id, type) 去重
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.logging_config import get_logger
from domain.payout.entity import BalanceTransaction, BalanceTransactionType, InstructorBalance
from domain.payout.repository import InstructorBalanceRepository
from infrastructure.models.payout import BalanceTransactionModel, InstructorBalanceModel


logger = get_logger(__name__)


class SQLAlchemyInstructorBalanceRepository(InstructorBalanceRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_transaction(self, model: BalanceTransactionModel) -> BalanceTransaction:
        return BalanceTransaction(
            id=model.id,
            instructor_id=model.instructor_id,
            type=BalanceTransactionType(model.type),
            amount=Decimal(str(model.amount)),
            payment_id=model.payment_id,
            description=model.description,
            created_at=model.created_at,
        )

    async def get_balance(self, instructor_id: str) -> Optional[InstructorBalance]:
        model = await self.session.get(InstructorBalanceModel, instructor_id, populate_existing=True)
        if model is None:
            return None
        return InstructorBalance(
            instructor_id=model.instructor_id,
            available=Decimal(str(model.available)),
            pending=Decimal(str(model.pending)),
            total_earnings=Decimal(str(model.total_earnings)),
            total_withdrawn=Decimal(str(model.total_withdrawn)),
            updated_at=model.updated_at,
        )

    async def record_transaction(self, transaction: BalanceTransaction) -> bool:
        model = BalanceTransactionModel(
            id=transaction.id,
            instructor_id=transaction.instructor_id,
            type=transaction.type.value,
            amount=transaction.amount,
            payment_id=transaction.payment_id,
            description=transaction.description,
            created_at=transaction.created_at,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(model)
                await self.session.flush()
        except IntegrityError:
            return False
        return True

    async def get_transaction(self, payment_id: str, type: BalanceTransactionType) -> Optional[BalanceTransaction]:
        result = await self.session.execute(
            select(BalanceTransactionModel).where(
                BalanceTransactionModel.payment_id == payment_id,
                BalanceTransactionModel.type == type.value,
            )
        )
        model = result.scalar_one_or_none()
        return self._to_transaction(model) if model else None

    async def _ensure_balance_row(self, instructor_id: str) -> None:
        found = await self.session.execute(
            select(InstructorBalanceModel.instructor_id).where(InstructorBalanceModel.instructor_id == instructor_id)
        )
        if found.scalar_one_or_none() is not None:
            return
        try:
            async with self.session.begin_nested():
                self.session.add(InstructorBalanceModel(
                    instructor_id=instructor_id,
                    available=Decimal("0"),
                    pending=Decimal("0"),
                    total_earnings=Decimal("0"),
                    total_withdrawn=Decimal("0"),
                ))
                await self.session.flush()
        except IntegrityError:
            # created concurrently; the row now exists
            logger.debug("instructor_balance_row_exists", instructor_id=instructor_id)

    async def adjust_balance(
        self,
        instructor_id: str,
        *,
        available: Decimal = Decimal("0"),
        pending: Decimal = Decimal("0"),
        total_earnings: Decimal = Decimal("0"),
    ) -> None:
        await self._ensure_balance_row(instructor_id)
        await self.session.execute(
            update(InstructorBalanceModel)
            .where(InstructorBalanceModel.instructor_id == instructor_id)
            .values(
                available=InstructorBalanceModel.available + available,
                pending=InstructorBalanceModel.pending + pending,
                total_earnings=InstructorBalanceModel.total_earnings + total_earnings,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )

    async def try_withdraw(self, instructor_id: str, amount: Decimal) -> bool:
        result = await self.session.execute(
            update(InstructorBalanceModel)
            .where(
                InstructorBalanceModel.instructor_id == instructor_id,
                InstructorBalanceModel.available >= amount,
            )
            .values(
                available=InstructorBalanceModel.available - amount,
                total_withdrawn=InstructorBalanceModel.total_withdrawn + amount,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_matured_credits(self, created_before: datetime, limit: int = 500) -> List[BalanceTransaction]:
        other = aliased(BalanceTransactionModel)
        settled = exists().where(
            and_(
                other.payment_id == BalanceTransactionModel.payment_id,
                other.type.in_([BalanceTransactionType.RELEASE.value, BalanceTransactionType.DEBIT.value]),
            )
        )
        result = await self.session.execute(
            select(BalanceTransactionModel)
            .where(
                BalanceTransactionModel.type == BalanceTransactionType.CREDIT.value,
                BalanceTransactionModel.created_at <= created_before,
                ~settled,
            )
            .order_by(BalanceTransactionModel.created_at)
            .limit(limit)
        )
        return [self._to_transaction(m) for m in result.scalars().all()]

    async def list_transactions(self, instructor_id: str, skip: int = 0, limit: int = 20) -> List[BalanceTransaction]:
        result = await self.session.execute(
            select(BalanceTransactionModel)
            .where(BalanceTransactionModel.instructor_id == instructor_id)
            .order_by(BalanceTransactionModel.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_transaction(m) for m in result.scalars().all()]
