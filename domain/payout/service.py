"""
讲师余额服务 - 按支付入账、退款冲销、持有期到期释放、提现

入账/冲销/释放以 (payment_id, type) 流水为幂等键：先写流水，写入成功才调整余额。
提现不关联支付，由条件扣减保证 available 不会被扣成负数。
"""
from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

import structlog

from domain.common.exceptions import DomainValidationException, InsufficientBalanceException
from domain.common.values import to_money, utcnow
from domain.payment.entity import Payment

from .entity import BalanceTransaction, BalanceTransactionType, InstructorBalance, PayoutMethod
from .repository import InstructorBalanceRepository

logger = structlog.get_logger(__name__)


class InstructorBalanceService:
    def __init__(self, repository: InstructorBalanceRepository):
        self.repository = repository

    async def get_balance(self, instructor_id: str) -> InstructorBalance:
        balance = await self.repository.get_balance(instructor_id)
        return balance or InstructorBalance(instructor_id=instructor_id)

    async def credit_for_payment(self, payment: Payment, instructor_id: str) -> Optional[BalanceTransaction]:
        amount = payment.instructor_amount
        if amount is None or amount <= 0:
            logger.info("instructor_credit_skipped", payment_id=payment.id, amount=str(amount))
            return None

        transaction = BalanceTransaction.create(
            instructor_id=instructor_id,
            type=BalanceTransactionType.CREDIT,
            amount=amount,
            payment_id=payment.id,
            description="Course sale",
        )
        if not await self.repository.record_transaction(transaction):
            logger.info("instructor_credit_duplicate", payment_id=payment.id)
            return None

        await self.repository.adjust_balance(instructor_id, pending=amount, total_earnings=amount)
        logger.info(
            "instructor_credited",
            instructor_id=instructor_id,
            payment_id=payment.id,
            amount=str(amount),
        )
        return transaction

    async def debit_for_refund(self, payment: Payment) -> Optional[BalanceTransaction]:
        credit = await self.repository.get_transaction(payment.id, BalanceTransactionType.CREDIT)
        if credit is None:
            return None

        transaction = BalanceTransaction.create(
            instructor_id=credit.instructor_id,
            type=BalanceTransactionType.DEBIT,
            amount=credit.amount,
            payment_id=payment.id,
            description="Refund",
        )
        if not await self.repository.record_transaction(transaction):
            logger.info("instructor_debit_duplicate", payment_id=payment.id)
            return None

        released = await self.repository.get_transaction(payment.id, BalanceTransactionType.RELEASE)
        amount = credit.amount
        if released is not None:
            await self.repository.adjust_balance(credit.instructor_id, available=-amount, total_earnings=-amount)
        else:
            await self.repository.adjust_balance(credit.instructor_id, pending=-amount, total_earnings=-amount)
        logger.info(
            "instructor_debited",
            instructor_id=credit.instructor_id,
            payment_id=payment.id,
            amount=str(amount),
            from_available=released is not None,
        )
        return transaction

    async def release_matured(self, hold_days: int, now: Optional[datetime] = None) -> Decimal:
        """把过了持有期的入账从 pending 转入 available，返回释放总额"""
        cutoff = (now or utcnow()) - timedelta(days=hold_days)
        total = Decimal("0.00")
        for credit in await self.repository.list_matured_credits(cutoff):
            release = BalanceTransaction.create(
                instructor_id=credit.instructor_id,
                type=BalanceTransactionType.RELEASE,
                amount=credit.amount,
                payment_id=credit.payment_id,
                description="Hold period ended",
            )
            if not await self.repository.record_transaction(release):
                continue
            await self.repository.adjust_balance(
                credit.instructor_id,
                available=credit.amount,
                pending=-credit.amount,
            )
            total += credit.amount
        logger.info("instructor_balances_released", cutoff=cutoff.isoformat(), total=str(total))
        return total

    async def request_payout(
        self,
        instructor_id: str,
        amount: Decimal,
        method: PayoutMethod,
        minimum: Decimal,
    ) -> BalanceTransaction:
        """从 available 提现；低于最低金额或余额不足时拒绝"""
        amount = to_money(amount)
        if amount < minimum:
            raise DomainValidationException(
                f"Minimum payout amount is {minimum}",
                field="amount",
                details={"amount": str(amount), "minimum": str(minimum)},
                message_key="payout.below_minimum",
            )
        if not await self.repository.try_withdraw(instructor_id, amount):
            raise InsufficientBalanceException(instructor_id, amount)

        transaction = BalanceTransaction.create(
            instructor_id=instructor_id,
            type=BalanceTransactionType.WITHDRAWAL,
            amount=amount,
            description=f"Payout via {method.value}",
        )
        await self.repository.record_transaction(transaction)
        logger.info(
            "instructor_payout_requested",
            instructor_id=instructor_id,
            amount=str(amount),
            method=method.value,
        )
        return transaction

    async def list_transactions(self, instructor_id: str, skip: int = 0, limit: int = 20) -> List[BalanceTransaction]:
        return await self.repository.list_transactions(instructor_id, skip=skip, limit=limit)
