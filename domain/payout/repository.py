"""讲师余额仓储接口"""
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .entity import BalanceTransaction, BalanceTransactionType, InstructorBalance


class InstructorBalanceRepository(ABC):

    @abstractmethod
    async def get_balance(self, instructor_id: str) -> Optional[InstructorBalance]:
        pass

    @abstractmethod
    async def record_transaction(self, transaction: BalanceTransaction) -> bool:
        """写入流水；同一 (payment_id, type) 已存在时返回 False（幂等键）"""
        pass

    @abstractmethod
    async def get_transaction(self, payment_id: str, type: BalanceTransactionType) -> Optional[BalanceTransaction]:
        pass

    @abstractmethod
    async def adjust_balance(
        self,
        instructor_id: str,
        *,
        available: Decimal = Decimal("0"),
        pending: Decimal = Decimal("0"),
        total_earnings: Decimal = Decimal("0"),
    ) -> None:
        """原子增量更新（SET x = x + delta），余额行不存在时先创建"""
        pass

    @abstractmethod
    async def try_withdraw(self, instructor_id: str, amount: Decimal) -> bool:
        """available -= amount, total_withdrawn += amount；仅当 available >= amount 时生效"""
        pass

    @abstractmethod
    async def list_matured_credits(self, created_before: datetime, limit: int = 500) -> List[BalanceTransaction]:
        """已过持有期、尚未释放且未被退款冲销的 CREDIT 流水"""
        pass

    @abstractmethod
    async def list_transactions(self, instructor_id: str, skip: int = 0, limit: int = 20) -> List[BalanceTransaction]:
        pass
