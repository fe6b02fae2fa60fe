"""
支付仓储接口 - 定义支付数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .entity import Payment, PaymentStatus


class PaymentRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """创建支付记录"""
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        """根据ID获取支付"""
        pass

    @abstractmethod
    async def get_by_external_id(self, external_payment_id: str) -> Optional[Payment]:
        """根据网关支付ID获取支付（webhook 关联用）"""
        pass

    @abstractmethod
    async def list_by_user(
        self,
        user_id: str,
        skip: int = 0,
        limit: int = 100,
        status: Optional[PaymentStatus] = None,
    ) -> List[Payment]:
        """获取用户的支付列表"""
        pass

    @abstractmethod
    async def compare_and_set_status(
        self,
        payment_id: str,
        expected: Iterable[PaymentStatus],
        target: PaymentStatus,
    ) -> bool:
        """
        条件更新状态：仅当当前状态属于 expected 时写入 target。

        返回是否有行被更新。实现必须是单条原子语句，不能先读后写。
        """
        pass

    @abstractmethod
    async def set_external_reference(
        self,
        payment_id: str,
        external_payment_id: str,
        external_order_id: Optional[str] = None,
    ) -> bool:
        """仅当 external_payment_id 尚未设置时写入，返回是否写入成功"""
        pass
