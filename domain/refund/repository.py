"""退款申请仓储接口"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import RefundRequest, RefundStatus


class RefundRequestRepository(ABC):

    @abstractmethod
    async def insert_if_no_active(self, refund: RefundRequest) -> Optional[RefundRequest]:
        """
        插入退款申请；若该支付已有活动（PENDING/APPROVED）申请则返回 None。

        由部分唯一索引保证并发下最多一条活动申请。
        """
        pass

    @abstractmethod
    async def get_by_id(self, refund_id: str) -> Optional[RefundRequest]:
        pass

    @abstractmethod
    async def has_active_for_payment(self, payment_id: str) -> bool:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[RefundRequest]:
        pass

    @abstractmethod
    async def list(self, status: Optional[RefundStatus] = None, skip: int = 0, limit: int = 100) -> List[RefundRequest]:
        pass

    @abstractmethod
    async def compare_and_set(self, refund: RefundRequest, expected: RefundStatus) -> bool:
        """仅当当前状态为 expected 时写入新快照，返回是否写入"""
        pass
