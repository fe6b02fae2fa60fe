"""订阅仓储接口"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Subscription


class SubscriptionRepository(ABC):

    @abstractmethod
    async def create(self, subscription: Subscription) -> Subscription:
        pass

    @abstractmethod
    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def get_by_external_id(self, external_subscription_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def get_by_payment_id(self, payment_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def save_if_open(self, subscription: Subscription) -> bool:
        """
        写入快照，但绝不覆盖已取消的行：
        UPDATE ... WHERE id = ? AND status != 'CANCELLED'
        返回是否写入。
        """
        pass
