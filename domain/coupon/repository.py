"""
优惠券仓储接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import Coupon, CouponUsage


class CouponRepository(ABC):

    @abstractmethod
    async def create(self, coupon: Coupon) -> Coupon:
        """创建优惠券（code 冲突抛 CouponCodeExistsException）"""
        pass

    @abstractmethod
    async def get_by_id(self, coupon_id: str) -> Optional[Coupon]:
        pass

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[Coupon]:
        """按归一化 code 获取，不论状态"""
        pass

    @abstractmethod
    async def find_active_by_code(self, code: str, now: datetime) -> Optional[Coupon]:
        """按归一化 code 获取当前有效期内且启用的优惠券"""
        pass

    @abstractmethod
    async def list(
        self,
        *,
        created_by_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Coupon]:
        pass

    @abstractmethod
    async def update(self, coupon: Coupon) -> Coupon:
        """更新可编辑字段；不会覆盖 used_count"""
        pass

    @abstractmethod
    async def try_increment_usage(self, coupon_id: str) -> bool:
        """
        原子条件递增：
        UPDATE coupons SET used_count = used_count + 1
        WHERE id = ? AND is_active AND (max_uses IS NULL OR used_count < max_uses)
        """
        pass


class CouponUsageRepository(ABC):

    @abstractmethod
    async def create(self, usage: CouponUsage) -> CouponUsage:
        """写入兑换记录；(user_id, coupon_id) 冲突抛 CouponAlreadyUsedException"""
        pass

    @abstractmethod
    async def exists_for_user(self, coupon_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[CouponUsage]:
        pass

    @abstractmethod
    async def list_by_coupon(self, coupon_id: str, skip: int = 0, limit: int = 100) -> List[CouponUsage]:
        pass
