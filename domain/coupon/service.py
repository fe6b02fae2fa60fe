"""
优惠券领域服务（CouponEngine）- 校验与兑换

validate 只读，不产生副作用；apply 在支付创建之后执行，
与 used_count 递增处于同一事务中。
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

import structlog

from domain.common.exceptions import CouponExhaustedException
from domain.common.values import to_money, utcnow

from .entity import Coupon, CouponUsage, normalize_code
from .repository import CouponRepository, CouponUsageRepository

logger = structlog.get_logger(__name__)


class CouponErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    EXPIRED_OR_EXHAUSTED = "EXPIRED_OR_EXHAUSTED"
    ALREADY_USED = "ALREADY_USED"
    NOT_APPLICABLE = "NOT_APPLICABLE"


@dataclass(frozen=True)
class CouponValidation:
    is_valid: bool
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    coupon: Optional[Coupon] = None
    error_kind: Optional[CouponErrorKind] = None

    @classmethod
    def rejected(cls, kind: CouponErrorKind, amount: Decimal, coupon: Optional[Coupon] = None) -> "CouponValidation":
        return cls(
            is_valid=False,
            original_amount=amount,
            discount_amount=Decimal("0.00"),
            final_amount=amount,
            coupon=coupon,
            error_kind=kind,
        )


class CouponEngine:
    def __init__(
        self,
        coupon_repository: CouponRepository,
        usage_repository: CouponUsageRepository,
    ):
        self.coupon_repository = coupon_repository
        self.usage_repository = usage_repository

    async def validate(
        self,
        code: str,
        user_id: str,
        original_amount: Decimal,
        *,
        course_id: Optional[str] = None,
    ) -> CouponValidation:
        """
        校验顺序：NOT_FOUND -> EXPIRED_OR_EXHAUSTED -> NOT_APPLICABLE -> ALREADY_USED
        """
        amount = to_money(original_amount)
        now = utcnow()
        coupon = await self.coupon_repository.find_active_by_code(normalize_code(code), now)
        if coupon is None:
            return CouponValidation.rejected(CouponErrorKind.NOT_FOUND, amount)

        if not coupon.is_valid(now):
            return CouponValidation.rejected(CouponErrorKind.EXPIRED_OR_EXHAUSTED, amount, coupon)

        if not coupon.applies_to(course_id):
            return CouponValidation.rejected(CouponErrorKind.NOT_APPLICABLE, amount, coupon)

        if await self.usage_repository.exists_for_user(coupon.id, user_id):
            return CouponValidation.rejected(CouponErrorKind.ALREADY_USED, amount, coupon)

        discount = coupon.calculate_discount(amount)
        return CouponValidation(
            is_valid=True,
            original_amount=amount,
            discount_amount=discount,
            final_amount=max(Decimal("0.00"), amount - discount),
            coupon=coupon,
        )

    async def apply(
        self,
        coupon_id: str,
        user_id: str,
        payment_id: str,
        discount_amount: Decimal,
    ) -> CouponUsage:
        """
        兑换：条件递增 used_count + 写入 CouponUsage。

        必须在调用方的事务内执行；任何一步失败都由事务整体回滚。
        """
        if not await self.coupon_repository.try_increment_usage(coupon_id):
            logger.warning("coupon_exhausted", coupon_id=coupon_id, user_id=user_id)
            raise CouponExhaustedException(coupon_id)

        usage = CouponUsage.create(
            coupon_id=coupon_id,
            user_id=user_id,
            payment_id=payment_id,
            discount_amount=discount_amount,
        )
        usage = await self.usage_repository.create(usage)
        logger.info(
            "coupon_applied",
            coupon_id=coupon_id,
            user_id=user_id,
            payment_id=payment_id,
            discount_amount=str(usage.discount_amount),
        )
        return usage
