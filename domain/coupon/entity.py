"""
优惠券领域实体

Coupon 与 CouponUsage 都是不可变快照。usage 计数的递增由仓储层的条件更新完成，
实体本身从不原地修改。
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.common.values import ensure_utc, to_money, utcnow

HUNDRED = Decimal("100")
ZERO = Decimal("0.00")


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FLAT_RATE = "FLAT_RATE"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def validate_discount(discount_type: DiscountType, discount_value: Decimal) -> None:
    """PERCENTAGE ∈ (0, 100]；FLAT_RATE > 0"""
    if discount_type == DiscountType.PERCENTAGE:
        if discount_value <= 0 or discount_value > HUNDRED:
            raise DomainValidationException(
                "Percentage discount must be within (0, 100]",
                field="discount_value",
            )
    elif discount_value <= 0:
        raise DomainValidationException(
            "Flat discount must be greater than 0",
            field="discount_value",
        )


@dataclass(frozen=True)
class Coupon:
    """
    优惠券聚合根

    业务规则：
    1. code 唯一，大小写归一（大写）
    2. used_count <= max_uses（max_uses 为空表示不限次数）
    3. 有效期为 [valid_from, valid_until)，valid_until 为空表示不过期
    4. course_id 为空表示全站通用
    """

    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    created_by_id: str
    description: Optional[str] = None
    max_uses: Optional[int] = None
    used_count: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    course_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "code", normalize_code(self.code))
        if not self.code:
            raise DomainValidationException("Coupon code is required", field="code")
        validate_discount(self.discount_type, self.discount_value)
        if self.max_uses is not None and self.max_uses < 1:
            raise DomainValidationException("max_uses must be >= 1", field="max_uses")
        if self.max_uses is not None and self.used_count > self.max_uses:
            raise DomainValidationException(
                "max_uses cannot be lower than the redemptions already made",
                field="max_uses",
                details={"used_count": self.used_count, "max_uses": self.max_uses},
            )
        object.__setattr__(self, "valid_from", ensure_utc(self.valid_from))
        object.__setattr__(self, "valid_until", ensure_utc(self.valid_until))
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))
        object.__setattr__(self, "updated_at", ensure_utc(self.updated_at))
        if self.valid_from and self.valid_until and self.valid_until <= self.valid_from:
            raise DomainValidationException("valid_until must be after valid_from", field="valid_until")

    @classmethod
    def create(
        cls,
        *,
        code: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        created_by_id: str,
        description: Optional[str] = None,
        max_uses: Optional[int] = None,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
        is_active: bool = True,
        course_id: Optional[str] = None,
    ) -> "Coupon":
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(str(discount_value)),
            created_by_id=created_by_id,
            description=description,
            max_uses=max_uses,
            used_count=0,
            valid_from=valid_from or now,
            valid_until=valid_until,
            is_active=is_active,
            course_id=course_id,
            created_at=now,
            updated_at=now,
        )

    def is_within_window(self, now: Optional[datetime] = None) -> bool:
        now = ensure_utc(now) or utcnow()
        if self.valid_from and self.valid_from > now:
            return False
        if self.valid_until and now >= self.valid_until:
            return False
        return True

    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.used_count >= self.max_uses

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.is_active and self.is_within_window(now) and not self.is_exhausted()

    def applies_to(self, course_id: Optional[str]) -> bool:
        return self.course_id is None or course_id is None or self.course_id == course_id

    def calculate_discount(self, original_amount: Decimal) -> Decimal:
        amount = to_money(original_amount)
        if amount <= 0:
            return ZERO
        if self.discount_type == DiscountType.PERCENTAGE:
            discount = to_money(amount * self.discount_value / HUNDRED)
        else:
            discount = to_money(self.discount_value)
        return min(discount, amount)

    def with_changes(self, **changes) -> "Coupon":
        """Edited snapshot; __post_init__ re-runs so invariants are re-checked."""
        return replace(self, updated_at=utcnow(), **changes)

    def deactivated(self) -> "Coupon":
        return self.with_changes(is_active=False)


@dataclass(frozen=True)
class CouponUsage:
    """一次兑换记录，创建后不再修改"""

    id: str
    coupon_id: str
    user_id: str
    payment_id: str
    discount_amount: Decimal
    used_at: Optional[datetime] = None

    @classmethod
    def create(cls, *, coupon_id: str, user_id: str, payment_id: str, discount_amount: Decimal) -> "CouponUsage":
        return cls(
            id=str(uuid.uuid4()),
            coupon_id=coupon_id,
            user_id=user_id,
            payment_id=payment_id,
            discount_amount=to_money(discount_amount),
            used_at=utcnow(),
        )
