"""
优惠券仓储实现

used_count 的递增是一条带条件的 UPDATE，不经过 ORM 对象属性。
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import (
    CouponAlreadyUsedException,
    CouponCodeExistsException,
    CouponNotFoundException,
    DomainValidationException,
)
from domain.coupon.entity import Coupon, CouponUsage, DiscountType
from domain.coupon.repository import CouponRepository, CouponUsageRepository
from infrastructure.models.coupon import CouponModel, CouponUsageModel


logger = get_logger(__name__)


class SQLAlchemyCouponRepository(CouponRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CouponModel) -> Coupon:
        return Coupon(
            id=model.id,
            code=model.code,
            description=model.description,
            discount_type=DiscountType(model.discount_type),
            discount_value=Decimal(str(model.discount_value)),
            max_uses=model.max_uses,
            used_count=model.used_count,
            valid_from=model.valid_from,
            valid_until=model.valid_until,
            is_active=bool(model.is_active),
            course_id=model.course_id,
            created_by_id=model.created_by_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def _fetch_one(self, *criteria) -> Optional[Coupon]:
        result = await self.session.execute(
            select(CouponModel).where(*criteria).execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def create(self, coupon: Coupon) -> Coupon:
        model = CouponModel(
            id=coupon.id,
            code=coupon.code,
            description=coupon.description,
            discount_type=coupon.discount_type.value,
            discount_value=coupon.discount_value,
            max_uses=coupon.max_uses,
            used_count=coupon.used_count,
            valid_from=coupon.valid_from,
            valid_until=coupon.valid_until,
            is_active=coupon.is_active,
            course_id=coupon.course_id,
            created_by_id=coupon.created_by_id,
            created_at=coupon.created_at,
            updated_at=coupon.updated_at,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(model)
                await self.session.flush()
        except IntegrityError:
            logger.warning("coupon_create_conflict", code=coupon.code)
            raise CouponCodeExistsException(coupon.code)
        logger.info("coupon_created", coupon_id=model.id, code=model.code)
        return self._to_entity(model)

    async def get_by_id(self, coupon_id: str) -> Optional[Coupon]:
        return await self._fetch_one(CouponModel.id == coupon_id)

    async def get_by_code(self, code: str) -> Optional[Coupon]:
        return await self._fetch_one(CouponModel.code == code)

    async def find_active_by_code(self, code: str, now: datetime) -> Optional[Coupon]:
        return await self._fetch_one(
            CouponModel.code == code,
            CouponModel.is_active.is_(True),
            CouponModel.valid_from <= now,
            or_(CouponModel.valid_until.is_(None), CouponModel.valid_until > now),
        )

    async def list(
        self,
        *,
        created_by_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Coupon]:
        query = select(CouponModel)
        if created_by_id:
            query = query.where(CouponModel.created_by_id == created_by_id)
        query = query.order_by(CouponModel.created_at.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, coupon: Coupon) -> Coupon:
        stmt = update(CouponModel).where(CouponModel.id == coupon.id)
        if coupon.max_uses is not None:
            # a redemption committed since the read must not end up above the new cap
            stmt = stmt.where(CouponModel.used_count <= coupon.max_uses)
        try:
            async with self.session.begin_nested():
                result = await self.session.execute(
                    stmt
                    .values(
                        code=coupon.code,
                        description=coupon.description,
                        discount_type=coupon.discount_type.value,
                        discount_value=coupon.discount_value,
                        max_uses=coupon.max_uses,
                        valid_from=coupon.valid_from,
                        valid_until=coupon.valid_until,
                        is_active=coupon.is_active,
                        course_id=coupon.course_id,
                        updated_at=coupon.updated_at or datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError:
            raise CouponCodeExistsException(coupon.code)
        if result.rowcount != 1:
            current = await self.get_by_id(coupon.id)
            if current is None:
                raise CouponNotFoundException(coupon.id)
            raise DomainValidationException(
                "max_uses cannot be lower than the redemptions already made",
                field="max_uses",
                details={"used_count": current.used_count, "max_uses": coupon.max_uses},
            )
        logger.info("coupon_updated", coupon_id=coupon.id, code=coupon.code)
        return await self.get_by_id(coupon.id)

    async def try_increment_usage(self, coupon_id: str) -> bool:
        result = await self.session.execute(
            update(CouponModel)
            .where(
                CouponModel.id == coupon_id,
                CouponModel.is_active.is_(True),
                or_(
                    CouponModel.max_uses.is_(None),
                    CouponModel.used_count < CouponModel.max_uses,
                ),
            )
            .values(
                used_count=CouponModel.used_count + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class SQLAlchemyCouponUsageRepository(CouponUsageRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CouponUsageModel) -> CouponUsage:
        return CouponUsage(
            id=model.id,
            coupon_id=model.coupon_id,
            user_id=model.user_id,
            payment_id=model.payment_id,
            discount_amount=Decimal(str(model.discount_amount)),
            used_at=model.used_at,
        )

    async def create(self, usage: CouponUsage) -> CouponUsage:
        model = CouponUsageModel(
            id=usage.id,
            coupon_id=usage.coupon_id,
            user_id=usage.user_id,
            payment_id=usage.payment_id,
            discount_amount=usage.discount_amount,
            used_at=usage.used_at,
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError:
            # the caller's transaction rolls back the used_count increment too
            logger.warning("coupon_usage_conflict", coupon_id=usage.coupon_id, user_id=usage.user_id)
            raise CouponAlreadyUsedException(usage.coupon_id, usage.user_id)
        return self._to_entity(model)

    async def exists_for_user(self, coupon_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            select(
                exists().where(
                    CouponUsageModel.coupon_id == coupon_id,
                    CouponUsageModel.user_id == user_id,
                )
            )
        )
        return bool(result.scalar())

    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[CouponUsage]:
        result = await self.session.execute(
            select(CouponUsageModel)
            .where(CouponUsageModel.user_id == user_id)
            .order_by(CouponUsageModel.used_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_by_coupon(self, coupon_id: str, skip: int = 0, limit: int = 100) -> List[CouponUsage]:
        result = await self.session.execute(
            select(CouponUsageModel)
            .where(CouponUsageModel.coupon_id == coupon_id)
            .order_by(CouponUsageModel.used_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]
