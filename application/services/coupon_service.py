"""
优惠券应用服务 - 校验（学生）与管理（讲师/管理员）

讲师只能管理自己创建的优惠券；管理员可以管理全部。
"""
from __future__ import annotations

from typing import Callable, List

from application.dtos.coupons import (
    CouponCreateDTO,
    CouponDTO,
    CouponUpdateDTO,
    CouponUsageDTO,
    CouponValidateRequestDTO,
    CouponValidationDTO,
)
from core.logging_config import get_logger
from domain.common.exceptions import CouponCodeExistsException, CouponNotFoundException, ForbiddenException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.coupon.entity import Coupon
from domain.coupon.service import CouponEngine


logger = get_logger(__name__)


class CouponApplicationService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def validate(self, user_id: str, request: CouponValidateRequestDTO) -> CouponValidationDTO:
        """只读校验，失败时返回 error_kind 而不是抛异常"""
        async with self._uow_factory(readonly=True) as uow:
            engine = CouponEngine(uow.coupon_repository, uow.coupon_usage_repository)
            validation = await engine.validate(
                request.code, user_id, request.amount, course_id=request.course_id
            )
        return CouponValidationDTO.from_validation(request.code, validation)

    @staticmethod
    def _ensure_manageable(coupon: Coupon, actor_id: str, is_admin: bool) -> None:
        if not is_admin and coupon.created_by_id != actor_id:
            raise ForbiddenException(
                "Coupon belongs to another instructor",
                error_type="CouponNotOwner",
                details={"coupon_id": coupon.id},
            )

    async def create(self, actor_id: str, data: CouponCreateDTO) -> CouponDTO:
        async with self._uow_factory() as uow:
            coupon = Coupon.create(
                code=data.code,
                discount_type=data.discount_type,
                discount_value=data.discount_value,
                created_by_id=actor_id,
                description=data.description,
                max_uses=data.max_uses,
                valid_from=data.valid_from,
                valid_until=data.valid_until,
                course_id=data.course_id,
            )
            if await uow.coupon_repository.get_by_code(coupon.code) is not None:
                raise CouponCodeExistsException(coupon.code)
            created = await uow.coupon_repository.create(coupon)
        logger.info("coupon_created", coupon_id=created.id, code=created.code, created_by=actor_id)
        return CouponDTO.from_entity(created)

    async def update(self, coupon_id: str, actor_id: str, is_admin: bool, data: CouponUpdateDTO) -> CouponDTO:
        async with self._uow_factory() as uow:
            coupon = await uow.coupon_repository.get_by_id(coupon_id)
            if coupon is None:
                raise CouponNotFoundException(coupon_id)
            self._ensure_manageable(coupon, actor_id, is_admin)

            changes = data.model_dump(exclude_unset=True)
            updated = coupon.with_changes(**changes)
            if updated.code != coupon.code:
                clash = await uow.coupon_repository.get_by_code(updated.code)
                if clash is not None and clash.id != coupon.id:
                    raise CouponCodeExistsException(updated.code)
            saved = await uow.coupon_repository.update(updated)
        logger.info("coupon_updated", coupon_id=coupon_id, fields=sorted(changes))
        return CouponDTO.from_entity(saved)

    async def deactivate(self, coupon_id: str, actor_id: str, is_admin: bool) -> CouponDTO:
        async with self._uow_factory() as uow:
            coupon = await uow.coupon_repository.get_by_id(coupon_id)
            if coupon is None:
                raise CouponNotFoundException(coupon_id)
            self._ensure_manageable(coupon, actor_id, is_admin)
            saved = await uow.coupon_repository.update(coupon.deactivated())
        logger.info("coupon_deactivated", coupon_id=coupon_id, actor=actor_id)
        return CouponDTO.from_entity(saved)

    async def get(self, coupon_id: str, actor_id: str, is_admin: bool) -> CouponDTO:
        async with self._uow_factory(readonly=True) as uow:
            coupon = await uow.coupon_repository.get_by_id(coupon_id)
        if coupon is None:
            raise CouponNotFoundException(coupon_id)
        self._ensure_manageable(coupon, actor_id, is_admin)
        return CouponDTO.from_entity(coupon)

    async def list(self, actor_id: str, is_admin: bool, skip: int = 0, limit: int = 20) -> List[CouponDTO]:
        async with self._uow_factory(readonly=True) as uow:
            coupons = await uow.coupon_repository.list(
                created_by_id=None if is_admin else actor_id, skip=skip, limit=limit
            )
        return [CouponDTO.from_entity(c) for c in coupons]

    async def usages_for_user(self, user_id: str, skip: int = 0, limit: int = 20) -> List[CouponUsageDTO]:
        async with self._uow_factory(readonly=True) as uow:
            usages = await uow.coupon_usage_repository.list_by_user(user_id, skip=skip, limit=limit)
        return [CouponUsageDTO.from_entity(u) for u in usages]

    async def usages_for_coupon(
        self,
        coupon_id: str,
        actor_id: str,
        is_admin: bool,
        skip: int = 0,
        limit: int = 20,
    ) -> List[CouponUsageDTO]:
        async with self._uow_factory(readonly=True) as uow:
            coupon = await uow.coupon_repository.get_by_id(coupon_id)
            if coupon is None:
                raise CouponNotFoundException(coupon_id)
            self._ensure_manageable(coupon, actor_id, is_admin)
            usages = await uow.coupon_usage_repository.list_by_coupon(coupon_id, skip=skip, limit=limit)
        return [CouponUsageDTO.from_entity(u) for u in usages]
