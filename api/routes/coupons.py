"""
Coupon API routes - 学生校验；讲师/管理员管理
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import Principal, get_coupon_manager, get_coupon_service, get_current_principal
from application.dtos.coupons import (
    CouponCreateDTO,
    CouponDTO,
    CouponUpdateDTO,
    CouponUsageDTO,
    CouponValidateRequestDTO,
    CouponValidationDTO,
)
from application.services.coupon_service import CouponApplicationService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response


router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.post("/validate", summary="Validate coupon", response_model=ApiResponse[CouponValidationDTO])
async def validate_coupon(
    payload: CouponValidateRequestDTO,
    principal: Principal = Depends(get_current_principal),
    service: CouponApplicationService = Depends(get_coupon_service),
):
    """校验失败不是错误：返回 200，data.is_valid=false 且带 error_kind"""
    result = await service.validate(principal.user_id, payload)
    return success_response(data=result)


@router.get("/me/usages", summary="My coupon usages", response_model=ApiResponse[PaginatedData[CouponUsageDTO]])
async def my_usages(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    principal: Principal = Depends(get_current_principal),
    service: CouponApplicationService = Depends(get_coupon_service),
):
    usages = await service.usages_for_user(principal.user_id, skip=skip, limit=limit)
    return paginated_response(items=usages, skip=skip, limit=limit)


@router.post("", summary="Create coupon", response_model=ApiResponse[CouponDTO], status_code=201)
async def create_coupon(
    payload: CouponCreateDTO,
    principal: Principal = Depends(get_coupon_manager),
    service: CouponApplicationService = Depends(get_coupon_service),
):
    coupon = await service.create(principal.user_id, payload)
    return success_response(data=coupon, message="Coupon created")


@router.get("", summary="List coupons", response_model=ApiResponse[PaginatedData[CouponDTO]])
async def list_coupons(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    principal: Principal = Depends(get_coupon_manager),
    service: CouponApplicationService = Depends(get_coupon_service),
):
    coupons = await service.list(principal.user_id, principal.is_admin, skip=skip, limit=limit)
    return paginated_response(items=coupons, skip=skip, limit=limit)


@router.get("/{coupon_id}", summary="Coupon detail", response_model=ApiResponse[CouponDTO])
async def get_coupon(
    coupon_id: str,
    principal: Principal = Depends(get_coupon_manager),
    service: CouponApplicationService = Depends(get_coupon_service),
):
    return success_response(data=await service.get(coupon_id, principal.user_id, principal.is_admin))


@router.patch("/{coupon_id}", summary="Update coupon", response_model=ApiResponse[CouponDTO])
async def update_coupon(
    coupon_id: str,
    payload: CouponUpdateDTO,
    principal: Principal = Depends(get_coupon_manager),
    service: CouponApplicationService = Depends(get_coupon_service),
):
    coupon = await service.update(coupon_id, principal.user_id, principal.is_admin, payload)
    return success_response(data=coupon, message="Coupon updated")


@router.delete("/{coupon_id}", summary="Deactivate coupon", response_model=ApiResponse[CouponDTO])
async def deactivate_coupon(
    coupon_id: str,
    principal: Principal = Depends(get_coupon_manager),
    service: CouponApplicationService = Depends(get_coupon_service),
):
    """软删除：只停用，历史兑换记录保留"""
    coupon = await service.deactivate(coupon_id, principal.user_id, principal.is_admin)
    return success_response(data=coupon, message="Coupon deactivated")


@router.get("/{coupon_id}/usages", summary="Coupon usages", response_model=ApiResponse[PaginatedData[CouponUsageDTO]])
async def coupon_usages(
    coupon_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    principal: Principal = Depends(get_coupon_manager),
    service: CouponApplicationService = Depends(get_coupon_service),
):
    usages = await service.usages_for_coupon(coupon_id, principal.user_id, principal.is_admin, skip=skip, limit=limit)
    return paginated_response(items=usages, skip=skip, limit=limit)
