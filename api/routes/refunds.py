"""
Refund API routes - 学生发起/查看/取消；管理员审批与标记处理结果
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import Principal, get_admin, get_current_principal, get_refund_service
from application.dtos.refunds import (
    RefundCreateDTO,
    RefundCreationDTO,
    RefundDecisionDTO,
    RefundProcessDTO,
    RefundProcessedDTO,
    RefundRequestDTO,
)
from application.services.refund_service import RefundApplicationService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response
from domain.refund.entity import RefundStatus


router = APIRouter(prefix="/refunds", tags=["Refunds"])


@router.post("", summary="Request refund", response_model=ApiResponse[RefundCreationDTO])
async def request_refund(
    payload: RefundCreateDTO,
    principal: Principal = Depends(get_current_principal),
    service: RefundApplicationService = Depends(get_refund_service),
):
    """
    发起退款申请

    资格不满足时返回 200，data.success=false，data.error_kind 为
    NOT_FOUND / NOT_OWNER / NOT_COMPLETED / WINDOW_EXPIRED / ALREADY_REQUESTED。
    """
    result = await service.create(principal.user_id, payload)
    return success_response(
        data=result,
        message="Refund requested" if result.success else "Refund not allowed",
    )


@router.get("/me", summary="My refund requests", response_model=ApiResponse[PaginatedData[RefundRequestDTO]])
async def my_refunds(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    principal: Principal = Depends(get_current_principal),
    service: RefundApplicationService = Depends(get_refund_service),
):
    refunds = await service.list_for_user(principal.user_id, skip=skip, limit=limit)
    return paginated_response(items=refunds, skip=skip, limit=limit)


@router.post("/{refund_id}/cancel", summary="Cancel my refund request", response_model=ApiResponse[RefundRequestDTO])
async def cancel_refund(
    refund_id: str,
    principal: Principal = Depends(get_current_principal),
    service: RefundApplicationService = Depends(get_refund_service),
):
    return success_response(data=await service.cancel(refund_id, principal.user_id))


@router.get("", summary="List refund requests (admin)", response_model=ApiResponse[PaginatedData[RefundRequestDTO]])
async def list_refunds(
    status: Optional[RefundStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    _admin: Principal = Depends(get_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    refunds = await service.list(status=status, skip=skip, limit=limit)
    return paginated_response(items=refunds, skip=skip, limit=limit)


@router.get("/{refund_id}", summary="Refund request detail (admin)", response_model=ApiResponse[RefundRequestDTO])
async def get_refund(
    refund_id: str,
    _admin: Principal = Depends(get_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    return success_response(data=await service.get(refund_id))


@router.post("/{refund_id}/approve", summary="Approve refund", response_model=ApiResponse[RefundRequestDTO])
async def approve_refund(
    refund_id: str,
    payload: RefundDecisionDTO,
    admin: Principal = Depends(get_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    return success_response(data=await service.approve(refund_id, admin.user_id, payload.notes))


@router.post("/{refund_id}/reject", summary="Reject refund", response_model=ApiResponse[RefundRequestDTO])
async def reject_refund(
    refund_id: str,
    payload: RefundDecisionDTO,
    admin: Principal = Depends(get_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    return success_response(data=await service.reject(refund_id, admin.user_id, payload.notes))


@router.post("/{refund_id}/process", summary="Mark refund processed", response_model=ApiResponse[RefundProcessedDTO])
async def process_refund(
    refund_id: str,
    payload: RefundProcessDTO,
    admin: Principal = Depends(get_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    """退款已在网关后台完成：支付 -> REFUNDED，暂停选课，冲销讲师余额"""
    return success_response(data=await service.mark_as_processed(refund_id, admin.user_id, payload))


@router.post("/{refund_id}/fail", summary="Mark refund failed", response_model=ApiResponse[RefundRequestDTO])
async def fail_refund(
    refund_id: str,
    payload: RefundDecisionDTO,
    admin: Principal = Depends(get_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    return success_response(data=await service.mark_as_failed(refund_id, admin.user_id, payload.notes))
