"""
Instructor balance API routes
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import Principal, get_instructor, get_payout_service
from application.dtos.payouts import (
    BalanceTransactionDTO,
    InstructorBalanceDTO,
    PayoutDTO,
    PayoutRequestDTO,
)
from application.services.payout_service import PayoutApplicationService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response


router = APIRouter(prefix="/payouts", tags=["Payouts"])


@router.get("/me/balance", summary="My instructor balance", response_model=ApiResponse[InstructorBalanceDTO])
async def my_balance(
    principal: Principal = Depends(get_instructor),
    service: PayoutApplicationService = Depends(get_payout_service),
):
    return success_response(data=await service.get_balance(principal.user_id))


@router.get(
    "/me/transactions",
    summary="My balance transactions",
    response_model=ApiResponse[PaginatedData[BalanceTransactionDTO]],
)
async def my_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    principal: Principal = Depends(get_instructor),
    service: PayoutApplicationService = Depends(get_payout_service),
):
    rows = await service.list_transactions(principal.user_id, skip=skip, limit=limit)
    return paginated_response(items=rows, skip=skip, limit=limit)


@router.post(
    "/me/requests",
    summary="Request a payout from the available balance",
    response_model=ApiResponse[PayoutDTO],
    status_code=201,
)
async def request_payout(
    data: PayoutRequestDTO,
    principal: Principal = Depends(get_instructor),
    service: PayoutApplicationService = Depends(get_payout_service),
):
    return success_response(data=await service.request_payout(principal.user_id, data), message="Payout requested")
