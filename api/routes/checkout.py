"""
Checkout API routes - 费用预览、下单、记录网关返回
"""
from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from api.dependencies import Principal, get_checkout_service, get_current_principal
from application.dtos.checkout import (
    CheckoutRequestDTO,
    CheckoutResultDTO,
    FeeQuoteDTO,
    FeeQuoteRequestDTO,
    GatewayReferenceDTO,
    GatewayReferenceResultDTO,
    PaymentOptionDTO,
)
from application.services.checkout_service import CheckoutService
from core.response import Response as ApiResponse, success_response


router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/fees", summary="Fee breakdown preview", response_model=ApiResponse[FeeQuoteDTO])
async def quote_fees(
    payload: FeeQuoteRequestDTO,
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    费用拆分预览

    返回网关手续费、平台分成、讲师所得，以及各支付方式对比与最便宜的方式。
    """
    quote = await service.quote(payload)
    return success_response(data=quote)


@router.get("/fees/options", summary="Payment method comparison", response_model=ApiResponse[list[PaymentOptionDTO]])
async def fee_options(
    amount: Decimal = Query(..., ge=0),
    service: CheckoutService = Depends(get_checkout_service),
):
    return success_response(data=service.payment_options(amount))


@router.post("", summary="Create checkout", response_model=ApiResponse[CheckoutResultDTO], status_code=201)
async def create_checkout(
    payload: CheckoutRequestDTO,
    principal: Principal = Depends(get_current_principal),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    下单：创建 PENDING 支付并兑换优惠券（同一事务）

    优惠券在校验与兑换之间被抢完时返回 409，details.retryable=true。
    """
    result = await service.checkout(principal.user_id, payload)
    return success_response(data=result, message="Checkout created")


@router.post(
    "/{payment_id}/gateway-reference",
    summary="Record gateway reference",
    response_model=ApiResponse[GatewayReferenceResultDTO],
)
async def attach_gateway_reference(
    payment_id: str,
    payload: GatewayReferenceDTO,
    principal: Principal = Depends(get_current_principal),
    service: CheckoutService = Depends(get_checkout_service),
):
    result = await service.attach_gateway_reference(
        payment_id, None if principal.is_admin else principal.user_id, payload
    )
    return success_response(data=result)
