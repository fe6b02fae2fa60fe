"""
Payments API routes.

Webhook receiver plus payment history. Keep this thin: signature checks and
gateway SDK details live in the adapters, state changes in the reconciler.
"""

import ipaddress

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.dependencies import Principal, get_checkout_service, get_current_principal, get_webhook_reconciler
from api.middleware import client_ip_of
from application.dtos.payments import PaymentDTO, WebhookOutcome
from application.services.checkout_service import CheckoutService
from application.services.webhook_service import WebhookReconciler
from core.config import settings
from core.logging_config import get_logger
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response
from core.settings import payment_settings
from infrastructure.external.payments import SUPPORTED_PROVIDERS, normalize_provider


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


def _ip_allowed(remote_ip: str) -> bool:
    allowlist = payment_settings.webhook.ip_allowlist
    if not allowlist:
        return True
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if "/" in entry:
                if rip in ipaddress.ip_network(entry, strict=False):
                    return True
            elif rip == ipaddress.ip_address(entry):
                return True
        except ValueError:
            logger.warning("webhook_allowlist_entry_invalid", entry=entry)
    return False


@router.post("/webhooks/{provider}", summary="Gateway webhook", response_model=ApiResponse[WebhookOutcome])
async def payments_webhook(
    provider: str,
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """
    网关回调入口

    - 签名/解析/网关查询失败：5xx，网关会重投递
    - 其它情况（包括重复、乱序、未知支付）：200，结果见 data.result
    """
    name = normalize_provider(provider)
    if name not in SUPPORTED_PROVIDERS:
        raise HTTPException(status_code=404, detail=f"Unsupported payment provider: {provider}")

    remote_ip = client_ip_of(request)
    if not _ip_allowed(remote_ip):
        logger.warning("webhook_ip_rejected", provider=name, remote_ip=remote_ip)
        raise HTTPException(status_code=403, detail="Webhook source not allowed")

    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    outcome = await reconciler.handle(name, headers, raw_body)
    return success_response(data=outcome, message="Webhook processed")


@router.get("/me", summary="My payment history", response_model=ApiResponse[PaginatedData[PaymentDTO]])
async def my_payments(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    principal: Principal = Depends(get_current_principal),
    service: CheckoutService = Depends(get_checkout_service),
):
    payments = await service.list_payments(principal.user_id, skip=skip, limit=limit)
    return paginated_response(items=payments, skip=skip, limit=limit)


@router.get("/{payment_id}", summary="Payment detail", response_model=ApiResponse[PaymentDTO])
async def get_payment(
    payment_id: str,
    principal: Principal = Depends(get_current_principal),
    service: CheckoutService = Depends(get_checkout_service),
):
    payment = await service.get_payment(payment_id, None if principal.is_admin else principal.user_id)
    return success_response(data=payment)
