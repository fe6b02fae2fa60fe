"""
API依赖项 - 认证、授权与应用服务装配

访问令牌由外部认证服务签发（HS256，共享 SECRET_KEY），这里只做校验：
``sub`` 为用户ID，``role`` 为 STUDENT / INSTRUCTOR / ADMIN。
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from api.middleware import bind_principal
from application.services.checkout_service import CheckoutService
from application.services.coupon_service import CouponApplicationService
from application.services.payout_service import PayoutApplicationService
from application.services.refund_service import RefundApplicationService
from application.services.webhook_service import WebhookReconciler
from core.config import settings
from core.exceptions import TokenExpiredException, UnauthorizedException
from core.settings import payment_settings
from domain.common.exceptions import ForbiddenException
from domain.fees import FeeCalculator
from infrastructure.external.payments import get_payment_gateway
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


class Role(str, Enum):
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredException()
    except jwt.InvalidTokenError:
        raise UnauthorizedException("Invalid access token")

    if payload.get("type", "access") != "access":
        raise UnauthorizedException("Invalid token type")
    try:
        role = Role(str(payload.get("role", Role.STUDENT.value)).upper())
    except ValueError:
        raise UnauthorizedException("Unknown role in access token")
    return Principal(user_id=str(payload["sub"]), role=role)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Principal:
    """解析 Bearer 令牌得到调用者"""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Missing bearer token")
    principal = decode_access_token(credentials.credentials)
    bind_principal(principal.user_id, principal.role.value)
    return principal


def require_roles(*roles: Role):
    async def _checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise ForbiddenException(
                "Insufficient role",
                details={"required": [r.value for r in roles], "role": principal.role.value},
            )
        return principal
    return _checker


get_admin = require_roles(Role.ADMIN)
get_coupon_manager = require_roles(Role.INSTRUCTOR, Role.ADMIN)
get_instructor = require_roles(Role.INSTRUCTOR, Role.ADMIN)


async def get_checkout_service() -> CheckoutService:
    return CheckoutService(
        uow_factory=SQLAlchemyUnitOfWork,
        fee_calculator=FeeCalculator(settings.fees.unknown_method_policy),
        default_provider=payment_settings.default_provider,
    )


async def get_coupon_service() -> CouponApplicationService:
    return CouponApplicationService(uow_factory=SQLAlchemyUnitOfWork)


async def get_refund_service() -> RefundApplicationService:
    return RefundApplicationService(uow_factory=SQLAlchemyUnitOfWork)


async def get_payout_service() -> PayoutApplicationService:
    return PayoutApplicationService(uow_factory=SQLAlchemyUnitOfWork)


async def get_webhook_reconciler() -> WebhookReconciler:
    # gateway implementations are injected here, keeping application free of SDKs
    return WebhookReconciler(uow_factory=SQLAlchemyUnitOfWork, gateway_resolver=get_payment_gateway)
