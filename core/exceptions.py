"""
全局异常处理：业务异常 -> HTTP 状态码 + 统一响应体

状态码优先取异常类上的 ``http_code`` 分类（NotFound/Conflict/网关错误等），
其次取业务码本身，都不认识时按 400 处理。网关相关错误返回 5xx，
支付网关据此重投递 webhook。
"""
import traceback
import uuid
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as http_status

from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from .response import error_response


logger = get_logger(__name__)


class UnauthorizedException(BusinessException):
    """缺少或无效的访问令牌"""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            code=BusinessCode.UNAUTHORIZED,
            message=message,
            error_type="Unauthorized",
            message_key="auth.unauthorized",
        )


class TokenExpiredException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.TOKEN_EXPIRED,
            message="Token expired",
            error_type="TokenExpired",
            message_key="auth.token.expired",
        )


_STATUS_BY_CODE = {
    BusinessCode.PARAM_ERROR: 400,
    BusinessCode.PARAM_MISSING: 400,
    BusinessCode.PARAM_TYPE_ERROR: 400,
    BusinessCode.PARAM_VALIDATION_ERROR: 422,
    BusinessCode.BUSINESS_ERROR: 400,
    BusinessCode.NOT_FOUND: 404,
    BusinessCode.STATE_CONFLICT: 409,
    BusinessCode.PERMISSION_ERROR: 403,
    BusinessCode.FORBIDDEN: 403,
    BusinessCode.UNAUTHORIZED: 401,
    BusinessCode.TOKEN_INVALID: 401,
    BusinessCode.TOKEN_EXPIRED: 401,
    BusinessCode.SYSTEM_ERROR: 500,
    BusinessCode.DATABASE_ERROR: 500,
    BusinessCode.NETWORK_ERROR: 500,
    BusinessCode.SERVICE_UNAVAILABLE: 503,
    BusinessCode.RATE_LIMIT_ERROR: 429,
    BusinessCode.TOO_MANY_REQUESTS: 429,
}

_CODE_BY_STATUS = {
    401: BusinessCode.UNAUTHORIZED,
    403: BusinessCode.FORBIDDEN,
    404: BusinessCode.NOT_FOUND,
    405: BusinessCode.PARAM_ERROR,
    409: BusinessCode.STATE_CONFLICT,
    429: BusinessCode.TOO_MANY_REQUESTS,
    503: BusinessCode.SERVICE_UNAVAILABLE,
}


def business_exception_status(exc: BusinessException) -> int:
    for code in (getattr(exc, "http_code", None), exc.code):
        if code is None:
            continue
        try:
            status = _STATUS_BY_CODE.get(BusinessCode(code))
        except ValueError:
            continue
        if status is not None:
            return status
    return http_status.HTTP_400_BAD_REQUEST


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _json_error(
    request: Request,
    status_code: int,
    *,
    code: int,
    message: str,
    error_type: str,
    details: Optional[dict] = None,
    field: Optional[str] = None,
    message_key: Optional[str] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    body = error_response(
        code=code,
        message=message,
        error_type=error_type,
        details=details,
        field=field,
        request_id=_request_id(request),
        message_key=message_key,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(BusinessException)
    async def handle_business(request: Request, exc: BusinessException):
        status_code = business_exception_status(exc)
        if status_code >= 500:
            # webhook deliveries land here; the gateway will retry
            logger.error(
                "business_exception_server_error",
                error_type=exc.error_type,
                code=int(exc.code),
                error=exc.message,
                details=exc.details,
            )
        return _json_error(
            request,
            status_code,
            code=exc.code,
            message=exc.message,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
            message_key=exc.message_key,
            headers={"WWW-Authenticate": "Bearer"} if status_code == 401 else None,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        return _json_error(
            request,
            http_status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=f"Validation failed: {first.get('msg', 'unknown')}",
            error_type="ValidationError",
            details={"errors": [
                {"loc": list(e.get("loc", [])), "msg": e.get("msg"), "type": e.get("type")} for e in errors
            ]},
            # drop the "body"/"query" prefix
            field=".".join(str(part) for part in first.get("loc", [])[1:]) or None,
            message_key="validation.failed",
        )

    @app.exception_handler(HTTPException)
    async def handle_http(request: Request, exc: HTTPException):
        return _json_error(
            request,
            exc.status_code,
            code=_CODE_BY_STATUS.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            message=str(exc.detail),
            error_type="HTTPError",
            details={"status_code": exc.status_code},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return _json_error(
            request,
            http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=BusinessCode.SYSTEM_ERROR,
            message="Internal server error",
            error_type="SystemError",
            details={"exception": str(exc), "traceback": traceback.format_exc()} if app.debug else None,
            message_key="error.internal",
        )
