"""
Request ID 中间件
用于生成或透传追踪ID，并通过 structlog contextvars 传递给日志系统
"""
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID 追踪中间件

    1. 透传 X-Request-ID（网关重投递时便于关联），没有则生成
    2. 绑定到 structlog 上下文：webhook 对账、退款处理等日志都带上 request_id
    3. 在响应头中返回 request_id
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        client_ip = client_ip_of(request)

        request.state.request_id = request_id
        request.state.client_ip = client_ip

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def client_ip_of(request: Request) -> str:
    """X-Forwarded-For 第一个地址 > X-Real-IP > 直连地址"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def bind_principal(user_id: str, role: str) -> None:
    """认证通过后把调用者绑定到日志上下文"""
    structlog.contextvars.bind_contextvars(user_id=user_id, role=role)
