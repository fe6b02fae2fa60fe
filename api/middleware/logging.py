"""
访问日志中间件：每个请求一条开始日志、一条结束日志（带耗时与状态码）

运行在 RequestIDMiddleware 之内，request_id / client_ip 已在 structlog 上下文里。
"""
import json
import time
from typing import Any, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

SKIP_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})
# webhook bodies carry payment data and signature material
WEBHOOK_PREFIX = "/api/v1/payments/webhooks/"
MASKED_FIELDS = frozenset({
    "token", "secret", "api_key", "access_token", "card_number", "cvv", "security_code", "cpf",
})


def mask(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: "***" if k.lower() in MASKED_FIELDS else mask(v) for k, v in data.items()}
    if isinstance(data, list):
        return [mask(v) for v in data]
    return data


class LoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.body_by_default = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT and settings.DEBUG
        self.max_body_bytes = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in SKIP_PATHS:
            return await call_next(request)

        fields: dict[str, Any] = {}
        if request.query_params:
            fields["query"] = dict(request.query_params)
        if path.startswith(WEBHOOK_PREFIX):
            fields["provider"] = path[len(WEBHOOK_PREFIX):]
        elif request.method in ("POST", "PUT", "PATCH") and self._wants_body(request):
            body = await self._body_snippet(request)
            if body is not None:
                fields["body"] = body
        logger.info("request_started", **fields)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise

        duration = time.perf_counter() - started
        status = response.status_code
        log = logger.info if status < 400 else logger.warning if status < 500 else logger.error
        log("request_finished", status_code=status, duration_ms=round(duration * 1000, 1), **fields)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    def _wants_body(self, request: Request) -> bool:
        # X-Log-Body: true/false overrides the default
        override = (request.headers.get("X-Log-Body") or "").lower()
        if override in {"true", "1", "yes"}:
            return True
        if override in {"false", "0", "no"}:
            return False
        return self.body_by_default

    async def _body_snippet(self, request: Request) -> Optional[Any]:
        raw = await request.body()
        if not raw:
            return None
        text = raw[: self.max_body_bytes].decode("utf-8", errors="ignore")
        if "application/json" not in request.headers.get("content-type", "").lower():
            return text
        try:
            return mask(json.loads(text))
        except ValueError:
            return text
