"""
统一响应格式：{success, code, message, data, error}

金额字段（Decimal）由 pydantic 序列化为字符串，客户端不应按浮点解析。
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from shared.codes import BusinessCode


T = TypeVar("T")


class ErrorDetail(BaseModel):
    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    # stable key for client-side localisation, e.g. "refund.window_expired"
    message_key: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def _utc_z(self, value: datetime) -> str:
        value = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
        return value.isoformat().replace("+00:00", "Z")


class Response(BaseModel, Generic[T]):
    success: bool = True
    code: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


class PaginatedData(BaseModel, Generic[T]):
    """skip/limit 分页，不做 count 查询"""
    items: list[T]
    skip: int
    limit: int


def success_response(data: Any = None, message: str = "Success", code: int = BusinessCode.SUCCESS) -> Response:
    return Response(success=True, code=code, message=message, data=data)


def paginated_response(items: list, skip: int, limit: int, message: str = "Success") -> Response[PaginatedData]:
    return success_response(data=PaginatedData(items=items, skip=skip, limit=limit), message=message)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
    message_key: Optional[str] = None,
) -> Response:
    return Response(
        success=False,
        code=code,
        message=message,
        error=ErrorDetail(
            type=error_type,
            details=details,
            field=field,
            message_key=message_key,
            request_id=request_id,
        ),
    )
