"""
DTO 基类：应用层与 API 之间传递的数据，全部由领域实体构造
"""
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_serializer


def utc_z(value: datetime) -> str:
    value = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


class DTOBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    # datetimes always leave the service as UTC with a "Z" suffix
    @field_serializer("*", mode="wrap")
    def _datetimes_as_utc(self, value, handler):
        if isinstance(value, datetime):
            return utc_z(value)
        return handler(value)
