"""
平台配置实体 - 运行时可调整的键值配置（平台费率、退款期限等）
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.common.values import utcnow


class SettingType(str, Enum):
    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"


@dataclass(frozen=True)
class PlatformSetting:
    key: str
    value: str
    type: SettingType
    description: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.key:
            raise DomainValidationException("Setting key is required", field="key")
        # NUMBER settings must parse at write time, not at read time
        if self.type == SettingType.NUMBER:
            self._parse_number()
        if self.type == SettingType.BOOLEAN and self.value.lower() not in ("true", "false"):
            raise DomainValidationException(
                f"Setting {self.key} expects true/false",
                field="value",
            )

    def _parse_number(self) -> Decimal:
        try:
            return Decimal(self.value)
        except (InvalidOperation, TypeError):
            raise DomainValidationException(
                f"Setting {self.key} is not numeric: {self.value!r}",
                field="value",
            )

    def as_str(self) -> str:
        return self.value

    def as_number(self) -> Decimal:
        if self.type != SettingType.NUMBER:
            raise DomainValidationException(f"Setting {self.key} is not a number type", field="type")
        return self._parse_number()

    def as_bool(self) -> bool:
        if self.type != SettingType.BOOLEAN:
            raise DomainValidationException(f"Setting {self.key} is not a boolean type", field="type")
        return self.value.lower() == "true"

    def with_value(self, value: str, updated_by: Optional[str] = None) -> "PlatformSetting":
        return replace(self, value=value, updated_by=updated_by, updated_at=utcnow())
