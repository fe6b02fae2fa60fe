"""
平台配置读取 - 带文档化默认值的数值配置
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Dict, Union

import structlog

from .repository import PlatformSettingRepository

logger = structlog.get_logger(__name__)


class SettingKey(str, Enum):
    PLATFORM_FEE_PERCENTAGE = "PLATFORM_FEE_PERCENTAGE"
    REFUND_DAYS_LIMIT = "REFUND_DAYS_LIMIT"
    MINIMUM_PAYOUT_AMOUNT = "MINIMUM_PAYOUT_AMOUNT"
    BALANCE_HOLD_DAYS = "BALANCE_HOLD_DAYS"


DEFAULTS: Dict[SettingKey, Decimal] = {
    SettingKey.PLATFORM_FEE_PERCENTAGE: Decimal("10"),
    SettingKey.REFUND_DAYS_LIMIT: Decimal("7"),
    SettingKey.MINIMUM_PAYOUT_AMOUNT: Decimal("50"),
    SettingKey.BALANCE_HOLD_DAYS: Decimal("30"),
}


class PlatformSettingsReader:
    """Read numeric settings, falling back to the documented default when absent."""

    def __init__(self, repository: PlatformSettingRepository):
        self.repository = repository

    async def get_number(self, key: Union[SettingKey, str], default: Decimal | None = None) -> Decimal:
        name = key.value if isinstance(key, SettingKey) else key
        setting = await self.repository.find_by_key(name)
        if setting is None:
            if default is None:
                default = DEFAULTS[SettingKey(name)]
            logger.debug("platform_setting_default", key=name, default=str(default))
            return default
        return setting.as_number()

    async def platform_fee_percentage(self) -> Decimal:
        return await self.get_number(SettingKey.PLATFORM_FEE_PERCENTAGE)

    async def refund_days_limit(self) -> int:
        return int(await self.get_number(SettingKey.REFUND_DAYS_LIMIT))

    async def balance_hold_days(self) -> int:
        return int(await self.get_number(SettingKey.BALANCE_HOLD_DAYS))

    async def minimum_payout_amount(self) -> Decimal:
        return await self.get_number(SettingKey.MINIMUM_PAYOUT_AMOUNT)
