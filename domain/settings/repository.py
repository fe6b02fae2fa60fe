"""平台配置仓储接口"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import PlatformSetting


class PlatformSettingRepository(ABC):

    @abstractmethod
    async def find_by_key(self, key: str) -> Optional[PlatformSetting]:
        pass

    @abstractmethod
    async def list_all(self) -> List[PlatformSetting]:
        pass

    @abstractmethod
    async def upsert(self, setting: PlatformSetting) -> PlatformSetting:
        pass
