"""
平台配置仓储实现
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.settings.entity import PlatformSetting, SettingType
from domain.settings.repository import PlatformSettingRepository
from infrastructure.models.settings import PlatformSettingModel


logger = get_logger(__name__)


class SQLAlchemyPlatformSettingRepository(PlatformSettingRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PlatformSettingModel) -> PlatformSetting:
        return PlatformSetting(
            key=model.key,
            value=model.value,
            type=SettingType(model.type),
            description=model.description,
            updated_by=model.updated_by,
            updated_at=model.updated_at,
        )

    async def find_by_key(self, key: str) -> Optional[PlatformSetting]:
        model = await self.session.get(PlatformSettingModel, key, populate_existing=True)
        return self._to_entity(model) if model else None

    async def list_all(self) -> List[PlatformSetting]:
        result = await self.session.execute(select(PlatformSettingModel).order_by(PlatformSettingModel.key))
        return [self._to_entity(m) for m in result.scalars().all()]

    async def upsert(self, setting: PlatformSetting) -> PlatformSetting:
        model = await self.session.get(PlatformSettingModel, setting.key)
        if model is None:
            model = PlatformSettingModel(key=setting.key)
            self.session.add(model)
        model.value = setting.value
        model.type = setting.type.value
        model.description = setting.description
        model.updated_by = setting.updated_by
        model.updated_at = setting.updated_at or datetime.now(timezone.utc)
        await self.session.flush()
        logger.info("platform_setting_saved", key=setting.key, value=setting.value)
        return self._to_entity(model)
