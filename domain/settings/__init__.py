"""Platform settings domain exports."""
from .entity import PlatformSetting, SettingType
from .repository import PlatformSettingRepository
from .service import PlatformSettingsReader, SettingKey

__all__ = [
    "PlatformSetting",
    "SettingType",
    "PlatformSettingRepository",
    "PlatformSettingsReader",
    "SettingKey",
]
