"""
平台配置数据库模型
"""
from sqlalchemy import Column, String, Text, DateTime

from .base import Base, utcnow


class PlatformSettingModel(Base):
    __tablename__ = "platform_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="STRING", comment="STRING/NUMBER/BOOLEAN")
    description = Column(Text, nullable=True)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
