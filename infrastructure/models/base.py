"""
ORM 基类与公共列类型
"""
from datetime import datetime, timezone

from sqlalchemy import MetaData, Numeric
from sqlalchemy.orm import DeclarativeBase


# 未显式命名的约束按此规则命名，Alembic autogenerate 才能稳定比对
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def Money():
    """金额列：Numeric(15, 2)，与领域层 to_money 的两位小数一致"""
    return Numeric(precision=15, scale=2)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


metadata = Base.metadata
