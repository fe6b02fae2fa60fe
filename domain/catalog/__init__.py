"""
课程目录端口 - 课程管理模块拥有课程数据，这里只读取结算需要的字段
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class CourseInfo:
    id: str
    instructor_id: str
    price: Decimal
    currency: str = "BRL"
    title: Optional[str] = None
    is_published: bool = True


class CourseCatalog(ABC):

    @abstractmethod
    async def get_course(self, course_id: str) -> Optional[CourseInfo]:
        pass
