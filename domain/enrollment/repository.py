"""选课仓储接口"""
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from .entity import Enrollment


class EnrollmentRepository(ABC):

    @abstractmethod
    async def get_by_user_and_course(self, user_id: str, course_id: str) -> Optional[Enrollment]:
        pass

    @abstractmethod
    async def insert_if_absent(self, enrollment: Enrollment) -> Tuple[Enrollment, bool]:
        """
        原子“不存在则插入”，依赖 (user_id, course_id) 唯一约束。

        返回 (记录, 是否新建)。唯一约束冲突不是错误，而是返回已存在的记录。
        """
        pass

    @abstractmethod
    async def set_active(self, user_id: str, course_id: str, active: bool) -> bool:
        """条件更新 is_active（仅当值不同），返回是否有行变化；不触碰进度字段"""
        pass
