"""
选课实体 - 由课程模块拥有，本子系统只负责创建与启停（is_active）
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.values import ensure_utc, utcnow


class EnrollmentAction(str, Enum):
    ENROLLED = "enrolled"
    RESUMED = "resumed"
    PAUSED = "paused"
    NO_ACTION = "no_action"


@dataclass(frozen=True)
class Enrollment:
    id: str
    user_id: str
    course_id: str
    is_active: bool = True
    progress: Decimal = Decimal("0")
    enrolled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "enrolled_at", ensure_utc(self.enrolled_at))
        object.__setattr__(self, "completed_at", ensure_utc(self.completed_at))

    @classmethod
    def create(cls, user_id: str, course_id: str) -> "Enrollment":
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            course_id=course_id,
            is_active=True,
            enrolled_at=utcnow(),
        )
