from .beat import build_beat_schedule
from .celery import celery_app

__all__ = ["build_beat_schedule", "celery_app"]
