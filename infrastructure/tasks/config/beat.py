"""Periodic settlement jobs."""
from __future__ import annotations

from celery.schedules import crontab

from core.config import CelerySettings

PAYOUTS_QUEUE = "payouts"


def build_beat_schedule(cfg: CelerySettings) -> dict:
    return {
        "release-matured-instructor-balances": {
            "task": "payouts.release_matured_balances",
            "schedule": crontab(hour=cfg.release_balances_hour, minute=cfg.release_balances_minute),
            "options": {"queue": PAYOUTS_QUEUE},
        },
    }
