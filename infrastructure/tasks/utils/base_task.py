"""Base class for settlement Celery tasks"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable

from celery import Task

from core.logging_config import get_logger
from infrastructure.database import engine

logger = get_logger(__name__)


class SettlementTask(Task):
    """Runs async application services from sync Celery workers.

    Every ``run_async`` call gets a fresh event loop, so pooled asyncpg
    connections are disposed before the loop closes.
    """

    def run_async(self, coro: Awaitable[Any]) -> Any:
        async def _runner():
            try:
                return await coro
            finally:
                await engine.dispose()

        return asyncio.run(_runner())

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error("settlement_task_failed", task_id=task_id, task_name=self.name, error=str(exc))
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning(
            "settlement_task_retry",
            task_id=task_id,
            task_name=self.name,
            retries=self.request.retries,
            error=str(exc),
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)
