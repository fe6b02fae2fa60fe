"""Instructor payout Celery tasks"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from celery import shared_task

from ..utils.base_task import SettlementTask
from application.services.payout_service import PayoutApplicationService
from core.logging_config import get_logger
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

logger = get_logger(__name__)


def _parse_moment(now: Optional[str]) -> Optional[datetime]:
    if not now:
        return None
    moment = datetime.fromisoformat(now)
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


@shared_task(
    name="payouts.release_matured_balances",
    bind=True,
    base=SettlementTask,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 3},
)
def release_matured_balances(self, now: Optional[str] = None) -> dict:
    """Move instructor earnings older than the hold period from pending to available.

    ``now`` is an optional ISO-8601 timestamp, mostly for backfills.
    """
    service = PayoutApplicationService(uow_factory=SQLAlchemyUnitOfWork)
    released = self.run_async(service.release_matured_balances(_parse_moment(now)))
    logger.info("payout_release_task_done", released=str(released), now=now)
    return {"released": str(released)}
