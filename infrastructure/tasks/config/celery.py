"""Celery application for the settlement service"""
from __future__ import annotations

from celery import Celery
from kombu import Queue

from core.config import settings
from core.logging_config import get_logger
from .beat import PAYOUTS_QUEUE, build_beat_schedule


logger = get_logger(__name__)

TASK_PACKAGES = ("infrastructure.tasks.tasks",)


def create_celery_app() -> Celery:
    cfg = settings.celery
    app = Celery("settlement", broker=cfg.broker_url, backend=cfg.result_backend or cfg.broker_url)
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        # balance release is idempotent per transaction; redeliver if a worker dies mid-run
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        result_expires=24 * 60 * 60,
        task_default_queue="default",
        task_queues=(Queue("default"), Queue(PAYOUTS_QUEUE)),
        task_routes={"payouts.*": {"queue": PAYOUTS_QUEUE}},
        task_always_eager=cfg.always_eager,
        beat_schedule=build_beat_schedule(cfg),
        imports=TASK_PACKAGES,
    )
    app.autodiscover_tasks(packages=TASK_PACKAGES)
    return app


celery_app = create_celery_app()


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info(
        "celery_configured",
        queues=[q.name for q in sender.conf.task_queues],
        eager=sender.conf.task_always_eager,
    )
