"""Local entry point: one worker process with embedded beat.

Production runs ``celery -A infrastructure.tasks worker`` and a separate
``celery -A infrastructure.tasks beat``.
"""
from __future__ import annotations

from .config.celery import celery_app


def main() -> None:
    celery_app.worker_main(
        argv=["worker", "--beat", "--queues=default,payouts", "--hostname=settlement@%h", "--loglevel=INFO"],
    )


if __name__ == "__main__":
    main()
