"""Celery wiring for settlement background jobs.

``celery -A infrastructure.tasks worker -B`` picks up ``celery_app`` here.
"""
from .config.celery import celery_app

__all__ = ["celery_app"]
