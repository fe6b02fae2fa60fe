"""Settlement task modules; importing registers them with Celery."""
from . import payouts  # noqa: F401

__all__ = ["payouts"]
