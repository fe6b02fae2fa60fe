"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PAYMENT__STRIPE__WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("PAYMENT__MERCADOPAGO__WEBHOOK_SECRET", "mp_webhook_secret")
os.environ.setdefault("PAYMENT__MERCADOPAGO__ACCESS_TOKEN", "TEST-access-token")

from decimal import Decimal

import pytest

from domain.catalog import CourseInfo
from tests.fakes import InMemoryStore, make_uow_factory


@pytest.fixture
def store() -> InMemoryStore:
    s = InMemoryStore()
    s.courses["course-1"] = CourseInfo(
        id="course-1",
        instructor_id="instructor-1",
        price=Decimal("100.00"),
        currency="BRL",
        title="Python for Data",
    )
    return s


@pytest.fixture
def uow_factory(store):
    return make_uow_factory(store)
