# payflow/conftest.py
import os
import tempfile
from pathlib import Path

import pytest

# Configure the test environment before any payflow module reads settings
_TEST_DB_DIR = tempfile.mkdtemp(prefix="payflow-tests-")
os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", f"sqlite:///{Path(_TEST_DB_DIR) / 'payflow_test.db'}")
for _name in ("PAYSTACK", "FLUTTERWAVE", "STRIPE"):
    os.environ.pop(f"{_name}_ENABLED", None)
    os.environ.pop(f"{_name}_SECRET_KEY", None)

from payflow.core.config import settings  # noqa: E402
from payflow.core.database import reset_database  # noqa: E402
from payflow.features.plans.service import seed_plans  # noqa: E402

PAYSTACK_SECRET = "sk_test_paystack"
PAYSTACK_PUBLIC = "pk_test_paystack"
FLUTTERWAVE_SECRET = "FLWSECK_TEST-flutterwave"
STRIPE_SECRET = "sk_test_stripe"


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """Fresh tables and default plans for every test."""
    reset_database()
    seed_plans()
    yield


@pytest.fixture(scope="function", autouse=True)
def no_providers(monkeypatch):
    """Start every test with all providers disabled and unconfigured."""
    for name in ("PAYSTACK", "FLUTTERWAVE", "STRIPE"):
        monkeypatch.setattr(settings, f"{name}_ENABLED", False)
        monkeypatch.setattr(settings, f"{name}_PUBLIC_KEY", None)
        monkeypatch.setattr(settings, f"{name}_SECRET_KEY", None)
    yield


@pytest.fixture
def paystack_enabled(monkeypatch):
    monkeypatch.setattr(settings, "PAYSTACK_ENABLED", True)
    monkeypatch.setattr(settings, "PAYSTACK_PUBLIC_KEY", PAYSTACK_PUBLIC)
    monkeypatch.setattr(settings, "PAYSTACK_SECRET_KEY", PAYSTACK_SECRET)
    yield settings


@pytest.fixture
def flutterwave_enabled(monkeypatch):
    monkeypatch.setattr(settings, "FLUTTERWAVE_ENABLED", True)
    monkeypatch.setattr(settings, "FLUTTERWAVE_PUBLIC_KEY", "FLWPUBK_TEST-flutterwave")
    monkeypatch.setattr(settings, "FLUTTERWAVE_SECRET_KEY", FLUTTERWAVE_SECRET)
    yield settings


@pytest.fixture
def stripe_enabled(monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_ENABLED", True)
    monkeypatch.setattr(settings, "STRIPE_PUBLIC_KEY", "pk_test_stripe")
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", STRIPE_SECRET)
    yield settings
