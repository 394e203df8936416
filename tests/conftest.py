"""
Shared fixtures: a throwaway SQLite database, per-test table cleanup and
small catalog factories.

The database URL must be in the environment before anything under app/
is imported, because app.config builds its Settings at import time.
"""

import os
import tempfile
from datetime import date
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp(prefix="subledger-tests-")
os.environ["SUBLEDGER_DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"

import pytest
from sqlmodel import SQLModel

import app.models  # noqa: F401,E402
from app.core.database import get_engine  # noqa: E402
from app.core.errors.registry import error_registry  # noqa: E402
from app.services.catalog_service import catalog_service  # noqa: E402
from app.services.discount_service import discount_service  # noqa: E402
from app.services.subscription_service import subscription_service  # noqa: E402

SQLModel.metadata.create_all(get_engine())
error_registry.load()


@pytest.fixture(autouse=True)
def _clean_tables():
    """Every test starts from empty tables."""
    yield
    with get_engine().begin() as conn:
        for table in reversed(SQLModel.metadata.sorted_tables):
            conn.execute(table.delete())


# ---------------------------------------------------------------------------
# Catalog factories
# ---------------------------------------------------------------------------

@pytest.fixture
def monthly_plan():
    return catalog_service.create_plan(name="Monthly", billing_period="MONTHLY", interval_count=1, due_days=15)


@pytest.fixture
def product():
    return catalog_service.create_product(name="Analytics Suite")


@pytest.fixture
def variant(product):
    """999.00 list price."""
    return catalog_service.add_variant(product.id, name="Pro seat", price=Decimal("999.00"), sku="AS-PRO")


@pytest.fixture
def gst():
    return catalog_service.create_tax_rate(name="GST 18%", rate=Decimal("18"))


@pytest.fixture
def ten_percent():
    return discount_service.create_discount(name="Ten off", type="PERCENTAGE", value=Decimal("10"))


@pytest.fixture
def draft_subscription(monthly_plan):
    return subscription_service.create_subscription(user_id="user-1", plan_id=monthly_plan.id)


@pytest.fixture
def priced_subscription(draft_subscription, variant, gst, ten_percent):
    """DRAFT subscription with one line: 2 × 999.00, 10% off, 18% tax (2121.88)."""
    subscription_service.add_line(
        draft_subscription.id,
        variant_id=variant.id,
        quantity=2,
        discount_id=ten_percent.id,
        tax_rate_id=gst.id,
    )
    return subscription_service.get_subscription(draft_subscription.id)


@pytest.fixture
def active_subscription(priced_subscription):
    subscription_service.quote(priced_subscription.id)
    subscription_service.confirm(priced_subscription.id, start_date=date(2026, 1, 1))
    return subscription_service.activate(priced_subscription.id)
