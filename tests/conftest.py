# File: tests/conftest.py
"""
Pytest configuration and shared fixtures.
Environment is configured before any dashboard module is imported.
"""

import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

_TMP_DIR = tempfile.mkdtemp(prefix="intensify-tests-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOGS_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)
os.environ.pop("REDIS_URL", None)

from core.database import MetricStore


# ==================== Store Fixtures ====================

@pytest.fixture
async def store():
    """Fresh in-memory SQLite store with schema and reference data."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metric_store = MetricStore(engine)
    await metric_store.create_schema()
    await metric_store.seed_reference_data()
    yield metric_store
    await engine.dispose()


@pytest.fixture
async def user(store):
    """Registered user without subscription."""
    return await store.create_user("user-1", "frog@example.com", "not-a-real-hash")


# ==================== Time Fixtures ====================

@pytest.fixture
def morning():
    """Fixed 'now' (UTC) used for day-boundary sensitive tests."""
    return datetime(2025, 7, 10, 9, 30)


# ==================== API Fixtures ====================

@pytest.fixture
def client():
    """TestClient with the application lifespan running."""
    from fastapi.testclient import TestClient
    from dashboard.app import app

    with TestClient(app) as test_client:
        yield test_client
