# File: tests/unit/test_database.py
"""
Unit tests for MetricStore error mapping.
"""

from datetime import date

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from core.database import DatabaseError, MetricStore, StoreUnavailable


# ==================== Error Mapping Tests ====================

class TestStoreUnavailable:
    """SQLAlchemy failures surface as StoreUnavailable."""

    async def test_missing_table(self, store, user):
        async with store.engine.begin() as conn:
            await conn.execute(text("DROP TABLE tasks"))

        with pytest.raises(StoreUnavailable) as exc_info:
            await store.get_tasks(user.user_id)
        assert "get_tasks" in str(exc_info.value)

    async def test_store_unavailable_is_database_error(self, store, user):
        async with store.engine.begin() as conn:
            await conn.execute(text("DROP TABLE streaks"))

        with pytest.raises(DatabaseError):
            await store.compare_and_swap_streak(user.user_id, "frog", 1, 1, date(2025, 7, 10), None)

    async def test_unreachable_database_file(self, tmp_path):
        missing = tmp_path / "missing-dir" / "intensify.db"
        broken = MetricStore(create_async_engine(f"sqlite+aiosqlite:///{missing}"))
        try:
            with pytest.raises(StoreUnavailable):
                await broken.ping()
        finally:
            await broken.engine.dispose()
