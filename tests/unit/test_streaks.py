# File: tests/unit/test_streaks.py
"""
Unit tests for streak transitions and the compare-and-swap tracker.
"""

from datetime import date, timedelta

import pytest

from core.database import InconsistentState
from core.models import StreakRecord
from core.streaks import StreakTracker, next_streak_lengths

TODAY = date(2025, 7, 10)
YESTERDAY = TODAY - timedelta(days=1)


def record(current, best, last_date):
    return StreakRecord("user-1", "frog", current, best, last_date)


# ==================== Transition Tests ====================

class TestNextStreakLengths:
    """Tests for the pure state transition."""

    def test_first_activity_starts_at_one(self):
        assert next_streak_lengths(None, TODAY) == (1, 1, False)

    def test_consecutive_day_increments(self):
        assert next_streak_lengths(record(4, 6, YESTERDAY), TODAY) == (5, 6, False)

    def test_increment_raises_best(self):
        assert next_streak_lengths(record(6, 6, YESTERDAY), TODAY) == (7, 7, False)

    def test_gap_resets_and_keeps_best(self):
        two_days_ago = TODAY - timedelta(days=2)
        assert next_streak_lengths(record(9, 12, two_days_ago), TODAY) == (1, 12, True)

    def test_future_last_date_is_inconsistent(self):
        with pytest.raises(InconsistentState):
            next_streak_lengths(record(3, 3, TODAY + timedelta(days=1)), TODAY)


# ==================== Tracker Tests ====================

class TestStreakTracker:
    """Tests for StreakTracker against a real store."""

    async def test_first_frog_creates_streak(self, store, user):
        update = await StreakTracker(store).record_activity(user.user_id, "frog", TODAY)

        assert update.changed is True
        assert update.current_streak == 1
        saved = await store.get_streak(user.user_id, "frog")
        assert (saved.current_streak, saved.best_streak, saved.last_date) == (1, 1, TODAY)

    async def test_same_day_twice_counts_once(self, store, user):
        tracker = StreakTracker(store)
        await tracker.record_activity(user.user_id, "frog", YESTERDAY)
        first = await tracker.record_activity(user.user_id, "frog", TODAY)
        second = await tracker.record_activity(user.user_id, "frog", TODAY)

        assert first.current_streak == 2
        assert second.changed is False
        assert second.current_streak == 2
        saved = await store.get_streak(user.user_id, "frog")
        assert saved.current_streak == 2

    async def test_repeated_update_is_idempotent(self, store, user):
        tracker = StreakTracker(store)
        await tracker.record_activity(user.user_id, "frog", TODAY)
        before = await store.get_streak(user.user_id, "frog")
        await tracker.record_activity(user.user_id, "frog", TODAY)
        after = await store.get_streak(user.user_id, "frog")

        assert (before.current_streak, before.best_streak, before.last_date) == \
            (after.current_streak, after.best_streak, after.last_date)

    async def test_gap_resets_to_one_with_best_unchanged(self, store, user):
        await store.upsert_streak(user.user_id, "frog", 5, 5, TODAY - timedelta(days=3))
        update = await StreakTracker(store).record_activity(user.user_id, "frog", TODAY)

        assert update.reset is True
        assert (update.current_streak, update.best_streak) == (1, 5)

    async def test_future_last_date_is_treated_as_reset(self, store, user):
        await store.upsert_streak(user.user_id, "frog", 4, 8, TODAY + timedelta(days=2))
        update = await StreakTracker(store).record_activity(user.user_id, "frog", TODAY)

        assert update.changed is True
        assert (update.current_streak, update.best_streak) == (1, 8)
        saved = await store.get_streak(user.user_id, "frog")
        assert saved.last_date == TODAY

    async def test_categories_are_independent(self, store, user):
        tracker = StreakTracker(store)
        await tracker.record_activity(user.user_id, "frog", TODAY)
        other = await tracker.record_activity(user.user_id, "deep_work", TODAY)

        assert other.changed is True
        assert len(await store.get_streaks(user.user_id)) == 2

    async def test_lost_race_rereads_and_becomes_noop(self):
        """A concurrent request updates the row between read and write."""

        class RacingStore:
            def __init__(self):
                self.record = record(2, 5, YESTERDAY)
                self.swaps = 0

            async def get_streak(self, user_id, streak_type):
                return self.record

            async def compare_and_swap_streak(self, user_id, streak_type, current, best,
                                              last_date, expected_last_date):
                self.swaps += 1
                self.record = record(3, 5, last_date)
                return False

        racing = RacingStore()
        update = await StreakTracker(racing).record_activity("user-1", "frog", TODAY)

        assert racing.swaps == 1
        assert update.changed is False
        assert update.current_streak == 3

    async def test_gives_up_after_max_attempts(self):
        class StuckStore:
            async def get_streak(self, user_id, streak_type):
                return record(2, 5, YESTERDAY)

            async def compare_and_swap_streak(self, *args, **kwargs):
                return False

        with pytest.raises(InconsistentState):
            await StreakTracker(StuckStore()).record_activity("user-1", "frog", TODAY)

    async def test_compare_and_swap_rejects_stale_expectation(self, store, user):
        await store.upsert_streak(user.user_id, "frog", 2, 2, YESTERDAY)
        applied = await store.compare_and_swap_streak(
            user.user_id, "frog", 9, 9, TODAY, expected_last_date=TODAY - timedelta(days=5)
        )

        assert applied is False
        saved = await store.get_streak(user.user_id, "frog")
        assert saved.current_streak == 2

    async def test_compare_and_swap_insert_only_when_absent(self, store, user):
        assert await store.compare_and_swap_streak(user.user_id, "frog", 1, 1, TODAY, None) is True
        assert await store.compare_and_swap_streak(user.user_id, "frog", 1, 1, TODAY, None) is False
