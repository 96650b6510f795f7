# File: tests/unit/test_achievements.py
"""
Unit tests for badge definitions and insert-if-absent awarding.
"""

from datetime import date

from core.achievements import (
    BadgeAwarder, BADGE_CATALOG, FROG_STREAK_BADGES, PR_BADGES, due_badges,
)
from core.models import TaskRecord


def badge_types(badges):
    return [badge.badge_type for badge in badges]


# ==================== Catalog Tests ====================

class TestCatalog:
    """Tests for badge thresholds and levels."""

    def test_frog_thresholds(self):
        assert [(b.threshold, b.level.value) for b in FROG_STREAK_BADGES] == [
            (3, "bronze"), (7, "silver"), (21, "gold"), (30, "diamond"),
        ]

    def test_pr_thresholds(self):
        assert [(b.badge_type, b.threshold) for b in PR_BADGES] == [
            ("pr_first", 1), ("pr_5", 5), ("pr_10", 10),
        ]

    def test_catalog_contains_subscriber(self):
        assert BADGE_CATALOG["subscriber"].level.value == "bronze"

    def test_due_badges_includes_lower_levels(self):
        assert badge_types(due_badges(FROG_STREAK_BADGES, 21)) == [
            "frog_streak_3", "frog_streak_7", "frog_streak_21",
        ]
        assert due_badges(FROG_STREAK_BADGES, 2) == []


# ==================== Awarding Tests ====================

class TestBadgeAwarder:
    """Tests for BadgeAwarder against a real store."""

    async def test_jump_awards_every_missing_threshold(self, store, user):
        awarder = BadgeAwarder(store)
        await awarder.award_streak_badges(user.user_id, "frog", 2)
        awarded = await awarder.award_streak_badges(user.user_id, "frog", 7)

        assert badge_types(awarded) == ["frog_streak_3", "frog_streak_7"]

    async def test_repeat_awards_nothing(self, store, user):
        awarder = BadgeAwarder(store)
        await awarder.award_streak_badges(user.user_id, "frog", 7)
        again = await awarder.award_streak_badges(user.user_id, "frog", 7)

        assert again == []
        stored = await store.get_badges(user.user_id)
        assert sorted(b.badge_type for b in stored) == ["frog_streak_3", "frog_streak_7"]

    async def test_category_without_badges(self, store, user):
        assert await BadgeAwarder(store).award_streak_badges(user.user_id, "deep_work", 50) == []

    async def test_pr_badges_follow_pr_count(self, store, user):
        for index in range(5):
            await store.insert_task(TaskRecord(
                task_id=f"pr-{index}",
                user_id=user.user_id,
                date=date(2025, 7, 1 + index),
                time_start="10:00",
                task_name="Sales call",
                intensity=8,
                roi=9,
                burn=4,
                focus_score=7.9,
                is_pr=True,
            ))

        awarded = await BadgeAwarder(store).award_pr_badges(user.user_id)
        assert badge_types(awarded) == ["pr_first", "pr_5"]

    async def test_existing_badge_is_never_overwritten(self, store, user):
        await store.insert_badge_if_absent(user.user_id, "frog_streak_3", "bronze")
        inserted = await store.insert_badge_if_absent(user.user_id, "frog_streak_3", "gold")

        assert inserted is False
        stored = await store.get_badges(user.user_id)
        assert [(b.badge_type, b.badge_level) for b in stored] == [("frog_streak_3", "bronze")]

    async def test_subscriber_badge(self, store, user):
        awarder = BadgeAwarder(store)
        assert badge_types(await awarder.award_subscriber_badge(user.user_id)) == ["subscriber"]
        assert await awarder.award_subscriber_badge(user.user_id) == []
