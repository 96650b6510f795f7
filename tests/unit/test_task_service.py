# File: tests/unit/test_task_service.py
"""
Unit tests for TaskService: task recording with streak and badge side effects.
"""

from datetime import date, datetime, timedelta

import pytest

from core.achievements import BadgeAwarder
from core.database import InconsistentState, StoreUnavailable
from core.models import InvalidMetric
from core.streaks import StreakTracker
from services.task_service import TaskService, TaskSubmission


def submission(user_id="user-1", **overrides):
    values = dict(user_id=user_id, task_name="Write proposal", intensity=8, roi=9, burn=2)
    values.update(overrides)
    return TaskSubmission(**values)


class FailingStreakTracker(StreakTracker):
    async def record_activity(self, user_id, streak_type, today):
        raise InconsistentState("streak row changed concurrently")


class FailingBadgeAwarder(BadgeAwarder):
    async def award_streak_badges(self, user_id, streak_type, streak_length):
        raise StoreUnavailable("insert_badge_if_absent: database is locked")

    async def award_pr_badges(self, user_id):
        raise StoreUnavailable("count_pr_tasks: database is locked")


# ==================== Submission Tests ====================

class TestSubmitTask:
    """Tests for TaskService.submit_task."""

    async def test_first_high_roi_task_is_pr(self, store, user, morning):
        result = await TaskService(store).submit_task(submission(), now=morning)

        assert result.focus_score == 7.7
        assert result.is_pr is True
        assert result.warnings == []
        assert [badge.badge_type for badge in result.new_badges] == ["pr_first"]

        saved = await store.get_task(result.task_id, user.user_id)
        assert saved.focus_score == 7.7
        assert saved.is_pr is True

    async def test_lower_intensity_is_not_pr(self, store, user, morning):
        service = TaskService(store)
        await service.submit_task(submission(intensity=9), now=morning)
        result = await service.submit_task(submission(intensity=7), now=morning)

        assert result.is_pr is False

    async def test_equal_intensity_is_pr(self, store, user, morning):
        service = TaskService(store)
        await service.submit_task(submission(intensity=9), now=morning)
        result = await service.submit_task(submission(intensity=9), now=morning)

        assert result.is_pr is True

    async def test_low_roi_is_never_pr(self, store, user, morning):
        result = await TaskService(store).submit_task(submission(roi=7, intensity=10), now=morning)

        assert result.is_pr is False
        assert result.new_badges == []

    async def test_defaults_use_user_local_time(self, store, user, morning):
        await store.update_user_settings(user.user_id, timezone="America/New_York")
        result = await TaskService(store).submit_task(submission(), now=morning)

        saved = await store.get_task(result.task_id, user.user_id)
        assert saved.date == date(2025, 7, 10)
        assert saved.time_start == "05:30"
        assert saved.minutes == 25
        assert saved.action == "Keep"

    async def test_user_weights_are_applied(self, store, user, morning):
        await store.update_user_settings(user.user_id, weight_intensity=1.0, weight_roi=1.0, weight_burn=2.0)
        result = await TaskService(store).submit_task(
            submission(intensity=4, roi=6, burn=10), now=morning
        )

        assert result.focus_score == 7.5

    async def test_invalid_metric_persists_nothing(self, store, user, morning):
        with pytest.raises(InvalidMetric) as exc_info:
            await TaskService(store).submit_task(submission(burn=11), now=morning)

        assert exc_info.value.field_name == "burn"
        assert await store.get_tasks(user.user_id) == []


# ==================== Streak Side Effects ====================

class TestFrogStreak:
    """Tests for frog streak updates triggered by task submission."""

    async def test_frog_today_updates_streak(self, store, user, morning):
        result = await TaskService(store).submit_task(submission(is_frog=True), now=morning)

        assert result.streak.current_streak == 1
        streak = await store.get_streak(user.user_id, "frog")
        assert streak.last_date == date(2025, 7, 10)

    async def test_two_frogs_same_day_count_once(self, store, user, morning):
        service = TaskService(store)
        await service.submit_task(submission(is_frog=True), now=morning)
        second = await service.submit_task(submission(is_frog=True), now=morning + timedelta(hours=3))

        assert second.streak.changed is False
        assert (await store.get_streak(user.user_id, "frog")).current_streak == 1

    async def test_third_day_awards_bronze_badge(self, store, user, morning):
        service = TaskService(store)
        for offset in range(3):
            result = await service.submit_task(
                submission(is_frog=True, roi=3), now=morning + timedelta(days=offset)
            )

        assert result.streak.current_streak == 3
        assert [badge.badge_type for badge in result.new_badges] == ["frog_streak_3"]

    async def test_backdated_frog_does_not_touch_streak(self, store, user, morning):
        result = await TaskService(store).submit_task(
            submission(is_frog=True, date="2025-07-01"), now=morning
        )

        assert result.streak is None
        assert result.task_date == date(2025, 7, 1)
        assert await store.get_streak(user.user_id, "frog") is None

    async def test_streak_failure_keeps_task(self, store, user, morning):
        service = TaskService(store, streak_tracker=FailingStreakTracker(store))
        result = await service.submit_task(submission(is_frog=True), now=morning)

        assert result.warnings and result.warnings[0].startswith("streak_update_failed")
        assert await store.get_task(result.task_id, user.user_id) is not None

    async def test_pr_badge_failure_keeps_task(self, store, user, morning):
        service = TaskService(store, badge_awarder=FailingBadgeAwarder(store))
        result = await service.submit_task(submission(), now=morning)

        assert result.is_pr is True
        assert result.new_badges == []
        assert [w.split(":")[0] for w in result.warnings] == ["badge_award_failed"]
        assert await store.get_task(result.task_id, user.user_id) is not None

    async def test_streak_badge_failure_keeps_streak_and_task(self, store, user, morning):
        service = TaskService(store, badge_awarder=FailingBadgeAwarder(store))
        result = await service.submit_task(submission(is_frog=True, roi=3), now=morning)

        assert result.streak.current_streak == 1
        assert [w.split(":")[0] for w in result.warnings] == ["badge_award_failed"]
        assert (await store.get_streak(user.user_id, "frog")).current_streak == 1
        assert await store.get_task(result.task_id, user.user_id) is not None

    async def test_result_dict_shape(self, store, user, morning):
        payload = (await TaskService(store).submit_task(submission(is_frog=True), now=morning)).to_dict()

        assert payload["success"] is True
        assert payload["date"] == "2025-07-10"
        assert payload["streak"]["current_streak"] == 1
        assert payload["new_badges"][0]["badge_type"] == "pr_first"


# ==================== Listing Tests ====================

class TestTaskQueries:
    """Tests for listing and deleting tasks."""

    async def test_list_filters_by_date(self, store, user, morning):
        service = TaskService(store)
        await service.submit_task(submission(), now=morning)
        await service.submit_task(submission(date="2025-07-01"), now=morning)

        assert len(await service.list_tasks(user.user_id)) == 2
        only_first = await service.list_tasks(user.user_id, "2025-07-01")
        assert [task.date for task in only_first] == [date(2025, 7, 1)]

    async def test_delete_is_scoped_to_owner(self, store, user, morning):
        service = TaskService(store)
        result = await service.submit_task(submission(), now=morning)
        await store.create_user("user-2", "other@example.com", "hash")

        assert await service.delete_task("user-2", result.task_id) is False
        assert await service.delete_task(user.user_id, result.task_id) is True
        assert await service.get_task(user.user_id, result.task_id) is None
