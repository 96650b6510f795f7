# File: tests/unit/test_statistics.py
"""
Unit tests for dashboard aggregates, charts and insights.
"""

from datetime import date, datetime
from itertools import count

from core.models import TaskRecord
from dashboard.core.analytics import AnalyticsEngine
from dashboard.core.statistics import StatisticsCalculator, average, iso_week_label

NOW = datetime(2025, 7, 10, 18, 0)
_ids = count(1)


def make_task(user_id="user-1", day=date(2025, 7, 10), time_start="09:00", intensity=5, roi=5, burn=5,
              is_frog=False, is_pr=False, task_name="Inbox zero", action="Keep"):
    return TaskRecord(
        task_id=f"task-{next(_ids)}",
        user_id=user_id,
        date=day,
        time_start=time_start,
        task_name=task_name,
        intensity=intensity,
        roi=roi,
        burn=burn,
        focus_score=round((intensity + roi + burn) / 3, 1),
        is_frog=is_frog,
        is_pr=is_pr,
        action=action,
    )


# ==================== Helper Tests ====================

class TestHelpers:
    """Tests for aggregate helpers."""

    def test_average(self):
        assert average([]) is None
        assert average([1, 2, 2]) == 1.67

    def test_iso_week_label(self):
        assert iso_week_label(date(2025, 1, 1)) == "2025-W01"
        assert iso_week_label(date(2024, 12, 30)) == "2025-W01"


# ==================== Aggregate Tests ====================

class TestAggregates:
    """Tests for the static aggregate builders."""

    def test_overall_stats(self):
        tasks = [make_task(intensity=8, is_frog=True), make_task(intensity=4, is_pr=True)]
        overall = StatisticsCalculator.overall_stats(tasks)

        assert overall["total_tasks"] == 2
        assert overall["avg_intensity"] == 6.0
        assert (overall["frog_count"], overall["pr_count"]) == (1, 1)
        assert overall["total_minutes"] == 50

    def test_overall_stats_empty(self):
        assert StatisticsCalculator.overall_stats([])["avg_focus"] is None

    def test_today_stats_only_counts_today(self):
        tasks = [make_task(), make_task(day=date(2025, 7, 9))]
        assert StatisticsCalculator.today_stats(tasks, date(2025, 7, 10))["tasks_today"] == 1

    def test_week_comparison_newest_first(self):
        tasks = [make_task(day=date(2025, 6, 30)), make_task(day=date(2025, 7, 10)), make_task(day=date(2025, 7, 9))]
        weeks = StatisticsCalculator.week_comparison(tasks)

        assert [w["week"] for w in weeks] == ["2025-W28", "2025-W27"]
        assert weeks[0]["task_count"] == 2

    def test_action_breakdown(self):
        tasks = [make_task(action="Keep"), make_task(action="Delegate"), make_task(action="Keep")]
        rows = StatisticsCalculator.action_breakdown(tasks)

        assert [(r["action"], r["count"]) for r in rows] == [("Delegate", 1), ("Keep", 2)]


# ==================== Chart Tests ====================

class TestCharts:
    """Tests for chart data loaded from the store."""

    async def test_frog_timing(self, store, user):
        await store.insert_task(make_task(time_start="08:15", is_frog=True))
        await store.insert_task(make_task(time_start="14:00", is_frog=True))
        await store.insert_task(make_task(time_start="15:00"))

        rows = await StatisticsCalculator(store).get_chart_data(user.user_id, "frogTiming", now=NOW)
        assert sorted((r["timing"], r["count"]) for r in rows) == [("After Noon", 1), ("Before Noon", 1)]

    async def test_window_excludes_old_tasks(self, store, user):
        await store.insert_task(make_task(day=date(2025, 5, 1)))
        await store.insert_task(make_task())

        rows = await StatisticsCalculator(store).get_chart_data(user.user_id, "weeklyTrend", now=NOW)
        assert [r["date"] for r in rows] == ["2025-07-10"]

    async def test_unknown_chart_type(self, store, user):
        assert await StatisticsCalculator(store).get_chart_data(user.user_id, "radar", now=NOW) == []


# ==================== Insight Tests ====================

class TestInsights:
    """Tests for AnalyticsEngine."""

    def test_energy_vampires(self):
        tasks = [
            make_task(task_name="Meetings", roi=3, burn=8),
            make_task(task_name="Meetings", roi=2, burn=7),
            make_task(task_name="Expenses", roi=4, burn=6),
            make_task(task_name="Strategy", roi=9, burn=8),
        ]
        rows = AnalyticsEngine.energy_vampires(tasks)

        assert [(r["task_name"], r["frequency"]) for r in rows] == [("Meetings", 2), ("Expenses", 1)]

    def test_peak_hours_use_frog_tasks(self):
        tasks = [
            make_task(time_start="07:30", intensity=9, is_frog=True),
            make_task(time_start="10:00", intensity=6, is_frog=True),
            make_task(time_start="16:00", intensity=10),
        ]
        assert [r["hour"] for r in AnalyticsEngine.peak_hours(tasks)] == ["07", "10"]

    def test_holy_trinity(self):
        tasks = [
            make_task(intensity=9, roi=9, is_frog=True, is_pr=True),
            make_task(intensity=9, roi=9, is_frog=True),
        ]
        assert len(AnalyticsEngine.holy_trinity(tasks)) == 1

    async def test_needs_recovery(self, store, user):
        for _ in range(3):
            await store.insert_task(make_task(intensity=2))

        insights = await AnalyticsEngine(StatisticsCalculator(store)).get_insights(user.user_id, now=NOW)
        assert insights["needsRecovery"] is True
        assert insights["recentAvgIntensity"] == 2.0
