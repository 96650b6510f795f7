#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Statistics Calculator
Агрегаты дашборда и данные графиков по задачам пользователя

Версия: 1.0.0
Дата: 2025-07-02
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Any, Iterable, Callable

from core.clock import user_today
from core.database import MetricStore
from core.models import TaskRecord

logger = logging.getLogger(__name__)

STATS_WINDOW_DAYS = 30

def average(values: Iterable[float]) -> Optional[float]:
    """Среднее с округлением до 2 знаков; None для пустой выборки"""
    values = list(values)
    if not values:
        return None
    return round(sum(values) / len(values), 2)

def group_by(tasks: Iterable[TaskRecord], key: Callable[[TaskRecord], Any]) -> Dict[Any, List[TaskRecord]]:
    groups: Dict[Any, List[TaskRecord]] = defaultdict(list)
    for task in tasks:
        groups[key(task)].append(task)
    return groups

def task_hour(task: TaskRecord) -> str:
    return task.time_start[:2]

def before_noon(task: TaskRecord) -> bool:
    return task.time_start < "12:00"

def iso_week_label(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"

class StatisticsCalculator:
    """Расчет статистики дашборда и графиков"""

    CHART_TYPES = ('burnIntensityHeatmap', 'intensityRoiScatter', 'weeklyTrend', 'frogTiming')

    def __init__(self, store: MetricStore, window_days: int = STATS_WINDOW_DAYS):
        self.store = store
        self.window_days = window_days

    async def load_window(self, user_id: str, now: Optional[datetime] = None):
        """(today пользователя, задачи за окно статистики)"""
        settings = await self.store.get_user_settings(user_id)
        today = user_today(settings.timezone, now)
        tasks = await self.store.get_tasks_since(user_id, today - timedelta(days=self.window_days))
        return today, tasks

    # ===== ДАШБОРД =====

    @staticmethod
    def overall_stats(tasks: List[TaskRecord]) -> Dict[str, Any]:
        return {
            'total_tasks': len(tasks),
            'avg_burn': average(t.burn for t in tasks),
            'avg_intensity': average(t.intensity for t in tasks),
            'avg_roi': average(t.roi for t in tasks),
            'avg_focus': average(t.focus_score for t in tasks),
            'frog_count': sum(1 for t in tasks if t.is_frog),
            'pr_count': sum(1 for t in tasks if t.is_pr),
            'total_minutes': sum(t.minutes for t in tasks),
        }

    @staticmethod
    def today_stats(tasks: List[TaskRecord], today: date) -> Dict[str, Any]:
        todays = [t for t in tasks if t.date == today]
        return {
            'tasks_today': len(todays),
            'avg_intensity_today': average(t.intensity for t in todays),
            'frogs_today': sum(1 for t in todays if t.is_frog),
            'minutes_today': sum(t.minutes for t in todays),
        }

    @staticmethod
    def week_comparison(tasks: List[TaskRecord], weeks: int = 4) -> List[Dict[str, Any]]:
        """Последние недели (ISO), новые первыми"""
        groups = group_by(tasks, lambda t: iso_week_label(t.date))
        return [
            {
                'week': week,
                'avg_intensity': average(t.intensity for t in items),
                'avg_roi': average(t.roi for t in items),
                'task_count': len(items),
            }
            for week, items in sorted(groups.items(), reverse=True)[:weeks]
        ]

    @staticmethod
    def best_hours(tasks: List[TaskRecord], limit: int = 3) -> List[Dict[str, Any]]:
        rows = [
            {
                'hour': hour,
                'avg_intensity': average(t.intensity for t in items),
                'avg_roi': average(t.roi for t in items),
                'task_count': len(items),
            }
            for hour, items in group_by(tasks, task_hour).items()
        ]
        rows.sort(key=lambda r: (-r['avg_intensity'], r['hour']))
        return rows[:limit]

    @staticmethod
    def action_breakdown(tasks: List[TaskRecord]) -> List[Dict[str, Any]]:
        return [
            {'action': action, 'count': len(items), 'avg_roi': average(t.roi for t in items)}
            for action, items in sorted(group_by(tasks, lambda t: t.action).items())
        ]

    async def get_dashboard(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        today, tasks = await self.load_window(user_id, now)
        recent_tasks = await self.store.get_tasks(user_id, limit=10)
        streaks = await self.store.get_streaks(user_id)
        badges = await self.store.get_badges(user_id)

        return {
            'stats': {
                'overall': self.overall_stats(tasks),
                'today': self.today_stats(tasks, today),
                'weekComparison': self.week_comparison(tasks),
                'bestHours': self.best_hours(tasks),
                'actionBreakdown': self.action_breakdown(tasks),
            },
            'recentTasks': [task.to_dict() for task in recent_tasks],
            'streaks': [streak.to_dict() for streak in streaks],
            'badges': [badge.to_dict() for badge in badges],
            'today': today.isoformat(),
        }

    # ===== ГРАФИКИ =====

    async def get_chart_data(self, user_id: str, chart_type: str,
                             now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Данные графика; неизвестный тип дает пустой список"""
        if chart_type not in self.CHART_TYPES:
            logger.debug(f"Неизвестный тип графика: {chart_type}")
            return []

        _, tasks = await self.load_window(user_id, now)

        if chart_type == 'burnIntensityHeatmap':
            groups = group_by(tasks, lambda t: (t.burn, t.intensity))
            return [
                {'burn': burn, 'intensity': intensity, 'count': len(items)}
                for (burn, intensity), items in sorted(groups.items())
            ]

        if chart_type == 'intensityRoiScatter':
            return [
                {
                    'intensity': t.intensity,
                    'roi': t.roi,
                    'task_name': t.task_name,
                    'is_frog': t.is_frog,
                    'is_pr': t.is_pr,
                }
                for t in tasks
            ]

        if chart_type == 'weeklyTrend':
            return [
                {
                    'date': day.isoformat(),
                    'avg_intensity': average(t.intensity for t in items),
                    'avg_roi': average(t.roi for t in items),
                    'avg_focus': average(t.focus_score for t in items),
                }
                for day, items in sorted(group_by(tasks, lambda t: t.date).items())
            ]

        frogs = [t for t in tasks if t.is_frog]
        groups = group_by(frogs, lambda t: 'Before Noon' if before_noon(t) else 'After Noon')
        return [
            {'timing': timing, 'count': len(items), 'avg_intensity': average(t.intensity for t in items)}
            for timing, items in sorted(groups.items())
        ]
