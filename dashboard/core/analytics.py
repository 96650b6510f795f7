#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Analytics Engine
Инсайты: пиковые часы, энергетические вампиры, прокрастинация, выгорание

Версия: 1.0.0
Дата: 2025-07-02
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Any

from core.models import TaskRecord
from dashboard.core.statistics import StatisticsCalculator, average, group_by, task_hour, before_noon

logger = logging.getLogger(__name__)

VAMPIRE_MAX_ROI = 4
VAMPIRE_MIN_BURN = 6
TRINITY_MIN_SCORE = 8
RECOVERY_THRESHOLD = 4
RECENT_TASKS_FOR_RECOVERY = 7

class AnalyticsEngine:
    """Поведенческие инсайты по задачам пользователя"""

    def __init__(self, statistics: StatisticsCalculator):
        self.statistics = statistics
        self.store = statistics.store

    @staticmethod
    def peak_hours(tasks: List[TaskRecord], limit: int = 3) -> List[Dict[str, Any]]:
        """Часы frog-задач с максимальной средней интенсивностью"""
        rows = [
            {
                'hour': hour,
                'avg_intensity': average(t.intensity for t in items),
                'avg_roi': average(t.roi for t in items),
                'avg_focus': average(t.focus_score for t in items),
                'count': len(items),
            }
            for hour, items in group_by([t for t in tasks if t.is_frog], task_hour).items()
        ]
        rows.sort(key=lambda r: (-r['avg_intensity'], r['hour']))
        return rows[:limit]

    @staticmethod
    def energy_vampires(tasks: List[TaskRecord], limit: int = 5) -> List[Dict[str, Any]]:
        """Частые задачи с низким ROI и высоким выгоранием"""
        vampires = [t for t in tasks if t.roi <= VAMPIRE_MAX_ROI and t.burn >= VAMPIRE_MIN_BURN]
        rows = [
            {
                'task_name': name,
                'avg_burn': average(t.burn for t in items),
                'avg_roi': average(t.roi for t in items),
                'frequency': len(items),
            }
            for name, items in group_by(vampires, lambda t: t.task_name).items()
        ]
        rows.sort(key=lambda r: (-r['frequency'], r['task_name']))
        return rows[:limit]

    @staticmethod
    def procrastination(tasks: List[TaskRecord]) -> List[Dict[str, Any]]:
        groups = group_by([t for t in tasks if t.is_frog], lambda t: 'morning' if before_noon(t) else 'afternoon')
        return [
            {'period': period, 'frog_count': len(items), 'avg_intensity': average(t.intensity for t in items)}
            for period, items in sorted(groups.items())
        ]

    @staticmethod
    def holy_trinity(tasks: List[TaskRecord], limit: int = 10) -> List[Dict[str, Any]]:
        """Frog + PR + высокая интенсивность + высокий ROI"""
        matches = [
            t for t in tasks
            if t.is_frog and t.is_pr and t.intensity >= TRINITY_MIN_SCORE and t.roi >= TRINITY_MIN_SCORE
        ]
        matches.sort(key=lambda t: (t.date, t.time_start), reverse=True)
        return [t.to_dict() for t in matches[:limit]]

    async def get_insights(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        _, tasks = await self.statistics.load_window(user_id, now)

        recent = await self.store.get_tasks(user_id, limit=RECENT_TASKS_FOR_RECOVERY)
        recent_avg = average(t.intensity for t in recent)
        needs_recovery = recent_avg is not None and recent_avg < RECOVERY_THRESHOLD
        if needs_recovery:
            logger.info(f"🔋 Пользователю {user_id} рекомендуется восстановление (avg {recent_avg})")

        return {
            'peakHours': self.peak_hours(tasks),
            'energyVampires': self.energy_vampires(tasks),
            'procrastination': self.procrastination(tasks),
            'holyTrinity': self.holy_trinity(tasks),
            'needsRecovery': needs_recovery,
            'recentAvgIntensity': recent_avg,
        }
