#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Streak Tracker
Ежедневные серии по категориям задач (frog и др.)

Версия: 1.0.0
Дата: 2025-07-02
"""

from datetime import date
from typing import Dict, Optional, Any, Tuple
from dataclasses import dataclass
import logging

from core.clock import yesterday_of
from core.database import InconsistentState
from core.models import StreakRecord

logger = logging.getLogger(__name__)

@dataclass
class StreakUpdate:
    """Результат обработки серии"""
    streak_type: str
    current_streak: int
    best_streak: int
    last_date: date
    changed: bool
    reset: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'streak_type': self.streak_type,
            'current_streak': self.current_streak,
            'best_streak': self.best_streak,
            'last_date': self.last_date.isoformat(),
            'changed': self.changed,
            'reset': self.reset,
        }

def next_streak_lengths(previous: Optional[StreakRecord], today: date) -> Tuple[int, int, bool]:
    """
    Переход состояния серии для активности в день today.

    Возвращает (current, best, reset). Случай last_date == today обрабатывается
    вызывающим кодом как no-op и сюда не попадает.
    Если last_date в будущем, выбрасывает InconsistentState.
    """
    if previous is None:
        return 1, 1, False

    if previous.last_date > today:
        raise InconsistentState(
            f"Серия {previous.streak_type} пользователя {previous.user_id}: "
            f"last_date {previous.last_date} позже текущей даты {today}"
        )

    if previous.last_date == yesterday_of(today):
        current = previous.current_streak + 1
        reset = False
    else:
        current = 1
        reset = True

    return current, max(previous.best_streak, current), reset

class StreakTracker:
    """Обновление серий не чаще одного раза в день на категорию"""

    MAX_ATTEMPTS = 3

    def __init__(self, store):
        self.store = store

    async def record_activity(self, user_id: str, streak_type: str, today: date) -> StreakUpdate:
        """
        Учесть квалифицирующую задачу за день today.

        Запись выполняется через compare-and-swap по last_date: при параллельной
        записи другого запроса серия перечитывается, и повторный вызов в тот же
        день попадает в ветку no-op.
        """
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            previous = await self.store.get_streak(user_id, streak_type)

            if previous is not None and previous.last_date == today:
                logger.debug(f"Серия {streak_type} пользователя {user_id} уже учтена за {today}")
                return StreakUpdate(
                    streak_type=streak_type,
                    current_streak=previous.current_streak,
                    best_streak=previous.best_streak,
                    last_date=today,
                    changed=False,
                )

            try:
                current, best, reset = next_streak_lengths(previous, today)
            except InconsistentState as e:
                logger.warning(f"⚠️ {e}; серия начинается заново")
                current, best, reset = 1, max(previous.best_streak, 1), True

            applied = await self.store.compare_and_swap_streak(
                user_id, streak_type, current, best, today,
                expected_last_date=previous.last_date if previous else None,
            )
            if applied:
                logger.info(f"🔥 Серия {streak_type} пользователя {user_id}: {current} (лучшая {best})")
                return StreakUpdate(
                    streak_type=streak_type,
                    current_streak=current,
                    best_streak=best,
                    last_date=today,
                    changed=True,
                    reset=reset,
                )

            logger.info(f"🔄 Конкурентное обновление серии {streak_type} пользователя {user_id}, попытка {attempt}")

        raise InconsistentState(
            f"Не удалось обновить серию {streak_type} пользователя {user_id} за {self.MAX_ATTEMPTS} попытки"
        )
