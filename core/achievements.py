#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Badge System
Бейджи за серии, личные рекорды и подписку

Версия: 1.0.0
Дата: 2025-07-02
"""

from typing import Dict, List, Any, Iterable, Tuple
from dataclasses import dataclass
from enum import Enum
import logging

from core.models import BadgeLevel, StreakType

logger = logging.getLogger(__name__)

# ===== ENUMS =====

class BadgeCategory(Enum):
    """Категории бейджей"""
    STREAKS = "streaks"
    PERSONAL_RECORDS = "personal_records"
    SUBSCRIPTION = "subscription"

# ===== DATA CLASSES =====

@dataclass(frozen=True)
class BadgeDefinition:
    """Определение бейджа"""
    badge_type: str
    level: BadgeLevel
    category: BadgeCategory
    threshold: int
    title: str
    icon: str

    @property
    def level_emoji(self) -> str:
        """Emoji для уровня"""
        level_emojis = {
            BadgeLevel.BRONZE: "🥉",
            BadgeLevel.SILVER: "🥈",
            BadgeLevel.GOLD: "🥇",
            BadgeLevel.DIAMOND: "💎",
        }
        return level_emojis.get(self.level, "🏅")

    def is_due(self, value: int) -> bool:
        return value >= self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            'badge_type': self.badge_type,
            'badge_level': self.level.value,
            'category': self.category.value,
            'threshold': self.threshold,
            'title': self.title,
            'icon': self.icon,
        }

# ===== КАТАЛОГ =====

FROG_STREAK_BADGES: Tuple[BadgeDefinition, ...] = (
    BadgeDefinition('frog_streak_3', BadgeLevel.BRONZE, BadgeCategory.STREAKS, 3, "3 Day Frog Streak", "🥉"),
    BadgeDefinition('frog_streak_7', BadgeLevel.SILVER, BadgeCategory.STREAKS, 7, "Frog Week", "🥈"),
    BadgeDefinition('frog_streak_21', BadgeLevel.GOLD, BadgeCategory.STREAKS, 21, "Frog Habit", "🥇"),
    BadgeDefinition('frog_streak_30', BadgeLevel.DIAMOND, BadgeCategory.STREAKS, 30, "Frog Month", "💎"),
)

PR_BADGES: Tuple[BadgeDefinition, ...] = (
    BadgeDefinition('pr_first', BadgeLevel.BRONZE, BadgeCategory.PERSONAL_RECORDS, 1, "First PR", "⭐"),
    BadgeDefinition('pr_5', BadgeLevel.SILVER, BadgeCategory.PERSONAL_RECORDS, 5, "5 PRs", "🌟"),
    BadgeDefinition('pr_10', BadgeLevel.GOLD, BadgeCategory.PERSONAL_RECORDS, 10, "10 PRs", "✨"),
)

SUBSCRIBER_BADGE = BadgeDefinition(
    'subscriber', BadgeLevel.BRONZE, BadgeCategory.SUBSCRIPTION, 1, "Subscriber", "🏅"
)

STREAK_BADGES: Dict[str, Tuple[BadgeDefinition, ...]] = {
    StreakType.FROG.value: FROG_STREAK_BADGES,
}

BADGE_CATALOG: Dict[str, BadgeDefinition] = {
    badge.badge_type: badge
    for badge in (*FROG_STREAK_BADGES, *PR_BADGES, SUBSCRIBER_BADGE)
}

def due_badges(definitions: Iterable[BadgeDefinition], value: int) -> List[BadgeDefinition]:
    """Все бейджи с порогом не выше value (включая пропущенные младшие уровни)"""
    return [badge for badge in definitions if badge.is_due(value)]

# ===== ВЫДАЧА =====

class BadgeAwarder:
    """Выдача бейджей по принципу insert-if-absent"""

    def __init__(self, store):
        self.store = store

    async def _award(self, user_id: str, definitions: Iterable[BadgeDefinition]) -> List[BadgeDefinition]:
        awarded = []
        for badge in definitions:
            if await self.store.has_badge(user_id, badge.badge_type):
                continue
            # Параллельный запрос мог выдать бейдж между проверкой и вставкой
            if await self.store.insert_badge_if_absent(user_id, badge.badge_type, badge.level.value):
                logger.info(f"🏆 Пользователь {user_id} получил бейдж {badge.badge_type} {badge.level_emoji}")
                awarded.append(badge)
        return awarded

    async def award_streak_badges(self, user_id: str, streak_type: str, streak_length: int) -> List[BadgeDefinition]:
        """Бейджи за длину серии; категории без бейджей пропускаются"""
        definitions = STREAK_BADGES.get(streak_type, ())
        return await self._award(user_id, due_badges(definitions, streak_length))

    async def award_pr_badges(self, user_id: str) -> List[BadgeDefinition]:
        """Бейджи за количество личных рекордов"""
        pr_count = await self.store.count_pr_tasks(user_id)
        return await self._award(user_id, due_badges(PR_BADGES, pr_count))

    async def award_subscriber_badge(self, user_id: str) -> List[BadgeDefinition]:
        return await self._award(user_id, [SUBSCRIBER_BADGE])
