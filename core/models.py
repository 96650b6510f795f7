#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Core Data Models
Модели данных задач, настроек, серий и бейджей с валидацией

Версия: 1.0.0
Дата: 2025-07-02
"""

import math
import uuid
from datetime import datetime, date, timezone
from typing import Dict, Optional, Any, Mapping
from dataclasses import dataclass, field, asdict
from enum import Enum
import logging

logger = logging.getLogger(__name__)

# ===== КОНСТАНТЫ =====

METRIC_MIN = 0
METRIC_MAX = 10

DEFAULT_WEIGHT_INTENSITY = 0.6
DEFAULT_WEIGHT_ROI = 0.3
DEFAULT_WEIGHT_BURN = 0.1

DEFAULT_TASK_MINUTES = 25

# ===== ENUMS =====

class TaskAction(Enum):
    """Решение по задаче"""
    KEEP = "Keep"
    DELEGATE = "Delegate"
    AUTOMATE = "Automate"
    ELIMINATE = "Eliminate"

class StreakType(Enum):
    """Категории серий"""
    FROG = "frog"

class BadgeLevel(Enum):
    """Уровни бейджей"""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"

class SubscriptionStatus(Enum):
    """Статусы подписки"""
    INACTIVE = "inactive"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"

class UserTheme(Enum):
    """Темы оформления"""
    DARK = "dark"
    LIGHT = "light"

# ===== VALIDATION HELPERS =====

class ValidationError(Exception):
    """Ошибка валидации данных"""
    pass

class InvalidMetric(ValidationError):
    """Метрика задачи вне допустимого диапазона"""

    def __init__(self, field_name: str, value: Any, message: Optional[str] = None):
        self.field_name = field_name
        self.value = value
        super().__init__(
            message or f"{field_name} должен быть целым числом от {METRIC_MIN} до {METRIC_MAX}, получено: {value!r}"
        )

def utcnow() -> datetime:
    """Текущее время UTC без tzinfo (формат хранения в БД)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def validate_metric(value: Any, field_name: str) -> int:
    """Валидация метрики intensity/roi/burn"""
    # bool является подклассом int, но метрикой не является
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidMetric(field_name, value)
    if not METRIC_MIN <= value <= METRIC_MAX:
        raise InvalidMetric(field_name, value)
    return value

def validate_optional_metric(value: Any, field_name: str) -> Optional[int]:
    """Валидация необязательной метрики (fear_rating, satisfaction)"""
    if value is None:
        return None
    return validate_metric(value, field_name)

def validate_text(text: str, min_length: int = 1, max_length: int = 1000, field_name: str = "text") -> str:
    """Валидация текстовых полей"""
    if not isinstance(text, str):
        raise ValidationError(f"{field_name} должен быть строкой")

    text = text.strip()
    if len(text) < min_length:
        raise ValidationError(f"{field_name} должен содержать минимум {min_length} символов")

    if len(text) > max_length:
        raise ValidationError(f"{field_name} должен содержать максимум {max_length} символов")

    return text

def validate_enum_value(value: str, enum_class: type, field_name: str = "value") -> str:
    """Валидация значений enum"""
    try:
        enum_class(value)
        return value
    except ValueError:
        valid_values = [e.value for e in enum_class]
        raise ValidationError(f"{field_name} должен быть одним из: {valid_values}")

def parse_task_date(value: Any) -> date:
    """Дата задачи в формате YYYY-MM-DD"""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Неверный формат даты: {value}")

def validate_time_start(value: str) -> str:
    """Время начала задачи в формате HH:MM"""
    try:
        parsed = datetime.strptime(str(value), "%H:%M")
    except ValueError:
        raise ValidationError(f"Неверный формат времени: {value}")
    return parsed.strftime("%H:%M")

# ===== CORE MODELS =====

@dataclass
class WeightConfig:
    """Веса для расчета focus score"""
    weight_intensity: float = DEFAULT_WEIGHT_INTENSITY
    weight_roi: float = DEFAULT_WEIGHT_ROI
    weight_burn: float = DEFAULT_WEIGHT_BURN

    @property
    def total(self) -> float:
        return self.weight_intensity + self.weight_roi + self.weight_burn

    def validate(self) -> "WeightConfig":
        """Веса неотрицательны, их сумма положительна"""
        for name, value in asdict(self).items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{name} должен быть числом")
            if not math.isfinite(value):
                raise ValidationError(f"{name} должен быть конечным числом")
            if value < 0:
                raise ValidationError(f"{name} не может быть отрицательным")
        if self.total <= 0:
            raise ValidationError("Сумма весов должна быть больше нуля")
        if not math.isfinite(self.total):
            raise ValidationError("Сумма весов должна быть конечным числом")
        return self

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

@dataclass
class UserSettings:
    """Настройки пользователя"""
    user_id: str
    weight_intensity: float = DEFAULT_WEIGHT_INTENSITY
    weight_roi: float = DEFAULT_WEIGHT_ROI
    weight_burn: float = DEFAULT_WEIGHT_BURN
    theme: str = UserTheme.DARK.value
    timezone: str = "UTC"
    daily_intensity_target: int = 7
    notifications_enabled: bool = True
    updated_at: Optional[datetime] = None

    @property
    def weights(self) -> WeightConfig:
        return WeightConfig(
            weight_intensity=self.weight_intensity,
            weight_roi=self.weight_roi,
            weight_burn=self.weight_burn,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['updated_at'] = self.updated_at.isoformat() if self.updated_at else None
        return data

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserSettings":
        return cls(
            user_id=row['user_id'],
            weight_intensity=row['weight_intensity'],
            weight_roi=row['weight_roi'],
            weight_burn=row['weight_burn'],
            theme=row['theme'],
            timezone=row['timezone'],
            daily_intensity_target=row['daily_intensity_target'],
            notifications_enabled=bool(row['notifications_enabled']),
            updated_at=row.get('updated_at'),
        )

@dataclass
class TaskRecord:
    """Запись о выполненной задаче (неизменяемая после создания)"""
    task_id: str
    user_id: str
    date: date
    time_start: str
    task_name: str
    intensity: int
    roi: int
    burn: int
    focus_score: float
    minutes: int = DEFAULT_TASK_MINUTES
    is_frog: bool = False
    is_pr: bool = False
    action: str = TaskAction.KEEP.value
    notes: str = ""
    fear_rating: Optional[int] = None
    satisfaction: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        """Валидация после создания объекта"""
        self.task_name = validate_text(self.task_name, min_length=1, max_length=200, field_name="task_name")
        self.action = validate_enum_value(self.action, TaskAction, "action")
        self.notes = validate_text(self.notes or "", min_length=0, max_length=2000, field_name="notes")

        for name in ('intensity', 'roi', 'burn'):
            validate_metric(getattr(self, name), name)
        validate_optional_metric(self.fear_rating, 'fear_rating')
        validate_optional_metric(self.satisfaction, 'satisfaction')

        if not isinstance(self.minutes, int) or self.minutes <= 0:
            raise ValidationError("minutes должен быть положительным числом")

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    def to_row(self) -> Dict[str, Any]:
        """Представление для вставки в таблицу tasks"""
        return {
            'id': self.task_id,
            'user_id': self.user_id,
            'date': self.date,
            'time_start': self.time_start,
            'task_name': self.task_name,
            'minutes': self.minutes,
            'is_frog': self.is_frog,
            'is_pr': self.is_pr,
            'burn': self.burn,
            'intensity': self.intensity,
            'roi': self.roi,
            'action': self.action,
            'notes': self.notes,
            'focus_score': self.focus_score,
            'fear_rating': self.fear_rating,
            'satisfaction': self.satisfaction,
            'created_at': self.created_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_row()
        data['date'] = self.date.isoformat()
        data['created_at'] = self.created_at.isoformat()
        return data

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TaskRecord":
        return cls(
            task_id=row['id'],
            user_id=row['user_id'],
            date=row['date'],
            time_start=row['time_start'],
            task_name=row['task_name'],
            intensity=row['intensity'],
            roi=row['roi'],
            burn=row['burn'],
            focus_score=row['focus_score'],
            minutes=row['minutes'],
            is_frog=bool(row['is_frog']),
            is_pr=bool(row['is_pr']),
            action=row['action'],
            notes=row['notes'] or "",
            fear_rating=row['fear_rating'],
            satisfaction=row['satisfaction'],
            created_at=row['created_at'],
        )

@dataclass
class StreakRecord:
    """Серия выполнения по категории"""
    user_id: str
    streak_type: str
    current_streak: int
    best_streak: int
    last_date: date
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'streak_type': self.streak_type,
            'current_streak': self.current_streak,
            'best_streak': self.best_streak,
            'last_date': self.last_date.isoformat(),
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StreakRecord":
        return cls(
            user_id=row['user_id'],
            streak_type=row['streak_type'],
            current_streak=row['current_streak'],
            best_streak=row['best_streak'],
            last_date=row['last_date'],
            updated_at=row.get('updated_at'),
        )

@dataclass
class BadgeRecord:
    """Полученный бейдж"""
    user_id: str
    badge_type: str
    badge_level: str
    earned_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'badge_type': self.badge_type,
            'badge_level': self.badge_level,
            'earned_at': self.earned_at.isoformat() if self.earned_at else None,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BadgeRecord":
        return cls(
            user_id=row['user_id'],
            badge_type=row['badge_type'],
            badge_level=row['badge_level'],
            earned_at=row.get('earned_at'),
        )

@dataclass
class UserAccount:
    """Учетная запись пользователя"""
    user_id: str
    email: str
    password_hash: str
    stripe_customer_id: Optional[str] = None
    subscription_status: str = SubscriptionStatus.INACTIVE.value
    subscription_end: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def has_active_subscription(self, now: Optional[datetime] = None) -> bool:
        """Подписка активна и не истекла"""
        if self.subscription_status != SubscriptionStatus.ACTIVE.value:
            return False
        if self.subscription_end is None:
            return False
        return self.subscription_end > (now or utcnow())

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            'id': self.user_id,
            'email': self.email,
            'subscription_status': self.subscription_status,
            'subscription_end': self.subscription_end.isoformat() if self.subscription_end else None,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserAccount":
        return cls(
            user_id=row['id'],
            email=row['email'],
            password_hash=row['password_hash'],
            stripe_customer_id=row.get('stripe_customer_id'),
            subscription_status=row['subscription_status'],
            subscription_end=row.get('subscription_end'),
            created_at=row.get('created_at'),
        )
