# core/clock.py

"""
Границы дня пользователя.

Все вычисления "сегодня/вчера" (дата задачи по умолчанию, серии, дашборд)
выполняются в часовом поясе из настроек пользователя.
"""

import logging
from datetime import datetime, date, timedelta
from typing import Optional

import pytz

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"

def get_timezone(name: Optional[str]):
    """pytz timezone по имени; неизвестный пояс заменяется на UTC"""
    try:
        return pytz.timezone(name or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"⚠️ Неизвестный часовой пояс {name!r}, используется UTC")
        return pytz.utc

def is_valid_timezone(name: str) -> bool:
    return name in pytz.all_timezones_set

def user_now(timezone_name: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Локальное время пользователя"""
    utc_now = now or datetime.now(pytz.utc)
    if utc_now.tzinfo is None:
        utc_now = pytz.utc.localize(utc_now)
    return utc_now.astimezone(get_timezone(timezone_name))

def user_today(timezone_name: Optional[str], now: Optional[datetime] = None) -> date:
    return user_now(timezone_name, now).date()

def yesterday_of(day: date) -> date:
    return day - timedelta(days=1)

def week_start_of(day: date) -> date:
    """Понедельник недели, содержащей day"""
    return day - timedelta(days=day.weekday())
