#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Metric Store
Реляционное хранилище задач, серий, бейджей и настроек на SQLAlchemy

Версия: 1.0.0
Дата: 2025-07-02
"""

from datetime import date, datetime
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Any, AsyncIterator, Iterable
import logging

from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Boolean, DateTime, Date, Float, Text,
    ForeignKey, UniqueConstraint, Index, select, update, delete, func, and_, or_,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncConnection

from core.models import (
    UserAccount, UserSettings, TaskRecord, StreakRecord, BadgeRecord,
    SubscriptionStatus, utcnow,
    DEFAULT_WEIGHT_INTENSITY, DEFAULT_WEIGHT_ROI, DEFAULT_WEIGHT_BURN, DEFAULT_TASK_MINUTES,
)

logger = logging.getLogger(__name__)

HIGH_ROI_THRESHOLD = 8

# ===== EXCEPTIONS =====

class DatabaseError(Exception):
    """Базовое исключение для ошибок базы данных"""
    pass

class DatabaseConnectionError(DatabaseError):
    """Ошибка подключения к базе данных"""
    pass

class StoreUnavailable(DatabaseError):
    """Хранилище не выполнило запрос (ошибка пробрасывается вызывающему коду)"""
    pass

class InconsistentState(DatabaseError):
    """Данные в хранилище противоречат текущей дате или друг другу"""
    pass

# ===== СХЕМА =====

metadata = MetaData()

users_table = Table(
    'users', metadata,
    Column('id', String(36), primary_key=True),
    Column('email', String(255), nullable=False, unique=True),
    Column('password_hash', Text, nullable=False),
    Column('stripe_customer_id', String(255), index=True),
    Column('subscription_status', String(32), nullable=False, default=SubscriptionStatus.INACTIVE.value),
    Column('subscription_end', DateTime),
    Column('created_at', DateTime, default=utcnow),
    Column('updated_at', DateTime, default=utcnow),
)

user_settings_table = Table(
    'user_settings', metadata,
    Column('user_id', String(36), ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    Column('weight_intensity', Float, nullable=False, default=DEFAULT_WEIGHT_INTENSITY),
    Column('weight_roi', Float, nullable=False, default=DEFAULT_WEIGHT_ROI),
    Column('weight_burn', Float, nullable=False, default=DEFAULT_WEIGHT_BURN),
    Column('theme', String(20), nullable=False, default='dark'),
    Column('timezone', String(64), nullable=False, default='UTC'),
    Column('daily_intensity_target', Integer, nullable=False, default=7),
    Column('notifications_enabled', Boolean, nullable=False, default=True),
    Column('updated_at', DateTime, default=utcnow),
)

tasks_table = Table(
    'tasks', metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
    Column('date', Date, nullable=False),
    Column('time_start', String(5), nullable=False),
    Column('task_name', String(200), nullable=False),
    Column('minutes', Integer, nullable=False, default=DEFAULT_TASK_MINUTES),
    Column('is_frog', Boolean, nullable=False, default=False),
    Column('is_pr', Boolean, nullable=False, default=False),
    Column('burn', Integer, nullable=False),
    Column('intensity', Integer, nullable=False),
    Column('roi', Integer, nullable=False),
    Column('action', String(16), nullable=False, default='Keep'),
    Column('notes', Text, default=''),
    Column('focus_score', Float, nullable=False),
    Column('fear_rating', Integer),
    Column('satisfaction', Integer),
    Column('created_at', DateTime, default=utcnow),
    Index('idx_tasks_user_date', 'user_id', 'date'),
    Index('idx_tasks_user_roi', 'user_id', 'roi'),
)

streaks_table = Table(
    'streaks', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
    Column('streak_type', String(32), nullable=False),
    Column('current_streak', Integer, nullable=False, default=0),
    Column('best_streak', Integer, nullable=False, default=0),
    Column('last_date', Date, nullable=False),
    Column('updated_at', DateTime, default=utcnow),
    UniqueConstraint('user_id', 'streak_type', name='uq_streaks_user_type'),
)

badges_table = Table(
    'badges', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
    Column('badge_type', String(64), nullable=False),
    Column('badge_level', String(32), nullable=False),
    Column('earned_at', DateTime, default=utcnow),
    UniqueConstraint('user_id', 'badge_type', name='uq_badges_user_type'),
)

task_templates_table = Table(
    'task_templates', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(36), ForeignKey('users.id', ondelete='CASCADE')),
    Column('is_global', Boolean, nullable=False, default=False),
    Column('category', String(64), nullable=False),
    Column('task_name', String(200), nullable=False),
    Column('default_minutes', Integer, default=DEFAULT_TASK_MINUTES),
    Column('default_intensity', Integer),
    Column('default_roi', Integer),
    Column('default_burn', Integer),
)

scoring_guide_table = Table(
    'scoring_guide', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('metric', String(16), nullable=False),
    Column('score', Integer, nullable=False),
    Column('label', String(64), nullable=False),
    Column('description', Text),
    UniqueConstraint('metric', 'score', name='uq_scoring_guide_metric_score'),
)

week_planner_table = Table(
    'week_planner', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
    Column('week_start', Date, nullable=False),
    Column('day_of_week', Integer, nullable=False),
    Column('planned_frog', String(200)),
    Column('planned_intensity', Integer),
    UniqueConstraint('user_id', 'week_start', 'day_of_week', name='uq_week_planner_day'),
)

# ===== СПРАВОЧНЫЕ ДАННЫЕ =====

SCORING_GUIDE: List[Dict[str, Any]] = [
    {'metric': 'intensity', 'score': 0, 'label': 'Autopilot', 'description': 'No focus required'},
    {'metric': 'intensity', 'score': 3, 'label': 'Light', 'description': 'Routine work with interruptions'},
    {'metric': 'intensity', 'score': 5, 'label': 'Engaged', 'description': 'Steady attention, some friction'},
    {'metric': 'intensity', 'score': 8, 'label': 'Deep', 'description': 'Deep work, no context switching'},
    {'metric': 'intensity', 'score': 10, 'label': 'Peak', 'description': 'Full flow at the edge of ability'},
    {'metric': 'roi', 'score': 0, 'label': 'None', 'description': 'No measurable return'},
    {'metric': 'roi', 'score': 3, 'label': 'Maintenance', 'description': 'Keeps things running'},
    {'metric': 'roi', 'score': 5, 'label': 'Useful', 'description': 'Moves a goal forward a little'},
    {'metric': 'roi', 'score': 8, 'label': 'High', 'description': 'Directly moves a key goal'},
    {'metric': 'roi', 'score': 10, 'label': 'Game changer', 'description': 'Compounding long-term return'},
    {'metric': 'burn', 'score': 0, 'label': 'Energizing', 'description': 'Leaves you with more energy'},
    {'metric': 'burn', 'score': 3, 'label': 'Mild', 'description': 'Barely noticeable drain'},
    {'metric': 'burn', 'score': 5, 'label': 'Moderate', 'description': 'Needs a short break afterwards'},
    {'metric': 'burn', 'score': 8, 'label': 'Heavy', 'description': 'Noticeably drained'},
    {'metric': 'burn', 'score': 10, 'label': 'Exhausting', 'description': 'Nothing left for the rest of the day'},
]

GLOBAL_TASK_TEMPLATES: List[Dict[str, Any]] = [
    {'category': 'Deep Work', 'task_name': 'Write proposal', 'default_minutes': 50,
     'default_intensity': 8, 'default_roi': 8, 'default_burn': 6},
    {'category': 'Deep Work', 'task_name': 'Code feature', 'default_minutes': 90,
     'default_intensity': 9, 'default_roi': 8, 'default_burn': 7},
    {'category': 'Communication', 'task_name': 'Inbox zero', 'default_minutes': 25,
     'default_intensity': 3, 'default_roi': 4, 'default_burn': 5},
    {'category': 'Communication', 'task_name': 'Sales call', 'default_minutes': 30,
     'default_intensity': 7, 'default_roi': 9, 'default_burn': 6},
    {'category': 'Admin', 'task_name': 'Bookkeeping', 'default_minutes': 30,
     'default_intensity': 4, 'default_roi': 5, 'default_burn': 6},
    {'category': 'Learning', 'task_name': 'Read industry news', 'default_minutes': 20,
     'default_intensity': 3, 'default_roi': 4, 'default_burn': 2},
]

# ===== МЕНЕДЖЕР ХРАНИЛИЩА =====

class MetricStore:
    """Хранилище метрик поверх SQLAlchemy Core (SQLite или PostgreSQL)"""

    SUPPORTED_DIALECTS = ('sqlite', 'postgresql')

    def __init__(self, engine: AsyncEngine):
        if engine.dialect.name not in self.SUPPORTED_DIALECTS:
            raise DatabaseConnectionError(
                f"Неподдерживаемая СУБД: {engine.dialect.name}. Доступны: {self.SUPPORTED_DIALECTS}"
            )
        self.engine = engine
        self.dialect = engine.dialect.name

    # ===== ИНФРАСТРУКТУРА =====

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncConnection]:
        """Транзакция с преобразованием ошибок драйвера в StoreUnavailable"""
        try:
            async with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            logger.error(f"❌ Ошибка хранилища ({operation}): {e}")
            raise StoreUnavailable(f"{operation}: {e}") from e

    def _insert(self, table: Table):
        """INSERT с поддержкой ON CONFLICT для текущей СУБД"""
        if self.dialect == 'postgresql':
            return pg_insert(table)
        return sqlite_insert(table)

    async def create_schema(self) -> None:
        """Создание таблиц"""
        async with self._transaction('create_schema') as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("✅ Схема базы данных готова")

    async def seed_reference_data(self) -> None:
        """Заполнение справочника оценок и глобальных шаблонов"""
        async with self._transaction('seed_reference_data') as conn:
            stmt = self._insert(scoring_guide_table).values(SCORING_GUIDE)
            await conn.execute(stmt.on_conflict_do_nothing(index_elements=['metric', 'score']))

            existing = await conn.scalar(
                select(func.count()).select_from(task_templates_table)
                .where(task_templates_table.c.is_global.is_(True))
            )
            if not existing:
                await conn.execute(
                    task_templates_table.insert(),
                    [{**template, 'is_global': True, 'user_id': None} for template in GLOBAL_TASK_TEMPLATES]
                )
                logger.info(f"📝 Добавлено глобальных шаблонов: {len(GLOBAL_TASK_TEMPLATES)}")

    async def ping(self) -> bool:
        """Проверка доступности хранилища (StoreUnavailable при ошибке)"""
        async with self._transaction('ping') as conn:
            await conn.execute(select(1))
        return True

    async def fetch_all(self, stmt, operation: str = 'query') -> List[Dict[str, Any]]:
        """Выполнить SELECT и вернуть список словарей"""
        async with self._transaction(operation) as conn:
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    async def fetch_one(self, stmt, operation: str = 'query') -> Optional[Dict[str, Any]]:
        """Выполнить SELECT и вернуть первую строку"""
        async with self._transaction(operation) as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
            return dict(row) if row is not None else None

    # ===== ПОЛЬЗОВАТЕЛИ =====

    async def create_user(self, user_id: str, email: str, password_hash: str) -> UserAccount:
        """Создать пользователя вместе с настройками по умолчанию"""
        now = utcnow()
        async with self._transaction('create_user') as conn:
            await conn.execute(users_table.insert().values(
                id=user_id,
                email=email,
                password_hash=password_hash,
                subscription_status=SubscriptionStatus.INACTIVE.value,
                created_at=now,
                updated_at=now,
            ))
            await conn.execute(user_settings_table.insert().values(user_id=user_id, updated_at=now))
        logger.info(f"👤 Создан пользователь {user_id}")
        return UserAccount(user_id=user_id, email=email, password_hash=password_hash, created_at=now)

    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        row = await self.fetch_one(
            select(users_table).where(users_table.c.email == email), 'get_user_by_email'
        )
        return UserAccount.from_row(row) if row else None

    async def get_user_by_id(self, user_id: str) -> Optional[UserAccount]:
        row = await self.fetch_one(
            select(users_table).where(users_table.c.id == user_id), 'get_user_by_id'
        )
        return UserAccount.from_row(row) if row else None

    async def get_user_by_customer_id(self, customer_id: str) -> Optional[UserAccount]:
        row = await self.fetch_one(
            select(users_table).where(users_table.c.stripe_customer_id == customer_id),
            'get_user_by_customer_id'
        )
        return UserAccount.from_row(row) if row else None

    async def update_subscription(self, user_id: str, status: str,
                                  subscription_end: Optional[datetime] = None,
                                  customer_id: Optional[str] = None) -> bool:
        """Обновить статус подписки; дата окончания и customer id меняются только если переданы"""
        values: Dict[str, Any] = {'subscription_status': status, 'updated_at': utcnow()}
        if subscription_end is not None:
            values['subscription_end'] = subscription_end
        if customer_id is not None:
            values['stripe_customer_id'] = customer_id

        async with self._transaction('update_subscription') as conn:
            result = await conn.execute(
                update(users_table).where(users_table.c.id == user_id).values(**values)
            )
            return result.rowcount > 0

    # ===== НАСТРОЙКИ =====

    async def get_user_settings(self, user_id: str) -> UserSettings:
        """Получить настройки, создав их со значениями по умолчанию при первом обращении"""
        async with self._transaction('get_user_settings') as conn:
            stmt = self._insert(user_settings_table).values(user_id=user_id, updated_at=utcnow())
            await conn.execute(stmt.on_conflict_do_nothing(index_elements=['user_id']))
            result = await conn.execute(
                select(user_settings_table).where(user_settings_table.c.user_id == user_id)
            )
            return UserSettings.from_row(result.mappings().one())

    async def update_user_settings(self, user_id: str, **fields: Any) -> UserSettings:
        """Обновить настройки пользователя"""
        allowed = set(user_settings_table.c.keys()) - {'user_id', 'updated_at'}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Неизвестные поля настроек: {sorted(unknown)}")

        await self.get_user_settings(user_id)
        if fields:
            async with self._transaction('update_user_settings') as conn:
                await conn.execute(
                    update(user_settings_table)
                    .where(user_settings_table.c.user_id == user_id)
                    .values(**fields, updated_at=utcnow())
                )
        return await self.get_user_settings(user_id)

    # ===== ЗАДАЧИ =====

    async def insert_task(self, task: TaskRecord) -> None:
        async with self._transaction('insert_task') as conn:
            await conn.execute(tasks_table.insert().values(**task.to_row()))

    async def get_tasks(self, user_id: str, task_date: Optional[date] = None, limit: int = 100) -> List[TaskRecord]:
        """Задачи пользователя, новые первыми"""
        stmt = select(tasks_table).where(tasks_table.c.user_id == user_id)
        if task_date is not None:
            stmt = stmt.where(tasks_table.c.date == task_date)
        stmt = stmt.order_by(tasks_table.c.date.desc(), tasks_table.c.time_start.desc()).limit(limit)
        rows = await self.fetch_all(stmt, 'get_tasks')
        return [TaskRecord.from_row(row) for row in rows]

    async def get_task(self, task_id: str, user_id: str) -> Optional[TaskRecord]:
        row = await self.fetch_one(
            select(tasks_table).where(and_(tasks_table.c.id == task_id, tasks_table.c.user_id == user_id)),
            'get_task'
        )
        return TaskRecord.from_row(row) if row else None

    async def delete_task(self, task_id: str, user_id: str) -> bool:
        async with self._transaction('delete_task') as conn:
            result = await conn.execute(
                delete(tasks_table).where(and_(tasks_table.c.id == task_id, tasks_table.c.user_id == user_id))
            )
            return result.rowcount > 0

    async def get_tasks_since(self, user_id: str, since: date) -> List[TaskRecord]:
        """Задачи пользователя с датой >= since в хронологическом порядке"""
        stmt = (
            select(tasks_table)
            .where(and_(tasks_table.c.user_id == user_id, tasks_table.c.date >= since))
            .order_by(tasks_table.c.date, tasks_table.c.time_start)
        )
        rows = await self.fetch_all(stmt, 'get_tasks_since')
        return [TaskRecord.from_row(row) for row in rows]

    async def get_max_intensity_for_high_roi(self, user_id: str) -> Optional[int]:
        """Максимальная интенсивность среди задач пользователя с ROI >= 8"""
        async with self._transaction('get_max_intensity_for_high_roi') as conn:
            return await conn.scalar(
                select(func.max(tasks_table.c.intensity))
                .where(and_(tasks_table.c.user_id == user_id, tasks_table.c.roi >= HIGH_ROI_THRESHOLD))
            )

    async def count_pr_tasks(self, user_id: str) -> int:
        async with self._transaction('count_pr_tasks') as conn:
            count = await conn.scalar(
                select(func.count()).select_from(tasks_table)
                .where(and_(tasks_table.c.user_id == user_id, tasks_table.c.is_pr.is_(True)))
            )
            return int(count or 0)

    # ===== СЕРИИ =====

    async def get_streak(self, user_id: str, streak_type: str) -> Optional[StreakRecord]:
        row = await self.fetch_one(
            select(streaks_table).where(and_(
                streaks_table.c.user_id == user_id,
                streaks_table.c.streak_type == streak_type,
            )),
            'get_streak'
        )
        return StreakRecord.from_row(row) if row else None

    async def get_streaks(self, user_id: str) -> List[StreakRecord]:
        rows = await self.fetch_all(
            select(streaks_table).where(streaks_table.c.user_id == user_id).order_by(streaks_table.c.streak_type),
            'get_streaks'
        )
        return [StreakRecord.from_row(row) for row in rows]

    def _streak_values(self, user_id: str, streak_type: str, current: int, best: int,
                       last_date: date) -> Dict[str, Any]:
        return {
            'user_id': user_id,
            'streak_type': streak_type,
            'current_streak': current,
            'best_streak': best,
            'last_date': last_date,
            'updated_at': utcnow(),
        }

    def _streak_upsert(self, values: Dict[str, Any], where=None):
        stmt = self._insert(streaks_table).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=['user_id', 'streak_type'],
            set_={
                'current_streak': stmt.excluded.current_streak,
                'best_streak': stmt.excluded.best_streak,
                'last_date': stmt.excluded.last_date,
                'updated_at': stmt.excluded.updated_at,
            },
            where=where,
        )

    async def upsert_streak(self, user_id: str, streak_type: str, current: int, best: int,
                            last_date: date) -> None:
        """Безусловный upsert серии по (user_id, streak_type)"""
        values = self._streak_values(user_id, streak_type, current, best, last_date)
        async with self._transaction('upsert_streak') as conn:
            await conn.execute(self._streak_upsert(values))

    async def compare_and_swap_streak(self, user_id: str, streak_type: str, current: int, best: int,
                                      last_date: date, expected_last_date: Optional[date]) -> bool:
        """
        Атомарная запись серии: применяется только если строка не изменилась с момента чтения.

        expected_last_date=None означает "строки еще нет" (INSERT ... ON CONFLICT DO NOTHING),
        иначе UPDATE выполняется только при совпадении last_date.
        Возвращает False, если запись проиграла гонку.
        """
        values = self._streak_values(user_id, streak_type, current, best, last_date)
        if expected_last_date is None:
            stmt = self._insert(streaks_table).values(**values).on_conflict_do_nothing(
                index_elements=['user_id', 'streak_type']
            )
        else:
            stmt = self._streak_upsert(values, where=streaks_table.c.last_date == expected_last_date)

        async with self._transaction('compare_and_swap_streak') as conn:
            result = await conn.execute(stmt)
            return result.rowcount > 0

    # ===== БЕЙДЖИ =====

    async def get_badges(self, user_id: str) -> List[BadgeRecord]:
        rows = await self.fetch_all(
            select(badges_table).where(badges_table.c.user_id == user_id)
            .order_by(badges_table.c.earned_at.desc(), badges_table.c.id.desc()),
            'get_badges'
        )
        return [BadgeRecord.from_row(row) for row in rows]

    async def has_badge(self, user_id: str, badge_type: str) -> bool:
        row = await self.fetch_one(
            select(badges_table.c.id).where(and_(
                badges_table.c.user_id == user_id,
                badges_table.c.badge_type == badge_type,
            )),
            'has_badge'
        )
        return row is not None

    async def insert_badge_if_absent(self, user_id: str, badge_type: str, badge_level: str) -> bool:
        """INSERT OR IGNORE: True если бейдж выдан этим вызовом"""
        stmt = self._insert(badges_table).values(
            user_id=user_id, badge_type=badge_type, badge_level=badge_level, earned_at=utcnow()
        ).on_conflict_do_nothing(index_elements=['user_id', 'badge_type'])
        async with self._transaction('insert_badge_if_absent') as conn:
            result = await conn.execute(stmt)
            return result.rowcount > 0

    # ===== ШАБЛОНЫ, СПРАВОЧНИК, ПЛАНИРОВЩИК =====

    async def get_task_templates(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.fetch_all(
            select(task_templates_table)
            .where(or_(task_templates_table.c.is_global.is_(True), task_templates_table.c.user_id == user_id))
            .order_by(task_templates_table.c.category, task_templates_table.c.task_name),
            'get_task_templates'
        )

    async def get_scoring_guide(self) -> List[Dict[str, Any]]:
        return await self.fetch_all(
            select(scoring_guide_table).order_by(scoring_guide_table.c.metric, scoring_guide_table.c.score),
            'get_scoring_guide'
        )

    async def get_week_plan(self, user_id: str, week_start: date) -> List[Dict[str, Any]]:
        rows = await self.fetch_all(
            select(week_planner_table)
            .where(and_(week_planner_table.c.user_id == user_id, week_planner_table.c.week_start == week_start))
            .order_by(week_planner_table.c.day_of_week),
            'get_week_plan'
        )
        for row in rows:
            row['week_start'] = row['week_start'].isoformat()
        return rows

    async def upsert_week_plan(self, user_id: str, week_start: date, days: Iterable[Dict[str, Any]]) -> None:
        async with self._transaction('upsert_week_plan') as conn:
            for day in days:
                stmt = self._insert(week_planner_table).values(
                    user_id=user_id,
                    week_start=week_start,
                    day_of_week=day['day_of_week'],
                    planned_frog=day.get('planned_frog'),
                    planned_intensity=day.get('planned_intensity'),
                )
                await conn.execute(stmt.on_conflict_do_update(
                    index_elements=['user_id', 'week_start', 'day_of_week'],
                    set_={
                        'planned_frog': stmt.excluded.planned_frog,
                        'planned_intensity': stmt.excluded.planned_intensity,
                    },
                ))
