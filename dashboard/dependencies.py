#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Dashboard Dependencies
Зависимости и провайдеры для FastAPI приложения

Версия: 1.0.0
Дата: 2025-07-02
"""

import json
import time
import logging
from typing import Optional, Dict, Any

import redis.asyncio as redis
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from core.achievements import BadgeAwarder
from core.database import MetricStore
from core.models import UserAccount
from dashboard.config import settings, get_settings
from dashboard.core.statistics import StatisticsCalculator
from dashboard.core.analytics import AnalyticsEngine
from services.auth_service import AuthService, TokenManager, AuthenticationError
from services.billing_service import BillingService
from services.task_service import TaskService

logger = logging.getLogger(__name__)

# ===== ГЛОБАЛЬНЫЕ ПЕРЕМЕННЫЕ =====

# База данных
_db_engine: Optional[AsyncEngine] = None
_metric_store: Optional[MetricStore] = None

# Сервисы (синглтоны)
_task_service: Optional[TaskService] = None
_auth_service: Optional[AuthService] = None
_billing_service: Optional[BillingService] = None
_statistics_calculator: Optional[StatisticsCalculator] = None
_analytics_engine: Optional[AnalyticsEngine] = None

# Redis клиент (опционально)
_redis_client: Optional[redis.Redis] = None

# ===== ИНИЦИАЛИЗАЦИЯ КОМПОНЕНТОВ =====

def create_engine_from_settings() -> AsyncEngine:
    """Async engine по DATABASE_URL"""
    if settings.is_memory_database:
        # Одно соединение на процесс, иначе каждая сессия видит свою пустую БД
        return create_async_engine(
            settings.DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if settings.is_sqlite:
        return create_async_engine(settings.DATABASE_URL)
    return create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )

async def init_database() -> MetricStore:
    """Инициализация базы данных: схема и справочные данные"""
    global _db_engine, _metric_store

    if _metric_store is None:
        logger.info("🔄 Инициализация базы данных...")
        _db_engine = create_engine_from_settings()
        store = MetricStore(_db_engine)
        await store.create_schema()
        await store.seed_reference_data()
        _metric_store = store
        logger.info(f"✅ База данных инициализирована ({store.dialect})")

    return _metric_store

async def init_redis() -> Optional[redis.Redis]:
    """Инициализация Redis для кэширования"""
    global _redis_client

    if settings.REDIS_URL and _redis_client is None:
        try:
            logger.info("🔄 Подключение к Redis...")
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                max_connections=10
            )

            # Проверяем соединение
            await _redis_client.ping()
            logger.info("✅ Redis подключен")
        except (redis.RedisError, OSError) as e:
            logger.warning(f"⚠️ Не удалось подключиться к Redis: {e}")
            _redis_client = None

    return _redis_client

def init_services(store: MetricStore) -> None:
    """Создание сервисов поверх хранилища"""
    global _task_service, _auth_service, _billing_service, _statistics_calculator, _analytics_engine

    badge_awarder = BadgeAwarder(store)
    _task_service = TaskService(store, badge_awarder=badge_awarder)
    _auth_service = AuthService(store, TokenManager(settings.token_secret, settings.TOKEN_TTL_DAYS))
    _billing_service = BillingService(
        store, badge_awarder, settings.STRIPE_WEBHOOK_SECRET,
        require_signature=settings.is_production,
    )
    _statistics_calculator = StatisticsCalculator(store, settings.DEFAULT_TIME_RANGE)
    _analytics_engine = AnalyticsEngine(_statistics_calculator)
    logger.info("✅ Сервисы инициализированы")

# ===== ПРОВАЙДЕРЫ ЗАВИСИМОСТЕЙ =====

async def get_store() -> MetricStore:
    """Получить хранилище метрик"""
    if _metric_store is None:
        return await init_database()
    return _metric_store

async def _ensure_services() -> None:
    if _task_service is None:
        init_services(await get_store())

async def get_task_service() -> TaskService:
    await _ensure_services()
    return _task_service

async def get_auth_service() -> AuthService:
    await _ensure_services()
    return _auth_service

async def get_billing_service() -> BillingService:
    await _ensure_services()
    return _billing_service

async def get_statistics_calculator() -> StatisticsCalculator:
    """Получить экземпляр StatisticsCalculator"""
    await _ensure_services()
    return _statistics_calculator

async def get_analytics_engine() -> AnalyticsEngine:
    """Получить экземпляр AnalyticsEngine"""
    await _ensure_services()
    return _analytics_engine

async def get_redis() -> Optional[redis.Redis]:
    """Получить Redis клиент"""
    if settings.REDIS_URL and _redis_client is None:
        return await init_redis()
    return _redis_client

# ===== КЭШИРОВАНИЕ =====

class CacheManager:
    """Менеджер кэширования данных"""

    def __init__(self, redis_client: Optional[redis.Redis] = None, enabled: bool = True,
                 cache_ttl: int = 300):
        self.redis = redis_client
        self.enabled = enabled
        self.memory_cache: Dict[str, Dict[str, Any]] = {}
        self.cache_ttl = cache_ttl

    @staticmethod
    def user_key(user_id: str, *parts: str) -> str:
        return ":".join(("intensify", user_id) + parts)

    async def get(self, key: str) -> Optional[Any]:
        """Получить значение из кэша"""
        if not self.enabled:
            return None

        # При Redis память воркера не используется
        if self.redis:
            try:
                value = await self.redis.get(key)
            except redis.RedisError as e:
                logger.warning(f"Ошибка чтения из Redis: {e}")
                return None
            return json.loads(value) if value else None

        # Без Redis кэш в памяти
        if key in self.memory_cache:
            cache_item = self.memory_cache[key]
            if time.time() - cache_item['timestamp'] < cache_item['ttl']:
                return cache_item['data']
            else:
                del self.memory_cache[key]

        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Сохранить значение в кэш"""
        if not self.enabled:
            return

        ttl = ttl or self.cache_ttl

        # Сохраняем в Redis
        if self.redis:
            try:
                await self.redis.setex(key, ttl, json.dumps(value, default=str))
            except redis.RedisError as e:
                logger.warning(f"Ошибка записи в Redis: {e}")
            return

        # Сохраняем в память
        self.memory_cache[key] = {
            'data': value,
            'timestamp': time.time(),
            'ttl': ttl,
        }

        # Очистка старого кэша в памяти
        self._cleanup_memory_cache()

    async def invalidate_user(self, user_id: str) -> None:
        """Удалить все кэшированные данные пользователя"""
        prefix = self.user_key(user_id)

        if self.redis:
            try:
                keys = [key async for key in self.redis.scan_iter(match=f"{prefix}:*")]
                if keys:
                    await self.redis.delete(*keys)
            except redis.RedisError as e:
                logger.warning(f"Ошибка удаления из Redis: {e}")

        for key in [k for k in self.memory_cache if k.startswith(prefix + ":")]:
            del self.memory_cache[key]

    async def clear(self) -> None:
        """Очистить весь кэш в памяти"""
        self.memory_cache.clear()

    def _cleanup_memory_cache(self) -> None:
        """Очистка устаревшего кэша в памяти"""
        current_time = time.time()
        expired_keys = [
            key for key, item in self.memory_cache.items()
            if current_time - item['timestamp'] > item['ttl']
        ]

        for key in expired_keys:
            del self.memory_cache[key]

# Глобальный кэш менеджер
_cache_manager: Optional[CacheManager] = None

async def get_cache_manager() -> CacheManager:
    """Получить менеджер кэширования"""
    global _cache_manager

    if _cache_manager is None:
        redis_client = await get_redis()
        _cache_manager = CacheManager(redis_client, settings.CACHE_ENABLED, settings.CACHE_TTL)

    return _cache_manager

# ===== АВТОРИЗАЦИЯ =====

security = HTTPBearer(auto_error=False)

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> UserAccount:
    """Текущий пользователь по bearer-токену (AuthenticationError -> 401)"""
    if not credentials:
        raise AuthenticationError("Требуется авторизация")
    return await auth_service.authenticate(credentials.credentials)

async def require_subscription(
    current_user: UserAccount = Depends(get_current_user)
) -> UserAccount:
    """Требовать активной подписки (SubscriptionRequired -> 402)"""
    return AuthService.require_subscription(current_user)

# ===== ОЧИСТКА РЕСУРСОВ =====

async def cleanup_resources():
    """Очистка ресурсов при завершении приложения"""
    global _db_engine, _metric_store, _redis_client, _cache_manager
    global _task_service, _auth_service, _billing_service, _statistics_calculator, _analytics_engine

    logger.info("🔄 Очистка ресурсов...")

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("✅ Redis соединение закрыто")

    if _db_engine:
        await _db_engine.dispose()
        _db_engine = None
        logger.info("✅ Соединения с БД закрыты")

    _metric_store = None
    _cache_manager = None
    _task_service = None
    _auth_service = None
    _billing_service = None
    _statistics_calculator = None
    _analytics_engine = None

    logger.info("✅ Очистка ресурсов завершена")

__all__ = [
    'init_database', 'init_redis', 'init_services',
    'get_store', 'get_task_service', 'get_auth_service', 'get_billing_service',
    'get_statistics_calculator', 'get_analytics_engine', 'get_redis', 'get_settings',
    'CacheManager', 'get_cache_manager',
    'get_current_user', 'require_subscription', 'cleanup_resources',
]
