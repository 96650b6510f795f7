#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Dashboard Configuration
Конфигурация API с настройками для разных сред

Версия: 1.0.0
Дата: 2025-07-02
"""

import secrets
from pathlib import Path
from typing import Annotated, List, Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
import logging

class DashboardSettings(BaseSettings):
    """Настройки API IntensifyHQ"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===== ОСНОВНЫЕ НАСТРОЙКИ =====

    APP_NAME: str = Field(
        default="IntensifyHQ API",
        description="Название приложения"
    )

    VERSION: str = Field(
        default="1.0.0",
        description="Версия API"
    )

    ENVIRONMENT: str = Field(
        default="development",
        description="Среда выполнения (development/production/testing)"
    )

    DEBUG: bool = Field(
        default=True,
        description="Режим отладки"
    )

    SECRET_KEY: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="Секретный ключ приложения"
    )

    # ===== СЕТЕВЫЕ НАСТРОЙКИ =====

    DASHBOARD_HOST: str = Field(
        default="0.0.0.0",
        description="Хост для запуска API"
    )

    DASHBOARD_PORT: int = Field(
        default=8000,
        description="Порт для запуска API"
    )

    # ===== CORS НАСТРОЙКИ =====

    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default=["*"],
        description="Разрешенные источники для CORS (через запятую)"
    )

    ALLOW_CREDENTIALS: bool = Field(
        default=True,
        description="Разрешить передачу cookies и авторизационных заголовков"
    )

    # ===== ПУТИ И ФАЙЛЫ =====

    LOGS_DIR: Path = Field(
        default=Path("logs"),
        description="Директория логов"
    )

    # ===== ЛОГИРОВАНИЕ =====

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Уровень логирования (DEBUG/INFO/WARNING/ERROR/CRITICAL)"
    )

    LOG_FORMAT: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Формат логов"
    )

    LOG_DATE_FORMAT: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Формат даты в логах"
    )

    # ===== БЕЗОПАСНОСТЬ =====

    JWT_SECRET: Optional[str] = Field(
        default=None,
        description="Секрет подписи токенов (по умолчанию SECRET_KEY)"
    )

    TOKEN_TTL_DAYS: int = Field(
        default=7,
        description="Срок действия токена в днях"
    )

    # ===== БИЛЛИНГ =====

    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Секрет подписи webhook Stripe (обязателен в production)"
    )

    # ===== КЭШИРОВАНИЕ =====

    REDIS_URL: Optional[str] = Field(
        default=None,
        description="URL Redis для кэширования"
    )

    CACHE_TTL: int = Field(
        default=300,
        description="TTL кэша в секундах (5 минут)"
    )

    CACHE_ENABLED: bool = Field(
        default=True,
        description="Включить кэширование"
    )

    # ===== БАЗА ДАННЫХ =====

    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./data/intensify.db",
        description="URL базы данных (sqlite+aiosqlite или postgresql+asyncpg)"
    )

    DB_POOL_SIZE: int = Field(
        default=5,
        description="Размер пула соединений БД"
    )

    DB_MAX_OVERFLOW: int = Field(
        default=10,
        description="Максимальное количество дополнительных соединений"
    )

    # ===== API НАСТРОЙКИ =====

    DOCS_URL: Optional[str] = Field(
        default="/api/docs",
        description="URL документации API (None для отключения)"
    )

    REDOC_URL: Optional[str] = Field(
        default="/api/redoc",
        description="URL ReDoc документации (None для отключения)"
    )

    DEFAULT_TIME_RANGE: int = Field(
        default=30,
        description="Окно статистики по умолчанию (дни)"
    )

    # ===== ВАЛИДАТОРЫ =====

    @field_validator('ENVIRONMENT')
    @classmethod
    def validate_environment(cls, v):
        """Валидация среды выполнения"""
        allowed_envs = ['development', 'production', 'testing', 'staging']
        if v.lower() not in allowed_envs:
            raise ValueError(f"ENVIRONMENT must be one of {allowed_envs}")
        return v.lower()

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        """Валидация уровня логирования"""
        allowed_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}")
        return v.upper()

    @field_validator('DASHBOARD_PORT')
    @classmethod
    def validate_port(cls, v):
        """Валидация порта"""
        if not 1 <= v <= 65535:
            raise ValueError("DASHBOARD_PORT must be between 1 and 65535")
        return v

    @field_validator('TOKEN_TTL_DAYS')
    @classmethod
    def validate_token_ttl(cls, v):
        if v < 1:
            raise ValueError("TOKEN_TTL_DAYS must be positive")
        return v

    @field_validator('ALLOWED_ORIGINS', mode='before')
    @classmethod
    def validate_origins(cls, v):
        """Валидация CORS origins"""
        if isinstance(v, str):
            # Если передана строка, разделяем по запятой
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @model_validator(mode='after')
    def validate_production_settings(self):
        """Валидация настроек для продакшена"""
        if self.ENVIRONMENT == 'production':
            self.DEBUG = False
            # В продакшене отключаем документацию API
            self.DOCS_URL = None
            self.REDOC_URL = None
            if not self.STRIPE_WEBHOOK_SECRET:
                raise ValueError("STRIPE_WEBHOOK_SECRET is required in production")
        return self

    # ===== МЕТОДЫ КОНФИГУРАЦИИ =====

    @property
    def is_production(self) -> bool:
        """Проверка продакшен среды"""
        return self.ENVIRONMENT == "production"

    @property
    def token_secret(self) -> str:
        return self.JWT_SECRET or self.SECRET_KEY

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def is_memory_database(self) -> bool:
        return self.is_sqlite and (":memory:" in self.DATABASE_URL or self.DATABASE_URL.endswith("://"))

    def get_sqlite_path(self) -> Optional[Path]:
        """Путь к файлу SQLite (None для in-memory и других СУБД)"""
        if not self.is_sqlite or self.is_memory_database:
            return None
        return Path(self.DATABASE_URL.split(":///", 1)[-1])

    def setup_logging(self) -> None:
        """Настройка логирования"""
        # Создаем директорию логов если её нет
        self.LOGS_DIR.mkdir(parents=True, exist_ok=True)

        # Настройка основного логгера
        logging.basicConfig(
            level=getattr(logging, self.LOG_LEVEL),
            format=self.LOG_FORMAT,
            datefmt=self.LOG_DATE_FORMAT,
            handlers=[
                logging.StreamHandler(),  # Вывод в консоль
                logging.FileHandler(
                    self.LOGS_DIR / "dashboard.log",
                    encoding='utf-8'
                )
            ]
        )

        # Настройка логгеров внешних библиотек
        if not self.DEBUG:
            logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
            logging.getLogger("uvicorn.error").setLevel(logging.WARNING)

# ===== СОЗДАНИЕ ЭКЗЕМПЛЯРА НАСТРОЕК =====

settings = DashboardSettings()

# Время жизни кэша для разных типов данных
CACHE_TTL_SETTINGS = {
    "dashboard": 300,       # 5 минут
    "insights": 600,        # 10 минут
    "charts_data": 300,     # 5 минут
}

def get_settings() -> DashboardSettings:
    """Зависимость FastAPI для доступа к настройкам"""
    return settings

# Функция инициализации настроек
def init_settings() -> DashboardSettings:
    """Инициализация и валидация настроек"""
    settings.setup_logging()

    sqlite_path = settings.get_sqlite_path()
    if sqlite_path is not None:
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(__name__)
    logger.info(f"✅ Dashboard settings initialized for {settings.ENVIRONMENT} environment")
    if not settings.JWT_SECRET and settings.is_production:
        logger.warning("⚠️ JWT_SECRET не задан, токены подписываются SECRET_KEY")

    return settings

# Инициализация при импорте модуля
if __name__ != "__main__":
    settings = init_settings()
