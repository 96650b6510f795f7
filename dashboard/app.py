#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - FastAPI Application
HTTP API: задачи, focus score, серии, бейджи, статистика и биллинг

Версия: 1.0.0
Дата: 2025-07-02
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from core.database import DatabaseError, StoreUnavailable
from core.models import ValidationError, InvalidMetric
from dashboard.api import auth, tasks, stats, charts, settings as settings_api, planner, billing
from dashboard.config import settings
from dashboard.dependencies import init_database, init_redis, init_services, cleanup_resources, get_store
from services.auth_service import AuthenticationError, SubscriptionRequired, EmailAlreadyRegistered
from services.billing_service import WebhookSignatureError
from shared.models import HealthCheck

logger = logging.getLogger(__name__)

# Глобальные переменные
app_start_time = time.time()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    global app_start_time

    # Startup
    logger.info(f"🚀 Запуск {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    app_start_time = time.time()

    store = await init_database()
    await init_redis()
    init_services(store)
    logger.info("✅ API готово к работе")

    yield

    # Shutdown
    logger.info("🛑 Остановка API...")
    await cleanup_resources()

# Создание FastAPI приложения
app = FastAPI(
    title=settings.APP_NAME,
    description="Трекер фокуса: focus score, личные рекорды, frog-серии и бейджи",
    version=settings.VERSION,
    docs_url=settings.DOCS_URL,
    redoc_url=settings.REDOC_URL,
    lifespan=lifespan
)

# ===== MIDDLEWARE =====

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=settings.ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Gzip compression
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Middleware для логирования
@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Логирование запросов: метод, путь, статус, время обработки"""
    start_time = time.time()
    request_id = uuid.uuid4().hex[:12]
    client_ip = request.headers.get("X-Forwarded-For") or (request.client.host if request.client else "-")

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception(f"❌ Ошибка обработки запроса {request_id}: {e} ({process_time:.3f}s)")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "request_id": request_id}
        )

    process_time = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} "
        f"- {response.status_code} "
        f"- {process_time:.3f}s "
        f"- {client_ip}"
    )

    response.headers["X-Process-Time"] = f"{process_time:.4f}"
    response.headers["X-Request-ID"] = request_id
    return response

# ===== РОУТЕРЫ =====

app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(stats.router)
app.include_router(charts.router)
app.include_router(settings_api.router)
app.include_router(planner.router)
app.include_router(billing.router)

# ===== СЛУЖЕБНЫЕ МАРШРУТЫ =====

@app.get("/health", response_model=HealthCheck)
async def health_check():
    """Health check для мониторинга"""
    try:
        store = await get_store()
        await store.ping()
    except DatabaseError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "service": "api",
                "error": str(e),
                "timestamp": time.time()
            }
        )

    return HealthCheck(
        status="healthy",
        service="api",
        version=settings.VERSION,
        timestamp=time.time(),
        data={
            "database": store.dialect,
            "environment": settings.ENVIRONMENT,
            "uptime_seconds": round(time.time() - app_start_time, 3),
        }
    )

# ===== ОБРАБОТЧИКИ ОШИБОК =====

def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})

@app.exception_handler(InvalidMetric)
async def invalid_metric_handler(request: Request, exc: InvalidMetric):
    return error_response(400, str(exc), field=exc.field_name)

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return error_response(400, str(exc))

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Ошибки схемы запроса отдаются как 400"""
    return error_response(400, "Invalid request", details=jsonable_encoder(exc.errors()))

@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=401,
        content={"error": str(exc) or "Unauthorized"},
        headers={"WWW-Authenticate": "Bearer"},
    )

@app.exception_handler(SubscriptionRequired)
async def subscription_required_handler(request: Request, exc: SubscriptionRequired):
    return error_response(402, "Subscription required", requiresPayment=True)

@app.exception_handler(EmailAlreadyRegistered)
async def email_registered_handler(request: Request, exc: EmailAlreadyRegistered):
    return error_response(409, "Email already registered")

@app.exception_handler(WebhookSignatureError)
async def webhook_signature_handler(request: Request, exc: WebhookSignatureError):
    logger.warning(f"⚠️ Отклонен webhook: {exc}")
    return error_response(400, str(exc))

@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    return error_response(503, "Storage unavailable")

@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError):
    logger.error(f"❌ Ошибка данных: {exc}")
    return error_response(500, "Internal data error")

# ===== ЗАПУСК ПРИЛОЖЕНИЯ =====

def create_app() -> FastAPI:
    """Фабрика для создания приложения"""
    return app

def run_dashboard(
    host: str = None,
    port: int = None,
    dev: bool = None,
    reload: bool = None
):
    """Запуск API"""

    # Используем настройки по умолчанию если не переданы
    host = host or settings.DASHBOARD_HOST
    port = port or settings.DASHBOARD_PORT
    dev = dev if dev is not None else settings.DEBUG
    reload = reload if reload is not None else dev

    logger.info(f"🌐 Запуск API на http://{host}:{port}")
    logger.info(f"🗄️ База данных: {settings.DATABASE_URL.split('://', 1)[0]}")
    logger.info(f"🔧 Режим отладки: {dev}")
    logger.info(f"🔄 Автоперезагрузка: {reload}")

    try:
        uvicorn.run(
            "dashboard.app:app",
            host=host,
            port=port,
            reload=reload,
            log_level="debug" if dev else "info",
            access_log=dev,
            server_header=False,
            date_header=False
        )
    except KeyboardInterrupt:
        logger.info("👋 API остановлено")
