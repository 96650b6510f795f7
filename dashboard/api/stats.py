from fastapi import APIRouter, Depends
from typing import Dict, Any

from core.models import UserAccount
from dashboard.config import CACHE_TTL_SETTINGS
from ..core.statistics import StatisticsCalculator
from ..core.analytics import AnalyticsEngine
from ..dependencies import (
    get_statistics_calculator, get_analytics_engine, get_cache_manager,
    require_subscription, CacheManager,
)

router = APIRouter(prefix="/api", tags=["statistics"])

@router.get("/dashboard", response_model=Dict[str, Any])
async def get_dashboard(
    user: UserAccount = Depends(require_subscription),
    calculator: StatisticsCalculator = Depends(get_statistics_calculator),
    cache: CacheManager = Depends(get_cache_manager)
):
    """
    Статистика за 30 дней, сегодняшние показатели, серии и бейджи
    """
    cache_key = cache.user_key(user.user_id, "dashboard")
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    dashboard = await calculator.get_dashboard(user.user_id)
    await cache.set(cache_key, dashboard, CACHE_TTL_SETTINGS["dashboard"])
    return dashboard

@router.get("/insights", response_model=Dict[str, Any])
async def get_insights(
    user: UserAccount = Depends(require_subscription),
    engine: AnalyticsEngine = Depends(get_analytics_engine),
    cache: CacheManager = Depends(get_cache_manager)
):
    """
    Пиковые часы, энергетические вампиры, прокрастинация и признаки выгорания
    """
    cache_key = cache.user_key(user.user_id, "insights")
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    insights = await engine.get_insights(user.user_id)
    await cache.set(cache_key, insights, CACHE_TTL_SETTINGS["insights"])
    return insights
