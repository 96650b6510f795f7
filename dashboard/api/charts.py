from fastapi import APIRouter, Depends
from typing import Dict, Any

from core.models import UserAccount
from dashboard.config import CACHE_TTL_SETTINGS
from ..core.statistics import StatisticsCalculator
from ..dependencies import get_statistics_calculator, get_cache_manager, require_subscription, CacheManager

router = APIRouter(prefix="/api/charts", tags=["charts"])

@router.get("/{chart_type}", response_model=Dict[str, Any])
async def get_chart(
    chart_type: str,
    user: UserAccount = Depends(require_subscription),
    calculator: StatisticsCalculator = Depends(get_statistics_calculator),
    cache: CacheManager = Depends(get_cache_manager)
):
    """
    Данные графика: burnIntensityHeatmap, intensityRoiScatter, weeklyTrend, frogTiming.
    Для неизвестного типа возвращается пустой список
    """
    cache_key = cache.user_key(user.user_id, "chart", chart_type)
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    chart = {"chart_type": chart_type, "results": await calculator.get_chart_data(user.user_id, chart_type)}
    if chart_type in calculator.CHART_TYPES:
        await cache.set(cache_key, chart, CACHE_TTL_SETTINGS["charts_data"])
    return chart
