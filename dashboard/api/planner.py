from fastapi import APIRouter, Depends, Query
from typing import Optional, Dict, Any

from core.clock import user_today, week_start_of
from core.database import MetricStore
from core.models import UserAccount, parse_task_date
from shared.models import WeekPlanRequest
from ..dependencies import get_store, require_subscription

router = APIRouter(prefix="/api", tags=["planner"])

@router.get("/templates", response_model=Dict[str, Any])
async def get_templates(
    user: UserAccount = Depends(require_subscription),
    store: MetricStore = Depends(get_store)
):
    """Глобальные шаблоны задач и шаблоны пользователя"""
    return {"templates": await store.get_task_templates(user.user_id)}

@router.get("/scoring-guide", response_model=Dict[str, Any])
async def get_scoring_guide(store: MetricStore = Depends(get_store)):
    """Справочник оценок intensity/roi/burn (без авторизации)"""
    return {"guide": await store.get_scoring_guide()}

@router.get("/week-plan", response_model=Dict[str, Any])
async def get_week_plan(
    week_start: Optional[str] = Query(None, description="Понедельник недели, YYYY-MM-DD"),
    user: UserAccount = Depends(require_subscription),
    store: MetricStore = Depends(get_store)
):
    """
    План недели. Без week_start берется текущая неделя пользователя
    """
    if week_start:
        start = week_start_of(parse_task_date(week_start))
    else:
        user_settings = await store.get_user_settings(user.user_id)
        start = week_start_of(user_today(user_settings.timezone))
    return {"week_start": start.isoformat(), "days": await store.get_week_plan(user.user_id, start)}

@router.put("/week-plan", response_model=Dict[str, Any])
async def update_week_plan(
    request: WeekPlanRequest,
    user: UserAccount = Depends(require_subscription),
    store: MetricStore = Depends(get_store)
):
    """Сохранить план недели (upsert по дню недели)"""
    await store.upsert_week_plan(
        user.user_id, request.week_start, [day.model_dump() for day in request.days]
    )
    return {
        "success": True,
        "week_start": request.week_start.isoformat(),
        "days": await store.get_week_plan(user.user_id, request.week_start),
    }
