from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional, Dict, Any

from core.models import UserAccount
from shared.models import CreateTaskRequest
from services.task_service import TaskService, TaskSubmission
from ..dependencies import get_task_service, get_cache_manager, require_subscription, CacheManager

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

@router.get("", response_model=Dict[str, Any])
async def get_tasks(
    date: Optional[str] = Query(None, description="Дата в формате YYYY-MM-DD"),
    limit: int = Query(100, ge=1, le=500),
    user: UserAccount = Depends(require_subscription),
    task_service: TaskService = Depends(get_task_service)
):
    """
    Задачи пользователя, новые первыми
    """
    tasks = await task_service.list_tasks(user.user_id, date, limit)
    return {"tasks": [task.to_dict() for task in tasks], "count": len(tasks)}

@router.post("", response_model=Dict[str, Any])
async def create_task(
    request: CreateTaskRequest,
    user: UserAccount = Depends(require_subscription),
    task_service: TaskService = Depends(get_task_service),
    cache: CacheManager = Depends(get_cache_manager)
):
    """
    Записать задачу: focus score, личный рекорд, frog-серия и бейджи
    """
    submission = TaskSubmission(
        user_id=user.user_id,
        task_name=request.task_name,
        intensity=request.intensity,
        roi=request.roi,
        burn=request.burn,
        is_frog=request.is_frog,
        date=request.date,
        time_start=request.time_start,
        minutes=request.minutes,
        action=request.action.value,
        notes=request.notes,
        fear_rating=request.fear_rating,
        satisfaction=request.satisfaction,
    )
    result = await task_service.submit_task(submission)
    await cache.invalidate_user(user.user_id)
    return result.to_dict()

@router.get("/{task_id}", response_model=Dict[str, Any])
async def get_task(
    task_id: str,
    user: UserAccount = Depends(require_subscription),
    task_service: TaskService = Depends(get_task_service)
):
    """Получить задачу по ID"""
    task = await task_service.get_task(user.user_id, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Задача не найдена")
    return task.to_dict()

@router.delete("/{task_id}", response_model=Dict[str, Any])
async def delete_task(
    task_id: str,
    user: UserAccount = Depends(require_subscription),
    task_service: TaskService = Depends(get_task_service),
    cache: CacheManager = Depends(get_cache_manager)
):
    """Удалить задачу"""
    if not await task_service.delete_task(user.user_id, task_id):
        raise HTTPException(status_code=404, detail="Задача не найдена")
    await cache.invalidate_user(user.user_id)
    return {"success": True, "task_id": task_id}
