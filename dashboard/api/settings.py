from fastapi import APIRouter, Depends
from typing import Dict, Any

from core.database import MetricStore
from core.models import UserAccount, ValidationError
from shared.models import UpdateSettingsRequest
from ..dependencies import get_store, get_cache_manager, require_subscription, CacheManager

router = APIRouter(prefix="/api/settings", tags=["settings"])

@router.get("", response_model=Dict[str, Any])
async def get_settings(
    user: UserAccount = Depends(require_subscription),
    store: MetricStore = Depends(get_store)
):
    """Настройки пользователя (создаются со значениями по умолчанию)"""
    user_settings = await store.get_user_settings(user.user_id)
    return user_settings.to_dict()

@router.put("", response_model=Dict[str, Any])
async def update_settings(
    request: UpdateSettingsRequest,
    user: UserAccount = Depends(require_subscription),
    store: MetricStore = Depends(get_store),
    cache: CacheManager = Depends(get_cache_manager)
):
    """
    Обновить веса focus score, тему, часовой пояс и уведомления.
    Сумма весов после обновления должна оставаться положительной
    """
    fields = request.to_fields()
    if not fields:
        raise ValidationError("Нет полей для обновления")

    current = await store.get_user_settings(user.user_id)
    weights = current.weights
    for name in ('weight_intensity', 'weight_roi', 'weight_burn'):
        if name in fields:
            setattr(weights, name, fields[name])
    weights.validate()

    updated = await store.update_user_settings(user.user_id, **fields)
    await cache.invalidate_user(user.user_id)
    return {"success": True, "settings": updated.to_dict()}
