#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
IntensifyHQ - Scoring
Расчет focus score и определение личных рекордов

Версия: 1.0.0
Дата: 2025-07-02
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import logging

from core.models import WeightConfig, InvalidMetric, validate_metric

logger = logging.getLogger(__name__)

PR_ROI_THRESHOLD = 8

def round_one_decimal(value: float) -> float:
    """Округление до одного знака, половина от нуля"""
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

def calculate_focus_score(intensity: int, roi: int, burn: int,
                          weights: Optional[WeightConfig] = None) -> float:
    """
    Focus score: взвешенное среднее intensity/roi/burn.

    Делитель - фактическая сумма весов пользователя, поэтому результат остается
    средним и при весах, не дающих в сумме 1.
    """
    validate_metric(intensity, 'intensity')
    validate_metric(roi, 'roi')
    validate_metric(burn, 'burn')

    weights = weights or WeightConfig()
    total_weight = weights.total
    if not math.isfinite(total_weight):
        raise InvalidMetric('weights', weights.to_dict(), "Веса должны быть конечными числами")
    if total_weight <= 0:
        raise InvalidMetric('weights', weights.to_dict(), "Сумма весов должна быть больше нуля")

    focus_score = (
        weights.weight_intensity * intensity
        + weights.weight_roi * roi
        + weights.weight_burn * burn
    ) / total_weight

    return round_one_decimal(focus_score)

class PersonalRecordDetector:
    """Определение личных рекордов по интенсивности среди задач с высоким ROI"""

    def __init__(self, store):
        self.store = store

    async def is_personal_record(self, user_id: str, intensity: int, roi: int) -> bool:
        """
        Рекорд: ROI >= 8 и интенсивность не ниже исторического максимума.

        Вызывается до вставки новой задачи. Равенство максимуму тоже считается рекордом.
        """
        validate_metric(intensity, 'intensity')
        validate_metric(roi, 'roi')

        if roi < PR_ROI_THRESHOLD:
            return False

        max_intensity = await self.store.get_max_intensity_for_high_roi(user_id)
        if max_intensity is None:
            logger.debug(f"Первая задача с высоким ROI у пользователя {user_id}")
            return True

        return intensity >= max_intensity
