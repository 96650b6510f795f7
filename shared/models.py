from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional, Dict, Any
from datetime import date

from core.clock import is_valid_timezone
from core.models import TaskAction, UserTheme, DEFAULT_TASK_MINUTES

# Запросы аутентификации
class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

# Запись задачи
class CreateTaskRequest(BaseModel):
    """Тело POST /api/tasks; диапазоны метрик проверяются ядром (InvalidMetric)"""
    task_name: str
    intensity: int
    roi: int
    burn: int
    is_frog: bool = False
    date: Optional[str] = None
    time_start: Optional[str] = None
    minutes: int = Field(DEFAULT_TASK_MINUTES, gt=0, le=24 * 60)
    action: TaskAction = TaskAction.KEEP
    notes: str = ""
    fear_rating: Optional[int] = None
    satisfaction: Optional[int] = None

# Настройки пользователя
class UpdateSettingsRequest(BaseModel):
    weight_intensity: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    weight_roi: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    weight_burn: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    theme: Optional[UserTheme] = None
    timezone: Optional[str] = None
    daily_intensity_target: Optional[int] = Field(None, ge=0, le=10)
    notifications_enabled: Optional[bool] = None

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        if v is not None and not is_valid_timezone(v):
            raise ValueError(f'Неизвестный часовой пояс: {v}')
        return v

    def to_fields(self) -> Dict[str, Any]:
        """Только переданные поля, enum приведены к значениям"""
        fields = self.model_dump(exclude_none=True)
        if 'theme' in fields:
            fields['theme'] = fields['theme'].value
        return fields

# Планировщик недели
class WeekPlanDay(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    planned_frog: Optional[str] = Field(None, max_length=200)
    planned_intensity: Optional[int] = Field(None, ge=0, le=10)

class WeekPlanRequest(BaseModel):
    week_start: date
    days: List[WeekPlanDay]

    @model_validator(mode='after')
    def validate_week(self):
        if self.week_start.weekday() != 0:
            raise ValueError('week_start должен быть понедельником')
        days = [day.day_of_week for day in self.days]
        if len(days) != len(set(days)):
            raise ValueError('Дни недели не должны повторяться')
        return self

# Ответы API
class APIResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None

class HealthCheck(BaseModel):
    status: str
    service: str
    version: str
    timestamp: float
    data: Optional[Dict[str, Any]] = None
