# services/task_service.py

import logging
from datetime import datetime, date
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field

from core.achievements import BadgeAwarder, BadgeDefinition
from core.clock import user_now
from core.database import MetricStore, DatabaseError
from core.models import (
    TaskRecord, TaskAction, StreakType, DEFAULT_TASK_MINUTES,
    validate_metric, validate_optional_metric, parse_task_date, validate_time_start,
)
from core.scoring import calculate_focus_score, PersonalRecordDetector
from core.streaks import StreakTracker, StreakUpdate

logger = logging.getLogger(__name__)

# ===== МОДЕЛИ ДАННЫХ =====

@dataclass
class TaskSubmission:
    """Входные данные для записи задачи"""
    user_id: str
    task_name: str
    intensity: int
    roi: int
    burn: int
    is_frog: bool = False
    date: Optional[str] = None
    time_start: Optional[str] = None
    minutes: int = DEFAULT_TASK_MINUTES
    action: str = TaskAction.KEEP.value
    notes: str = ""
    fear_rating: Optional[int] = None
    satisfaction: Optional[int] = None

    def validate_metrics(self):
        """Проверка метрик до любых обращений к хранилищу"""
        validate_metric(self.intensity, 'intensity')
        validate_metric(self.roi, 'roi')
        validate_metric(self.burn, 'burn')
        validate_optional_metric(self.fear_rating, 'fear_rating')
        validate_optional_metric(self.satisfaction, 'satisfaction')

@dataclass
class SubmissionResult:
    """Результат записи задачи"""
    task_id: str
    focus_score: float
    is_pr: bool
    task_date: date
    streak: Optional[StreakUpdate] = None
    new_badges: List[BadgeDefinition] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'task_id': self.task_id,
            'focus_score': self.focus_score,
            'is_pr': self.is_pr,
            'date': self.task_date.isoformat(),
            'streak': self.streak.to_dict() if self.streak else None,
            'new_badges': [badge.to_dict() for badge in self.new_badges],
            'warnings': list(self.warnings),
        }

# ===== СЕРВИС =====

class TaskService:
    """Запись задач и побочные эффекты: серии и бейджи"""

    def __init__(self, store: MetricStore, badge_awarder: Optional[BadgeAwarder] = None,
                 streak_tracker: Optional[StreakTracker] = None,
                 pr_detector: Optional[PersonalRecordDetector] = None):
        self.store = store
        self.badge_awarder = badge_awarder or BadgeAwarder(store)
        self.streak_tracker = streak_tracker or StreakTracker(store)
        self.pr_detector = pr_detector or PersonalRecordDetector(store)

    async def submit_task(self, submission: TaskSubmission, now: Optional[datetime] = None) -> SubmissionResult:
        """
        Записать задачу.

        Ошибки валидации и записи самой задачи пробрасываются. Обновление серии
        и выдача бейджей выполняются после записи и при сбое только попадают
        в warnings результата.
        """
        submission.validate_metrics()

        settings = await self.store.get_user_settings(submission.user_id)
        focus_score = calculate_focus_score(
            submission.intensity, submission.roi, submission.burn, settings.weights
        )

        local_now = user_now(settings.timezone, now)
        today = local_now.date()
        task_date = parse_task_date(submission.date) if submission.date else today
        time_start = validate_time_start(submission.time_start) if submission.time_start else local_now.strftime("%H:%M")

        is_pr = await self.pr_detector.is_personal_record(
            submission.user_id, submission.intensity, submission.roi
        )

        task = TaskRecord(
            task_id=TaskRecord.new_id(),
            user_id=submission.user_id,
            date=task_date,
            time_start=time_start,
            task_name=submission.task_name,
            intensity=submission.intensity,
            roi=submission.roi,
            burn=submission.burn,
            focus_score=focus_score,
            minutes=submission.minutes,
            is_frog=bool(submission.is_frog),
            is_pr=is_pr,
            action=submission.action,
            notes=submission.notes,
            fear_rating=submission.fear_rating,
            satisfaction=submission.satisfaction,
        )
        await self.store.insert_task(task)
        logger.info(
            f"📝 Задача {task.task_id} пользователя {task.user_id}: focus={focus_score}"
            + (" 🏆 PR" if is_pr else "")
        )

        result = SubmissionResult(task_id=task.task_id, focus_score=focus_score, is_pr=is_pr, task_date=task_date)

        if task.is_frog:
            if task_date == today:
                await self._apply_streak(task.user_id, today, result)
            else:
                logger.debug(f"Frog-задача {task.task_id} за {task_date} не влияет на серию (сегодня {today})")

        if is_pr:
            await self._apply_pr_badges(task.user_id, result)

        return result

    async def _apply_streak(self, user_id: str, today: date, result: SubmissionResult):
        try:
            result.streak = await self.streak_tracker.record_activity(user_id, StreakType.FROG.value, today)
        except DatabaseError as e:
            logger.warning(f"⚠️ Серия не обновлена для пользователя {user_id}: {e}")
            result.warnings.append(f"streak_update_failed: {e}")
            return

        if not result.streak.changed:
            return
        try:
            result.new_badges.extend(await self.badge_awarder.award_streak_badges(
                user_id, StreakType.FROG.value, result.streak.current_streak
            ))
        except DatabaseError as e:
            logger.warning(f"⚠️ Бейджи серии не выданы пользователю {user_id}: {e}")
            result.warnings.append(f"badge_award_failed: {e}")

    async def _apply_pr_badges(self, user_id: str, result: SubmissionResult):
        try:
            result.new_badges.extend(await self.badge_awarder.award_pr_badges(user_id))
        except DatabaseError as e:
            logger.warning(f"⚠️ PR-бейджи не выданы пользователю {user_id}: {e}")
            result.warnings.append(f"badge_award_failed: {e}")

    async def list_tasks(self, user_id: str, task_date: Optional[str] = None, limit: int = 100) -> List[TaskRecord]:
        parsed_date = parse_task_date(task_date) if task_date else None
        return await self.store.get_tasks(user_id, parsed_date, limit)

    async def get_task(self, user_id: str, task_id: str) -> Optional[TaskRecord]:
        return await self.store.get_task(task_id, user_id)

    async def delete_task(self, user_id: str, task_id: str) -> bool:
        """Удалить задачу; серии и бейджи не пересчитываются"""
        deleted = await self.store.delete_task(task_id, user_id)
        if deleted:
            logger.info(f"🗑️ Задача {task_id} пользователя {user_id} удалена")
        return deleted
