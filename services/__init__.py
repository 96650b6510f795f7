# services/__init__.py

"""
Модуль сервисов IntensifyHQ

Бизнес-логика поверх хранилища метрик: запись задач, аутентификация и биллинг.
"""

from .task_service import TaskService, TaskSubmission, SubmissionResult
from .auth_service import (
    AuthService, TokenManager, AuthenticationError, SubscriptionRequired,
    EmailAlreadyRegistered, hash_password, verify_password,
)
from .billing_service import BillingService, WebhookSignatureError

__all__ = [
    'TaskService',
    'TaskSubmission',
    'SubmissionResult',
    'AuthService',
    'TokenManager',
    'AuthenticationError',
    'SubscriptionRequired',
    'EmailAlreadyRegistered',
    'hash_password',
    'verify_password',
    'BillingService',
    'WebhookSignatureError',
]
