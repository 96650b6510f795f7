# services/billing_service.py

"""
Обработка webhook-событий Stripe: проверка подписи и смена статуса подписки.
"""

import calendar
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Any

import stripe

from core.achievements import BadgeAwarder
from core.database import MetricStore
from core.models import SubscriptionStatus, UserAccount, utcnow

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300

# Статусы Stripe -> статусы подписки пользователя
STRIPE_STATUS_MAP = {
    'active': SubscriptionStatus.ACTIVE,
    'trialing': SubscriptionStatus.ACTIVE,
    'past_due': SubscriptionStatus.PAST_DUE,
    'canceled': SubscriptionStatus.CANCELLED,
    'unpaid': SubscriptionStatus.CANCELLED,
}

class WebhookSignatureError(Exception):
    """Подпись webhook отсутствует или неверна"""
    pass

def add_one_month(moment: datetime) -> datetime:
    """Тот же день следующего месяца (с усечением до последнего дня месяца)"""
    year = moment.year + moment.month // 12
    month = moment.month % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)

def from_unix_timestamp(value: Any) -> Optional[datetime]:
    """Unix timestamp -> naive UTC datetime"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)

class BillingService:
    """Обработчик событий платежного провайдера"""

    def __init__(self, store: MetricStore, badge_awarder: Optional[BadgeAwarder] = None,
                 webhook_secret: Optional[str] = None,
                 tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
                 require_signature: bool = False):
        self.store = store
        self.badge_awarder = badge_awarder or BadgeAwarder(store)
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance
        self.require_signature = require_signature

        self._handlers = {
            'checkout.session.completed': self._on_checkout_completed,
            'customer.subscription.updated': self._on_subscription_updated,
            'customer.subscription.deleted': self._on_subscription_deleted,
            'invoice.payment_succeeded': self._on_payment_succeeded,
            'invoice.payment_failed': self._on_payment_failed,
        }

    # ===== ПОДПИСЬ =====

    def verify_signature(self, payload: bytes, signature_header: Optional[str]) -> None:
        """Проверка заголовка Stripe-Signature через stripe.Webhook"""
        if not self.webhook_secret:
            if self.require_signature:
                raise WebhookSignatureError("STRIPE_WEBHOOK_SECRET не задан, webhook отклонен")
            logger.warning("⚠️ STRIPE_WEBHOOK_SECRET не задан, подпись webhook не проверяется")
            return

        if not signature_header:
            raise WebhookSignatureError("Отсутствует заголовок Stripe-Signature")

        try:
            stripe.Webhook.construct_event(
                payload, signature_header, self.webhook_secret, tolerance=self.tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Подпись webhook не прошла проверку: {e}")
        except ValueError:
            raise WebhookSignatureError("Тело webhook не является JSON")

    @staticmethod
    def parse_event(payload: bytes) -> Dict[str, Any]:
        try:
            event = json.loads(payload)
        except ValueError:
            raise WebhookSignatureError("Тело webhook не является JSON")
        if not isinstance(event, dict) or 'type' not in event:
            raise WebhookSignatureError("Неверная структура события")
        return event

    # ===== СОБЫТИЯ =====

    async def handle_webhook(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        self.verify_signature(payload, signature_header)
        return await self.handle_event(self.parse_event(payload))

    async def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        event_type = event.get('type')
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info(f"ℹ️ Событие {event_type} пропущено")
            return {'received': True}

        data = event.get('data')
        data = data.get('object') if isinstance(data, dict) else None
        if not isinstance(data, dict):
            logger.warning(f"⚠️ Событие {event_type} без объекта data.object, пропущено")
            return {'received': True}

        logger.info(f"💳 Обработка события {event_type}")
        await handler(data)
        return {'received': True}

    async def _find_customer(self, data: Dict[str, Any]) -> Optional[UserAccount]:
        customer_id = data.get('customer')
        user = await self.store.get_user_by_customer_id(customer_id) if customer_id else None
        if user is None:
            logger.warning(f"⚠️ Пользователь для customer {customer_id} не найден")
        return user

    async def _on_checkout_completed(self, data: Dict[str, Any]):
        user_id = data.get('client_reference_id') or (data.get('metadata') or {}).get('userId')
        if not user_id:
            logger.warning("⚠️ checkout.session.completed без client_reference_id")
            return

        subscription_end = from_unix_timestamp(data.get('current_period_end')) or add_one_month(utcnow())
        updated = await self.store.update_subscription(
            user_id, SubscriptionStatus.ACTIVE.value,
            subscription_end=subscription_end,
            customer_id=data.get('customer'),
        )
        if not updated:
            logger.warning(f"⚠️ checkout для неизвестного пользователя {user_id}")
            return

        logger.info(f"✅ Подписка пользователя {user_id} активна до {subscription_end.isoformat()}")
        await self.badge_awarder.award_subscriber_badge(user_id)

    async def _on_subscription_updated(self, data: Dict[str, Any]):
        user = await self._find_customer(data)
        if user is None:
            return

        status = STRIPE_STATUS_MAP.get(data.get('status'), SubscriptionStatus.INACTIVE)
        await self.store.update_subscription(
            user.user_id, status.value,
            subscription_end=from_unix_timestamp(data.get('current_period_end')),
        )
        logger.info(f"🔄 Подписка пользователя {user.user_id}: {status.value}")

    async def _on_subscription_deleted(self, data: Dict[str, Any]):
        user = await self._find_customer(data)
        if user is None:
            return
        await self.store.update_subscription(user.user_id, SubscriptionStatus.CANCELLED.value)
        logger.info(f"🛑 Подписка пользователя {user.user_id} отменена")

    async def _on_payment_succeeded(self, data: Dict[str, Any]):
        user = await self._find_customer(data)
        if user is None:
            return

        period_end = None
        lines = (data.get('lines') or {}).get('data') or []
        if lines:
            period_end = from_unix_timestamp((lines[0].get('period') or {}).get('end'))
        period_end = period_end or from_unix_timestamp(data.get('period_end')) or add_one_month(utcnow())

        await self.store.update_subscription(
            user.user_id, SubscriptionStatus.ACTIVE.value, subscription_end=period_end
        )

    async def _on_payment_failed(self, data: Dict[str, Any]):
        user = await self._find_customer(data)
        if user is None:
            return
        await self.store.update_subscription(user.user_id, SubscriptionStatus.PAST_DUE.value)
        logger.warning(f"⚠️ Платеж пользователя {user.user_id} не прошел")
