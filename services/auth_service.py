# services/auth_service.py

"""
Аутентификация IntensifyHQ.

Пароли хранятся как base64(salt + PBKDF2-HMAC-SHA256), токены - компактный
HS256 JWT с полями userId, email, subscriptionActive, iat, exp.
"""

import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
import uuid
from typing import Dict, Optional, Any, Tuple

from core.database import MetricStore
from core.models import UserAccount, ValidationError, validate_text

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000
SALT_BYTES = 16
MIN_PASSWORD_LENGTH = 6

# ===== EXCEPTIONS =====

class AuthenticationError(Exception):
    """Неверные учетные данные или токен"""
    pass

class SubscriptionRequired(Exception):
    """Доступ требует активной подписки"""
    pass

class EmailAlreadyRegistered(Exception):
    """Email уже используется"""
    pass

# ===== ПАРОЛИ =====

def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    salt = salt or secrets.token_bytes(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, PBKDF2_ITERATIONS)
    return base64.b64encode(salt + digest).decode('ascii')

def verify_password(password: str, stored_hash: str) -> bool:
    """Проверка пароля с постоянным временем сравнения"""
    try:
        raw = base64.b64decode(stored_hash.encode('ascii'), validate=True)
    except (ValueError, UnicodeEncodeError):
        return False
    if len(raw) <= SALT_BYTES:
        return False

    salt, expected = raw[:SALT_BYTES], raw[SALT_BYTES:]
    digest = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(digest, expected)

# ===== ТОКЕНЫ =====

def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b'=').decode('ascii')

def _b64url_decode(segment: str) -> bytes:
    padding = '=' * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)

class TokenManager:
    """Выпуск и проверка HS256 токенов"""

    HEADER = {'alg': 'HS256', 'typ': 'JWT'}

    def __init__(self, secret: str, ttl_days: int = 7):
        if not secret:
            raise ValueError("Секрет для подписи токенов не задан")
        self.secret = secret.encode('utf-8')
        self.ttl_seconds = ttl_days * 24 * 3600

    def _sign(self, signing_input: bytes) -> str:
        return _b64url_encode(hmac.new(self.secret, signing_input, hashlib.sha256).digest())

    def issue(self, user: UserAccount, now: Optional[float] = None) -> str:
        issued_at = int(now if now is not None else time.time())
        payload = {
            'userId': user.user_id,
            'email': user.email,
            'subscriptionActive': user.has_active_subscription(),
            'iat': issued_at,
            'exp': issued_at + self.ttl_seconds,
        }
        segments = [
            _b64url_encode(json.dumps(self.HEADER, separators=(',', ':')).encode('utf-8')),
            _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8')),
        ]
        signing_input = '.'.join(segments).encode('ascii')
        return '.'.join(segments + [self._sign(signing_input)])

    def verify(self, token: str, now: Optional[float] = None) -> Dict[str, Any]:
        """Payload токена; AuthenticationError при любой ошибке"""
        try:
            header_b64, payload_b64, signature = token.split('.')
        except (ValueError, AttributeError):
            raise AuthenticationError("Неверный формат токена")

        expected = self._sign(f"{header_b64}.{payload_b64}".encode("utf-8"))
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("ascii")):
            raise AuthenticationError("Неверная подпись токена")

        try:
            header = json.loads(_b64url_decode(header_b64))
            payload = json.loads(_b64url_decode(payload_b64))
        except ValueError:
            raise AuthenticationError("Поврежденный токен")

        if not isinstance(header, dict) or header.get('alg') != 'HS256' or not isinstance(payload, dict):
            raise AuthenticationError("Неподдерживаемый токен")

        current = now if now is not None else time.time()
        if not isinstance(payload.get('exp'), (int, float)) or payload['exp'] <= current:
            raise AuthenticationError("Срок действия токена истек")

        if not payload.get('userId'):
            raise AuthenticationError("Токен без пользователя")

        return payload

# ===== СЕРВИС =====

class AuthService:
    """Регистрация, вход и проверка доступа"""

    def __init__(self, store: MetricStore, token_manager: TokenManager):
        self.store = store
        self.tokens = token_manager

    @staticmethod
    def _validate_credentials(email: Any, password: Any) -> Tuple[str, str]:
        if not email or not password:
            raise ValidationError("Email и пароль обязательны")
        email = validate_text(email, min_length=3, max_length=255, field_name="email").lower()
        if '@' not in email:
            raise ValidationError("Неверный формат email")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Пароль должен содержать минимум {MIN_PASSWORD_LENGTH} символов")
        return email, password

    async def register(self, email: Any, password: Any) -> Dict[str, Any]:
        email, password = self._validate_credentials(email, password)

        if await self.store.get_user_by_email(email) is not None:
            raise EmailAlreadyRegistered(email)

        user = await self.store.create_user(str(uuid.uuid4()), email, hash_password(password))
        logger.info(f"✅ Зарегистрирован пользователь {user.user_id}")
        return {
            'success': True,
            'token': self.tokens.issue(user),
            'user': user.to_public_dict(),
            'needsSubscription': True,
        }

    async def login(self, email: Any, password: Any) -> Dict[str, Any]:
        if not email or not password:
            raise ValidationError("Email и пароль обязательны")

        user = await self.store.get_user_by_email(str(email).strip().lower())
        if user is None or not verify_password(str(password), user.password_hash):
            logger.info("🔒 Неудачная попытка входа")
            raise AuthenticationError("Неверный email или пароль")

        return {
            'success': True,
            'token': self.tokens.issue(user),
            'user': user.to_public_dict(),
            'subscriptionActive': user.has_active_subscription(),
        }

    async def authenticate(self, token: Optional[str]) -> UserAccount:
        """Пользователь по bearer-токену; состояние подписки берется из БД"""
        if not token:
            raise AuthenticationError("Требуется авторизация")
        payload = self.tokens.verify(token)
        user = await self.store.get_user_by_id(payload['userId'])
        if user is None:
            raise AuthenticationError("Пользователь не найден")
        return user

    @staticmethod
    def require_subscription(user: UserAccount) -> UserAccount:
        if not user.has_active_subscription():
            raise SubscriptionRequired(user.user_id)
        return user
