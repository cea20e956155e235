# src/services/marketplace_api/identity.py
"""
Проверка bearer-токена доступа.

Формат токена: base64url(JSON{sub, role, iat}).hex(HMAC-SHA256(secret, payload)),
где payload это первая часть токена до точки.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from typing import Any

from pydantic import BaseModel

from src.common.constants import UserRole


class Identity(BaseModel):
    """Пользователь, от имени которого выполняется запрос."""
    user_id: str
    role: UserRole = UserRole.SENDER
    issued_at: int = 0


class TokenError(Exception):
    """Ошибка валидации токена."""
    pass


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def issue_token(
    user_id: str,
    secret: str,
    role: UserRole = UserRole.SENDER,
    issued_at: int | None = None,
) -> str:
    """
    Выпускает токен (dev-инструменты и тесты).

    Args:
        user_id: ID пользователя (sub)
        secret: Общий секрет подписи
        role: Роль пользователя
        issued_at: Время выпуска (unix), по умолчанию сейчас
    """
    claims = {
        "sub": user_id,
        "role": role.value,
        "iat": int(time.time()) if issued_at is None else issued_at,
    }
    payload = _b64encode(json.dumps(claims, separators=(",", ":")).encode())
    return f"{payload}.{_sign(payload, secret)}"


def validate_token(token: str, secret: str, max_age_seconds: int = 86400) -> Identity:
    """
    Проверяет подпись и возраст токена.

    Returns:
        Identity пользователя

    Raises:
        TokenError: Токен невалиден или устарел
    """
    if not secret:
        raise TokenError("Секрет токенов не настроен")

    payload, sep, received_signature = token.partition(".")
    if not sep or not payload or not received_signature:
        raise TokenError("Неверный формат токена")

    if not hmac.compare_digest(_sign(payload, secret), received_signature):
        raise TokenError("Невалидная подпись токена")

    try:
        claims: dict[str, Any] = json.loads(_b64decode(payload))
    except (ValueError, UnicodeDecodeError) as e:
        raise TokenError("Повреждённые данные токена") from e
    if not isinstance(claims, dict):
        raise TokenError("Повреждённые данные токена")

    user_id = claims.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise TokenError("Отсутствует sub в токене")

    issued_at = claims.get("iat")
    if not isinstance(issued_at, int):
        raise TokenError("Отсутствует iat в токене")
    if time.time() - issued_at > max_age_seconds:
        raise TokenError("Токен устарел")

    try:
        role = UserRole(claims.get("role", UserRole.SENDER.value))
    except ValueError as e:
        raise TokenError("Неизвестная роль в токене") from e

    return Identity(user_id=user_id, role=role, issued_at=issued_at)


def extract_bearer(authorization: str | None) -> str:
    """Достаёт токен из заголовка Authorization."""
    if not authorization:
        raise TokenError("Отсутствует заголовок Authorization")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise TokenError("Ожидается схема Bearer")
    return token.strip()
