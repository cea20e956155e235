# src/services/marketplace_api/dependencies.py
"""
Dependency Injection для Marketplace API.
"""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Header

from src.common.exceptions import AuthenticationError
from src.services.marketplace_api.identity import (
    Identity,
    TokenError,
    extract_bearer,
    validate_token,
)

if TYPE_CHECKING:
    from src.core.matches.service import MatchService
    from src.core.notifications.service import NotificationService
    from src.core.payments.service import PaymentService
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus


# Синглтоны для инфраструктуры
_db: "DatabaseManager | None" = None
_event_bus: "EventBus | None" = None

# Синглтоны для сервисов
_notification_service: "NotificationService | None" = None
_match_service: "MatchService | None" = None
_payment_service: "PaymentService | None" = None


async def init_dependencies(db: "DatabaseManager", event_bus: "EventBus") -> None:
    """Инициализировать зависимости при старте приложения."""
    global _db, _event_bus
    _db = db
    _event_bus = event_bus


def get_db() -> "DatabaseManager":
    """Получить менеджер базы данных."""
    if _db is None:
        raise RuntimeError("База данных не инициализирована. Вызовите init_dependencies()")
    return _db


def get_event_bus() -> "EventBus":
    """Получить шину событий."""
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован. Вызовите init_dependencies()")
    return _event_bus


def get_notification_service() -> "NotificationService":
    """Получить сервис уведомлений."""
    global _notification_service

    if _notification_service is None:
        from src.config import settings
        from src.core.notifications.service import NotificationService
        _notification_service = NotificationService(
            db=get_db(),
            default_limit=settings.notifications.NOTIFICATIONS_DEFAULT_LIMIT,
            max_limit=settings.notifications.NOTIFICATIONS_MAX_LIMIT,
        )

    return _notification_service


def get_match_service() -> "MatchService":
    """Получить сервис матчей."""
    global _match_service

    if _match_service is None:
        from src.core.matches.service import MatchService
        _match_service = MatchService(
            db=get_db(),
            event_bus=get_event_bus(),
            notifications=get_notification_service(),
        )

    return _match_service


def get_payment_service() -> "PaymentService":
    """Получить сервис платежей."""
    global _payment_service

    if _payment_service is None:
        from src.common.constants import PaymentMethod
        from src.config import settings
        from src.core.payments.service import PaymentService
        _payment_service = PaymentService(
            db=get_db(),
            event_bus=get_event_bus(),
            notifications=get_notification_service(),
            default_currency=settings.payments.DEFAULT_CURRENCY,
            default_method=PaymentMethod(settings.payments.DEFAULT_PAYMENT_METHOD),
            supported_currencies=settings.payments.SUPPORTED_CURRENCIES,
        )

    return _payment_service


# === AUTH ===

async def get_current_identity(
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """
    Проверяет заголовок Authorization: Bearer <token>.
    Все endpoints кроме /health и callback процессинга требуют токен.
    """
    from src.config import settings

    try:
        token = extract_bearer(authorization)
        return validate_token(
            token,
            secret=settings.auth.AUTH_TOKEN_SECRET,
            max_age_seconds=settings.auth.AUTH_TOKEN_MAX_AGE,
        )
    except TokenError as e:
        raise AuthenticationError(str(e))


async def verify_processor_secret(
    x_processor_secret: Annotated[str | None, Header(alias="X-Processor-Secret")] = None,
) -> None:
    """Проверяет общий секрет callback платёжного процессинга."""
    from src.config import settings

    expected = settings.auth.PROCESSOR_CALLBACK_SECRET
    if not expected or not x_processor_secret or not hmac.compare_digest(expected, x_processor_secret):
        raise AuthenticationError("Невалидный секрет платёжного процессинга")


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _notification_service, _match_service, _payment_service
    _notification_service = None
    _match_service = None
    _payment_service = None
