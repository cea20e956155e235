# src/common/exceptions.py
"""
Иерархия доменных ошибок.
Каждая ошибка несёт стабильный машинный код и HTTP-статус.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Базовая доменная ошибка."""

    error_code: str = "domain_error"
    status_code: int = 400

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    """Отсутствуют или некорректны обязательные поля."""
    error_code = "validation_error"
    status_code = 400


class AuthenticationError(DomainError):
    """Запрос без валидных учётных данных."""
    error_code = "unauthorized"
    status_code = 401


class ForbiddenError(DomainError):
    """Пользователь аутентифицирован, но не участник сущности."""
    error_code = "forbidden"
    status_code = 403


class NotFoundError(DomainError):
    """Посылка, поездка, матч, платёж или уведомление не найдены."""
    error_code = "not_found"
    status_code = 404


class ConflictError(DomainError):
    """Дубликат матча/платежа или проигранная гонка обновления."""
    error_code = "conflict"
    status_code = 409


class InvalidStateError(DomainError):
    """Операция недопустима в текущем статусе."""
    error_code = "invalid_state"
    status_code = 400


class InvalidTransitionError(InvalidStateError):
    """Запрошенный переход отсутствует в таблице переходов."""
    error_code = "invalid_transition"
