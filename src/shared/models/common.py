# src/shared/models/common.py
"""
Общие модели API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    База для DTO, которые уходят по сети.
    Поля в Python в snake_case, в JSON в camelCase (packageId, rideId).
    """

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


class ErrorResponse(BaseModel):
    """Стандартный ответ с ошибкой."""

    error_code: str
    message: str
    details: dict[str, Any] | None = None


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    # dependencies: {"postgres": "healthy", "rabbitmq": "unhealthy"}
