# src/shared/models/marketplace.py
"""
DTO посылок и поездок.
Ядру нужны только идентификатор, владелец и статус, остальное для контекста.
"""

from __future__ import annotations

from datetime import datetime

from src.shared.models.common import CamelModel


class PackageDTO(CamelModel):
    """Посылка отправителя."""

    id: str
    user_id: str
    title: str | None = None
    pickup_address: str | None = None
    delivery_address: str | None = None
    status: str = "PENDING"
    created_at: datetime | None = None


class RideDTO(CamelModel):
    """Поездка перевозчика."""

    id: str
    user_id: str
    origin: str | None = None
    destination: str | None = None
    departure_time: datetime | None = None
    status: str = "ACTIVE"
    created_at: datetime | None = None
