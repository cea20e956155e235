# src/shared/models/payment.py
"""
DTO для платежей.
Сумма хранится в основных единицах валюты (евро, не центы).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from src.common.constants import MAX_MONEY_AMOUNT, PaymentMethod, PaymentStatus
from src.shared.models.common import CamelModel


class PaymentDTO(CamelModel):
    """Платёж по подтверждённому матчу."""

    id: str
    user_id: str  # кто инициировал платёж
    match_id: str

    amount: float
    currency: str = "EUR"
    payment_method: PaymentMethod = PaymentMethod.CARD
    status: PaymentStatus = PaymentStatus.PENDING

    # Ссылки платёжного процессинга, для ядра непрозрачны
    transaction_id: str | None = None
    payment_intent_id: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


class PaymentCreateRequest(CamelModel):
    """Запрос на создание платежа."""

    match_id: str | None = None
    amount: float | None = Field(default=None, gt=0, le=MAX_MONEY_AMOUNT, allow_inf_nan=False)
    currency: str | None = None
    payment_method: PaymentMethod | None = None


class PaymentUpdateRequest(CamelModel):
    """Запрос на смену статуса платежа участником."""

    id: str | None = None
    status: PaymentStatus | None = None
    transaction_id: str | None = None
    payment_intent_id: str | None = None


class ProcessorCallbackRequest(CamelModel):
    """Результат от платёжного процессинга."""

    status: PaymentStatus
    transaction_id: str | None = None
    payment_intent_id: str | None = None
