# src/shared/events/payment_events.py
"""
События домена платежей.
"""

from __future__ import annotations

from typing import Literal

from src.shared.events.base import DomainEvent


class PaymentCreated(DomainEvent):
    """Событие: создан платёж по подтверждённому матчу."""

    event_type: Literal["payment.created"] = "payment.created"

    payment_id: str
    match_id: str
    user_id: str
    amount: float
    currency: str = "EUR"
    payment_method: str = "card"


class PaymentStatusChanged(DomainEvent):
    """Событие: статус платежа изменён участником или процессингом."""

    event_type: Literal["payment.status_changed"] = "payment.status_changed"

    payment_id: str
    match_id: str
    old_status: str
    new_status: str
    changed_by_user_id: str | None = None  # None для callback процессинга
    transaction_id: str | None = None
    payment_intent_id: str | None = None
