"""
Схемы событий для RabbitMQ.

События разделены по доменам:
- match_events: предложение, смена статуса, отзыв матча
- payment_events: создание платежа, смена статуса

Все события содержат event_id для дедупликации.
"""

from src.shared.events.base import DomainEvent, EventMetadata
from src.shared.events.match_events import (
    MatchProposed,
    MatchStatusChanged,
    MatchWithdrawn,
)
from src.shared.events.payment_events import (
    PaymentCreated,
    PaymentStatusChanged,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventMetadata",
    # Match events
    "MatchProposed",
    "MatchStatusChanged",
    "MatchWithdrawn",
    # Payment events
    "PaymentCreated",
    "PaymentStatusChanged",
]
