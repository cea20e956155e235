# src/shared/events/match_events.py
"""
События жизненного цикла матча.
"""

from __future__ import annotations

from typing import Literal

from src.shared.events.base import DomainEvent


class MatchProposed(DomainEvent):
    """Событие: предложен матч посылки и поездки."""

    event_type: Literal["match.proposed"] = "match.proposed"

    match_id: str
    package_id: str
    ride_id: str
    proposed_by_user_id: str
    price: float | None = None


class MatchStatusChanged(DomainEvent):
    """Событие: матч перешёл в новый статус."""

    event_type: Literal["match.status_changed"] = "match.status_changed"

    match_id: str
    old_status: str
    new_status: str
    changed_by_user_id: str


class MatchWithdrawn(DomainEvent):
    """Событие: предложение отозвано (матч удалён)."""

    event_type: Literal["match.withdrawn"] = "match.withdrawn"

    match_id: str
    status: str
    withdrawn_by_user_id: str
