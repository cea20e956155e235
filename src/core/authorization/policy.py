# src/core/authorization/policy.py
"""
Предикаты авторизации.
Чистые функции без побочных эффектов: кто владеет посылкой или поездкой,
кто участвует в матче и в платеже.
"""

from __future__ import annotations

from src.shared.models.match import MatchDTO
from src.shared.models.payment import PaymentDTO


def is_package_owner(user_id: str | None, package_owner_id: str | None) -> bool:
    """Пользователь владеет посылкой."""
    return bool(user_id) and user_id == package_owner_id


def is_ride_owner(user_id: str | None, ride_owner_id: str | None) -> bool:
    """Пользователь владеет поездкой."""
    return bool(user_id) and user_id == ride_owner_id


def is_match_participant(user_id: str | None, match: MatchDTO) -> bool:
    """Пользователь владеет посылкой или поездкой матча."""
    return (
        is_package_owner(user_id, match.package_owner_id)
        or is_ride_owner(user_id, match.ride_owner_id)
    )


def is_payment_participant(user_id: str | None, payment: PaymentDTO, match: MatchDTO) -> bool:
    """Пользователь создал платёж или участвует в его матче."""
    if bool(user_id) and user_id == payment.user_id:
        return True
    return is_match_participant(user_id, match)


def match_participants(match: MatchDTO) -> list[str]:
    """
    Участники матча без повторов, в порядке: владелец посылки, владелец поездки.
    Один пользователь может владеть обеими сторонами.
    """
    participants: list[str] = []
    for owner_id in (match.package_owner_id, match.ride_owner_id):
        if owner_id and owner_id not in participants:
            participants.append(owner_id)
    return participants


def counterparties(match: MatchDTO, actor_id: str | None) -> list[str]:
    """Участники матча, кроме инициатора действия (None = все участники)."""
    return [user_id for user_id in match_participants(match) if user_id != actor_id]
