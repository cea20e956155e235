# src/core/authorization/__init__.py
"""
Политика авторизации.
Единый набор предикатов для матчей и платежей.
"""

from src.core.authorization.policy import (
    is_package_owner,
    is_ride_owner,
    is_match_participant,
    is_payment_participant,
    match_participants,
    counterparties,
)

__all__ = [
    "is_package_owner",
    "is_ride_owner",
    "is_match_participant",
    "is_payment_participant",
    "match_participants",
    "counterparties",
]
