# src/shared/models/match.py
"""
DTO матчей (посылка ↔ поездка).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from src.common.constants import MAX_MONEY_AMOUNT, MatchStatus
from src.shared.models.common import CamelModel


class MatchDTO(CamelModel):
    """Матч вместе с владельцами посылки и поездки."""

    id: str
    package_id: str
    ride_id: str
    status: MatchStatus = MatchStatus.PROPOSED
    price: float | None = None
    proposed_by_user_id: str

    # Участники (денормализованы из packages/rides)
    package_owner_id: str | None = None
    ride_owner_id: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


class MatchCreateRequest(CamelModel):
    """Запрос на предложение матча."""

    package_id: str | None = None
    ride_id: str | None = None
    price: float | None = Field(default=None, ge=0, le=MAX_MONEY_AMOUNT, allow_inf_nan=False)
    proposed_by_user_id: str | None = None


class MatchUpdateRequest(CamelModel):
    """Запрос на смену статуса и/или цены матча."""

    id: str | None = None
    status: MatchStatus | None = None
    price: float | None = Field(default=None, ge=0, le=MAX_MONEY_AMOUNT, allow_inf_nan=False)
