# src/core/matches/__init__.py
"""
Домен матчей.
Репозиторий, state machine и сервис жизненного цикла.
"""

from src.core.matches.repository import MatchRepository
from src.core.matches.service import MatchService, MatchStateMachine, parse_status_filter

__all__ = [
    "MatchRepository",
    "MatchService",
    "MatchStateMachine",
    "parse_status_filter",
]
