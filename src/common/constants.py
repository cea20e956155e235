# src/common/constants.py
"""
Общие константы и перечисления.
Статусы передаются по сети токенами в верхнем регистре.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли пользователей."""
    SENDER = "SENDER"
    CARRIER = "CARRIER"
    ADMIN = "ADMIN"


class MatchStatus(str, Enum):
    """Статусы матча (посылка ↔ поездка)."""
    PROPOSED = "PROPOSED"
    ACCEPTED_BY_SENDER = "ACCEPTED_BY_SENDER"
    ACCEPTED_BY_CARRIER = "ACCEPTED_BY_CARRIER"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value


# Матч "живой", пока не отклонён и не отменён
LIVE_MATCH_STATUSES: frozenset[MatchStatus] = frozenset({
    MatchStatus.PROPOSED,
    MatchStatus.ACCEPTED_BY_SENDER,
    MatchStatus.ACCEPTED_BY_CARRIER,
    MatchStatus.CONFIRMED,
})

# Удаление (отзыв предложения) допустимо только в этих статусах
DELETABLE_MATCH_STATUSES: frozenset[MatchStatus] = frozenset({
    MatchStatus.PROPOSED,
    MatchStatus.REJECTED,
})

# Верхняя граница денежных полей: NUMERIC(12, 2) в migrations/init.sql
MAX_MONEY_AMOUNT: float = 9_999_999_999.99


class PaymentStatus(str, Enum):
    """Статусы оплаты."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    def __str__(self) -> str:
        return self.value


class PaymentMethod(str, Enum):
    """Способы оплаты."""
    CARD = "card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class NotificationType(str, Enum):
    """Типы уведомлений."""
    MATCH_CREATED = "MATCH_CREATED"
    MATCH_ACCEPTED = "MATCH_ACCEPTED"
    MATCH_CONFIRMED = "MATCH_CONFIRMED"
    MATCH_REJECTED = "MATCH_REJECTED"
    MATCH_CANCELLED = "MATCH_CANCELLED"
    PAYMENT_INITIATED = "PAYMENT_INITIATED"
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
