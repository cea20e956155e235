# src/core/payments/__init__.py
"""
Домен платежей.
"""

from src.core.payments.repository import PaymentRepository
from src.core.payments.service import PaymentService, PaymentStateMachine

__all__ = [
    "PaymentRepository",
    "PaymentService",
    "PaymentStateMachine",
]
