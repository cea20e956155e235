# src/core/notifications/__init__.py
"""
Домен уведомлений.
"""

from src.core.notifications.repository import NotificationRepository
from src.core.notifications.service import NotificationService

__all__ = [
    "NotificationRepository",
    "NotificationService",
]
