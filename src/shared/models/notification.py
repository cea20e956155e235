# src/shared/models/notification.py
"""
DTO уведомлений.
"""

from __future__ import annotations

from datetime import datetime

from src.common.constants import NotificationType
from src.shared.models.common import CamelModel


class NotificationDTO(CamelModel):
    """Уведомление пользователя."""

    id: str
    user_id: str
    type: NotificationType
    message: str
    related_entity_id: str | None = None
    read: bool = False
    created_at: datetime | None = None


class NotificationListResponse(CamelModel):
    """Список уведомлений и число непрочитанных."""

    notifications: list[NotificationDTO]
    unread_count: int = 0


class NotificationUpdateRequest(CamelModel):
    """Отметка уведомления прочитанным."""

    id: str | None = None
    read: bool = True
