# src/core/notifications/service.py
"""
Сервис уведомлений.

Диспетчер вызывается после коммита основной транзакции матча или платежа.
Ошибка записи уведомления логируется и не пробрасывается: уведомления
носят справочный характер и не откатывают бизнес-операцию.
"""

from __future__ import annotations

from typing import Iterable, Optional

from src.common.constants import NotificationType, TypeMsg
from src.common.exceptions import ForbiddenError, NotFoundError
from src.common.logger import log_error, log_info
from src.core.notifications.repository import NotificationRepository
from src.infra.database import DatabaseManager
from src.shared.models.notification import NotificationDTO, NotificationListResponse


class NotificationService:
    """
    Сервис уведомлений.

    Ответственности:
    - Best-effort создание уведомлений при событиях матчей и платежей
    - Входящие уведомления получателя: список, прочтение, удаление
    """

    def __init__(
        self,
        db: DatabaseManager,
        default_limit: int = 50,
        max_limit: int = 200,
    ) -> None:
        self._repo = NotificationRepository(db)
        self._default_limit = default_limit
        self._max_limit = max_limit

    # === ДИСПЕТЧЕР ===

    async def notify(
        self,
        user_id: str,
        notification_type: NotificationType,
        message: str,
        related_entity_id: str | None = None,
    ) -> Optional[NotificationDTO]:
        """
        Создаёт уведомление для пользователя.

        Returns:
            Созданное уведомление или None, если запись не удалась
        """
        try:
            notification = await self._repo.create(user_id, notification_type, message, related_entity_id)
        except Exception as e:
            await log_error(
                f"Не удалось создать уведомление {notification_type.value} для {user_id}: {e}",
                exc_info=True,
            )
            return None

        await log_info(
            f"Уведомление {notification_type.value} создано для {user_id} (entity={related_entity_id})",
            type_msg=TypeMsg.DEBUG,
        )
        return notification

    async def notify_many(
        self,
        user_ids: Iterable[str],
        notification_type: NotificationType,
        message: str,
        related_entity_id: str | None = None,
    ) -> list[NotificationDTO]:
        """Уведомляет каждого получателя независимо."""
        created: list[NotificationDTO] = []
        for user_id in user_ids:
            notification = await self.notify(user_id, notification_type, message, related_entity_id)
            if notification is not None:
                created.append(notification)
        return created

    # === ВХОДЯЩИЕ ===

    async def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        notification_type: NotificationType | None = None,
        limit: int | None = None,
    ) -> NotificationListResponse:
        """Уведомления получателя и число непрочитанных."""
        if limit is None or limit <= 0:
            limit = self._default_limit
        limit = min(limit, self._max_limit)

        notifications = await self._repo.list_for_user(
            user_id,
            unread_only=unread_only,
            notification_type=notification_type,
            limit=limit,
        )
        unread_count = await self._repo.count_unread(user_id)
        return NotificationListResponse(notifications=notifications, unread_count=unread_count)

    async def mark_read(self, notification_id: str, user_id: str, read: bool = True) -> NotificationDTO:
        """Отмечает уведомление прочитанным (или непрочитанным)."""
        await self._get_own(notification_id, user_id)
        updated = await self._repo.set_read(notification_id, read)
        if updated is None:
            raise NotFoundError("Уведомление не найдено")
        return updated

    async def delete(self, notification_id: str, user_id: str) -> None:
        """Удаляет уведомление получателя."""
        await self._get_own(notification_id, user_id)
        if not await self._repo.delete(notification_id):
            raise NotFoundError("Уведомление не найдено")

    async def _get_own(self, notification_id: str, user_id: str) -> NotificationDTO:
        notification = await self._repo.get_by_id(notification_id)
        if notification is None:
            raise NotFoundError("Уведомление не найдено", details={"id": notification_id})
        if notification.user_id != user_id:
            raise ForbiddenError("Уведомление принадлежит другому пользователю")
        return notification
