# src/core/notifications/repository.py
"""
Репозиторий уведомлений (таблица notifications).
"""

from __future__ import annotations

from typing import Optional

from asyncpg import Record

from src.common.constants import NotificationType
from src.infra.database import DatabaseManager, affected_rows
from src.shared.models.notification import NotificationDTO

_NOTIFICATION_COLUMNS = "id, user_id, type, message, related_entity_id, is_read, created_at"


class NotificationRepository:
    """Репозиторий уведомлений."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(
        self,
        user_id: str,
        notification_type: NotificationType,
        message: str,
        related_entity_id: str | None = None,
    ) -> NotificationDTO:
        """Создаёт непрочитанное уведомление."""
        row = await self._db.fetchrow(
            f"""
            INSERT INTO notifications (user_id, type, message, related_entity_id)
            VALUES ($1, $2, $3, $4)
            RETURNING {_NOTIFICATION_COLUMNS}
            """,
            user_id,
            notification_type.value,
            message,
            related_entity_id,
        )
        return self._row_to_notification(row)

    async def get_by_id(self, notification_id: str) -> Optional[NotificationDTO]:
        """Получает уведомление по ID."""
        row = await self._db.fetchrow(
            f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications WHERE id = $1",
            notification_id,
        )
        return self._row_to_notification(row) if row else None

    async def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        notification_type: NotificationType | None = None,
        limit: int = 50,
    ) -> list[NotificationDTO]:
        """Уведомления получателя, сначала новые."""
        rows = await self._db.fetch(
            f"""
            SELECT {_NOTIFICATION_COLUMNS}
            FROM notifications
            WHERE user_id = $1
              AND (NOT $2::boolean OR is_read = FALSE)
              AND ($3::text IS NULL OR type = $3)
            ORDER BY created_at DESC, id DESC
            LIMIT $4
            """,
            user_id,
            unread_only,
            notification_type.value if notification_type else None,
            limit,
        )
        return [self._row_to_notification(row) for row in rows]

    async def count_unread(self, user_id: str) -> int:
        """Количество непрочитанных уведомлений."""
        count = await self._db.fetchval(
            "SELECT COUNT(*) FROM notifications WHERE user_id = $1 AND is_read = FALSE",
            user_id,
        )
        return int(count or 0)

    async def set_read(self, notification_id: str, read: bool) -> Optional[NotificationDTO]:
        """Меняет флаг прочтения."""
        row = await self._db.fetchrow(
            f"""
            UPDATE notifications
            SET is_read = $2
            WHERE id = $1
            RETURNING {_NOTIFICATION_COLUMNS}
            """,
            notification_id,
            read,
        )
        return self._row_to_notification(row) if row else None

    async def delete(self, notification_id: str) -> bool:
        """Удаляет уведомление."""
        result = await self._db.execute("DELETE FROM notifications WHERE id = $1", notification_id)
        return affected_rows(result) == 1

    @staticmethod
    def _row_to_notification(row: Record) -> NotificationDTO:
        return NotificationDTO(
            id=row["id"],
            user_id=row["user_id"],
            type=NotificationType(row["type"]),
            message=row["message"],
            related_entity_id=row["related_entity_id"],
            read=row["is_read"],
            created_at=row["created_at"],
        )
