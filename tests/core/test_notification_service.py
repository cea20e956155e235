# tests/core/test_notification_service.py
"""
Тесты сервиса уведомлений.
"""

from __future__ import annotations

import pytest

from src.common.constants import NotificationType
from src.common.exceptions import ForbiddenError, NotFoundError
from src.core.notifications.service import NotificationService
from tests.fakes import CARRIER_ID, SENDER_ID, FakeDatabase, FakeNotificationRepository, InMemoryStore


@pytest.fixture
def inbox() -> NotificationService:
    service = NotificationService(FakeDatabase(), default_limit=2, max_limit=3)  # type: ignore[arg-type]
    service._repo = FakeNotificationRepository(InMemoryStore())
    return service


class TestDispatch:
    """Best-effort создание."""

    @pytest.mark.asyncio
    async def test_notify_creates_unread(self, inbox) -> None:
        notification = await inbox.notify(SENDER_ID, NotificationType.MATCH_CREATED, "Новое предложение", "m-1")

        assert notification is not None
        assert notification.read is False
        assert notification.related_entity_id == "m-1"

    @pytest.mark.asyncio
    async def test_notify_swallows_storage_error(self, inbox) -> None:
        inbox._repo.fail = True

        result = await inbox.notify(SENDER_ID, NotificationType.MATCH_CREATED, "Новое предложение")

        assert result is None

    @pytest.mark.asyncio
    async def test_notify_many_skips_failures(self, inbox) -> None:
        created = await inbox.notify_many([SENDER_ID, CARRIER_ID], NotificationType.MATCH_CONFIRMED, "ok")

        assert {n.user_id for n in created} == {SENDER_ID, CARRIER_ID}

        inbox._repo.fail = True
        assert await inbox.notify_many([SENDER_ID], NotificationType.MATCH_CONFIRMED, "ok") == []


class TestInbox:
    """Входящие уведомления."""

    @pytest.mark.asyncio
    async def test_list_newest_first_with_unread_count(self, inbox) -> None:
        first = await inbox.notify(SENDER_ID, NotificationType.MATCH_CREATED, "1")
        second = await inbox.notify(SENDER_ID, NotificationType.MATCH_ACCEPTED, "2")
        await inbox.notify(CARRIER_ID, NotificationType.MATCH_CREATED, "чужое")

        response = await inbox.list_for_user(SENDER_ID)

        assert [n.id for n in response.notifications] == [second.id, first.id]
        assert response.unread_count == 2

    @pytest.mark.asyncio
    async def test_limit_defaults_and_is_clamped(self, inbox) -> None:
        for i in range(5):
            await inbox.notify(SENDER_ID, NotificationType.MATCH_CREATED, str(i))

        assert len((await inbox.list_for_user(SENDER_ID)).notifications) == 2
        assert len((await inbox.list_for_user(SENDER_ID, limit=50)).notifications) == 3

    @pytest.mark.asyncio
    async def test_filters(self, inbox) -> None:
        created = await inbox.notify(SENDER_ID, NotificationType.MATCH_CREATED, "1")
        await inbox.notify(SENDER_ID, NotificationType.PAYMENT_SUCCESS, "2")
        await inbox.mark_read(created.id, SENDER_ID)

        unread = await inbox.list_for_user(SENDER_ID, unread_only=True)
        payments = await inbox.list_for_user(SENDER_ID, notification_type=NotificationType.PAYMENT_SUCCESS)

        assert [n.type for n in unread.notifications] == [NotificationType.PAYMENT_SUCCESS]
        assert unread.unread_count == 1
        assert [n.type for n in payments.notifications] == [NotificationType.PAYMENT_SUCCESS]

    @pytest.mark.asyncio
    async def test_mark_read_and_unread(self, inbox) -> None:
        created = await inbox.notify(SENDER_ID, NotificationType.MATCH_CREATED, "1")

        read = await inbox.mark_read(created.id, SENDER_ID)
        unread = await inbox.mark_read(created.id, SENDER_ID, read=False)

        assert read.read is True
        assert unread.read is False

    @pytest.mark.asyncio
    async def test_foreign_notification_forbidden(self, inbox) -> None:
        created = await inbox.notify(SENDER_ID, NotificationType.MATCH_CREATED, "1")

        with pytest.raises(ForbiddenError):
            await inbox.mark_read(created.id, CARRIER_ID)
        with pytest.raises(ForbiddenError):
            await inbox.delete(created.id, CARRIER_ID)

    @pytest.mark.asyncio
    async def test_delete_own(self, inbox) -> None:
        created = await inbox.notify(SENDER_ID, NotificationType.MATCH_CREATED, "1")

        await inbox.delete(created.id, SENDER_ID)

        with pytest.raises(NotFoundError):
            await inbox.delete(created.id, SENDER_ID)
