# tests/core/test_repositories.py
"""
Тесты SQL-репозиториев на моке DatabaseManager.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from src.common.constants import MatchStatus, NotificationType, PaymentMethod, PaymentStatus
from src.common.exceptions import ConflictError
from src.core.marketplace.repository import MarketplaceRepository
from src.core.matches.repository import MatchRepository
from src.core.notifications.repository import NotificationRepository
from src.core.payments.repository import PaymentRepository


@pytest.fixture
def db() -> MagicMock:
    """Создаёт мок DatabaseManager."""
    db = MagicMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="DELETE 1")
    db.fetchval = AsyncMock(return_value=0)
    return db


@pytest.fixture
def match_row() -> Dict[str, Any]:
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    return {
        "id": "m-1",
        "package_id": "P1",
        "ride_id": "R1",
        "status": "PROPOSED",
        "price": Decimal("25.50"),
        "proposed_by_user_id": "C",
        "package_owner_id": "S",
        "ride_owner_id": "C",
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def payment_row() -> Dict[str, Any]:
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    return {
        "id": "pay-1",
        "user_id": "S",
        "match_id": "m-1",
        "amount": Decimal("25.00"),
        "currency": "EUR",
        "payment_method": "card",
        "status": "PENDING",
        "transaction_id": None,
        "payment_intent_id": None,
        "created_at": now,
        "updated_at": now,
    }


class TestMatchRepository:
    """Тесты для MatchRepository."""

    @pytest.mark.asyncio
    async def test_create_maps_row(self, db: MagicMock, match_row: Dict[str, Any]) -> None:
        """NUMERIC цена приходит как Decimal и отдаётся float."""
        # Arrange
        db.fetchrow.return_value = match_row

        # Act
        match = await MatchRepository(db).create("P1", "R1", "C", price=25.5)

        # Assert
        assert match.status == MatchStatus.PROPOSED
        assert match.price == 25.5
        assert isinstance(match.price, float)
        assert match.package_owner_id == "S"
        args = db.fetchrow.call_args[0]
        assert "INSERT INTO matches" in args[0]
        assert args[1:] == ("P1", "R1", "PROPOSED", 25.5, "C")

    @pytest.mark.asyncio
    async def test_create_unique_violation_is_conflict(self, db: MagicMock) -> None:
        """Нарушение уникального индекса живого матча превращается в ConflictError."""
        # Arrange
        db.fetchrow.side_effect = asyncpg.UniqueViolationError("uq_matches_live_pair")

        # Act & Assert
        with pytest.raises(ConflictError):
            await MatchRepository(db).create("P1", "R1", "C")

    @pytest.mark.asyncio
    async def test_create_uses_transaction_connection(self, db: MagicMock, match_row: Dict[str, Any]) -> None:
        """Запрос идёт через соединение транзакции, если оно передано."""
        # Arrange
        conn = MagicMock()
        conn.fetchrow = AsyncMock(return_value=match_row)

        # Act
        await MatchRepository(db).create("P1", "R1", "C", conn=conn)

        # Assert
        conn.fetchrow.assert_awaited_once()
        db.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_by_id_for_update_locks_match_row(self, db: MagicMock, match_row: Dict[str, Any]) -> None:
        # Arrange
        db.fetchrow.return_value = match_row

        # Act
        await MatchRepository(db).get_by_id("m-1", for_update=True)

        # Assert
        assert "FOR UPDATE OF m" in db.fetchrow.call_args[0][0]

    @pytest.mark.asyncio
    async def test_get_by_id_not_found(self, db: MagicMock) -> None:
        assert await MatchRepository(db).get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_compare_and_update_guards_on_status(self, db: MagicMock, match_row: Dict[str, Any]) -> None:
        """UPDATE выполняется только при ожидаемом статусе."""
        # Arrange
        db.fetchrow.return_value = {**match_row, "status": "ACCEPTED_BY_SENDER"}

        # Act
        match = await MatchRepository(db).compare_and_update(
            "m-1", MatchStatus.PROPOSED, new_status=MatchStatus.ACCEPTED_BY_SENDER,
        )

        # Assert
        query, *params = db.fetchrow.call_args[0]
        assert "WHERE id = $1 AND status = $2" in query
        assert "status = $3" in query
        assert params == ["m-1", "PROPOSED", "ACCEPTED_BY_SENDER"]
        assert match.status == MatchStatus.ACCEPTED_BY_SENDER

    @pytest.mark.asyncio
    async def test_compare_and_update_status_and_price(self, db: MagicMock, match_row: Dict[str, Any]) -> None:
        # Arrange
        db.fetchrow.return_value = match_row

        # Act
        await MatchRepository(db).compare_and_update(
            "m-1", MatchStatus.PROPOSED, new_status=MatchStatus.REJECTED, price=30.0,
        )

        # Assert
        query, *params = db.fetchrow.call_args[0]
        assert "status = $3" in query
        assert "price = $4" in query
        assert params == ["m-1", "PROPOSED", "REJECTED", 30.0]

    @pytest.mark.asyncio
    async def test_compare_and_update_lost_race(self, db: MagicMock) -> None:
        """Пустой результат означает, что статус уже изменён."""
        # Arrange
        db.fetchrow.return_value = None

        # Act
        result = await MatchRepository(db).compare_and_update("m-1", MatchStatus.PROPOSED, price=10.0)

        # Assert
        assert result is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, expected", [("DELETE 1", True), ("DELETE 0", False)])
    async def test_delete_if_status(self, db: MagicMock, status: str, expected: bool) -> None:
        # Arrange
        db.execute.return_value = status

        # Act
        deleted = await MatchRepository(db).delete_if_status("m-1", MatchStatus.REJECTED)

        # Assert
        assert deleted is expected
        assert db.execute.call_args[0][1:] == ("m-1", "REJECTED")

    @pytest.mark.asyncio
    async def test_list_for_user_passes_filter(self, db: MagicMock, match_row: Dict[str, Any]) -> None:
        # Arrange
        db.fetch.return_value = [match_row]

        # Act
        matches = await MatchRepository(db).list_for_user(
            "S", [MatchStatus.PROPOSED, MatchStatus.CONFIRMED], limit=10, offset=5,
        )

        # Assert
        assert len(matches) == 1
        assert db.fetch.call_args[0][1:] == ("S", ["PROPOSED", "CONFIRMED"], 10, 5)
        assert "ORDER BY m.created_at DESC" in db.fetch.call_args[0][0]

    @pytest.mark.asyncio
    async def test_list_for_user_without_filter(self, db: MagicMock) -> None:
        await MatchRepository(db).list_for_user("S")

        assert db.fetch.call_args[0][2] is None

    @pytest.mark.asyncio
    async def test_database_error_propagates(self, db: MagicMock) -> None:
        """Ошибки БД не глотаются и доходят до обработчика API."""
        # Arrange
        db.fetchrow.side_effect = asyncpg.PostgresError("boom")

        # Act & Assert
        with pytest.raises(asyncpg.PostgresError):
            await MatchRepository(db).get_by_id("m-1")


class TestPaymentRepository:
    """Тесты для PaymentRepository."""

    @pytest.mark.asyncio
    async def test_create_maps_row(self, db: MagicMock, payment_row: Dict[str, Any]) -> None:
        # Arrange
        db.fetchrow.return_value = payment_row

        # Act
        payment = await PaymentRepository(db).create("S", "m-1", 25.0, "EUR", PaymentMethod.CARD)

        # Assert
        assert payment.amount == 25.0
        assert payment.payment_method == PaymentMethod.CARD
        assert payment.status == PaymentStatus.PENDING
        assert db.fetchrow.call_args[0][1:] == ("S", "m-1", 25.0, "EUR", "card", "PENDING")

    @pytest.mark.asyncio
    async def test_create_duplicate_is_conflict(self, db: MagicMock) -> None:
        # Arrange
        db.fetchrow.side_effect = asyncpg.UniqueViolationError("uq_payments_match")

        # Act & Assert
        with pytest.raises(ConflictError):
            await PaymentRepository(db).create("S", "m-1", 25.0, "EUR", PaymentMethod.CARD)

    @pytest.mark.asyncio
    async def test_get_by_id_for_update(self, db: MagicMock, payment_row: Dict[str, Any]) -> None:
        # Arrange
        db.fetchrow.return_value = payment_row

        # Act
        await PaymentRepository(db).get_by_id("pay-1", for_update=True)

        # Assert
        assert "FOR UPDATE" in db.fetchrow.call_args[0][0]

    @pytest.mark.asyncio
    async def test_compare_and_set_status(self, db: MagicMock, payment_row: Dict[str, Any]) -> None:
        """Ссылки процессинга передаются в COALESCE и не затирают сохранённые."""
        # Arrange
        db.fetchrow.return_value = {**payment_row, "status": "COMPLETED", "transaction_id": "tx-1"}

        # Act
        payment = await PaymentRepository(db).compare_and_set_status(
            "pay-1", PaymentStatus.PENDING, PaymentStatus.COMPLETED, transaction_id="tx-1",
        )

        # Assert
        query, *params = db.fetchrow.call_args[0]
        assert "COALESCE($4, pay.transaction_id)" in query
        assert params == ["pay-1", "PENDING", "COMPLETED", "tx-1", None]
        assert payment.transaction_id == "tx-1"

    @pytest.mark.asyncio
    async def test_list_for_user_filters(self, db: MagicMock, payment_row: Dict[str, Any]) -> None:
        # Arrange
        db.fetch.return_value = [payment_row]

        # Act
        payments = await PaymentRepository(db).list_for_user("S", PaymentStatus.PENDING, "m-1")

        # Assert
        assert [p.id for p in payments] == ["pay-1"]
        assert db.fetch.call_args[0][1:] == ("S", "PENDING", "m-1", 100, 0)


class TestNotificationRepository:
    """Тесты для NotificationRepository."""

    @pytest.mark.asyncio
    async def test_create_maps_is_read(self, db: MagicMock) -> None:
        # Arrange
        db.fetchrow.return_value = {
            "id": "n-1",
            "user_id": "S",
            "type": "MATCH_CREATED",
            "message": "Новое предложение",
            "related_entity_id": "m-1",
            "is_read": False,
            "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        }

        # Act
        notification = await NotificationRepository(db).create("S", NotificationType.MATCH_CREATED, "Новое предложение", "m-1")

        # Assert
        assert notification.type == NotificationType.MATCH_CREATED
        assert notification.read is False

    @pytest.mark.asyncio
    async def test_count_unread(self, db: MagicMock) -> None:
        db.fetchval.return_value = 3

        assert await NotificationRepository(db).count_unread("S") == 3

    @pytest.mark.asyncio
    async def test_delete_missing(self, db: MagicMock) -> None:
        db.execute.return_value = "DELETE 0"

        assert await NotificationRepository(db).delete("n-1") is False


class TestMarketplaceRepository:
    """Тесты для MarketplaceRepository."""

    @pytest.mark.asyncio
    async def test_get_package(self, db: MagicMock) -> None:
        # Arrange
        db.fetchrow.return_value = {
            "id": "P1",
            "user_id": "S",
            "title": "Книги",
            "pickup_address": "Berlin",
            "delivery_address": "Hamburg",
            "status": "PENDING",
            "created_at": None,
        }

        # Act
        package = await MarketplaceRepository(db).get_package("P1")

        # Assert
        assert package.user_id == "S"

    @pytest.mark.asyncio
    async def test_get_ride_missing(self, db: MagicMock) -> None:
        assert await MarketplaceRepository(db).get_ride("R1") is None
