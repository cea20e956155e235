# src/core/matches/repository.py
"""
Репозиторий матчей.

Все изменения статуса делаются compare-and-swap:
UPDATE ... WHERE id = $1 AND status = <ожидаемый>. Пустой результат
означает, что конкурентный запрос успел раньше.
"""

from __future__ import annotations

from typing import Any, Optional

import asyncpg
from asyncpg import Connection, Record

from src.common.constants import LIVE_MATCH_STATUSES, MatchStatus
from src.common.exceptions import ConflictError
from src.infra.database import DatabaseManager, affected_rows
from src.shared.models.match import MatchDTO

# Колонки матча + владельцы сторон
_MATCH_COLUMNS = """
    m.id, m.package_id, m.ride_id, m.status, m.price, m.proposed_by_user_id,
    m.created_at, m.updated_at,
    p.user_id AS package_owner_id,
    r.user_id AS ride_owner_id
"""


class MatchRepository:
    """Репозиторий матчей."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def create(
        self,
        package_id: str,
        ride_id: str,
        proposed_by_user_id: str,
        price: float | None = None,
        conn: Connection | None = None,
    ) -> MatchDTO:
        """
        Создаёт матч в статусе PROPOSED.

        Raises:
            ConflictError: Для пары уже есть живой матч (уникальный индекс)
        """
        try:
            row = await (conn or self._db).fetchrow(
                f"""
                WITH inserted AS (
                    INSERT INTO matches (package_id, ride_id, status, price, proposed_by_user_id)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING *
                )
                SELECT {_MATCH_COLUMNS}
                FROM inserted m
                JOIN packages p ON p.id = m.package_id
                JOIN rides r ON r.id = m.ride_id
                """,
                package_id,
                ride_id,
                MatchStatus.PROPOSED.value,
                price,
                proposed_by_user_id,
            )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                "Для этой посылки и поездки уже есть активный матч",
                details={"packageId": package_id, "rideId": ride_id},
            ) from e

        return self._row_to_match(row)

    async def find_live_for_pair(
        self,
        package_id: str,
        ride_id: str,
        conn: Connection | None = None,
    ) -> Optional[MatchDTO]:
        """Возвращает живой матч для пары (посылка, поездка), если он есть."""
        row = await (conn or self._db).fetchrow(
            f"""
            SELECT {_MATCH_COLUMNS}
            FROM matches m
            JOIN packages p ON p.id = m.package_id
            JOIN rides r ON r.id = m.ride_id
            WHERE m.package_id = $1 AND m.ride_id = $2 AND m.status = ANY($3::text[])
            LIMIT 1
            """,
            package_id,
            ride_id,
            [status.value for status in LIVE_MATCH_STATUSES],
        )
        return self._row_to_match(row) if row else None

    async def get_by_id(
        self,
        match_id: str,
        conn: Connection | None = None,
        for_update: bool = False,
    ) -> Optional[MatchDTO]:
        """
        Получает матч по ID вместе с владельцами посылки и поездки.

        Args:
            match_id: ID матча
            conn: Соединение текущей транзакции
            for_update: Заблокировать строку матча до конца транзакции
        """
        lock = "FOR UPDATE OF m" if for_update else ""
        row = await (conn or self._db).fetchrow(
            f"""
            SELECT {_MATCH_COLUMNS}
            FROM matches m
            JOIN packages p ON p.id = m.package_id
            JOIN rides r ON r.id = m.ride_id
            WHERE m.id = $1
            {lock}
            """,
            match_id,
        )
        return self._row_to_match(row) if row else None

    async def compare_and_update(
        self,
        match_id: str,
        expected_status: MatchStatus,
        *,
        new_status: MatchStatus | None = None,
        price: float | None = None,
        conn: Connection | None = None,
    ) -> Optional[MatchDTO]:
        """
        Меняет статус и/или цену, только если матч всё ещё в expected_status.

        Returns:
            Обновлённый матч или None, если статус уже изменился
        """
        updates = ["updated_at = NOW()"]
        values: list[Any] = [match_id, expected_status.value]
        idx = 3

        if new_status is not None:
            updates.append(f"status = ${idx}")
            values.append(new_status.value)
            idx += 1

        if price is not None:
            updates.append(f"price = ${idx}")
            values.append(price)
            idx += 1

        row = await (conn or self._db).fetchrow(
            f"""
            WITH updated AS (
                UPDATE matches
                SET {", ".join(updates)}
                WHERE id = $1 AND status = $2
                RETURNING *
            )
            SELECT {_MATCH_COLUMNS}
            FROM updated m
            JOIN packages p ON p.id = m.package_id
            JOIN rides r ON r.id = m.ride_id
            """,
            *values,
        )

        return self._row_to_match(row) if row else None

    async def delete_if_status(
        self,
        match_id: str,
        expected_status: MatchStatus,
        conn: Connection | None = None,
    ) -> bool:
        """Удаляет матч, только если он всё ещё в expected_status."""
        result = await (conn or self._db).execute(
            "DELETE FROM matches WHERE id = $1 AND status = $2",
            match_id,
            expected_status.value,
        )
        return affected_rows(result) == 1

    async def list_for_user(
        self,
        user_id: str,
        statuses: list[MatchStatus] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[MatchDTO]:
        """
        Матчи, где пользователь владеет посылкой или поездкой.
        Сначала новые.
        """
        rows = await self._db.fetch(
            f"""
            SELECT {_MATCH_COLUMNS}
            FROM matches m
            JOIN packages p ON p.id = m.package_id
            JOIN rides r ON r.id = m.ride_id
            WHERE (p.user_id = $1 OR r.user_id = $1)
              AND ($2::text[] IS NULL OR m.status = ANY($2::text[]))
            ORDER BY m.created_at DESC, m.id DESC
            LIMIT $3 OFFSET $4
            """,
            user_id,
            [status.value for status in statuses] if statuses else None,
            limit,
            offset,
        )
        return [self._row_to_match(row) for row in rows]

    @staticmethod
    def _row_to_match(row: Record) -> MatchDTO:
        """Преобразует строку БД в DTO."""
        price = row["price"]
        return MatchDTO(
            id=row["id"],
            package_id=row["package_id"],
            ride_id=row["ride_id"],
            status=MatchStatus(row["status"]),
            price=float(price) if price is not None else None,
            proposed_by_user_id=row["proposed_by_user_id"],
            package_owner_id=row["package_owner_id"],
            ride_owner_id=row["ride_owner_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
