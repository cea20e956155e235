# src/core/marketplace/repository.py
"""
Репозиторий посылок и поездок.
CRUD посылок и поездок живёт вне ядра, здесь только чтение владельцев.
"""

from __future__ import annotations

from typing import Optional

from asyncpg import Connection, Record

from src.infra.database import DatabaseManager
from src.shared.models.marketplace import PackageDTO, RideDTO


class MarketplaceRepository:
    """Чтение посылок и поездок."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_package(self, package_id: str, conn: Connection | None = None) -> Optional[PackageDTO]:
        """Получает посылку по ID."""
        row = await (conn or self._db).fetchrow(
            """
            SELECT id, user_id, title, pickup_address, delivery_address, status, created_at
            FROM packages
            WHERE id = $1
            """,
            package_id,
        )
        return self._row_to_package(row) if row else None

    async def get_ride(self, ride_id: str, conn: Connection | None = None) -> Optional[RideDTO]:
        """Получает поездку по ID."""
        row = await (conn or self._db).fetchrow(
            """
            SELECT id, user_id, origin, destination, departure_time, status, created_at
            FROM rides
            WHERE id = $1
            """,
            ride_id,
        )
        return self._row_to_ride(row) if row else None

    @staticmethod
    def _row_to_package(row: Record) -> PackageDTO:
        return PackageDTO(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            pickup_address=row["pickup_address"],
            delivery_address=row["delivery_address"],
            status=row["status"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_ride(row: Record) -> RideDTO:
        return RideDTO(
            id=row["id"],
            user_id=row["user_id"],
            origin=row["origin"],
            destination=row["destination"],
            departure_time=row["departure_time"],
            status=row["status"],
            created_at=row["created_at"],
        )
