# src/core/payments/repository.py
"""
Репозиторий платежей.
Один платёж на матч гарантирует ограничение uq_payments_match.
"""

from __future__ import annotations

from typing import Optional

import asyncpg
from asyncpg import Connection, Record

from src.common.constants import PaymentMethod, PaymentStatus
from src.common.exceptions import ConflictError
from src.infra.database import DatabaseManager
from src.shared.models.payment import PaymentDTO

_PAYMENT_COLUMNS = """
    pay.id, pay.user_id, pay.match_id, pay.amount, pay.currency, pay.payment_method,
    pay.status, pay.transaction_id, pay.payment_intent_id, pay.created_at, pay.updated_at
"""


class PaymentRepository:
    """Репозиторий платежей."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(
        self,
        user_id: str,
        match_id: str,
        amount: float,
        currency: str,
        payment_method: PaymentMethod,
        conn: Connection | None = None,
    ) -> PaymentDTO:
        """
        Создаёт платёж в статусе PENDING.

        Raises:
            ConflictError: Для матча уже есть платёж
        """
        try:
            row = await (conn or self._db).fetchrow(
                f"""
                INSERT INTO payments AS pay (user_id, match_id, amount, currency, payment_method, status)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {_PAYMENT_COLUMNS}
                """,
                user_id,
                match_id,
                amount,
                currency,
                payment_method.value,
                PaymentStatus.PENDING.value,
            )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError("Для этого матча платёж уже создан", details={"matchId": match_id}) from e

        return self._row_to_payment(row)

    async def get_by_id(
        self,
        payment_id: str,
        conn: Connection | None = None,
        for_update: bool = False,
    ) -> Optional[PaymentDTO]:
        """Получает платёж по ID (опционально с блокировкой строки)."""
        lock = "FOR UPDATE" if for_update else ""
        row = await (conn or self._db).fetchrow(
            f"SELECT {_PAYMENT_COLUMNS} FROM payments pay WHERE pay.id = $1 {lock}",
            payment_id,
        )
        return self._row_to_payment(row) if row else None

    async def get_by_match(self, match_id: str, conn: Connection | None = None) -> Optional[PaymentDTO]:
        """Получает платёж матча."""
        row = await (conn or self._db).fetchrow(
            f"SELECT {_PAYMENT_COLUMNS} FROM payments pay WHERE pay.match_id = $1",
            match_id,
        )
        return self._row_to_payment(row) if row else None

    async def compare_and_set_status(
        self,
        payment_id: str,
        expected_status: PaymentStatus,
        new_status: PaymentStatus,
        transaction_id: str | None = None,
        payment_intent_id: str | None = None,
        conn: Connection | None = None,
    ) -> Optional[PaymentDTO]:
        """
        Меняет статус, только если платёж всё ещё в expected_status.
        Внешние ссылки перезаписываются, только если переданы.
        """
        row = await (conn or self._db).fetchrow(
            f"""
            UPDATE payments AS pay
            SET status = $3,
                transaction_id = COALESCE($4, pay.transaction_id),
                payment_intent_id = COALESCE($5, pay.payment_intent_id),
                updated_at = NOW()
            WHERE pay.id = $1 AND pay.status = $2
            RETURNING {_PAYMENT_COLUMNS}
            """,
            payment_id,
            expected_status.value,
            new_status.value,
            transaction_id,
            payment_intent_id,
        )
        return self._row_to_payment(row) if row else None

    async def list_for_user(
        self,
        user_id: str,
        status: PaymentStatus | None = None,
        match_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PaymentDTO]:
        """
        Платежи, где пользователь создатель платежа или участник матча.
        Сначала новые.
        """
        rows = await self._db.fetch(
            f"""
            SELECT {_PAYMENT_COLUMNS}
            FROM payments pay
            JOIN matches m ON m.id = pay.match_id
            JOIN packages p ON p.id = m.package_id
            JOIN rides r ON r.id = m.ride_id
            WHERE (pay.user_id = $1 OR p.user_id = $1 OR r.user_id = $1)
              AND ($2::text IS NULL OR pay.status = $2)
              AND ($3::text IS NULL OR pay.match_id = $3)
            ORDER BY pay.created_at DESC, pay.id DESC
            LIMIT $4 OFFSET $5
            """,
            user_id,
            status.value if status else None,
            match_id,
            limit,
            offset,
        )
        return [self._row_to_payment(row) for row in rows]

    @staticmethod
    def _row_to_payment(row: Record) -> PaymentDTO:
        """Преобразует строку БД в DTO."""
        return PaymentDTO(
            id=row["id"],
            user_id=row["user_id"],
            match_id=row["match_id"],
            amount=float(row["amount"]),
            currency=row["currency"],
            payment_method=PaymentMethod(row["payment_method"]),
            status=PaymentStatus(row["status"]),
            transaction_id=row["transaction_id"],
            payment_intent_id=row["payment_intent_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
