# src/core/matches/service.py
"""
Жизненный цикл матча: предложение, переходы статусов, отзыв, список.

Каждая изменяющая операция выполняется в одной транзакции
(чтение → проверка → compare-and-swap запись). Уведомления и события
отправляются после коммита.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Optional

from src.common.constants import (
    DELETABLE_MATCH_STATUSES,
    MAX_MONEY_AMOUNT,
    MatchStatus,
    NotificationType,
    TypeMsg,
)
from src.common.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from src.common.logger import log_info
from src.core.authorization import counterparties, is_match_participant, is_package_owner, is_ride_owner
from src.core.marketplace.repository import MarketplaceRepository
from src.core.matches.repository import MatchRepository
from src.shared.events.match_events import MatchProposed, MatchStatusChanged, MatchWithdrawn
from src.shared.models.match import MatchDTO

if TYPE_CHECKING:
    from src.core.notifications.service import NotificationService
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus


class MatchStateMachine:
    """
    State machine для переходов между статусами матча.

    Допустимые переходы:
    - PROPOSED → ACCEPTED_BY_SENDER | ACCEPTED_BY_CARRIER | REJECTED
    - ACCEPTED_BY_SENDER | ACCEPTED_BY_CARRIER → CONFIRMED | CANCELLED
    - CONFIRMED → CANCELLED
    - REJECTED, CANCELLED: терминальные
    """

    VALID_TRANSITIONS: dict[MatchStatus, list[MatchStatus]] = {
        MatchStatus.PROPOSED: [
            MatchStatus.ACCEPTED_BY_SENDER,
            MatchStatus.ACCEPTED_BY_CARRIER,
            MatchStatus.REJECTED,
        ],
        MatchStatus.ACCEPTED_BY_SENDER: [MatchStatus.CONFIRMED, MatchStatus.CANCELLED],
        MatchStatus.ACCEPTED_BY_CARRIER: [MatchStatus.CONFIRMED, MatchStatus.CANCELLED],
        MatchStatus.CONFIRMED: [MatchStatus.CANCELLED],
        MatchStatus.REJECTED: [],
        MatchStatus.CANCELLED: [],
    }

    @classmethod
    def can_transition(cls, from_status: MatchStatus, to_status: MatchStatus) -> bool:
        """Проверяет, допустим ли переход."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: MatchStatus, to_status: MatchStatus) -> None:
        """Проверяет переход и выбрасывает исключение при ошибке."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                f"Недопустимый переход: {from_status.value} → {to_status.value}",
                details={"from": from_status.value, "to": to_status.value},
            )


# Тип уведомления и текст для второй стороны при смене статуса
_TRANSITION_NOTIFICATIONS: dict[MatchStatus, tuple[NotificationType, str]] = {
    MatchStatus.ACCEPTED_BY_SENDER: (NotificationType.MATCH_ACCEPTED, "Отправитель принял предложение перевозки"),
    MatchStatus.ACCEPTED_BY_CARRIER: (NotificationType.MATCH_ACCEPTED, "Перевозчик принял предложение перевозки"),
    MatchStatus.CONFIRMED: (NotificationType.MATCH_CONFIRMED, "Перевозка подтверждена"),
    MatchStatus.REJECTED: (NotificationType.MATCH_REJECTED, "Предложение перевозки отклонено"),
    MatchStatus.CANCELLED: (NotificationType.MATCH_CANCELLED, "Перевозка отменена"),
}


def _validate_price(price: float | None) -> None:
    """Цена: пусто или конечное число в пределах NUMERIC(12, 2)."""
    if price is None:
        return
    if not math.isfinite(price):
        raise ValidationError("Цена должна быть конечным числом", details={"price": str(price)})
    if price < 0:
        raise ValidationError("Цена не может быть отрицательной", details={"price": price})
    if price > MAX_MONEY_AMOUNT:
        raise ValidationError(
            "Цена слишком большая",
            details={"price": price, "max": MAX_MONEY_AMOUNT},
        )


def parse_status_filter(raw: str | None) -> Optional[list[MatchStatus]]:
    """
    Разбирает фильтр статусов из query-строки.

    "" / None / "all" → без фильтра; "PROPOSED,CONFIRMED" → два статуса.

    Raises:
        ValidationError: Неизвестный статус
    """
    if raw is None:
        return None
    tokens = [token.strip().upper() for token in raw.split(",") if token.strip()]
    if not tokens or "ALL" in tokens:
        return None

    statuses: list[MatchStatus] = []
    for token in tokens:
        try:
            status = MatchStatus(token)
        except ValueError:
            raise ValidationError(f"Неизвестный статус матча: {token}", details={"status": token})
        if status not in statuses:
            statuses.append(status)
    return statuses


class MatchService:
    """
    Сервис жизненного цикла матчей.

    Ответственности:
    - Предложение матча с проверкой одного живого матча на пару
    - Переходы статусов по таблице MatchStateMachine
    - Изменение цены, пока матч в PROPOSED
    - Отзыв (удаление) PROPOSED/REJECTED матча
    """

    def __init__(
        self,
        db: "DatabaseManager",
        event_bus: "EventBus",
        notifications: "NotificationService",
    ) -> None:
        self._db = db
        self._event_bus = event_bus
        self._notifications = notifications
        self._matches = MatchRepository(db)
        self._marketplace = MarketplaceRepository(db)

    # === ПРЕДЛОЖЕНИЕ ===

    async def propose(
        self,
        actor_id: str,
        package_id: str | None,
        ride_id: str | None,
        price: float | None = None,
        proposed_by_user_id: str | None = None,
    ) -> MatchDTO:
        """
        Предлагает перевозку посылки поездкой.

        Raises:
            ValidationError: Нет packageId/rideId или цена некорректна
            NotFoundError: Посылка или поездка не найдены
            ForbiddenError: Пользователь или proposedByUserId не владеет посылкой или поездкой
            ConflictError: Для пары уже есть живой матч
        """
        if not package_id or not ride_id:
            raise ValidationError("packageId и rideId обязательны")
        _validate_price(price)

        async with self._db.transaction() as conn:
            package = await self._marketplace.get_package(package_id, conn)
            if package is None:
                raise NotFoundError("Посылка не найдена", details={"packageId": package_id})

            ride = await self._marketplace.get_ride(ride_id, conn)
            if ride is None:
                raise NotFoundError("Поездка не найдена", details={"rideId": ride_id})

            if not (is_package_owner(actor_id, package.user_id) or is_ride_owner(actor_id, ride.user_id)):
                raise ForbiddenError("Предложить матч могут только владельцы посылки и поездки")

            proposer_id = proposed_by_user_id or actor_id
            if not (is_package_owner(proposer_id, package.user_id) or is_ride_owner(proposer_id, ride.user_id)):
                raise ForbiddenError("proposedByUserId должен быть участником матча")

            existing = await self._matches.find_live_for_pair(package_id, ride_id, conn)
            if existing is not None:
                raise ConflictError(
                    "Для этой посылки и поездки уже есть активный матч",
                    details={"matchId": existing.id},
                )

            match = await self._matches.create(
                package_id=package_id,
                ride_id=ride_id,
                proposed_by_user_id=proposer_id,
                price=price,
                conn=conn,
            )

        await log_info(
            f"Матч {match.id} предложен: package={package_id}, ride={ride_id}, by={proposer_id}",
            type_msg=TypeMsg.INFO,
        )

        await self._notifications.notify_many(
            counterparties(match, proposer_id),
            NotificationType.MATCH_CREATED,
            "Новое предложение перевозки",
            match.id,
        )
        await self._event_bus.publish(MatchProposed(
            match_id=match.id,
            package_id=match.package_id,
            ride_id=match.ride_id,
            proposed_by_user_id=match.proposed_by_user_id,
            price=match.price,
        ))
        return match

    # === ИЗМЕНЕНИЕ ===

    async def transition(self, actor_id: str, match_id: str, new_status: MatchStatus) -> MatchDTO:
        """Переводит матч в новый статус."""
        return await self.update_match(actor_id, match_id, new_status=new_status)

    async def update_match(
        self,
        actor_id: str,
        match_id: str | None,
        new_status: MatchStatus | None = None,
        price: float | None = None,
    ) -> MatchDTO:
        """
        Меняет статус и/или цену матча.

        Raises:
            ValidationError: Нет id, нет ни статуса ни цены, цена некорректна
            NotFoundError: Матч не найден
            ForbiddenError: Пользователь не владеет посылкой или поездкой
            InvalidStateError: Цена меняется не в PROPOSED
            InvalidTransitionError: Переход не из таблицы
            ConflictError: Матч изменён конкурентным запросом
        """
        if not match_id:
            raise ValidationError("id матча обязателен")
        if new_status is None and price is None:
            raise ValidationError("Нужно указать status или price")
        _validate_price(price)

        async with self._db.transaction() as conn:
            match = await self._matches.get_by_id(match_id, conn)
            if match is None:
                raise NotFoundError("Матч не найден", details={"id": match_id})

            if not is_match_participant(actor_id, match):
                raise ForbiddenError("Изменять матч могут только владельцы посылки и поездки")

            if price is not None and match.status != MatchStatus.PROPOSED:
                raise InvalidStateError(
                    "Цену можно менять только у предложенного матча",
                    details={"status": match.status.value},
                )

            if new_status is not None:
                MatchStateMachine.validate_transition(match.status, new_status)

            updated = await self._matches.compare_and_update(
                match.id,
                match.status,
                new_status=new_status,
                price=price,
                conn=conn,
            )
            if updated is None:
                raise ConflictError(
                    "Матч был изменён другим запросом, обновите данные",
                    details={"expectedStatus": match.status.value},
                )

        if new_status is None:
            await log_info(f"Матч {match.id}: цена изменена на {price} ({actor_id})", type_msg=TypeMsg.INFO)
            return updated

        await log_info(
            f"Матч {match.id}: {match.status.value} → {new_status.value} ({actor_id})",
            type_msg=TypeMsg.INFO,
        )

        notification_type, message = _TRANSITION_NOTIFICATIONS[new_status]
        await self._notifications.notify_many(
            counterparties(updated, actor_id),
            notification_type,
            message,
            updated.id,
        )
        await self._event_bus.publish(MatchStatusChanged(
            match_id=updated.id,
            old_status=match.status.value,
            new_status=new_status.value,
            changed_by_user_id=actor_id,
        ))
        return updated

    # === ОТЗЫВ ===

    async def delete(self, actor_id: str, match_id: str | None) -> None:
        """
        Удаляет матч в статусе PROPOSED или REJECTED.

        Raises:
            NotFoundError, ForbiddenError, InvalidStateError, ConflictError
        """
        if not match_id:
            raise ValidationError("id матча обязателен")

        async with self._db.transaction() as conn:
            match = await self._matches.get_by_id(match_id, conn)
            if match is None:
                raise NotFoundError("Матч не найден", details={"id": match_id})

            if not is_match_participant(actor_id, match):
                raise ForbiddenError("Удалять матч могут только владельцы посылки и поездки")

            if match.status not in DELETABLE_MATCH_STATUSES:
                raise InvalidStateError(
                    "Удалить можно только предложенный или отклонённый матч",
                    details={"status": match.status.value},
                )

            deleted = await self._matches.delete_if_status(match.id, match.status, conn)
            if not deleted:
                raise ConflictError("Матч был изменён другим запросом, обновите данные")

        await log_info(f"Матч {match.id} удалён ({match.status.value}, {actor_id})", type_msg=TypeMsg.INFO)

        await self._event_bus.publish(MatchWithdrawn(
            match_id=match.id,
            status=match.status.value,
            withdrawn_by_user_id=actor_id,
        ))

    # === СПИСОК ===

    async def list_for_user(
        self,
        user_id: str,
        statuses: list[MatchStatus] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[MatchDTO]:
        """Матчи пользователя, сначала новые."""
        return await self._matches.list_for_user(user_id, statuses, limit=limit, offset=offset)
