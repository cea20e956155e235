# src/core/payments/service.py
"""
Жизненный цикл платежа.

Платёж создаётся только для подтверждённого матча, один на матч.
Переходы: PENDING → COMPLETED | FAILED, COMPLETED → REFUNDED.
Сумма хранится в основных единицах валюты; перевод в центы для
процессинга делает интеграция с процессингом, не ядро.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Optional

from src.common.constants import (
    MAX_MONEY_AMOUNT,
    MatchStatus,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
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
from src.core.authorization import counterparties, is_match_participant, is_payment_participant
from src.core.matches.repository import MatchRepository
from src.core.payments.repository import PaymentRepository
from src.shared.events.payment_events import PaymentCreated, PaymentStatusChanged
from src.shared.models.match import MatchDTO
from src.shared.models.payment import PaymentDTO

if TYPE_CHECKING:
    from src.core.notifications.service import NotificationService
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus


class PaymentStateMachine:
    """State machine для переходов между статусами платежа."""

    VALID_TRANSITIONS: dict[PaymentStatus, list[PaymentStatus]] = {
        PaymentStatus.PENDING: [PaymentStatus.COMPLETED, PaymentStatus.FAILED],
        PaymentStatus.COMPLETED: [PaymentStatus.REFUNDED],
        PaymentStatus.FAILED: [],
        PaymentStatus.REFUNDED: [],
    }

    @classmethod
    def can_transition(cls, from_status: PaymentStatus, to_status: PaymentStatus) -> bool:
        """Проверяет, допустим ли переход."""
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def validate_transition(cls, from_status: PaymentStatus, to_status: PaymentStatus) -> None:
        """Проверяет переход и выбрасывает исключение при ошибке."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                f"Недопустимый переход платежа: {from_status.value} → {to_status.value}",
                details={"from": from_status.value, "to": to_status.value},
            )


_STATUS_NOTIFICATIONS: dict[PaymentStatus, tuple[NotificationType, str]] = {
    PaymentStatus.COMPLETED: (NotificationType.PAYMENT_SUCCESS, "Оплата перевозки прошла успешно"),
    PaymentStatus.FAILED: (NotificationType.PAYMENT_FAILED, "Оплата перевозки не прошла"),
    PaymentStatus.REFUNDED: (NotificationType.PAYMENT_REFUNDED, "Оплата перевозки возвращена"),
}


class PaymentService:
    """
    Сервис управления платежами.

    Ответственности:
    - Создание платежа по подтверждённому матчу
    - Смена статуса участником или callback процессинга
    - Список платежей пользователя
    """

    def __init__(
        self,
        db: "DatabaseManager",
        event_bus: "EventBus",
        notifications: "NotificationService",
        default_currency: str = "EUR",
        default_method: PaymentMethod = PaymentMethod.CARD,
        supported_currencies: list[str] | None = None,
    ) -> None:
        self._db = db
        self._event_bus = event_bus
        self._notifications = notifications
        self._payments = PaymentRepository(db)
        self._matches = MatchRepository(db)

        self.default_currency = default_currency
        self.default_method = default_method
        self.supported_currencies = [c.upper() for c in supported_currencies] if supported_currencies else None

    # === СОЗДАНИЕ ПЛАТЕЖА ===

    async def create(
        self,
        actor_id: str,
        match_id: str | None,
        amount: float | None,
        currency: str | None = None,
        payment_method: PaymentMethod | None = None,
    ) -> PaymentDTO:
        """
        Создать платёж по матчу.

        1. Блокирует строку матча (FOR UPDATE)
        2. Проверяет участника, отсутствие платежа и статус CONFIRMED
        3. Сохраняет платёж в PENDING
        4. После коммита уведомляет вторую сторону и публикует PaymentCreated
        """
        if not match_id:
            raise ValidationError("matchId обязателен")
        if amount is None:
            raise ValidationError("Сумма обязательна")
        if not math.isfinite(amount):
            raise ValidationError("Сумма должна быть конечным числом", details={"amount": str(amount)})
        if amount <= 0:
            raise ValidationError("Сумма должна быть больше нуля", details={"amount": amount})
        if amount > MAX_MONEY_AMOUNT:
            raise ValidationError(
                "Сумма слишком большая",
                details={"amount": amount, "max": MAX_MONEY_AMOUNT},
            )

        currency = (currency or self.default_currency).upper()
        if self.supported_currencies is not None and currency not in self.supported_currencies:
            raise ValidationError(f"Валюта {currency} не поддерживается", details={"currency": currency})
        payment_method = payment_method or self.default_method

        async with self._db.transaction() as conn:
            match = await self._matches.get_by_id(match_id, conn, for_update=True)
            if match is None:
                raise NotFoundError("Матч не найден", details={"matchId": match_id})

            if not is_match_participant(actor_id, match):
                raise ForbiddenError("Создать платёж могут только участники матча")

            existing = await self._payments.get_by_match(match_id, conn)
            if existing is not None:
                raise ConflictError("Для этого матча платёж уже создан", details={"paymentId": existing.id})

            if match.status != MatchStatus.CONFIRMED:
                raise InvalidStateError(
                    "Платёж возможен только для подтверждённого матча",
                    details={"status": match.status.value},
                )

            payment = await self._payments.create(
                user_id=actor_id,
                match_id=match_id,
                amount=amount,
                currency=currency,
                payment_method=payment_method,
                conn=conn,
            )

        await log_info(
            f"Платёж {payment.id} создан: match={match_id}, {amount} {currency} ({actor_id})",
            type_msg=TypeMsg.INFO,
        )

        await self._notifications.notify_many(
            counterparties(match, actor_id),
            NotificationType.PAYMENT_INITIATED,
            f"Инициирована оплата перевозки: {amount:.2f} {currency}",
            payment.id,
        )
        await self._event_bus.publish(PaymentCreated(
            payment_id=payment.id,
            match_id=payment.match_id,
            user_id=payment.user_id,
            amount=payment.amount,
            currency=payment.currency,
            payment_method=payment.payment_method.value,
        ))
        return payment

    # === СМЕНА СТАТУСА ===

    async def update_status(
        self,
        actor_id: str,
        payment_id: str | None,
        new_status: PaymentStatus | None,
        transaction_id: str | None = None,
        payment_intent_id: str | None = None,
    ) -> PaymentDTO:
        """
        Смена статуса платежа создателем платежа или участником матча.

        Raises:
            ValidationError, NotFoundError, ForbiddenError,
            InvalidTransitionError, ConflictError
        """
        if not payment_id:
            raise ValidationError("id платежа обязателен")
        if new_status is None:
            raise ValidationError("status обязателен")

        async with self._db.transaction() as conn:
            payment, match = await self._load_for_update(payment_id, conn)

            if not is_payment_participant(actor_id, payment, match):
                raise ForbiddenError("Менять платёж могут только его создатель и участники матча")

            PaymentStateMachine.validate_transition(payment.status, new_status)
            updated = await self._compare_and_set(payment, new_status, transaction_id, payment_intent_id, conn)

        await self._after_status_change(payment.status, updated, match, actor_id)
        return updated

    async def apply_processor_result(
        self,
        payment_id: str,
        new_status: PaymentStatus,
        transaction_id: str | None = None,
        payment_intent_id: str | None = None,
    ) -> PaymentDTO:
        """
        Результат от платёжного процессинга (без пользователя-инициатора).

        Повторный callback с тем же статусом и теми же ссылками
        возвращает платёж без изменений.
        """
        async with self._db.transaction() as conn:
            payment, match = await self._load_for_update(payment_id, conn)

            if payment.status == new_status and self._same_refs(payment, transaction_id, payment_intent_id):
                await log_info(
                    f"Повторный callback для платежа {payment_id} ({new_status.value}), пропуск",
                    type_msg=TypeMsg.DEBUG,
                )
                return payment

            PaymentStateMachine.validate_transition(payment.status, new_status)
            updated = await self._compare_and_set(payment, new_status, transaction_id, payment_intent_id, conn)

        await self._after_status_change(payment.status, updated, match, None)
        return updated

    # === СПИСОК ===

    async def list_for_user(
        self,
        user_id: str,
        status: PaymentStatus | None = None,
        match_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PaymentDTO]:
        """Платежи пользователя, сначала новые."""
        return await self._payments.list_for_user(user_id, status, match_id, limit=limit, offset=offset)

    # === ВНУТРЕННИЕ ===

    async def _load_for_update(self, payment_id: str, conn) -> tuple[PaymentDTO, MatchDTO]:
        payment = await self._payments.get_by_id(payment_id, conn, for_update=True)
        if payment is None:
            raise NotFoundError("Платёж не найден", details={"id": payment_id})

        match = await self._matches.get_by_id(payment.match_id, conn)
        if match is None:
            raise NotFoundError("Матч платежа не найден", details={"matchId": payment.match_id})
        return payment, match

    async def _compare_and_set(
        self,
        payment: PaymentDTO,
        new_status: PaymentStatus,
        transaction_id: str | None,
        payment_intent_id: str | None,
        conn,
    ) -> PaymentDTO:
        updated = await self._payments.compare_and_set_status(
            payment.id,
            payment.status,
            new_status,
            transaction_id=transaction_id,
            payment_intent_id=payment_intent_id,
            conn=conn,
        )
        if updated is None:
            raise ConflictError(
                "Платёж был изменён другим запросом, обновите данные",
                details={"expectedStatus": payment.status.value},
            )
        return updated

    @staticmethod
    def _same_refs(payment: PaymentDTO, transaction_id: str | None, payment_intent_id: str | None) -> bool:
        """Непереданная ссылка совпадает с любой сохранённой."""
        return (
            (transaction_id is None or transaction_id == payment.transaction_id)
            and (payment_intent_id is None or payment_intent_id == payment.payment_intent_id)
        )

    async def _after_status_change(
        self,
        old_status: PaymentStatus,
        payment: PaymentDTO,
        match: MatchDTO,
        actor_id: Optional[str],
    ) -> None:
        """Лог, уведомления участникам (кроме инициатора) и событие."""
        await log_info(
            f"Платёж {payment.id}: {old_status.value} → {payment.status.value} ({actor_id or 'processor'})",
            type_msg=TypeMsg.INFO,
        )

        notification = _STATUS_NOTIFICATIONS.get(payment.status)
        if notification is not None:
            notification_type, message = notification
            await self._notifications.notify_many(
                counterparties(match, actor_id),
                notification_type,
                message,
                payment.id,
            )

        await self._event_bus.publish(PaymentStatusChanged(
            payment_id=payment.id,
            match_id=payment.match_id,
            old_status=old_status.value,
            new_status=payment.status.value,
            changed_by_user_id=actor_id,
            transaction_id=payment.transaction_id,
            payment_intent_id=payment.payment_intent_id,
        ))
