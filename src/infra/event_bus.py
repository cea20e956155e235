# src/infra/event_bus.py
"""
Шина событий на базе RabbitMQ.
Публикует доменные события матчей и платежей в topic exchange.
Публикация best-effort: ошибки логируются и не пробрасываются.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

import aio_pika
from aio_pika import ExchangeType, Message
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.shared.events.base import DomainEvent


class EventBus:
    """
    Издатель доменных событий.

    Реализует:
    - Подключение к RabbitMQ с автоматическим переподключением (connect_robust)
    - Публикацию событий с routing_key = event_type
    - Ленивое переподключение из publish, если при старте RabbitMQ был недоступен
    """

    # Не чаще одной попытки переподключения за интервал
    RECONNECT_INTERVAL: float = 30.0

    _instance: EventBus | None = None
    _connection: AbstractConnection | None = None
    _channel: AbstractChannel | None = None
    _exchange: AbstractExchange | None = None

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Инициализация (вызывается только один раз благодаря Singleton)."""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection = None
        self._channel = None
        self._exchange = None
        self._exchange_name = "parcel.events"
        self._url: str | None = None
        self._prefetch_count = 10
        self._last_reconnect_attempt: float | None = None

    @property
    def is_connected(self) -> bool:
        """Проверяет, активно ли соединение."""
        return self._connection is not None and not self._connection.is_closed

    async def connect(
        self,
        url: str | None = None,
        exchange_name: str | None = None,
        prefetch_count: int = 10,
    ) -> None:
        """
        Подключается к RabbitMQ и объявляет exchange.

        Args:
            url: URL RabbitMQ (если None, берётся из конфига)
            exchange_name: Имя exchange
            prefetch_count: Количество сообщений для prefetch
        """
        if self.is_connected:
            return

        if url is None:
            from src.config import settings
            url = settings.rabbitmq.url
            exchange_name = settings.rabbitmq.RABBITMQ_EXCHANGE
            prefetch_count = settings.rabbitmq.RABBITMQ_PREFETCH_COUNT

        if exchange_name:
            self._exchange_name = exchange_name
        self._url = url
        self._prefetch_count = prefetch_count

        await log_info("Подключение к RabbitMQ...", type_msg=TypeMsg.INFO)

        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=prefetch_count)

        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            ExchangeType.TOPIC,
            durable=True,
        )

        await log_info(f"Подключение к RabbitMQ установлено, exchange={self._exchange_name}", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с RabbitMQ."""
        self._url = None
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None
            self._exchange = None
            await log_info("Соединение с RabbitMQ закрыто", type_msg=TypeMsg.INFO)

    async def _try_reconnect(self) -> None:
        """Повторное подключение после неудачного старта, не чаще RECONNECT_INTERVAL."""
        if self._url is None:
            return

        now = time.monotonic()
        if (
            self._last_reconnect_attempt is not None
            and now - self._last_reconnect_attempt < self.RECONNECT_INTERVAL
        ):
            return
        self._last_reconnect_attempt = now

        try:
            await self.connect(self._url, self._exchange_name, self._prefetch_count)
        except Exception as e:
            await log_error(f"Переподключение к RabbitMQ не удалось: {e}")
            # Полуоткрытое соединение не переиспользуем
            self._connection = None
            self._channel = None
            self._exchange = None

    async def publish(self, event: DomainEvent) -> None:
        """
        Публикует событие в exchange.

        Args:
            event: Доменное событие (routing_key берётся из event_type)
        """
        if not self.is_connected or self._exchange is None:
            await self._try_reconnect()

        if not self.is_connected or self._exchange is None:
            await log_error(f"Не удалось опубликовать {event.event_type}: нет соединения с RabbitMQ")
            return

        try:
            message = Message(
                body=event.to_json().encode(),
                content_type="application/json",
                message_id=event.event_id,
                timestamp=datetime.now(timezone.utc),
            )

            await self._exchange.publish(message, routing_key=event.event_type)

            await log_info(
                f"Событие опубликовано: {event.event_type} ({event.event_id})",
                type_msg=TypeMsg.DEBUG,
            )
        except Exception as e:
            await log_error(f"Ошибка публикации события {event.event_type}: {e}")

    async def health_check(self) -> bool:
        """Проверяет здоровье подключения к RabbitMQ."""
        return self.is_connected


# Глобальный экземпляр
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Возвращает глобальный экземпляр EventBus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


async def init_event_bus() -> EventBus:
    """Подключается к RabbitMQ по настройкам из конфигурации."""
    from src.config import settings

    event_bus = get_event_bus()
    await event_bus.connect(
        url=settings.rabbitmq.url,
        exchange_name=settings.rabbitmq.RABBITMQ_EXCHANGE,
        prefetch_count=settings.rabbitmq.RABBITMQ_PREFETCH_COUNT,
    )
    await log_info(
        f"RabbitMQ подключён: {settings.rabbitmq.RABBITMQ_HOST}:{settings.rabbitmq.RABBITMQ_PORT}",
        type_msg=TypeMsg.INFO,
    )
    return event_bus


async def close_event_bus() -> None:
    """Закрывает подключение к RabbitMQ."""
    await get_event_bus().disconnect()
