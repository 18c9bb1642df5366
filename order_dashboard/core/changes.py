import itertools
import json
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

import aio_pika
from aio_pika import ExchangeType
from aio_pika.abc import AbstractIncomingMessage, AbstractRobustChannel, AbstractRobustConnection

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]
Unsubscribe = Callable[[], Awaitable[None]]

WATCHED_TABLES = ("orders", "order_items")


class ChangeEvent(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    ANY = "*"


class ChangeFeed(Protocol):
    """Row-change notifications per table; payloads are signals only."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def publish(self, table: str, event: ChangeEvent) -> None: ...

    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        event: ChangeEvent = ChangeEvent.ANY
    ) -> Unsubscribe: ...


def _fire(callback: ChangeCallback, table: str, event: ChangeEvent) -> None:
    try:
        callback()
    except Exception as e:
        logger.error(f"Change callback for {table}.{event.value} failed: {e}", exc_info=True)


class LocalChangeFeed:
    """In-process fan-out used when no broker is configured."""

    def __init__(self) -> None:
        self._subscribers: dict[int, tuple[str, ChangeEvent, ChangeCallback]] = {}
        self._ids = itertools.count(1)
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True
        logger.info("Local change feed ready")

    async def close(self) -> None:
        self._subscribers.clear()
        self._connected = False

    async def publish(self, table: str, event: ChangeEvent) -> None:
        for sub_table, sub_event, callback in list(self._subscribers.values()):
            if sub_table != table:
                continue
            if sub_event is ChangeEvent.ANY or sub_event is event:
                _fire(callback, table, event)

    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        event: ChangeEvent = ChangeEvent.ANY
    ) -> Unsubscribe:
        subscription_id = next(self._ids)
        self._subscribers[subscription_id] = (table, event, callback)
        logger.debug(f"Subscribed to {table}.{event.value} ({subscription_id})")

        async def unsubscribe() -> None:
            self._subscribers.pop(subscription_id, None)

        return unsubscribe


class RabbitChangeFeed:
    """Change feed over a RabbitMQ topic exchange, one routing key per table and event."""

    def __init__(self, url: str, exchange_name: str = "orders.changes") -> None:
        self.url = url
        self.exchange_name = exchange_name
        self.connection: Optional[AbstractRobustConnection] = None
        self.channel: Optional[AbstractRobustChannel] = None

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and not self.connection.is_closed

    async def connect(self) -> None:
        self.connection = await aio_pika.connect_robust(self.url)
        self.channel = await self.connection.channel()

        await self.channel.declare_exchange(
            self.exchange_name,
            ExchangeType.TOPIC,
            durable=True
        )

        logger.info("Connected change feed to RabbitMQ")

    async def close(self) -> None:
        if self.channel:
            await self.channel.close()
        if self.connection:
            await self.connection.close()
        logger.info("Disconnected change feed from RabbitMQ")

    async def publish(self, table: str, event: ChangeEvent) -> None:
        if not self.channel:
            raise RuntimeError("Channel is not initialized")

        exchange = await self.channel.get_exchange(self.exchange_name)
        body = json.dumps({"table": table, "event": event.value}).encode()
        await exchange.publish(
            aio_pika.Message(body=body, content_type="application/json"),
            routing_key=f"{table}.{event.value}"
        )
        logger.debug(f"Published change {table}.{event.value}")

    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        event: ChangeEvent = ChangeEvent.ANY
    ) -> Unsubscribe:
        if not self.channel:
            raise RuntimeError("Channel is not initialized")

        exchange = await self.channel.get_exchange(self.exchange_name)
        queue = await self.channel.declare_queue(exclusive=True, auto_delete=True)
        await queue.bind(exchange, routing_key=f"{table}.{event.value}")

        async def on_message(message: AbstractIncomingMessage) -> None:
            async with message.process():
                _fire(callback, table, event)

        consumer_tag = await queue.consume(on_message)
        logger.info(f"Subscribed to {table}.{event.value} on {self.exchange_name}")

        async def unsubscribe() -> None:
            await queue.cancel(consumer_tag)
            await queue.delete(if_unused=False, if_empty=False)

        return unsubscribe


def build_change_feed(url: str | None, exchange_name: str) -> ChangeFeed:
    if url:
        return RabbitChangeFeed(url, exchange_name)
    return LocalChangeFeed()
