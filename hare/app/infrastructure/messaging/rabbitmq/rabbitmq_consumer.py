"""
RabbitMQ consumer: connection lifecycle, queue lookup and the delivery stream.

Lifecycle:
  DISCONNECTED -> CONNECTING (backoff) -> CONNECTED -> CHANNEL_OPEN ->
  QUEUE_BOUND -> CONSUMING.
  On shutdown: any state -> CLOSING -> close channel/connection -> CLOSED.

Broker failures are not recovered here. The connection is a plain (non-robust)
aio_pika connection, so a dropped connection or channel ends the delivery
stream; ``messages()`` turns that into an exception unless ``close()`` was
requested, and the dispatcher exits.
"""
from __future__ import annotations

from typing import Any, AsyncIterator
from urllib.parse import urlsplit, urlunsplit

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractQueue
from loguru import logger

from hare.app.config.settings import Settings
from hare.app.core import SERVICE_NAME
from hare.app.core.backoff import exponential_backoff
from hare.app.infrastructure.messaging.rabbitmq.aio_pika_message_adapter import AioPikaMessageAdapter
from hare.app.infrastructure.messaging.rabbitmq.constants import ConsumerState
from hare.app.ports.incoming_message import IncomingMessage
from hare.app.ports.message_consumer import MessageStreamClosedError


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def redact_url(url: str) -> str:
    """Hide the password part of an AMQP URL for logging."""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    netloc = f"{parts.username or ''}:***@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class RabbitMQConsumer:
    """MessageConsumer implementation"""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._state = ConsumerState.DISCONNECTED
        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._queue: AbstractQueue | None = None
        self._closing = False

    @property
    def state(self) -> ConsumerState:
        return self._state

    def _set_state(self, state: ConsumerState) -> None:
        self._state = state

    def _register_close_callback(self, connection: AbstractConnection) -> None:
        callbacks = getattr(connection, "close_callbacks", None)
        if callbacks is not None:
            callbacks.add(self._on_connection_closed)

    def _on_connection_closed(self, *args: Any, **kwargs: Any) -> None:
        if self._closing:
            return
        self._set_state(ConsumerState.DISCONNECTED)
        reason = args[1] if len(args) > 1 else None
        _log("broker_disconnect_detected", reason=str(reason) if reason else None)

    async def _open_channel_and_bind(self) -> None:
        if not self._connection:
            return
        self._channel = await self._connection.channel()
        self._set_state(ConsumerState.CHANNEL_OPEN)
        await self._channel.set_qos(prefetch_count=self._settings.prefetch_count)
        # passive lookup: the queue is owned by whoever publishes to it
        self._queue = await self._channel.get_queue(self._settings.queue_name, ensure=True)
        self._set_state(ConsumerState.QUEUE_BOUND)
        _log("rmq_queue_bound", queue=self._settings.queue_name)

    async def _close_channel_and_connection(self) -> None:
        self._queue = None
        if self._channel:
            try:
                await self._channel.close()
            except Exception as e:
                logger.warning("channel close failed (continuing to close connection): {}", e)
            self._channel = None
        if self._connection:
            try:
                await self._connection.close()
            except Exception as e:
                logger.warning("connection close failed: {}", e)
            self._connection = None

    async def connect(self) -> None:
        self._set_state(ConsumerState.CONNECTING)
        url = self._settings.amqp_url
        _log("rmq_connecting", url=redact_url(url))
        attempt = 0
        async for delay in exponential_backoff(
            self._settings.initial_backoff_seconds,
            self._settings.max_backoff_seconds,
            self._settings.backoff_multiplier,
            self._settings.max_connection_attempts,
        ):
            attempt += 1
            _log("rmq_connect_attempt", attempt=attempt, delay=delay)
            try:
                self._connection = await aio_pika.connect(url)
                self._register_close_callback(self._connection)
                break
            except Exception as e:
                logger.warning("rmq connect failed: {}", e)
                if attempt >= self._settings.max_connection_attempts:
                    _log("rmq_connect_failed", attempt=attempt)
                    self._set_state(ConsumerState.DISCONNECTED)
                    raise
        self._set_state(ConsumerState.CONNECTED)
        _log("rmq_connected")
        await self._open_channel_and_bind()

    async def messages(self) -> AsyncIterator[IncomingMessage]:
        if self._queue is None:
            raise RuntimeError("consumer not connected")
        self._set_state(ConsumerState.CONSUMING)
        _log("rmq_consuming", queue=self._settings.queue_name, consumer_tag=self._settings.consumer_tag)
        async with self._queue.iterator(consumer_tag=self._settings.consumer_tag) as deliveries:
            async for raw_message in deliveries:
                yield AioPikaMessageAdapter(raw_message)
        if not self._closing:
            raise MessageStreamClosedError("broker stopped delivering messages")

    async def close(self) -> None:
        self._closing = True
        self._set_state(ConsumerState.CLOSING)
        _log("consumer_shutdown")
        await self._close_channel_and_connection()
        self._set_state(ConsumerState.CLOSED)
