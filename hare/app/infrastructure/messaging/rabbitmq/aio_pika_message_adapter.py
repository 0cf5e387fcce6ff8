"""Adapter: wrap aio_pika.IncomingMessage to implement ports.IncomingMessage."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from aio_pika.abc import AbstractIncomingMessage


class AioPikaMessageAdapter:
    """Implements hare.app.ports.incoming_message.IncomingMessage for aio_pika."""

    def __init__(self, message: AbstractIncomingMessage) -> None:
        self._message = message

    @property
    def headers(self) -> Mapping[str, Any] | None:
        # aio_pika turns a missing table into {}; both mean "no headers"
        return self._message.headers or None

    @property
    def delivery_tag(self) -> int | None:
        return self._message.delivery_tag

    async def ack(self) -> None:
        await self._message.ack()

    async def nack(self, *, requeue: bool = True) -> None:
        await self._message.nack(requeue=requeue)
