"""Port: message consumer for queue. Implementations live in infrastructure."""
from __future__ import annotations

from typing import AsyncIterator, Protocol

from hare.app.ports.incoming_message import IncomingMessage


class MessageStreamClosedError(Exception):
    """Raised when the broker stops delivering without a shutdown request."""


class MessageConsumer(Protocol):
    async def connect(self) -> None: ...

    def messages(self) -> AsyncIterator[IncomingMessage]:
        """Yield deliveries one at a time. Transport errors propagate to the caller."""
        ...

    async def close(self) -> None: ...
