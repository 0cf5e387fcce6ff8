"""Port: abstraction for an incoming queue message. Implementations live in infrastructure."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class IncomingMessage(Protocol):
    """Transport-agnostic delivery. The dispatcher reads headers and settles it once."""

    @property
    def headers(self) -> Mapping[str, Any] | None:
        """Decoded header table, or None when the message has none."""
        ...

    async def ack(self) -> None: ...

    async def nack(self, *, requeue: bool = True) -> None: ...
