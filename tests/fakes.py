"""Shared fakes for the dispatcher tests (broker deliveries and streams)."""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, Iterable


class FakeMessage:
    """Implements IncomingMessage for tests; records how it was settled."""

    def __init__(self, headers: dict[str, Any] | None = None, *, raise_on_ack: Exception | None = None) -> None:
        self.headers = headers
        self.acked = False
        self.nacked = False
        self.nack_requeue: bool | None = None
        self._raise_on_ack = raise_on_ack

    @property
    def processed(self) -> bool:
        return self.acked or self.nacked

    async def ack(self) -> None:
        if self._raise_on_ack is not None:
            raise self._raise_on_ack
        assert not self.processed, "message settled twice"
        self.acked = True

    async def nack(self, *, requeue: bool = True) -> None:
        assert not self.processed, "message settled twice"
        self.nacked = True
        self.nack_requeue = requeue


class MessageStream:
    """Async iterator over scripted deliveries. An Exception item is raised when reached."""

    def __init__(self, items: Iterable[FakeMessage | Exception]) -> None:
        self._items = list(items)
        self.reads = 0

    def __aiter__(self) -> "MessageStream":
        return self

    async def __anext__(self) -> FakeMessage:
        if self.reads >= len(self._items):
            raise StopAsyncIteration
        item = self._items[self.reads]
        self.reads += 1
        if isinstance(item, Exception):
            raise item
        return item


def events_named(records: list[dict[str, Any]], event: str) -> list[dict[str, Any]]:
    return [r for r in records if r.get("event") == event]


async def wait_for_pid(pid_file: Path, timeout: float = 5.0) -> int:
    """Wait until a test script has written its pid to ``pid_file``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        text = pid_file.read_text().strip() if pid_file.exists() else ""
        if text:
            return int(text)
        await asyncio.sleep(0.01)
    raise AssertionError(f"script never wrote {pid_file}")


def process_exists(pid: int) -> bool:
    # an unreaped zombie still counts as existing
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True
