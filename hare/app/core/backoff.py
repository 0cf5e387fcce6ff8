"""Connection retry delays.

`exponential_backoff` yields once per allowed attempt. The first attempt is
yielded immediately; before each later attempt the generator sleeps for the
current delay, which then grows by `multiplier` up to `max_delay`.
"""
import asyncio
from typing import AsyncIterator


async def exponential_backoff(
    initial_delay: float,
    max_delay: float,
    multiplier: float,
    max_attempts: int,
) -> AsyncIterator[float]:
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    delay = 0.0
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            await asyncio.sleep(delay)
        yield delay
        delay = min(initial_delay if attempt == 1 else delay * multiplier, max_delay)
