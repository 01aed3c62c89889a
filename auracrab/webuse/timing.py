"""Suspension primitives for timed and polling waits.

Everything that waits goes through a `Sleeper` so callers (and tests) can
substitute the clock. Waiting always yields to the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

Sleeper = Callable[[float], Awaitable[None]]


async def real_sleep(seconds: float) -> None:
    await asyncio.sleep(max(0.0, seconds))


async def sleep_ms(sleep: Sleeper, ms: float) -> None:
    await sleep(max(0.0, ms) / 1000.0)


async def poll_until(
    check: Callable[[], Awaitable[bool]],
    *,
    attempts: int,
    interval_ms: float,
    sleep: Sleeper = real_sleep,
) -> bool:
    """Run `check` up to `attempts` times, sleeping `interval_ms` after each miss.

    Returns True as soon as a check passes, False when attempts are exhausted.
    """
    for _ in range(max(0, attempts)):
        if await check():
            return True
        await sleep_ms(sleep, interval_ms)
    return False


__all__ = ["Sleeper", "poll_until", "real_sleep", "sleep_ms"]
