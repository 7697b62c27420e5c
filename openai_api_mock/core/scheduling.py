"""scheduling.py — Clock, sleep and cancellation primitives.

Every suspension in the engine (handler latency, stream pacing) goes through
a ``Scheduler`` so tests can swap the real timer for one that never waits.
Stream pacing additionally takes a ``CancellationToken``: cancelling the
token wakes a pending sleep immediately.

Schedulers expose two flavours of the same delay:
    sleep()          → awaited by async handlers and async response bodies
    sleep_blocking() → used by response bodies read through a sync client

Called by: core/streaming.py, core/handlers.py, session.py
Depends on: Nothing
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

Clock = Callable[[], float]


def unix_now(clock: Clock = time.time) -> int:
    """Current time from ``clock`` as whole unix seconds."""
    return int(clock())


class CancellationToken:
    """One-way cancellation flag that pending sleeps can wait on.

    Async sleepers wait on an ``asyncio.Event``; blocking sleepers wait on a
    ``threading.Event``. ``cancel()`` sets both.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._flag = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    def cancel(self) -> None:
        self._flag.set()
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def wait_blocking(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; True if cancelled."""
        return self._flag.wait(timeout)


@runtime_checkable
class Scheduler(Protocol):
    """Abstract interface for cooperative delays."""

    async def sleep(self, seconds: float, token: CancellationToken | None = None) -> None:
        """Suspend for ``seconds``, returning early if ``token`` is cancelled."""
        ...

    def sleep_blocking(self, seconds: float, token: CancellationToken | None = None) -> None:
        """Block the calling thread for ``seconds``, returning early on cancel."""
        ...


class AsyncioScheduler:
    """Real-time scheduler backed by the running asyncio loop."""

    async def sleep(self, seconds: float, token: CancellationToken | None = None) -> None:
        if token is None:
            await asyncio.sleep(seconds)
            return
        if token.cancelled:
            return
        try:
            await asyncio.wait_for(token.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def sleep_blocking(self, seconds: float, token: CancellationToken | None = None) -> None:
        if token is None:
            time.sleep(seconds)
            return
        token.wait_blocking(seconds)


class ImmediateScheduler:
    """Scheduler that never waits but records every requested delay.

    Yields to the loop once per async call so other tasks still interleave.
    """

    def __init__(self) -> None:
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float, token: CancellationToken | None = None) -> None:
        self.sleeps.append(seconds)
        await asyncio.sleep(0)

    def sleep_blocking(self, seconds: float, token: CancellationToken | None = None) -> None:
        self.sleeps.append(seconds)
