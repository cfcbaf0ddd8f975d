"""Host timer facilities used for time-gated delivery.

The bus never sleeps or polls. Anything deferred (currently only the
cancellation half of ``once_with_timeout``) goes through a ``Scheduler``:

    scheduler = ThreadingScheduler()
    handle = scheduler.call_later(0.5, callback)
    handle.cancel()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import threading
from typing import Protocol

from .exceptions import SchedulerError


SCHEDULER_KINDS = ("thread", "asyncio")


class TimerHandle(Protocol):
    """A pending deferred call that can be cancelled."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything able to run a callback once after a delay in seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Run deferred callbacks on daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(delay, 0.0), callback)
        timer.daemon = True
        timer.start()
        return timer


class AsyncioScheduler:
    """Run deferred callbacks on an asyncio event loop.

    When no loop is supplied the running loop is looked up at scheduling
    time, so the scheduler can be built before the loop exists.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as exc:
            raise SchedulerError(
                "AsyncioScheduler needs a running event loop or an explicit loop."
            ) from exc

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._resolve_loop()
        return loop.call_later(max(delay, 0.0), callback)


def create_scheduler(kind: str) -> Scheduler:
    """Build a scheduler by configuration name."""
    normalized = kind.strip().lower()
    if normalized == "thread":
        return ThreadingScheduler()
    if normalized == "asyncio":
        return AsyncioScheduler()
    raise SchedulerError(
        f"Unknown scheduler kind {kind!r}; expected one of {', '.join(SCHEDULER_KINDS)}."
    )
