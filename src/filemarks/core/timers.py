"""Schedulers for deferred work (save debounce, deletion grace periods)."""

import asyncio
from collections.abc import Callable

from filemarks.protocols import Scheduler, TimerHandle


class AsyncioScheduler:
    """Schedule callbacks on an asyncio event loop.

    Callbacks run on the loop's thread, one at a time, so they never race with
    other mutations delivered through the same loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self.loop.call_later(delay, callback)


class PendingTimer:
    """A single re-armable timer: arming cancels whatever was armed before."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handle: TimerHandle | None = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()

        def fire() -> None:
            self._handle = None
            callback()

        self._handle = self._scheduler.call_later(delay, fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
