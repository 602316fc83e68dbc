"""Frame sources — when a pending flush actually runs.

The scheduler asks its frame source to run a callback "before the next
paint". What that means depends on the host: a test ticks frames by hand,
an asyncio application defers to the event loop, a Textual app defers to
its refresh cycle (see vortex.textual).

dispatch() runs a callback on the thread that owns the host, right away when
the caller already is that thread. The scheduler routes every change
notification through it so its pending set is only touched from one thread.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol

Callback = Callable[[], None]


class FrameSource(Protocol):
    def request(self, callback: Callback) -> None: ...

    def dispatch(self, callback: Callback) -> None: ...


class ManualFrames:
    """Queue callbacks until tick() is called."""

    def __init__(self) -> None:
        self._callbacks: list[Callback] = []

    def request(self, callback: Callback) -> None:
        self._callbacks.append(callback)

    def dispatch(self, callback: Callback) -> None:
        callback()

    def tick(self) -> int:
        """Run the callbacks queued so far. Callbacks queued meanwhile wait for the next tick."""
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return len(callbacks)

    @property
    def pending(self) -> int:
        return len(self._callbacks)


class AsyncioFrames:
    """Run callbacks on an asyncio loop after a frame interval.

    Without an explicit loop, request() must be called while a loop is running.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, interval: float = 1 / 60) -> None:
        self._loop = loop
        self.interval = interval

    def request(self, callback: Callback) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(self.interval, callback)

    def dispatch(self, callback: Callback) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        loop = self._loop or running
        if loop is None or loop is running or not loop.is_running():
            callback()
        else:
            loop.call_soon_threadsafe(callback)
