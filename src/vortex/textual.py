"""Textual integration for Vortex. Opt-in — requires textual.

TextualFrames runs the engine's flushes on a Textual app's refresh cycle.
State written from a worker thread reports its change path through
app.call_from_thread, so the scheduler is only ever touched by the app
thread.

Frames are held while the app is not running or inside pause(app); pause
exit and release(app) hand the held frames back to the refresh cycle.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable

from textual.app import App

logger = logging.getLogger("vortex.textual")

# Pause state and held frames, keyed by id(app). Apps are never mutated.
_paused_apps: set[int] = set()
_held: dict[int, list[Callable[[], None]]] = {}


@contextmanager
def pause(app: App):
    """Hold frame callbacks for app until the block exits."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)
        release(app)


def release(app: App) -> int:
    """Requeue frames held for app on its refresh cycle. Call once the app is running."""
    if not is_safe(app):
        return 0
    held = _held.pop(id(app), [])
    if held:
        logger.debug("Releasing %d held frame(s)", len(held))
    for callback in held:
        app.call_after_refresh(callback)
    return len(held)


def is_safe(app: App) -> bool:
    """Is the widget tree in a state frames may touch?"""
    return app.is_running and id(app) not in _paused_apps


class TextualFrames:
    """Frame source backed by App.call_after_refresh."""

    def __init__(self, app: App) -> None:
        self._app = app
        self._main = threading.get_ident()

    def request(self, callback: Callable[[], None]) -> None:
        app = self._app

        def _guarded() -> None:
            if not is_safe(app):
                _held.setdefault(id(app), []).append(callback)
                return
            callback()

        self.dispatch(lambda: app.call_after_refresh(_guarded))

    def dispatch(self, callback: Callable[[], None]) -> None:
        if threading.get_ident() != self._main:
            self._app.call_from_thread(callback)
        else:
            callback()
