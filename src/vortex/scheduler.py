"""Update scheduler — coalesces change paths into one flush per frame.

The first notification after idle requests a frame; later notifications
before that frame lands join the same pending set. At flush time the set is
captured and cleared before any binding runs, so a binding that writes
state starts the next batch instead of corrupting this one.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, Iterable

from vortex.frames import FrameSource

logger = logging.getLogger("vortex.scheduler")

Runner = Callable[[frozenset[str], bool], None]


def paths_overlap(path: str, other: str) -> bool:
    """True when either path is a segment-wise prefix of the other."""
    if path == other or not path or not other:
        return True
    return path.startswith(other + ".") or other.startswith(path + ".")


def affected(dependencies: Iterable[str] | None, paths: Iterable[str]) -> bool:
    """Does any pending path touch any dependency? No declared dependencies means always."""
    if dependencies is None:
        return True
    return any(paths_overlap(path, dep) for path in paths for dep in dependencies)


class Scheduler:
    def __init__(self, run: Runner, frames: FrameSource) -> None:
        self._run = run
        self._frames = frames
        self._pending: set[str] = set()
        self._scheduled = False
        self._flushing = False

    def notify(self, path: str) -> None:
        """Record a change path on the host thread; request a frame if none is outstanding."""
        self._frames.dispatch(functools.partial(self._record, path))

    def _record(self, path: str) -> None:
        self._pending.add(path)
        if not self._scheduled:
            self._scheduled = True
            self._frames.request(self._on_frame)

    def _on_frame(self) -> None:
        if self._scheduled:
            self.flush()

    def flush(self, force: bool = False) -> None:
        """Run one pass now. force re-runs every binding regardless of paths."""
        if self._flushing:
            logger.warning("flush() called during a flush; ignored")
            return
        paths = frozenset(self._pending)
        self._pending.clear()
        self._scheduled = False
        self._flushing = True
        try:
            self._run(paths, force)
        finally:
            self._flushing = False

    def reset(self) -> None:
        """Drop pending paths. A frame already requested becomes a no-op."""
        self._pending.clear()
        self._scheduled = False

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._pending)

    @property
    def scheduled(self) -> bool:
        return self._scheduled
