"""Store — owner of the tracked state root.

The store wraps the initial state once and keeps it for the engine's
lifetime: the root is mutated piecewise through tracked writes and never
swapped out. Dotted-path get/set gives directives and event handlers a way
to read and write arbitrary locations through the same tracked path.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from vortex.observable import OnChange, TrackedDict, TrackedList, wrap


def split_path(path: str) -> list[str]:
    segments = path.split(".")
    if not all(segments):
        raise ValueError(f"malformed path {path!r}")
    return segments


def _step(container: Any, key: str, path: str) -> Any:
    if isinstance(container, Mapping):
        if key in container:
            return container[key]
    elif isinstance(container, TrackedList) and key.isdigit():
        if int(key) < len(container):
            return container[int(key)]
    raise KeyError(path)


def assign(container: Any, key: str, value: Any, path: str) -> None:
    """Write one key on a tracked container."""
    if isinstance(container, TrackedList):
        if not key.isdigit():
            raise KeyError(path)
        container[int(key)] = value
    elif isinstance(container, TrackedDict):
        container[key] = value
    else:
        raise TypeError(f"cannot assign {path!r}: target is not tracked state")


def set_path(root: Any, path: str, value: Any) -> None:
    """Tracked write of value at a dotted path below root."""
    *parents, last = split_path(path)
    target = root
    for key in parents:
        target = _step(target, key, path)
    assign(target, last, value, path)


class Store:
    """The tracked root plus dotted-path access."""

    def __init__(self, initial: Mapping | None, on_change: OnChange) -> None:
        if initial is None:
            initial = {}
        elif not isinstance(initial, dict):
            initial = dict(initial)
        self._state = wrap(initial, on_change)

    @property
    def state(self) -> TrackedDict:
        return self._state

    def get(self, path: str) -> Any:
        """Lenient read along the same walk as set(); a missing step yields ''."""
        target: Any = self._state
        for key in split_path(path):
            try:
                target = _step(target, key, path)
            except KeyError:
                return ""
        return target

    def set(self, path: str, value: Any) -> None:
        set_path(self._state, path, value)

    def update(self, values: Mapping) -> None:
        """Shallow merge: each top-level key goes through the tracked write."""
        for key, value in values.items():
            self._state[key] = value
