"""Tracked views — plain dicts and lists that report every mutation by path.

wrap() turns a root dict (or list) into a view. Reading a container-valued
key returns another view whose path extends the parent's, so writes
anywhere below the root call on_change with the full dotted path of the
location that changed. The backing containers are never copied: the views
read and write the caller's own objects.

Views for children are created lazily and cached per key. The cache
remembers which backing object a view was built for, so replacing a value
yields a fresh view instead of a stale one.
"""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping, MutableSequence
from typing import Any, Callable

OnChange = Callable[[str], None]

_MISSING = object()


def _join(path: str, key: object) -> str:
    return f"{path}.{key}" if path else str(key)


def _changed(old: Any, new: Any) -> bool:
    """Strict inequality: containers by identity, primitives by kind and value."""
    if old is new:
        return False
    if isinstance(old, (dict, list)) or isinstance(new, (dict, list)):
        return True
    if isinstance(old, bool) or isinstance(new, bool):
        return type(old) is not type(new) or old != new
    return old != new


def unwrap(value: Any) -> Any:
    """Return the backing container of a tracked view; other values pass through."""
    if isinstance(value, (TrackedDict, TrackedList)):
        return value._data
    return value


def wrap(root: dict | list, on_change: OnChange, path: str = "") -> TrackedDict | TrackedList:
    """Wrap a dict or list so every mutation below it reports its path."""
    if isinstance(root, (TrackedDict, TrackedList)):
        return root
    if isinstance(root, dict):
        return TrackedDict(root, on_change, path)
    if isinstance(root, list):
        return TrackedList(root, on_change, path)
    raise TypeError(f"cannot track {type(root).__name__!s}; expected dict or list")


class _Tracked:
    __slots__ = ()

    def _child(self, key: object, value: Any) -> Any:
        if not isinstance(value, (dict, list)):
            return value
        cached = self._children.get(key)
        if cached is not None and cached[0] is value:
            return cached[1]
        view = wrap(value, self._on_change, _join(self._path, key))
        self._children[key] = (value, view)
        return view

    @property
    def path(self) -> str:
        return self._path


class TrackedDict(_Tracked, MutableMapping):
    """A dict view that notifies on key writes and deletions."""

    __slots__ = ("_data", "_on_change", "_path", "_children")

    def __init__(self, data: dict, on_change: OnChange, path: str = "") -> None:
        self._data = data
        self._on_change = on_change
        self._path = path
        self._children: dict[object, tuple[Any, Any]] = {}

    # --- Read operations ---

    def __getitem__(self, key: str) -> Any:
        return self._child(key, self._data[key])

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    # --- Write operations (notify) ---

    def __setitem__(self, key: str, value: Any) -> None:
        value = unwrap(value)
        old = self._data.get(key, _MISSING)
        if old is _MISSING or _changed(old, value):
            self._data[key] = value
            self._on_change(_join(self._path, key))

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._children.pop(key, None)
        self._on_change(_join(self._path, key))

    def __repr__(self) -> str:
        return f"TrackedDict({self._data!r})"


class TrackedList(_Tracked, MutableSequence):
    """A list view. Structural operations notify once, for the list's own path."""

    __slots__ = ("_data", "_on_change", "_path", "_children")

    def __init__(self, data: list, on_change: OnChange, path: str = "") -> None:
        self._data = data
        self._on_change = on_change
        self._path = path
        self._children: dict[object, tuple[Any, Any]] = {}

    def _notify(self) -> None:
        self._on_change(self._path)

    def _index(self, index: int) -> int:
        return index + len(self._data) if index < 0 else index

    # --- Read operations ---

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self[i] for i in range(len(self._data))[index]]
        value = self._data[index]
        return self._child(self._index(index), value)

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Any]:
        for i, value in enumerate(list(self._data)):
            yield self._child(i, value)

    def __contains__(self, item: object) -> bool:
        return unwrap(item) in self._data

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TrackedList):
            other = other._data
        if not isinstance(other, list):
            return NotImplemented
        return self._data == other

    __hash__ = None  # type: ignore[assignment]

    # --- Write operations (notify) ---

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            self._data[index] = [unwrap(v) for v in value]
            self._notify()
            return
        index = self._index(index)
        value = unwrap(value)
        if _changed(self._data[index], value):
            self._data[index] = value
            self._on_change(_join(self._path, index))

    def __delitem__(self, index) -> None:
        del self._data[index]
        self._notify()

    def insert(self, index: int, value: Any) -> None:
        self._data.insert(index, unwrap(value))
        self._notify()

    def append(self, value: Any) -> None:
        self._data.append(unwrap(value))
        self._notify()

    def extend(self, values) -> None:
        self._data.extend(unwrap(v) for v in values)
        self._notify()

    def pop(self, index: int = -1) -> Any:
        result = self._data.pop(index)
        self._notify()
        return result

    def remove(self, value: Any) -> None:
        self._data.remove(unwrap(value))
        self._notify()

    def clear(self) -> None:
        self._data.clear()
        self._notify()

    def sort(self, *, key=None, reverse: bool = False) -> None:
        self._data.sort(key=key, reverse=reverse)
        self._notify()

    def reverse(self) -> None:
        self._data.reverse()
        self._notify()

    def __iadd__(self, values):
        self.extend(values)
        return self

    def __repr__(self) -> str:
        return f"TrackedList({self._data!r})"
