"""Bindings — the runtime link between an element, an expression and an update.

A Binding has a fixed identity (directive kind, element, compiled
evaluator, scope) and a little mutable state: the last rendered value,
whether its element is currently attached, the cleanup procedures it owns,
and a defunct flag set once it is disposed. Directive kinds subclass it and
implement update() and cleanup().

The BindingRegistry keeps bindings in registration order, which is also the
order a flush visits them.
"""

from __future__ import annotations

from collections import ChainMap
from collections.abc import Mapping
from typing import Any, Callable, ClassVar, Iterable, Iterator

from vortex.expression import Evaluator
from vortex.scheduler import affected
from vortex.store import set_path, split_path
from vortex.values import lookup

UNSET = object()


class Scope:
    """Evaluation context for bindings: the state root, plus loop items in list renders.

    Nested scopes chain their overlays, innermost first.
    """

    __slots__ = ("_root", "_overlay", "_parent")

    def __init__(self, root: Mapping, overlay: Mapping | None = None, parent: Scope | None = None) -> None:
        self._root = root
        self._overlay = overlay
        self._parent = parent

    @property
    def root(self) -> Mapping:
        return self._root

    def child(self, overlay: Mapping) -> Scope:
        return Scope(self._root, dict(overlay), self)

    def context(self) -> Mapping:
        if self._overlay is None:
            return self._root
        parent = self._parent.context() if self._parent is not None else self._root
        return ChainMap(self._overlay, parent)

    def read(self, path: str) -> Any:
        return lookup(self.context(), split_path(path))

    def assign(self, path: str, value: Any) -> None:
        """Tracked write. Paths rooted at a loop item write into that item."""
        head, _, rest = path.partition(".")
        scope: Scope | None = self
        while scope is not None:
            if scope._overlay is not None and head in scope._overlay:
                if not rest:
                    raise TypeError(f"cannot assign to loop variable {head!r}")
                set_path(scope._overlay[head], rest, value)
                return
            scope = scope._parent
        set_path(self._root, path, value)


class Binding:
    """Base for every directive kind."""

    kind: ClassVar[str] = ""

    def __init__(self, element: Any, evaluator: Evaluator | None, scope: Scope) -> None:
        self._element = element
        self._evaluator = evaluator
        self._scope = scope
        self.last_value: Any = UNSET
        self.present = True
        self.defunct = False
        self._cleanups: list[Callable[[], None]] = []

    @property
    def element(self) -> Any:
        return self._element

    @property
    def evaluator(self) -> Evaluator | None:
        return self._evaluator

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def dependencies(self) -> frozenset[str] | None:
        """State paths this binding reads. None means re-run on every flush."""
        if self._evaluator is None:
            return None
        return self._evaluator.dependencies

    def value(self) -> Any:
        return self._evaluator(self._scope.context())

    def should_update(self, paths: Iterable[str]) -> bool:
        return not self.defunct and affected(self.dependencies, paths)

    def update(self) -> None:
        raise NotImplementedError

    def cleanup(self) -> None:
        """Undo one-time setup. Runs once, from dispose()."""

    def add_cleanup(self, fn: Callable[[], None]) -> None:
        self._cleanups.append(fn)

    def dispose(self) -> None:
        """Mark defunct and run cleanup procedures, most recent first."""
        if self.defunct:
            return
        self.defunct = True
        self.cleanup()
        while self._cleanups:
            self._cleanups.pop()()

    def __repr__(self) -> str:
        source = self._evaluator.source if self._evaluator is not None else ""
        state = "defunct" if self.defunct else "active"
        return f"{type(self).__name__}({self._element!r}, {source!r}, {state})"


class BindingRegistry:
    """Ordered collection of live bindings."""

    def __init__(self) -> None:
        self._bindings: list[Binding] = []

    def extend(self, bindings: Iterable[Binding]) -> None:
        self._bindings.extend(bindings)

    def of_kind(self, kind: str) -> list[Binding]:
        return [binding for binding in self._bindings if binding.kind == kind]

    def drain(self) -> list[Binding]:
        """Remove and return every binding."""
        bindings, self._bindings = self._bindings, []
        return bindings

    def __iter__(self) -> Iterator[Binding]:
        return iter(list(self._bindings))

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, binding: object) -> bool:
        return binding in self._bindings
