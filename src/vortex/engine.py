"""Engine — tracked state in, zones mounted, updates batched per frame.

    engine = Engine({"count": 1}, document=parse_html(markup))
    engine.mount()                  # every [vx-zone] in the document
    engine.set_state({"count": 2})  # queued; runs on the next frame
    engine.frames.tick()            # with the default ManualFrames

Every write to engine.state (or through set_state, two-way inputs and event
handlers) reports its path to the scheduler. The next frame runs one flush
over the registry, skipping bindings whose dependencies the pending paths
do not touch.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable

from vortex.binding import BindingRegistry, Scope
from vortex.config import EngineConfig
from vortex.directives import DirectiveRuntime
from vortex.dom import Element
from vortex.errors import ErrorBoundary, ErrorInfo, MountError
from vortex.expression import ExpressionCache
from vortex.frames import FrameSource, ManualFrames
from vortex.observable import TrackedDict
from vortex.scheduler import Scheduler
from vortex.store import Store

logger = logging.getLogger("vortex.engine")


class Engine:
    """Reactive binding engine over one state tree."""

    def __init__(
        self,
        initial_state: Mapping | None = None,
        *,
        document: Element | None = None,
        config: EngineConfig | None = None,
        frames: FrameSource | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.document = document
        self.frames = frames if frames is not None else ManualFrames()
        self.boundary = ErrorBoundary()
        self.expressions = ExpressionCache()
        self.bindings = BindingRegistry()
        self.scheduler = Scheduler(self._process, self.frames)
        self._store = Store(initial_state, self.scheduler.notify)
        self.runtime = DirectiveRuntime(self.expressions, self.boundary, self.config)
        self._zones: list[Element] = []

    @property
    def state(self) -> TrackedDict:
        return self._store.state

    @property
    def store(self) -> Store:
        return self._store

    @property
    def zones(self) -> list[Element]:
        return list(self._zones)

    @property
    def mounted(self) -> bool:
        return bool(self._zones)

    def mount(self, target: str | Element | None = None) -> Engine:
        """Bind zones and render them once.

        target: None for every zone in the document, a selector, or an element.
        """
        zones = [zone for zone in self._resolve(target) if not self._covered(zone)]
        scope = Scope(self._store.state)
        for zone in zones:
            self.bindings.extend(self.runtime.scan(zone, scope))
            self._zones.append(zone)
        logger.info("Mounted %d zone(s), %d binding(s)", len(zones), len(self.bindings))
        self.scheduler.flush(force=True)
        return self

    def _resolve(self, target: str | Element | None) -> list[Element]:
        if isinstance(target, Element):
            return [target]
        if target is not None and not isinstance(target, str):
            raise TypeError(f"cannot mount {type(target).__name__}; expected a selector or an element")
        if self.document is None:
            raise MountError("mounting by selector needs a document")
        selector = target or self.config.zone_selector
        found = self.document.query_selector_all(selector)
        if not found:
            logger.warning("No zones match %r", selector)
        # A zone nested in another zone is scanned as part of the outer one.
        return [zone for zone in found if not any(a in found for a in zone.ancestors())]

    def _covered(self, zone: Element) -> bool:
        """Is zone already bound, itself or as part of a mounted zone?"""
        if zone in self._zones or any(a in self._zones for a in zone.ancestors()):
            logger.debug("Skipping %r: already mounted", zone)
            return True
        return False

    def set_state(self, values: Mapping) -> None:
        """Shallow-merge values into the state root through tracked writes."""
        if not isinstance(values, Mapping):
            raise TypeError(f"set_state() expects a mapping, got {type(values).__name__}")
        self._store.update(values)

    def flush(self) -> None:
        """Apply pending changes now instead of waiting for the frame."""
        self.scheduler.flush()

    def _process(self, paths: frozenset[str], force: bool) -> None:
        for binding in self.bindings:
            if binding.defunct:
                continue
            if not force and not binding.should_update(paths):
                continue
            self.runtime.run(binding)

    def unmount(self) -> None:
        """Run every binding's cleanup and forget pending changes."""
        bindings = self.bindings.drain()
        for binding in reversed(bindings):
            self.runtime.dispose(binding)
        self.scheduler.reset()
        self._zones.clear()
        logger.info("Unmounted %d binding(s)", len(bindings))

    def on_error(self, handler: Callable[[ErrorInfo], None]) -> Callable[[], None]:
        return self.boundary.on_error(handler)

    def evaluate(self, expression: str, context: Mapping | None = None) -> Any:
        evaluator = self.expressions.compile(expression)
        return evaluator(self.state if context is None else context)

    def __repr__(self) -> str:
        return f"Engine({len(self._zones)} zone(s), {len(self.bindings)} binding(s))"


def create_engine(initial_state: Mapping | None = None, **kwargs: Any) -> Engine:
    return Engine(initial_state, **kwargs)
