"""Exceptions and the error boundary that isolates failing bindings.

A binding whose update raises must not abort the flush it runs in. The
ErrorBoundary catches the failure, builds an ErrorInfo record, hands it to
every subscribed handler and logs it. The rest of the flush carries on.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

logger = logging.getLogger("vortex.errors")

Disposer = Callable[[], None]


class VortexError(Exception):
    """Base class for all engine errors."""


class ExpressionRejected(VortexError):
    """Expression text falls outside the accepted grammar."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f"{reason}: {expression!r}")
        self.expression = expression
        self.reason = reason


class DirectiveSyntaxError(VortexError):
    """A directive attribute cannot be turned into a binding."""


class MountError(VortexError):
    """The engine was asked to mount something it cannot locate."""


@dataclass(frozen=True)
class ErrorInfo:
    message: str
    directive: str
    element: Any
    exception: BaseException
    timestamp: datetime = field(default_factory=datetime.now)
    stack: str = ""


class ErrorBoundary:
    """Collects binding failures and fans them out to subscribers."""

    def __init__(self) -> None:
        self._handlers: list[Callable[[ErrorInfo], None]] = []

    def handle(self, error: BaseException, directive: str, element: Any) -> ErrorInfo:
        info = ErrorInfo(
            message=str(error),
            directive=directive,
            element=element,
            exception=error,
            stack="".join(traceback.format_exception(type(error), error, error.__traceback__)),
        )
        for handler in list(self._handlers):
            try:
                handler(info)
            except Exception:
                logger.exception("Error handler %r failed", handler)
        logger.error("%s error on %r: %s", directive, element, info.message)
        return info

    def on_error(self, handler: Callable[[ErrorInfo], None]) -> Disposer:
        """Subscribe to binding failures. Returns a function that unsubscribes."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass  # already removed

        return _unsubscribe

    def __len__(self) -> int:
        return len(self._handlers)
