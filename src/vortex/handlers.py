"""Event handler code for the ``on`` directive.

An ``on`` attribute holds ``event: code`` pairs separated by ``;``. Only
three code shapes are accepted:

    save()              call a function stored in state, no arguments
    count++  count--    step a state property by one
    mode = 'edit'       assign a literal to a state property

Anything else compiles to a handler that does nothing; the rejection is
logged once, at compile time.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from vortex.dom import Event
from vortex.errors import ExpressionRejected
from vortex.expression import parse_literal
from vortex.values import to_number

logger = logging.getLogger("vortex.handlers")

_PATH = r"[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*"
_CALL_RE = re.compile(rf"^({_PATH})\(\s*\)$")
_STEP_RE = re.compile(rf"^({_PATH})\s*(\+\+|--)$")
_ASSIGN_RE = re.compile(rf"^({_PATH})\s*=(?!=)\s*(.+)$")
_EVENT_RE = re.compile(r"^[A-Za-z][\w.-]*$")

# handler(scope, event)
Handler = Callable[[Any, Event], None]


def _noop(scope: Any, event: Event) -> None:
    pass


def _call(path: str) -> Handler:
    def handler(scope, event):
        fn = scope.read(path)
        if not callable(fn):
            logger.warning("%r is not a function in state", path)
            return
        fn()

    return handler


def _step(path: str, delta: int) -> Handler:
    def handler(scope, event):
        scope.assign(path, to_number(scope.read(path)) + delta)

    return handler


def _assign(path: str, value: Any) -> Handler:
    def handler(scope, event):
        scope.assign(path, value)

    return handler


def compile_handler(code: str) -> Handler:
    """Turn handler code into a callable; unsupported shapes become no-ops."""
    code = code.strip()
    match = _CALL_RE.match(code)
    if match:
        return _call(match.group(1))
    match = _STEP_RE.match(code)
    if match:
        return _step(match.group(1), 1 if match.group(2) == "++" else -1)
    match = _ASSIGN_RE.match(code)
    if match:
        try:
            literal = parse_literal(match.group(2).strip())
        except ExpressionRejected:
            pass
        else:
            return _assign(match.group(1), literal.value)
    logger.warning("Unsupported event handler %r; it will do nothing", code)
    return _noop


def parse_event_pairs(expression: str) -> list[tuple[str, str]]:
    """Split ``click: a++; input: b = 1`` into (event, code) pairs.

    Malformed pairs are logged and skipped.
    """
    pairs = []
    for chunk in expression.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        event, sep, code = chunk.partition(":")
        event, code = event.strip(), code.strip()
        if not sep or not code or not _EVENT_RE.match(event):
            logger.warning("Malformed event binding %r", chunk)
            continue
        pairs.append((event, code))
    return pairs
