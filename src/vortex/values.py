"""Value semantics shared by the evaluator and the directives.

Template expressions need one consistent notion of truthiness, equality,
ordering and display text regardless of whether a value came from a
tracked view, a loop item or a literal. Containers are always truthy, even
when empty. Missing lookups read as the empty string.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from typing import Any, Iterable

from vortex.observable import unwrap

MISSING = object()

_NUMERIC_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if value is True:
        return True
    if isinstance(value, (int, float)):
        return value == value and value != 0
    if isinstance(value, str):
        return value != ""
    return True


def kind_of(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if _NUMERIC_RE.fullmatch(text):
            number = float(text)
            return int(number) if number.is_integer() and "." not in text and "e" not in text.lower() else number
    return math.nan


def to_text(value: Any) -> str:
    """Render a value the way it appears in text content."""
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return str(unwrap(value))
    if isinstance(value, Sequence):
        return ",".join(to_text(item) for item in value)
    return str(value)


def strict_equals(left: Any, right: Any) -> bool:
    kind = kind_of(left)
    if kind != kind_of(right):
        return False
    if kind == "object":
        return unwrap(left) is unwrap(right)
    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    left_kind, right_kind = kind_of(left), kind_of(right)
    if left_kind == right_kind:
        return strict_equals(left, right)
    if "null" in (left_kind, right_kind) or "object" in (left_kind, right_kind):
        return False
    return to_number(left) == to_number(right)


def compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        x, y = left, right
    else:
        x, y = to_number(left), to_number(right)
        if x != x or y != y:
            return False
    if op == "<":
        return x < y
    if op == ">":
        return x > y
    if op == "<=":
        return x <= y
    if op == ">=":
        return x >= y
    raise ValueError(f"unknown comparison {op!r}")


def arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return to_text(left) + to_text(right)
    x, y = to_number(left), to_number(right)
    if op == "+":
        return x + y
    if op == "-":
        return x - y
    if op == "*":
        return x * y
    if op == "/":
        if y == 0:
            if x == 0 or x != x:
                return math.nan
            return math.copysign(math.inf, x) * math.copysign(1.0, y)
        return x / y
    raise ValueError(f"unknown operator {op!r}")


def get_member(obj: Any, key: str) -> Any:
    """One lookup step. Returns MISSING instead of raising."""
    if isinstance(obj, Mapping):
        return obj[key] if key in obj else MISSING
    if isinstance(obj, (str, Sequence)):
        return len(obj) if key == "length" else MISSING
    if key.startswith("_") or isinstance(obj, (int, float)):
        return MISSING
    return getattr(obj, key, MISSING)


def lookup(context: Any, segments: Iterable[str]) -> Any:
    """Lenient path read: a falsy or missing step yields ''."""
    current = context
    for key in segments:
        if not truthy(current):
            return ""
        value = get_member(current, key)
        if value is MISSING:
            return ""
        current = value
    return current
