"""Vortex: reactive template bindings over tracked Python state."""

from importlib.metadata import version as _version

__version__ = _version("vortex-bind")

from vortex.binding import Binding, BindingRegistry, Scope
from vortex.config import DIRECTIVE_KINDS, EngineConfig
from vortex.dom import Comment, Document, Element, Event, Text, parse_html
from vortex.engine import Engine, create_engine
from vortex.errors import (
    DirectiveSyntaxError,
    ErrorBoundary,
    ErrorInfo,
    ExpressionRejected,
    MountError,
    VortexError,
)
from vortex.expression import ExpressionCache, evaluate, is_allowed, parse
from vortex.frames import AsyncioFrames, ManualFrames
from vortex.observable import TrackedDict, TrackedList, unwrap, wrap
from vortex.scheduler import Scheduler
from vortex.store import Store
# vortex.textual is opt-in: it imports textual

__all__ = [
    "Engine",
    "create_engine",
    "EngineConfig",
    "DIRECTIVE_KINDS",
    "evaluate",
    "is_allowed",
    "parse",
    "ExpressionCache",
    "wrap",
    "unwrap",
    "TrackedDict",
    "TrackedList",
    "Store",
    "Scheduler",
    "ManualFrames",
    "AsyncioFrames",
    "Binding",
    "BindingRegistry",
    "Scope",
    "ErrorBoundary",
    "ErrorInfo",
    "VortexError",
    "ExpressionRejected",
    "DirectiveSyntaxError",
    "MountError",
    "Document",
    "Element",
    "Comment",
    "Text",
    "Event",
    "parse_html",
]
