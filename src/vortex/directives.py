"""Directive kinds and the runtime that scans subtrees for them.

Each kind is a Binding subclass with a register() classmethod that performs
the one-time setup (placeholders, template caching, listeners) and returns
the binding, or raises DirectiveSyntaxError when the attribute cannot be
used. The runtime walks a subtree kind by kind, in DIRECTIVE_KINDS order,
and isolates every failure so one bad attribute leaves only its own element
static.
"""

from __future__ import annotations

import functools
import logging
import re
import weakref
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from vortex.binding import Binding, Scope
from vortex.config import DIRECTIVE_KINDS, EngineConfig
from vortex.dom import Comment, Element, Event
from vortex.errors import DirectiveSyntaxError, ErrorBoundary, ExpressionRejected
from vortex.expression import Evaluator, ExpressionCache, parse_path
from vortex.handlers import compile_handler, parse_event_pairs
from vortex.values import to_text, truthy

logger = logging.getLogger("vortex.directives")

_FOR_RE = re.compile(r"^\s*([A-Za-z_$][\w$]*)\s+in\s+(\S+)\s*$")


def _rooted_at(path: str, name: str) -> bool:
    return path == name or path.startswith(name + ".")


class TextBinding(Binding):
    """``bind``: render the value as the element's text."""

    kind = "bind"

    @classmethod
    def register(cls, runtime: DirectiveRuntime, element: Element, expression: str, scope: Scope) -> Binding:
        return cls(element, runtime.compile(expression), scope)

    def update(self) -> None:
        text = to_text(self.value())
        if text != self.last_value:
            self.last_value = text
            self.element.text_content = text


class ShowBinding(Binding):
    """``show``: hide with display none, keep the element attached."""

    kind = "show"

    @classmethod
    def register(cls, runtime: DirectiveRuntime, element: Element, expression: str, scope: Scope) -> Binding:
        return cls(element, runtime.compile(expression), scope)

    def update(self) -> None:
        visible = truthy(self.value())
        self.last_value = visible
        self.element.style["display"] = "" if visible else "none"


class IfBinding(Binding):
    """``if``: swap the element with a placeholder comment when falsy."""

    kind = "if"

    def __init__(self, element: Element, evaluator: Evaluator, scope: Scope, placeholder: Comment) -> None:
        super().__init__(element, evaluator, scope)
        self.placeholder = placeholder

    @classmethod
    def register(cls, runtime: DirectiveRuntime, element: Element, expression: str, scope: Scope) -> Binding:
        attr = runtime.attribute(cls.kind)
        if element.parent is None:
            raise DirectiveSyntaxError(f"{attr} on {element!r} needs a parent element")
        binding = cls(element, runtime.compile(expression), scope, Comment(f" {attr} placeholder "))
        # Settle the initial state now so a falsy element never shows.
        binding.update()
        return binding

    def update(self) -> None:
        show = truthy(self.value())
        if show and not self.present:
            parent = self.placeholder.parent
            if parent is not None:
                parent.replace_child(self.element, self.placeholder)
            self.present = True
        elif not show and self.present:
            parent = self.element.parent
            if parent is not None:
                parent.replace_child(self.placeholder, self.element)
            self.present = False

    def cleanup(self) -> None:
        if not self.present and self.placeholder.parent is not None:
            self.placeholder.parent.replace_child(self.element, self.placeholder)
        self.present = True


class ForBinding(Binding):
    """``for``: render one template clone per list entry.

    Every update discards the previous render and builds a new one. There is
    no keyed reuse of item elements.
    """

    kind = "for"

    def __init__(
        self,
        element: Element,
        evaluator: Evaluator,
        scope: Scope,
        runtime: DirectiveRuntime,
        item_name: str,
        template: Element,
        placeholder: Comment,
        dependencies: frozenset[str],
    ) -> None:
        super().__init__(element, evaluator, scope)
        self._runtime = runtime
        self._dependencies = dependencies
        self.item_name = item_name
        self.template = template
        self.placeholder = placeholder
        self.rendered: list[Element] = []
        self.item_bindings: list[Binding] = []

    @classmethod
    def register(cls, runtime: DirectiveRuntime, element: Element, expression: str, scope: Scope) -> Binding:
        attr = runtime.attribute(cls.kind)
        match = _FOR_RE.match(expression)
        if match is None:
            raise DirectiveSyntaxError(f"malformed {attr} {expression!r}; expected '<item> in <list>'")
        item_name, list_source = match.groups()
        try:
            list_path = parse_path(list_source)
        except ExpressionRejected as exc:
            raise DirectiveSyntaxError(f"malformed {attr} {expression!r}: {exc.reason}") from exc
        parent = element.parent
        if parent is None:
            raise DirectiveSyntaxError(f"{attr} on {element!r} needs a parent element")

        template = runtime.template_for(element)
        placeholder = Comment(f" {attr} {item_name} in {list_path.dotted} ")
        parent.replace_child(placeholder, element)

        dependencies = runtime.template_dependencies(template, item_name) | {list_path.dotted}
        return cls(
            element,
            runtime.compile(list_path.dotted),
            scope,
            runtime,
            item_name,
            template,
            placeholder,
            dependencies,
        )

    @property
    def dependencies(self) -> frozenset[str]:
        return self._dependencies

    def update(self) -> None:
        self._teardown()
        entries = self.value()
        if isinstance(entries, (str, Mapping)) or not isinstance(entries, Sequence):
            return
        parent = self.placeholder.parent
        if parent is None:
            return
        anchor = self.placeholder.next_sibling
        rendered = []
        for entry in list(entries):
            clone = self.template.clone()
            parent.insert_before(clone, anchor)
            rendered.append((clone, entry))
        self.rendered = [clone for clone, _ in rendered]
        self.last_value = len(rendered)
        # Bind after insertion: `if` on an item root needs its parent.
        for clone, entry in rendered:
            item_scope = self.scope.child({self.item_name: entry})
            self.item_bindings.extend(self._runtime.bind_item(clone, item_scope))

    def _teardown(self) -> None:
        bindings, self.item_bindings = self.item_bindings, []
        for binding in bindings:
            self._runtime.dispose(binding)
        nodes, self.rendered = self.rendered, []
        for node in nodes:
            node.remove()

    def cleanup(self) -> None:
        self._teardown()
        if self.placeholder.parent is not None:
            self.placeholder.parent.replace_child(self.element, self.placeholder)


class ModelBinding(Binding):
    """``model``: keep an input's value and a state path in sync."""

    kind = "model"

    def __init__(self, element: Element, evaluator: Evaluator, scope: Scope, path: str) -> None:
        super().__init__(element, evaluator, scope)
        self.path = path

    @classmethod
    def register(cls, runtime: DirectiveRuntime, element: Element, expression: str, scope: Scope) -> Binding:
        try:
            path = parse_path(expression.strip()).dotted
        except ExpressionRejected as exc:
            raise DirectiveSyntaxError(
                f"{runtime.attribute(cls.kind)} must be a property path, got {expression!r}"
            ) from exc
        binding = cls(element, runtime.compile(path), scope, path)
        listener = runtime.guard(cls.kind, element, binding.push)
        element.add_event_listener("input", listener)
        binding.add_cleanup(functools.partial(element.remove_event_listener, "input", listener))
        return binding

    def update(self) -> None:
        text = to_text(self.value())
        # Only write on a real difference so the caret does not jump.
        if self.element.value != text:
            self.element.value = text
        self.last_value = text

    def push(self, event: Event) -> None:
        target = event.target if event.target is not None else self.element
        self.scope.assign(self.path, target.value)


class EventBinding(Binding):
    """``on``: attach restricted handlers; never re-renders."""

    kind = "on"

    @classmethod
    def register(cls, runtime: DirectiveRuntime, element: Element, expression: str, scope: Scope) -> Binding | None:
        pairs = parse_event_pairs(expression)
        if not pairs:
            return None
        binding = cls(element, None, scope)
        for event_type, code in pairs:
            handler = compile_handler(code)
            listener = runtime.guard(cls.kind, element, functools.partial(handler, scope))
            element.add_event_listener(event_type, listener)
            binding.add_cleanup(functools.partial(element.remove_event_listener, event_type, listener))
        return binding

    @property
    def dependencies(self) -> frozenset[str]:
        return frozenset()

    def update(self) -> None:
        pass


BINDING_KINDS: dict[str, type[Binding]] = {
    "bind": TextBinding,
    "show": ShowBinding,
    "if": IfBinding,
    "for": ForBinding,
    "model": ModelBinding,
    "on": EventBinding,
}


class DirectiveRuntime:
    """Scans subtrees and owns the per-engine template cache."""

    def __init__(self, expressions: ExpressionCache, boundary: ErrorBoundary, config: EngineConfig) -> None:
        self.expressions = expressions
        self.boundary = boundary
        self.config = config
        self._templates: weakref.WeakKeyDictionary[Element, Element] = weakref.WeakKeyDictionary()

    def attribute(self, kind: str) -> str:
        return self.config.attribute(kind)

    def compile(self, expression: str) -> Evaluator:
        return self.expressions.compile(expression)

    def template_for(self, element: Element) -> Element:
        """Cached clone of a list element, without its ``for`` attribute."""
        template = self._templates.get(element)
        if template is None:
            template = element.clone(deep=True)
            template.remove_attribute(self.attribute("for"))
            self._templates[element] = template
        return template

    def template_dependencies(self, template: Element, item_name: str) -> frozenset[str]:
        """State paths read anywhere in a list template, loop-item paths excluded."""
        paths: set[str] = set()
        item_names = {item_name}
        for element in template.iter():
            for kind in ("bind", "show", "if", "model"):
                expression = element.get_attribute(self.attribute(kind))
                if expression is not None:
                    paths |= self.compile(expression).dependencies
            nested = element.get_attribute(self.attribute("for"))
            match = _FOR_RE.match(nested) if nested is not None else None
            if match is not None:
                item_names.add(match.group(1))
                paths.add(match.group(2))
        return frozenset(
            path for path in paths if not any(_rooted_at(path, name) for name in item_names)
        )

    def _inside_template(self, element: Element, root: Element) -> bool:
        if element is root:
            return False
        for_attr = self.attribute("for")
        for ancestor in element.ancestors():
            if ancestor.has_attribute(for_attr):
                return True
            if ancestor is root:
                break
        return False

    def scan(self, root: Element, scope: Scope) -> list[Binding]:
        """Register bindings for every directive in root's subtree, root included."""
        elements = list(root.iter())
        for_attr = self.attribute("for")
        bindings: list[Binding] = []
        for kind in DIRECTIVE_KINDS:
            binding_cls = BINDING_KINDS[kind]
            attr = self.attribute(kind)
            for element in elements:
                expression = element.get_attribute(attr)
                if expression is None:
                    continue
                # A list element's other directives belong to its clones.
                if kind != "for" and element.has_attribute(for_attr):
                    continue
                if self._inside_template(element, root):
                    continue
                binding = self._register(binding_cls, element, expression, scope)
                if binding is not None:
                    bindings.append(binding)
        return bindings

    def _register(self, binding_cls: type[Binding], element: Element, expression: str, scope: Scope) -> Binding | None:
        try:
            return binding_cls.register(self, element, expression, scope)
        except DirectiveSyntaxError as exc:
            logger.error("%s", exc)
        except Exception as exc:
            self.boundary.handle(exc, binding_cls.kind, element)
        return None

    def bind_item(self, root: Element, scope: Scope) -> list[Binding]:
        """Scan one list-item clone and render it once."""
        bindings = self.scan(root, scope)
        for binding in bindings:
            self.run(binding)
        return bindings

    def run(self, binding: Binding) -> None:
        try:
            binding.update()
        except Exception as exc:
            self.boundary.handle(exc, binding.kind, binding.element)

    def dispose(self, binding: Binding) -> None:
        try:
            binding.dispose()
        except Exception as exc:
            self.boundary.handle(exc, binding.kind, binding.element)

    def guard(self, kind: str, element: Element, fn: Callable[[Event], Any]) -> Callable[[Event], None]:
        """Wrap an event listener so a failure is reported, not raised into the host."""

        def listener(event: Event) -> None:
            try:
                fn(event)
            except Exception as exc:
                self.boundary.handle(exc, kind, element)

        return listener
