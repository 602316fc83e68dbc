"""In-memory host tree: the element primitives the engine calls into.

The engine never assumes a browser. It needs attribute lookup, child
insertion/removal/replacement, placeholder comments, text assignment and
event listeners; this module provides exactly that, plus parse_html() to
build a tree from markup and to_html() to read one back.

Selectors are single simple selectors: ``tag``, ``#id``, ``.class``,
``[attr]`` and ``[attr=value]``.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any, Callable, Iterator

Listener = Callable[["Event"], None]

VOID_TAGS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)

_SELECTOR_RE = re.compile(
    r"""^(?:
        \[\s*(?P<attr>[^\s=\]]+)\s*(?:=\s*(?P<quote>["']?)(?P<value>[^"'\]]*)(?P=quote)\s*)?\]
      | \#(?P<id>[\w-]+)
      | \.(?P<cls>[\w-]+)
      | (?P<tag>[\w-]+)
    )$""",
    re.VERBOSE,
)


@dataclass
class Event:
    type: str
    target: Any = None
    detail: Any = None
    default_prevented: bool = field(default=False, init=False)

    def prevent_default(self) -> None:
        self.default_prevented = True


class Node:
    """Base of every tree node."""

    def __init__(self) -> None:
        self.parent: Element | None = None

    @property
    def next_sibling(self) -> Node | None:
        if self.parent is None:
            return None
        siblings = self.parent.children
        index = siblings.index(self)
        return siblings[index + 1] if index + 1 < len(siblings) else None

    @property
    def previous_sibling(self) -> Node | None:
        if self.parent is None:
            return None
        siblings = self.parent.children
        index = siblings.index(self)
        return siblings[index - 1] if index > 0 else None

    def remove(self) -> None:
        """Detach from the parent, if any."""
        if self.parent is not None:
            self.parent.remove_child(self)

    def clone(self, deep: bool = True) -> Node:
        raise NotImplementedError

    @property
    def text_content(self) -> str:
        return ""

    def to_html(self) -> str:
        raise NotImplementedError


class Text(Node):
    def __init__(self, data: str = "") -> None:
        super().__init__()
        self.data = data

    def clone(self, deep: bool = True) -> Text:
        return Text(self.data)

    @property
    def text_content(self) -> str:
        return self.data

    def to_html(self) -> str:
        return html.escape(self.data, quote=False)

    def __repr__(self) -> str:
        return f"Text({self.data!r})"


class Comment(Node):
    def __init__(self, data: str = "") -> None:
        super().__init__()
        self.data = data

    def clone(self, deep: bool = True) -> Comment:
        return Comment(self.data)

    def to_html(self) -> str:
        return f"<!--{self.data}-->"

    def __repr__(self) -> str:
        return f"Comment({self.data!r})"


class Element(Node):
    """A tagged node with attributes, children, inline style and listeners."""

    def __init__(self, tag: str, attributes: dict[str, str] | None = None) -> None:
        super().__init__()
        self.tag = tag.lower()
        self.attributes: dict[str, str] = dict(attributes or {})
        self.children: list[Node] = []
        self.style: dict[str, str] = {}
        self._value: str | None = None
        self._listeners: dict[str, list[Listener]] = {}

    # --- Attributes ---

    def get_attribute(self, name: str) -> str | None:
        return self.attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def set_attribute(self, name: str, value: str) -> None:
        self.attributes[name] = str(value)

    def remove_attribute(self, name: str) -> None:
        self.attributes.pop(name, None)

    @property
    def id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def class_list(self) -> list[str]:
        return self.attributes.get("class", "").split()

    @property
    def value(self) -> str:
        """Live form value; starts out as the ``value`` attribute."""
        if self._value is None:
            return self.attributes.get("value", "")
        return self._value

    @value.setter
    def value(self, value: str) -> None:
        self._value = str(value)

    # --- Children ---

    def _adopt(self, node: Node) -> None:
        if node is self or (isinstance(node, Element) and self in node.ancestors()):
            raise ValueError("cannot insert a node into itself")
        node.remove()
        node.parent = self

    def append_child(self, node: Node) -> Node:
        self._adopt(node)
        self.children.append(node)
        return node

    def insert_before(self, node: Node, reference: Node | None) -> Node:
        """Insert node before reference; a None reference appends."""
        if reference is None:
            return self.append_child(node)
        if reference.parent is not self:
            raise ValueError("reference node is not a child of this element")
        self._adopt(node)
        self.children.insert(self.children.index(reference), node)
        return node

    def replace_child(self, node: Node, old: Node) -> Node:
        if old.parent is not self:
            raise ValueError("node to replace is not a child of this element")
        if node is old:
            return old
        self._adopt(node)
        self.children[self.children.index(old)] = node
        old.parent = None
        return old

    def remove_child(self, node: Node) -> Node:
        if node.parent is not self:
            raise ValueError("node is not a child of this element")
        self.children.remove(node)
        node.parent = None
        return node

    def ancestors(self) -> Iterator[Element]:
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def iter(self, include_self: bool = True) -> Iterator[Element]:
        """Elements of this subtree in document order."""
        if include_self:
            yield self
        for child in list(self.children):
            if isinstance(child, Element):
                yield from child.iter()

    @property
    def element_children(self) -> list[Element]:
        return [child for child in self.children if isinstance(child, Element)]

    # --- Text ---

    @property
    def text_content(self) -> str:
        return "".join(child.text_content for child in self.children)

    @text_content.setter
    def text_content(self, value: str) -> None:
        for child in self.children:
            child.parent = None
        text = Text(str(value))
        text.parent = self
        self.children = [text] if text.data else []

    # --- Selectors ---

    def matches(self, selector: str) -> bool:
        match = _SELECTOR_RE.match(selector.strip())
        if match is None:
            raise ValueError(f"unsupported selector {selector!r}")
        if match.group("attr"):
            name = match.group("attr")
            if name not in self.attributes:
                return False
            return match.group("value") is None or self.attributes[name] == match.group("value")
        if match.group("id"):
            return self.id == match.group("id")
        if match.group("cls"):
            return match.group("cls") in self.class_list
        return self.tag == match.group("tag").lower()

    def query_selector_all(self, selector: str) -> list[Element]:
        return [el for el in self.iter(include_self=False) if el.matches(selector)]

    def query_selector(self, selector: str) -> Element | None:
        for el in self.iter(include_self=False):
            if el.matches(selector):
                return el
        return None

    def closest(self, selector: str) -> Element | None:
        if self.matches(selector):
            return self
        for ancestor in self.ancestors():
            if ancestor.matches(selector):
                return ancestor
        return None

    # --- Events ---

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def dispatch_event(self, event: Event | str) -> Event:
        if isinstance(event, str):
            event = Event(event)
        if event.target is None:
            event.target = self
        for listener in list(self._listeners.get(event.type, [])):
            listener(event)
        return event

    def click(self) -> Event:
        return self.dispatch_event(Event("click"))

    # --- Cloning & output ---

    def clone(self, deep: bool = True) -> Element:
        """Copy attributes, style and (if deep) children. Listeners are not copied."""
        copy = Element(self.tag, self.attributes)
        copy.style = dict(self.style)
        copy._value = self._value
        if deep:
            for child in self.children:
                copy.append_child(child.clone(deep=True))
        return copy

    def to_html(self) -> str:
        attrs = "".join(
            f' {name}="{html.escape(value)}"' if value != "" else f" {name}"
            for name, value in self.attributes.items()
        )
        if self.style:
            css = "; ".join(f"{key}: {value}" for key, value in self.style.items() if value)
            if css:
                attrs += f' style="{html.escape(css)}"'
        if self.tag in VOID_TAGS:
            return f"<{self.tag}{attrs}>"
        inner = "".join(child.to_html() for child in self.children)
        return f"<{self.tag}{attrs}>{inner}</{self.tag}>"

    def __repr__(self) -> str:
        ident = f"#{self.id}" if self.id else ""
        return f"<Element {self.tag}{ident}>"


class Document(Element):
    """Root of a parsed tree."""

    def __init__(self) -> None:
        super().__init__("#document")

    def create_element(self, tag: str, attributes: dict[str, str] | None = None) -> Element:
        return Element(tag, attributes)

    def create_comment(self, data: str = "") -> Comment:
        return Comment(data)

    def create_text_node(self, data: str = "") -> Text:
        return Text(data)

    def get_element_by_id(self, element_id: str) -> Element | None:
        return self.query_selector(f"#{element_id}")

    def to_html(self) -> str:
        return "".join(child.to_html() for child in self.children)

    def __repr__(self) -> str:
        return "<Document>"


class _TreeBuilder(HTMLParser):
    """Build a Document from markup. Script and style contents are dropped."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.document = Document()
        self.stack: list[Element] = [self.document]
        self._suppress_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in ("script", "style"):
            self._suppress_depth += 1
            return
        element = Element(tag, {name: value if value is not None else "" for name, value in attrs})
        self.stack[-1].append_child(element)
        if tag not in VOID_TAGS:
            self.stack.append(element)

    def handle_startendtag(self, tag, attrs):
        if tag in ("script", "style"):
            return
        element = Element(tag, {name: value if value is not None else "" for name, value in attrs})
        self.stack[-1].append_child(element)

    def handle_endtag(self, tag):
        if tag in ("script", "style"):
            if self._suppress_depth > 0:
                self._suppress_depth -= 1
            return
        # Pop back to the matching open tag; stray end tags are ignored.
        for i in range(len(self.stack) - 1, 0, -1):
            if self.stack[i].tag == tag:
                del self.stack[i:]
                break

    def handle_data(self, data):
        if self._suppress_depth > 0 or not data:
            return
        self.stack[-1].append_child(Text(data))

    def handle_comment(self, data):
        self.stack[-1].append_child(Comment(data))


def parse_html(markup: str) -> Document:
    """Parse markup into a Document."""
    builder = _TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.document
