"""Restricted expression language for template attributes.

Attribute values come from page markup, so they are never executed as code.
Instead a small tokenizer and recursive-descent parser accept a closed set
of shapes and build an expression tree, which a tree-walking interpreter
evaluates against a context mapping:

    user.name                   property path
    'text'  42  1.5  true       literals
    count >= 10                 path compared with a literal or path
    price * 2   (price * 2)     path with a numeric operand
    'Hi ' + name + '!'          concatenation, one (path op number) allowed
    isAdmin && 'yes'            two restricted expressions, && or ||
    !done                       negated path
    done ? 'Yes' : 'No'         conditional with literal branches

Anything else raises ExpressionRejected from parse(). Compiled evaluators
swallow both rejections and runtime errors: they log and return ''.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, NoReturn, Union

from vortex.errors import ExpressionRejected
from vortex.values import (
    arithmetic,
    compare,
    loose_equals,
    lookup,
    strict_equals,
    to_text,
    truthy,
)

logger = logging.getLogger("vortex.expression")

COMPARISONS = frozenset({"===", "!==", "==", "!=", "<", ">", "<=", ">="})
ARITHMETIC = frozenset({"+", "-", "*", "/"})
LOGICAL = frozenset({"&&", "||"})
BOOLEANS = {"true": True, "false": False}

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<string>'[^'\\]*')
  | (?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>+\-*/!?:().])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise ExpressionRejected(source, f"unexpected character {source[pos]!r} at {pos}")
        if match.lastgroup != "ws":
            tokens.append(Token(match.lastgroup, match.group(), pos))
        pos = match.end()
    tokens.append(Token("eof", "", pos))
    return tokens


# ─── Expression tree ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Path:
    segments: tuple[str, ...]

    @property
    def dotted(self) -> str:
        return ".".join(self.segments)


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Node


@dataclass(frozen=True)
class Ternary:
    test: Node
    consequent: Node
    alternate: Node


@dataclass(frozen=True)
class Concat:
    parts: tuple[Node, ...]


Node = Union[Literal, Path, BinaryOp, UnaryOp, Ternary, Concat]


def _number(text: str) -> int | float:
    return float(text) if "." in text else int(text)


# ─── Parser ──────────────────────────────────────────────────────────────────


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = tokenize(source)
        self.pos = 0

    def reject(self, reason: str) -> NoReturn:
        raise ExpressionRejected(self.source, reason)

    def peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        token = self.peek()
        self.pos += 1
        return token

    def at(self, kind: str, text: str | None = None) -> bool:
        token = self.peek()
        return token.kind == kind and (text is None or token.text == text)

    def expect(self, kind: str, text: str | None = None, what: str = "") -> Token:
        if not self.at(kind, text):
            found = self.peek().text or "end of expression"
            self.reject(f"expected {what or text or kind}, found {found!r}")
        return self.advance()

    def at_end(self) -> bool:
        """End of one restricted sub-expression."""
        token = self.peek(0)
        return token.kind == "eof" or (token.kind == "op" and token.text in LOGICAL)

    def _ends_after(self, offset: int) -> bool:
        token = self.peek(offset)
        return token.kind == "eof" or (token.kind == "op" and token.text in LOGICAL)

    def finish(self) -> None:
        if not self.at("eof"):
            self.reject(f"unexpected {self.peek().text!r}")

    # --- Grammar ---

    def parse(self) -> Node:
        if self.at("eof"):
            self.reject("empty expression")
        node = self.restricted()
        token = self.peek()
        if token.kind == "op" and token.text in LOGICAL:
            self.advance()
            node = BinaryOp(token.text, node, self.restricted())
        self.finish()
        return node

    def restricted(self) -> Node:
        token = self.peek()
        if self.at("op", "!"):
            self.advance()
            return UnaryOp("!", self.path())
        if self.at("op", "("):
            group = self.group()
            return self.concat([group]) if self.at("op", "+") else group
        if token.kind == "string":
            literal = self.literal()
            return self.concat([literal]) if self.at("op", "+") else literal
        if token.kind == "number" or (token.kind == "ident" and token.text in BOOLEANS):
            return self.literal()
        if token.kind == "ident":
            return self.after_path(self.path())
        self.reject(f"unexpected {token.text or 'end of expression'!r}")

    def after_path(self, path: Path) -> Node:
        if self.at_end():
            return path
        token = self.peek()
        if token.kind == "op" and token.text in COMPARISONS:
            self.advance()
            return BinaryOp(token.text, path, self.operand())
        if self.at("op", "?"):
            self.advance()
            consequent = self.literal()
            self.expect("op", ":", "':' in conditional")
            return Ternary(path, consequent, self.literal())
        if token.kind == "op" and token.text in ARITHMETIC:
            # `path op number` is arithmetic only when nothing follows the number.
            if self.peek(1).kind == "number" and self._ends_after(2):
                self.advance()
                return BinaryOp(token.text, path, self.number())
            if token.text == "+":
                return self.concat([path])
            self.reject(f"operator {token.text!r} needs a number on its right")
        self.reject(f"unexpected {token.text!r}")

    def concat(self, parts: list[Node]) -> Concat:
        groups = sum(isinstance(part, BinaryOp) for part in parts)
        while self.at("op", "+"):
            self.advance()
            token = self.peek()
            if token.kind == "string":
                parts.append(self.literal())
            elif token.kind == "ident" and token.text not in BOOLEANS:
                parts.append(self.path())
            elif self.at("op", "("):
                groups += 1
                if groups > 1:
                    self.reject("only one parenthesized operand is allowed in a concatenation")
                parts.append(self.group())
            else:
                self.reject(f"cannot concatenate {token.text or 'end of expression'!r}")
        if not any(isinstance(part, Literal) and isinstance(part.value, str) for part in parts):
            self.reject("concatenation needs a string literal")
        if not self.at_end():
            self.reject(f"unexpected {self.peek().text!r}")
        return Concat(tuple(parts))

    def group(self) -> BinaryOp:
        self.expect("op", "(")
        path = self.path()
        token = self.peek()
        if not (token.kind == "op" and token.text in ARITHMETIC):
            self.reject("expected an arithmetic operator inside parentheses")
        self.advance()
        node = BinaryOp(token.text, path, self.number())
        self.expect("op", ")")
        return node

    def operand(self) -> Node:
        token = self.peek()
        if token.kind in ("string", "number") or (token.kind == "ident" and token.text in BOOLEANS):
            return self.literal()
        return self.path()

    def path(self) -> Path:
        head = self.expect("ident", what="property path")
        if head.text in BOOLEANS:
            self.reject(f"{head.text!r} is not a property path")
        segments = [head.text]
        while self.at("op", "."):
            self.advance()
            segments.append(self.expect("ident", what="property name after '.'").text)
        return Path(tuple(segments))

    def number(self) -> Literal:
        return Literal(_number(self.expect("number").text))

    def literal(self) -> Literal:
        token = self.advance()
        if token.kind == "string":
            return Literal(token.text[1:-1])
        if token.kind == "number":
            return Literal(_number(token.text))
        if token.kind == "ident" and token.text in BOOLEANS:
            return Literal(BOOLEANS[token.text])
        self.reject(f"expected a literal, found {token.text or 'end of expression'!r}")


def parse(source: str) -> Node:
    """Parse expression text into a tree. Raises ExpressionRejected."""
    if not isinstance(source, str):
        raise ExpressionRejected(repr(source), "expression must be a string")
    return _Parser(source).parse()


def parse_path(source: str) -> Path:
    """Parse text that must be exactly one property path."""
    parser = _Parser(source)
    if parser.at("eof"):
        parser.reject("empty property path")
    path = parser.path()
    parser.finish()
    return path


def parse_literal(source: str) -> Literal:
    """Parse text that must be exactly one literal."""
    parser = _Parser(source)
    literal = parser.literal()
    parser.finish()
    return literal


def is_allowed(source: str) -> bool:
    try:
        parse(source)
    except ExpressionRejected:
        return False
    return True


# ─── Interpreter ─────────────────────────────────────────────────────────────


def interpret(node: Node, context: Any) -> Any:
    """Walk the tree against a context mapping. May raise on hostile objects."""
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Path):
        return lookup(context, node.segments)
    if isinstance(node, UnaryOp):
        return not truthy(interpret(node.operand, context))
    if isinstance(node, Ternary):
        branch = node.consequent if truthy(interpret(node.test, context)) else node.alternate
        return interpret(branch, context)
    if isinstance(node, Concat):
        return "".join(to_text(interpret(part, context)) for part in node.parts)
    if isinstance(node, BinaryOp):
        left = interpret(node.left, context)
        if node.op == "&&":
            return interpret(node.right, context) if truthy(left) else left
        if node.op == "||":
            return left if truthy(left) else interpret(node.right, context)
        right = interpret(node.right, context)
        if node.op == "===":
            return strict_equals(left, right)
        if node.op == "!==":
            return not strict_equals(left, right)
        if node.op == "==":
            return loose_equals(left, right)
        if node.op == "!=":
            return not loose_equals(left, right)
        if node.op in COMPARISONS:
            return compare(node.op, left, right)
        return arithmetic(node.op, left, right)
    raise TypeError(f"not an expression node: {node!r}")


def paths_of(node: Node) -> frozenset[str]:
    """Every property path the expression reads."""
    if isinstance(node, Path):
        return frozenset({node.dotted})
    if isinstance(node, UnaryOp):
        return paths_of(node.operand)
    if isinstance(node, BinaryOp):
        return paths_of(node.left) | paths_of(node.right)
    if isinstance(node, Ternary):
        return paths_of(node.test) | paths_of(node.consequent) | paths_of(node.alternate)
    if isinstance(node, Concat):
        return frozenset().union(*(paths_of(part) for part in node.parts))
    return frozenset()


class Evaluator:
    """A compiled expression: call it with a context to get a value.

    Rejected expressions compile to an evaluator with no tree that always
    returns '' and reads nothing.
    """

    __slots__ = ("source", "node", "dependencies")

    def __init__(self, source: str, node: Node | None) -> None:
        self.source = source
        self.node = node
        self.dependencies: frozenset[str] = frozenset() if node is None else paths_of(node)

    @property
    def allowed(self) -> bool:
        return self.node is not None

    def __call__(self, context: Any) -> Any:
        if self.node is None:
            return ""
        try:
            return interpret(self.node, context)
        except Exception:
            logger.exception("Error evaluating expression %r", self.source)
            return ""

    def __repr__(self) -> str:
        state = "allowed" if self.allowed else "rejected"
        return f"Evaluator({self.source!r}, {state})"


def compile_expression(source: str) -> Evaluator:
    try:
        node = parse(source)
    except ExpressionRejected as exc:
        logger.error("Expression rejected: %s", exc)
        return Evaluator(source, None)
    return Evaluator(source, node)


def evaluate(source: str, context: Any) -> Any:
    """Evaluate expression text against a context. Never raises."""
    return compile_expression(source)(context)


class ExpressionCache:
    """Compiled evaluators keyed by (expression text, context marker).

    Entries are pure functions of their key, so the cache only grows.
    """

    def __init__(self) -> None:
        self._compiled: dict[tuple[str, str], Evaluator] = {}

    def compile(self, source: str, marker: str = "state") -> Evaluator:
        key = (source, marker)
        evaluator = self._compiled.get(key)
        if evaluator is None:
            evaluator = compile_expression(source)
            self._compiled[key] = evaluator
        return evaluator

    def __contains__(self, key: object) -> bool:
        return key in self._compiled

    def __len__(self) -> int:
        return len(self._compiled)
