"""Typed expression tree for compiled queries."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .._types import Category, FileType, Operator
from ..content import ContentMatcher
from ..structured.resolver import StructuredMatcher
from .values import CompiledPattern


class Family(Enum):
    """Value-type families; each selector belongs to exactly one."""

    STRING = "string"
    NUMERIC = "numeric"
    TEMPORAL = "temporal"
    ENUM = "enum"
    CONTENT = "content"
    STRUCTURED = "structured"


class Selector(Enum):
    """Canonical selector ids."""

    NAME = "name"
    BASENAME = "basename"
    EXT = "ext"
    PATH = "path"
    DIR = "dir"
    DEPTH = "depth"
    SIZE = "size"
    TYPE = "type"
    MODIFIED = "modified"
    CREATED = "created"
    ACCESSED = "accessed"
    CONTENT = "content"
    YAML = "yaml"
    JSON = "json"
    TOML = "toml"

    @property
    def category(self) -> Category:
        """The evaluation phase this selector's predicates belong to."""
        return _SELECTOR_INFO[self][0]

    @property
    def family(self) -> Family:
        """The value-type family that restricts this selector's operators."""
        return _SELECTOR_INFO[self][1]


_SELECTOR_INFO = {
    Selector.NAME: (Category.NAME, Family.STRING),
    Selector.BASENAME: (Category.NAME, Family.STRING),
    Selector.EXT: (Category.NAME, Family.STRING),
    Selector.PATH: (Category.NAME, Family.STRING),
    Selector.DIR: (Category.NAME, Family.STRING),
    Selector.DEPTH: (Category.NAME, Family.NUMERIC),
    Selector.SIZE: (Category.METADATA, Family.NUMERIC),
    Selector.TYPE: (Category.METADATA, Family.ENUM),
    Selector.MODIFIED: (Category.METADATA, Family.TEMPORAL),
    Selector.CREATED: (Category.METADATA, Family.TEMPORAL),
    Selector.ACCESSED: (Category.METADATA, Family.TEMPORAL),
    Selector.CONTENT: (Category.CONTENT, Family.CONTENT),
    Selector.YAML: (Category.STRUCTURED, Family.STRUCTURED),
    Selector.JSON: (Category.STRUCTURED, Family.STRUCTURED),
    Selector.TOML: (Category.STRUCTURED, Family.STRUCTURED),
}


@dataclass(frozen=True)
class Predicate:
    """A type-checked ``selector operator value`` leaf.

    Attributes:
        selector: The canonical selector.
        operator: The canonical operator; None only for structured
            existence checks.
        value: The pre-parsed literal: str, int, datetime, FileType,
            frozenset, CompiledPattern, ContentMatcher or StructuredMatcher.
    """

    selector: Selector
    operator: Operator | None
    value: Any = None

    @property
    def category(self) -> Category:
        return self.selector.category


@dataclass(frozen=True)
class KnownResult:
    """A subtree whose truth value has been decided during evaluation."""

    value: bool


@dataclass(frozen=True)
class NotExpr:
    """Negation expression.

    Attributes:
        operand: The expression to negate.
    """

    operand: Expr


@dataclass(frozen=True)
class AndExpr:
    """AND expression (conjunction).

    Attributes:
        operands: Expressions that must all match.
    """

    operands: tuple[Expr, ...]


@dataclass(frozen=True)
class OrExpr:
    """OR expression (disjunction).

    Attributes:
        operands: Expressions where at least one must match.
    """

    operands: tuple[Expr, ...]


# Union of all expression types
Expr = Predicate | KnownResult | NotExpr | AndExpr | OrExpr


def children(expr: Expr) -> tuple[Expr, ...]:
    """Return the direct operands of a node (empty for leaves)."""
    if isinstance(expr, NotExpr):
        return (expr.operand,)
    if isinstance(expr, (AndExpr, OrExpr)):
        return expr.operands
    return ()


def iter_predicates(expr: Expr) -> Iterator[Predicate]:
    """Yield every predicate in the tree, left to right."""
    stack = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Predicate):
            yield node
        else:
            stack.extend(reversed(children(node)))


def _quote(value: str) -> str:
    """Render a string as a double-quoted query literal."""
    result = value.replace("\\", "\\\\")
    result = result.replace('"', '\\"')
    result = result.replace("\n", "\\n")
    result = result.replace("\r", "\\r")
    result = result.replace("\t", "\\t")
    return f'"{result}"'


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, CompiledPattern):
        return _quote(value.source)
    if isinstance(value, ContentMatcher):
        return _quote(value.text)
    if isinstance(value, FileType):
        return value.value
    if isinstance(value, datetime):
        return _quote(value.isoformat())
    if isinstance(value, int):
        return str(value)
    if isinstance(value, frozenset):
        return "[" + ", ".join(sorted(_render_value(item) for item in value)) + "]"
    raise TypeError(f"Unknown value type: {type(value)}")


def _render_predicate(predicate: Predicate) -> str:
    value = predicate.value
    if isinstance(value, StructuredMatcher):
        selector = value.selector_text()
        if value.operator is None:
            return selector
        if value.operator == Operator.IN:
            rendered = "[" + ", ".join(_quote(item.raw) for item in value.items) + "]"
        else:
            assert value.literal is not None
            literal = value.literal
            rendered = _quote(literal.raw) if literal.quoted else literal.raw
        return f"{selector} {value.operator.value} {rendered}"

    assert predicate.operator is not None
    return (
        f"{predicate.selector.value} {predicate.operator.value} "
        f"{_render_value(value)}"
    )


def to_canonical_string(expr: Expr) -> str:
    """Convert an expression to its canonical query text.

    This produces a normalized form with:
    - Canonical selector and operator spellings
    - ``&&``, ``||`` and ``!`` combinators
    - Quoted string values and parentheses only where needed

    Parsing the result yields a structurally identical tree. ``KnownResult``
    nodes only occur in partially evaluated trees and render as
    ``true``/``false``.

    Examples:
        >>> to_canonical_string(parse_query("EXT eq rs and size gt 1kb"))
        'ext == "rs" && size > 1024'
    """
    stack: list[tuple[Expr, bool]] = [(expr, False)]
    rendered: list[tuple[str, Expr]] = []

    while stack:
        node, expanded = stack.pop()
        if isinstance(node, Predicate):
            rendered.append((_render_predicate(node), node))
            continue
        if isinstance(node, KnownResult):
            rendered.append(("true" if node.value else "false", node))
            continue
        if not expanded:
            stack.append((node, True))
            stack.extend((child, False) for child in reversed(children(node)))
            continue

        count = len(children(node))
        parts = rendered[-count:]
        del rendered[-count:]

        if isinstance(node, NotExpr):
            inner, operand = parts[0]
            # Add parens around complex inner expressions
            if isinstance(operand, (AndExpr, OrExpr)):
                rendered.append((f"!({inner})", node))
            else:
                rendered.append((f"!{inner}", node))
            continue

        texts = []
        for inner, operand in parts:
            # Wrap nested AND/OR to preserve precedence
            if isinstance(operand, (AndExpr, OrExpr)):
                inner = f"({inner})"
            texts.append(inner)
        joiner = " && " if isinstance(node, AndExpr) else " || "
        rendered.append((joiner.join(texts), node))

    return rendered[0][0]
