"""Resolution of structured predicates against parsed documents.

A path resolves to a list of candidate values. A predicate is satisfied when
ANY candidate satisfies the comparison, across wildcard expansion, recursive
descent and every document of a multi-document stream alike.

Comparisons first try the native values; if that fails, both sides are
compared by their string forms, so ``.port == 8080`` matches both ``8080``
and ``"8080"``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

from .._types import Operator
from ..errors import StructuredDataError
from .codecs import DataFormat
from .path import Field, Index, RecursiveField, StructuredPath, Wildcard

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
MAX_RENDERED_CHARS = 16 * 1024 * 1024


def navigate(root: Any, path: StructuredPath) -> list[Any]:
    """Return every value ``path`` reaches from ``root``.

    A node reachable along several routes (a YAML alias, say) is returned
    once.
    """
    current = [root]
    for segment in path.segments:
        if not current:
            return []
        following: list[Any] = []
        for value in current:
            if isinstance(segment, Field):
                if isinstance(value, dict) and segment.name in value:
                    following.append(value[segment.name])
            elif isinstance(segment, Index):
                if isinstance(value, list) and segment.index < len(value):
                    following.append(value[segment.index])
            elif isinstance(segment, Wildcard):
                if isinstance(value, list):
                    following.extend(value)
            elif isinstance(segment, RecursiveField):
                following.extend(_collect_recursive(value, segment.name))
        current = _distinct(following)
    return current


def _distinct(values: list[Any]) -> list[Any]:
    seen: set[int] = set()
    unique = []
    for value in values:
        if id(value) not in seen:
            seen.add(id(value))
            unique.append(value)
    return unique


def _collect_recursive(root: Any, name: str) -> list[Any]:
    """Collect ``name`` members at any depth below ``root``, without recursion.

    Each container is visited once, so cyclic or heavily shared YAML anchors
    cost no more than the document's distinct nodes.
    """
    found: list[Any] = []
    visited: set[int] = set()
    queue = [root]
    while queue:
        node = queue.pop()
        if not isinstance(node, (dict, list)) or id(node) in visited:
            continue
        visited.add(id(node))
        if isinstance(node, dict):
            for key, value in node.items():
                if key == name:
                    found.append(value)
                queue.append(value)
        else:
            queue.extend(node)
    return found


def to_text(value: Any) -> str:
    """Render a document value the way comparisons see it as a string.

    Raises:
        ValueError: If a collection renders to more than
            ``MAX_RENDERED_CHARS`` characters.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, list) and not value:
        return "[]"
    if isinstance(value, dict) and not value:
        return "{}"
    return _dump(value)


def _key_text(key: Any) -> str:
    if isinstance(key, str):
        return json.dumps(key, ensure_ascii=False)
    return json.dumps(to_text(key), ensure_ascii=False)


def _dump(root: Any) -> str:
    """Compact JSON text of a collection, built with an explicit stack.

    Keys that are not strings are written as their text form, and a
    collection met again inside itself is written as ``...``.
    """
    parts: list[str] = []
    size = 0
    open_ids: set[int] = set()
    # ("value", obj) renders obj; ("text", s) emits s; ("leave", id) closes.
    stack: list[tuple[str, Any]] = [("value", root)]
    while stack:
        kind, item = stack.pop()
        if kind == "leave":
            open_ids.discard(item)
            continue
        if kind == "text":
            text = item
        elif isinstance(item, (dict, list)):
            if id(item) in open_ids:
                text = "..."
            else:
                open_ids.add(id(item))
                if isinstance(item, dict):
                    opening, closing = "{", "}"
                    members = [(_key_text(k) + ":", v) for k, v in item.items()]
                else:
                    opening, closing = "[", "]"
                    members = [("", v) for v in item]
                stack.append(("leave", id(item)))
                stack.append(("text", closing))
                for i in range(len(members) - 1, -1, -1):
                    prefix, member = members[i]
                    stack.append(("value", member))
                    stack.append(("text", ("," if i else "") + prefix))
                text = opening
        else:
            text = json.dumps(item, default=str, ensure_ascii=False)
        size += len(text)
        if size > MAX_RENDERED_CHARS:
            raise ValueError(
                f"value renders to more than {MAX_RENDERED_CHARS} characters"
            )
        parts.append(text)
    return "".join(parts)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: Any) -> float | int | None:
    """Return ``value`` as a number if it is one or spells one."""
    if _is_number(value):
        return value
    if isinstance(value, str) and _NUMBER_RE.match(value.strip()):
        return float(value)
    return None


def parse_scalar(text: str) -> Any:
    """Parse an unquoted right-hand side into a scalar."""
    if re.fullmatch(r"[+-]?\d+", text):
        return int(text)
    if _NUMBER_RE.match(text):
        return float(text)
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "null":
        return None
    return text


@dataclass(frozen=True)
class StructuredLiteral:
    """A right-hand side value.

    Attributes:
        raw: The text as written, used for string coercion.
        value: The parsed scalar.
        quoted: Whether the value was quoted (quoted values are strings).
    """

    raw: str
    value: Any
    quoted: bool = False

    @classmethod
    def from_text(cls, raw: str, quoted: bool) -> StructuredLiteral:
        return cls(raw=raw, value=raw if quoted else parse_scalar(raw), quoted=quoted)

    def equals(self, candidate: Any) -> bool:
        """Native equality, falling back to string equality."""
        if _is_number(candidate) and _is_number(self.value):
            if candidate == self.value:
                return True
        elif type(candidate) is type(self.value) and candidate == self.value:
            return True
        return to_text(candidate) == self.raw


@dataclass(frozen=True)
class StructuredMatcher:
    """A compiled structured predicate: format, path, and optional comparison.

    Without an operator the matcher is an existence check: it is satisfied
    when the path reaches at least one value.
    """

    data_format: DataFormat
    path: StructuredPath
    operator: Operator | None = None
    literal: StructuredLiteral | None = None
    items: tuple[StructuredLiteral, ...] = ()
    pattern: re.Pattern[str] | None = field(default=None, compare=False)

    @classmethod
    def compile(
        cls,
        data_format: DataFormat,
        path: StructuredPath,
        operator: Operator | None = None,
        raw: str = "",
        quoted: bool = False,
        items: Iterable[str] = (),
    ) -> StructuredMatcher:
        """Build a matcher, validating the literal against the operator.

        Raises:
            ValueError: If an ordering operator has a non-numeric literal,
                ``in`` has no items, or a regex does not compile.
        """
        if operator is None:
            return cls(data_format, path)

        if operator == Operator.IN:
            members = tuple(StructuredLiteral.from_text(item, False) for item in items)
            if not members:
                raise ValueError("'in' needs at least one value")
            return cls(data_format, path, operator, items=members)

        literal = StructuredLiteral.from_text(raw, quoted)
        if operator.is_ordering and _as_number(literal.value) is None:
            raise ValueError(
                f"'{operator.value}' needs a numeric value, got '{raw}'"
            )
        pattern = None
        if operator == Operator.MATCHES:
            try:
                pattern = re.compile(raw)
            except re.error as e:
                raise ValueError(f"invalid regex '{raw}': {e}") from e
        return cls(data_format, path, operator, literal=literal, pattern=pattern)

    def selector_text(self) -> str:
        """The selector as it is written in a query, e.g. ``yaml:.a.b``."""
        return f"{self.data_format.value}:{self.path}"

    def matches(self, documents: Iterable[Any]) -> bool:
        """Whether any candidate in any document satisfies the predicate.

        Raises:
            StructuredDataError: If a candidate is too large to compare as text.
        """
        for document in documents:
            candidates = navigate(document, self.path)
            if self.operator is None:
                if candidates:
                    return True
                continue
            try:
                if any(self._compare(candidate) for candidate in candidates):
                    return True
            except ValueError as e:
                raise StructuredDataError(self.data_format.value, str(e)) from e
        return False

    def _compare(self, candidate: Any) -> bool:
        op = self.operator
        if op == Operator.IN:
            return any(item.equals(candidate) for item in self.items)

        assert self.literal is not None
        if op == Operator.EQ:
            return self.literal.equals(candidate)
        if op == Operator.NE:
            return not self.literal.equals(candidate)
        if op == Operator.MATCHES:
            assert self.pattern is not None
            return self.pattern.search(to_text(candidate)) is not None
        if op == Operator.CONTAINS:
            if isinstance(candidate, list):
                return any(self.literal.equals(element) for element in candidate)
            return self.literal.raw in to_text(candidate)

        left = _as_number(candidate)
        right = _as_number(self.literal.value)
        if left is None or right is None:
            return False
        if op == Operator.GT:
            return left > right
        if op == Operator.GE:
            return left >= right
        if op == Operator.LT:
            return left < right
        return left <= right
