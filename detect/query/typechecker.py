"""Semantic validation: raw tree to typed tree.

Each raw predicate is resolved through the static alias tables in
:mod:`detect.query.aliases`, its operator is checked against the selector's
family, and its literal is parsed into typed form (byte counts, timestamps,
enum members, compiled patterns and matchers). The first error aborts.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime
from typing import NoReturn

from .._types import FileType, Operator
from ..content import ContentMatcher
from ..errors import QueryTypeError, TypeErrorKind
from ..structured.path import StructuredPathError, parse_path
from ..structured.resolver import StructuredMatcher
from .aliases import (
    ALL_OPERATOR_SPELLINGS,
    FILE_TYPE_ALIASES,
    GLOB_CHARS,
    OPERATOR_ALIASES,
    SELECTOR_ALIASES,
    STRUCTURED_FORMATS,
    canonical_operators,
    suggest,
)
from .parser import RawAnd, RawExpr, RawNot, RawOr, RawPredicate, RawValue, parse_raw
from .types import (
    AndExpr,
    Expr,
    Family,
    NotExpr,
    OrExpr,
    Predicate,
    Selector,
    to_canonical_string,
)
from .values import CompiledPattern, parse_count, parse_size, parse_time, split_items

logger = logging.getLogger(__name__)

_ENUM_NAMES = [file_type.value for file_type in FileType]


class _Checker:
    """Type-checks raw predicates of one query."""

    def __init__(self, query: str, now: datetime | None) -> None:
        self.query = query
        self.now = now

    def _fail(
        self,
        kind: TypeErrorKind,
        message: str,
        position: int,
        token: str,
        suggestion: str | None = None,
        valid: list[str] | None = None,
    ) -> NoReturn:
        raise QueryTypeError(
            kind,
            message,
            self.query,
            position,
            token,
            suggestion=suggestion,
            valid=valid or (),
        )

    def check(self, raw: RawPredicate) -> Predicate:
        """Type-check one raw predicate."""
        if raw.operator is None:
            return self._check_word(raw)
        if ":" in raw.selector:
            return self._check_structured(raw)

        selector = SELECTOR_ALIASES.get(raw.selector.lower())
        if selector is None:
            self._fail(
                TypeErrorKind.UNKNOWN_SELECTOR,
                f"Unknown selector '{raw.selector}'",
                raw.position,
                raw.selector,
                suggestion=suggest(raw.selector, SELECTOR_ALIASES),
                valid=[s.value for s in Selector],
            )
        operator = self._operator(raw, selector.family, selector.value)
        assert raw.value is not None
        return Predicate(selector, operator, self._value(selector, operator, raw.value))

    def _operator(self, raw: RawPredicate, family: Family, selector: str) -> Operator:
        """Resolve an operator spelling within a selector's family."""
        assert raw.operator is not None
        spelling = raw.operator.lower()
        operator = OPERATOR_ALIASES[family].get(spelling)
        if operator is not None:
            return operator

        valid = canonical_operators(family)
        if spelling in ALL_OPERATOR_SPELLINGS:
            self._fail(
                TypeErrorKind.INCOMPATIBLE_OPERATOR,
                f"Operator '{raw.operator}' cannot be used with '{selector}'",
                raw.operator_position,
                raw.operator,
                suggestion=f"valid operators for '{selector}': {', '.join(valid)}",
                valid=valid,
            )
        self._fail(
            TypeErrorKind.UNKNOWN_OPERATOR,
            f"Unknown operator '{raw.operator}'",
            raw.operator_position,
            raw.operator,
            suggestion=suggest(raw.operator, OPERATOR_ALIASES[family]),
            valid=valid,
        )

    def _invalid_value(self, value: RawValue, message: str, hint: str) -> NoReturn:
        self._fail(
            TypeErrorKind.INVALID_VALUE,
            message,
            value.position,
            value.text,
            suggestion=hint,
        )

    def _items(self, value: RawValue) -> tuple[str, ...]:
        """The members of a set literal."""
        if value.items is not None:
            items = value.items
        elif value.quoted:
            items = (value.text,)
        else:
            items = split_items(value.text)
        if not items:
            self._invalid_value(value, "Empty set", "write 'in [a, b]'")
        return items

    def _value(self, selector: Selector, operator: Operator, value: RawValue) -> object:
        """Parse a literal into its typed form."""
        family = selector.family
        if value.items is not None and operator != Operator.IN:
            self._invalid_value(
                value,
                f"A set of values needs 'in', not '{operator.value}'",
                f"write '{selector.value} in {value.text}'",
            )

        if family == Family.STRING:
            return self._string_value(operator, value)
        if family == Family.NUMERIC:
            parse = parse_size if selector == Selector.SIZE else parse_count
            if operator == Operator.IN:
                return frozenset(
                    self._number(parse, item, value) for item in self._items(value)
                )
            return self._number(parse, value.text, value)
        if family == Family.TEMPORAL:
            try:
                return parse_time(value.text, self.now)
            except ValueError as e:
                self._invalid_value(value, f"Invalid time '{value.text}'", str(e))
        if family == Family.ENUM:
            if operator == Operator.IN:
                return frozenset(
                    self._file_type(item, value) for item in self._items(value)
                )
            return self._file_type(value.text, value)

        # Content
        try:
            return ContentMatcher.compile(operator, value.text)
        except re.error as e:
            self._invalid_value(value, f"Invalid regex '{value.text}'", str(e))

    def _string_value(self, operator: Operator, value: RawValue) -> object:
        if operator == Operator.IN:
            return frozenset(self._items(value))
        if operator in (Operator.MATCHES, Operator.GLOB):
            try:
                return CompiledPattern(value.text, is_glob=operator == Operator.GLOB)
            except re.error as e:
                self._invalid_value(value, f"Invalid regex '{value.text}'", str(e))
        return value.text

    def _number(
        self, parse: Callable[[str], int], text: str, value: RawValue
    ) -> int:
        try:
            return parse(text)
        except ValueError as e:
            self._invalid_value(value, f"Invalid number '{text}'", str(e))

    def _file_type(self, text: str, value: RawValue) -> FileType:
        file_type = FILE_TYPE_ALIASES.get(text.lower())
        if file_type is None:
            self._fail(
                TypeErrorKind.INVALID_VALUE,
                f"Invalid type '{text}'",
                value.position,
                text,
                suggestion=suggest(text, _ENUM_NAMES, always_list=True),
                valid=_ENUM_NAMES,
            )
        return file_type

    def _check_structured(self, raw: RawPredicate) -> Predicate:
        """Type-check ``yaml:PATH``, ``json:PATH`` and ``toml:PATH`` predicates."""
        prefix, _, path_text = raw.selector.partition(":")
        entry = STRUCTURED_FORMATS.get(prefix.lower())
        if entry is None:
            self._fail(
                TypeErrorKind.UNKNOWN_FORMAT,
                f"Unknown structured format '{prefix}'",
                raw.position,
                prefix,
                suggestion=suggest(prefix, STRUCTURED_FORMATS),
                valid=list(STRUCTURED_FORMATS),
            )
        selector, data_format = entry
        try:
            path = parse_path(path_text)
        except StructuredPathError as e:
            self._fail(
                TypeErrorKind.INVALID_PATH,
                f"Invalid structured path '{path_text}': {e}",
                raw.position + len(prefix) + 1 + e.position,
                path_text,
                suggestion="paths look like .field, .list[0], .list[*].x or ..field",
            )

        if raw.operator is None:
            matcher = StructuredMatcher.compile(data_format, path)
            return Predicate(selector, None, matcher)

        operator = self._operator(raw, Family.STRUCTURED, prefix.lower())
        value = raw.value
        assert value is not None
        if value.items is not None and operator != Operator.IN:
            self._invalid_value(
                value,
                f"A set of values needs 'in', not '{operator.value}'",
                "write 'in [a, b]'",
            )
        items = self._items(value) if operator == Operator.IN else ()
        try:
            matcher = StructuredMatcher.compile(
                data_format,
                path,
                operator,
                raw=value.text,
                quoted=value.quoted,
                items=items,
            )
        except ValueError as e:
            self._invalid_value(value, f"Invalid value '{value.text}'", str(e))
        return Predicate(selector, operator, matcher)

    def _check_word(self, raw: RawPredicate) -> Predicate:
        """Type-check a lone word: structured existence, type alias or glob."""
        word = raw.selector
        if ":" in word:
            return self._check_structured(raw)

        file_type = FILE_TYPE_ALIASES.get(word.lower())
        if file_type is not None:
            return Predicate(Selector.TYPE, Operator.EQ, file_type)

        if GLOB_CHARS & set(word):
            selector = Selector.PATH if "/" in word else Selector.NAME
            try:
                pattern = CompiledPattern(word, is_glob=True)
                return Predicate(selector, Operator.GLOB, pattern)
            except re.error as e:
                self._fail(
                    TypeErrorKind.INVALID_VALUE,
                    f"Invalid glob '{word}'",
                    raw.position,
                    word,
                    suggestion=str(e),
                )

        if word.lower() in SELECTOR_ALIASES:
            self._fail(
                TypeErrorKind.UNKNOWN_ALIAS,
                f"Selector '{word}' needs an operator and a value",
                raw.position,
                word,
                suggestion=f"write '{word} <operator> <value>'",
            )
        self._fail(
            TypeErrorKind.UNKNOWN_ALIAS,
            f"Unknown alias '{word}'",
            raw.position,
            word,
            suggestion=suggest(word, FILE_TYPE_ALIASES),
            valid=list(FILE_TYPE_ALIASES),
        )


def typecheck(raw: RawExpr, query: str, now: datetime | None = None) -> Expr:
    """Turn a raw tree into a typed tree.

    Args:
        raw: The output of :func:`detect.query.parser.parse_raw`.
        query: The query text, for error positions.
        now: Reference time for relative timestamps (defaults to now).

    Returns:
        The typed expression tree.

    Raises:
        QueryTypeError: On the first invalid selector, operator or value.
    """
    checker = _Checker(query, now)
    stack: list[tuple[RawExpr, bool]] = [(raw, False)]
    results: list[Expr] = []

    while stack:
        node, expanded = stack.pop()
        if isinstance(node, RawPredicate):
            results.append(checker.check(node))
            continue

        operands = (node.operand,) if isinstance(node, RawNot) else node.operands
        if not expanded:
            stack.append((node, True))
            stack.extend((operand, False) for operand in reversed(operands))
            continue

        count = len(operands)
        typed = tuple(results[-count:])
        del results[-count:]
        if isinstance(node, RawNot):
            results.append(NotExpr(typed[0]))
        elif isinstance(node, RawAnd):
            results.append(AndExpr(typed))
        else:
            assert isinstance(node, RawOr)
            results.append(OrExpr(typed))

    return results[0]


def parse_query(query: str, now: datetime | None = None) -> Expr:
    """Parse and type-check a query string.

    Args:
        query: The query string to parse.
        now: Reference time for relative timestamps (defaults to now).

    Returns:
        The typed expression tree.

    Raises:
        QuerySyntaxError: If the query is malformed.
        QueryTypeError: If a selector, operator or value is invalid.

    Examples:
        >>> parse_query("ext == rs")
        Predicate(selector=<Selector.EXT: 'ext'>, operator=<Operator.EQ: '=='>, ...)

        >>> parse_query("type == dirq")
        Traceback (most recent call last):
        ...
        QueryTypeError: Invalid type 'dirq' at byte 8; did you mean 'dir'? ...
    """
    expr = typecheck(parse_raw(query), query, now)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Parsed query {query!r} as {to_canonical_string(expr)}")
    return expr
