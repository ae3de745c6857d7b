"""Exceptions raised by detect.

Only :class:`QuerySyntaxError` and :class:`QueryTypeError` are fatal: they are
raised while a query is being compiled, before any entity is evaluated. The
remaining errors are raised by entity backends and are turned into a ``false``
predicate by the evaluation engine.
"""

from collections.abc import Iterable
from enum import Enum


class DetectError(Exception):
    """Base class for all detect errors."""


class QueryError(DetectError):
    """Base class for errors in query text."""

    def __init__(self, message: str, query: str, position: int) -> None:
        self.message = message
        self.query = query
        self.position = position
        # Offsets are reported in bytes of the UTF-8 encoded query.
        self.offset = len(query[:position].encode("utf-8"))
        super().__init__(message)


class QuerySyntaxError(QueryError):
    """Raised when the query text is not a well-formed token stream."""

    def __init__(
        self,
        message: str,
        query: str,
        position: int,
        expected: Iterable[str] = (),
    ) -> None:
        super().__init__(message, query, position)
        self.expected = frozenset(expected)
        text = f"{message} at byte {self.offset}"
        if self.expected:
            text += f" (expected one of: {', '.join(sorted(self.expected))})"
        self.args = (text,)


class TypeErrorKind(Enum):
    """The kinds of semantic errors found while type-checking a query."""

    UNKNOWN_SELECTOR = "unknown selector"
    UNKNOWN_FORMAT = "unknown structured format"
    INVALID_PATH = "invalid structured path"
    UNKNOWN_OPERATOR = "unknown operator"
    INCOMPATIBLE_OPERATOR = "incompatible operator"
    INVALID_VALUE = "invalid value"
    UNKNOWN_ALIAS = "unknown alias"


class QueryTypeError(QueryError):
    """Raised when a selector, operator or value is invalid.

    Attributes:
        kind: Which check failed.
        token: The offending selector, operator or value as written.
        suggestion: A human readable correction, e.g. ``did you mean 'dir'?``.
        valid: The full set of accepted spellings at that point, if known.
    """

    def __init__(
        self,
        kind: TypeErrorKind,
        message: str,
        query: str,
        position: int,
        token: str,
        suggestion: str | None = None,
        valid: Iterable[str] = (),
    ) -> None:
        super().__init__(message, query, position)
        self.kind = kind
        self.token = token
        self.suggestion = suggestion
        self.valid = tuple(valid)
        text = f"{message} at byte {self.offset}"
        if suggestion:
            text += f"; {suggestion}"
        self.args = (text,)


class StructuredDataError(DetectError):
    """Raised when a document cannot be read as structured data."""

    def __init__(self, data_format: str, reason: str) -> None:
        self.data_format = data_format
        self.reason = reason
        super().__init__(f"{data_format}: {reason}")


class GitCommandError(DetectError):
    """Raised when a git command used for tree traversal fails."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


class DirectoryNotFoundError(DetectError):
    """Raised when the traversal root does not exist."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        super().__init__(f"Directory not found: {directory}")


class RootNotADirectoryError(DetectError):
    """Raised when the traversal root is not a directory."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Not a directory: {path}")
