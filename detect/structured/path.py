"""Path expressions for navigating structured documents.

Grammar:
    path      = "." | segment, { segment } ;
    segment   = ".", key | "..", key | "[", index, "]" | "[*]" | "[", quoted, "]" ;
    key       = ident_char, { ident_char } ;

Examples:
    .name                  - top-level field
    .server.port           - nested field
    .items[0]              - array index
    .features[*].enabled   - every element of an array
    ..version              - ``version`` at any depth
    .["key with spaces"]   - quoted field name
"""

from __future__ import annotations

from dataclasses import dataclass


class StructuredPathError(ValueError):
    """Raised when a structured path cannot be parsed."""

    def __init__(self, message: str, position: int) -> None:
        self.position = position
        super().__init__(f"{message} at position {position}")


@dataclass(frozen=True)
class Field:
    """Object member access: ``.name``."""

    name: str


@dataclass(frozen=True)
class Index:
    """Array element access: ``[n]``."""

    index: int


@dataclass(frozen=True)
class Wildcard:
    """Every element of an array: ``[*]``."""


@dataclass(frozen=True)
class RecursiveField:
    """``..name``: the field at any depth below the current values."""

    name: str


Segment = Field | Index | Wildcard | RecursiveField


def _is_ident_char(char: str) -> bool:
    """Check if a character can appear in an unquoted key."""
    return char.isalnum() or char in "_-"


def _render_key(name: str) -> str:
    if name and all(_is_ident_char(c) for c in name):
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'["{escaped}"]'


@dataclass(frozen=True)
class StructuredPath:
    """A parsed path: an immutable sequence of segments."""

    segments: tuple[Segment, ...]

    def __str__(self) -> str:
        if not self.segments:
            return "."
        parts: list[str] = []
        for segment in self.segments:
            if isinstance(segment, Field):
                key = _render_key(segment.name)
                parts.append(key if key.startswith("[") else f".{key}")
            elif isinstance(segment, RecursiveField):
                parts.append(f"..{_render_key(segment.name)}")
            elif isinstance(segment, Index):
                parts.append(f"[{segment.index}]")
            else:
                parts.append("[*]")
        text = "".join(parts)
        return text if text.startswith(".") else f".{text}"


def _parse_key(text: str, pos: int) -> tuple[str, int]:
    """Parse an unquoted key starting at pos."""
    start = pos
    while pos < len(text) and _is_ident_char(text[pos]):
        pos += 1
    if pos == start:
        raise StructuredPathError("Expected field name", pos)
    return text[start:pos], pos


def _parse_quoted_key(text: str, pos: int) -> tuple[str, int]:
    """Parse ``"key"`` or ``'key'`` starting at the opening quote."""
    quote = text[pos]
    start = pos
    pos += 1
    chars: list[str] = []
    while pos < len(text):
        char = text[pos]
        if char == quote:
            return "".join(chars), pos + 1
        if char == "\\" and pos + 1 < len(text):
            chars.append(text[pos + 1])
            pos += 2
            continue
        chars.append(char)
        pos += 1
    raise StructuredPathError("Unterminated quoted field name", start)


def _parse_bracket(text: str, pos: int) -> tuple[Segment, int]:
    """Parse a bracketed segment starting at the opening bracket."""
    start = pos
    pos += 1
    if pos >= len(text):
        raise StructuredPathError("Unterminated '['", start)

    segment: Segment
    char = text[pos]
    if char == "*":
        segment = Wildcard()
        pos += 1
    elif char in "\"'":
        name, pos = _parse_quoted_key(text, pos)
        segment = Field(name)
    elif char.isdigit():
        digits_start = pos
        while pos < len(text) and text[pos].isdigit():
            pos += 1
        segment = Index(int(text[digits_start:pos]))
    else:
        raise StructuredPathError(
            "Expected array index, '*' or quoted field name", pos
        )

    if pos >= len(text) or text[pos] != "]":
        raise StructuredPathError("Expected ']'", pos)
    return segment, pos + 1


def parse_path(text: str) -> StructuredPath:
    """Parse a structured path.

    Args:
        text: The path text, e.g. ``.features[*].enabled``.

    Returns:
        The parsed path.

    Raises:
        StructuredPathError: If the path is malformed.
    """
    if not text.startswith("."):
        raise StructuredPathError("Path must start with '.'", 0)
    if text == ".":
        return StructuredPath(segments=())

    segments: list[Segment] = []
    pos = 0
    while pos < len(text):
        if text.startswith("..", pos):
            if text.startswith("[", pos + 2):
                segment, pos = _parse_bracket(text, pos + 2)
                if not isinstance(segment, Field):
                    raise StructuredPathError("Expected field name after '..'", pos)
                name = segment.name
            else:
                name, pos = _parse_key(text, pos + 2)
            segments.append(RecursiveField(name))
        elif text[pos] == ".":
            pos += 1
            if pos < len(text) and text[pos] == "[":
                # ".[0]" and '.["key"]' apply the bracket to the current value
                segment, pos = _parse_bracket(text, pos)
                segments.append(segment)
            else:
                name, pos = _parse_key(text, pos)
                segments.append(Field(name))
        elif text[pos] == "[":
            segment, pos = _parse_bracket(text, pos)
            segments.append(segment)
        else:
            raise StructuredPathError(f"Unexpected character '{text[pos]}'", pos)

    return StructuredPath(segments=tuple(segments))
