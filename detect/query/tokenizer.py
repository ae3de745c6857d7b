"""Tokenizer for the query language."""

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum, auto

from ..errors import QuerySyntaxError


class TokenType(Enum):
    """Token types for the query language."""

    WORD = auto()  # Bare word: selector, operator, value, alias or glob
    STRING = auto()  # Quoted string ('...' or "...")
    SET = auto()  # Bracketed value set: [a, "b", c]
    AND = auto()  # &&
    OR = auto()  # ||
    NOT = auto()  # !
    LPAREN = auto()  # (
    RPAREN = auto()  # )
    EOF = auto()  # End of input


@dataclass(frozen=True)
class Token:
    """A token from the query language.

    Attributes:
        type: The type of token.
        value: The token's text (unescaped content for STRING tokens).
        position: Character index of the token in the query.
        items: For SET tokens, the unescaped set members.
    """

    type: TokenType
    value: str
    position: int = 0
    items: tuple[str, ...] = ()


_WHITESPACE = " \t\r\n"
_QUOTES = "\"'"
_ESCAPES = {"\\": "\\", '"': '"', "'": "'", "n": "\n", "t": "\t", "r": "\r"}


def _skip_whitespace(query: str, pos: int) -> int:
    """Skip whitespace characters and return new position."""
    while pos < len(query) and query[pos] in _WHITESPACE:
        pos += 1
    return pos


def _parse_string(query: str, pos: int) -> tuple[str, int]:
    """Parse a quoted string starting at pos (the opening quote).

    Args:
        query: The query string.
        pos: Position of the opening quote.

    Returns:
        Tuple of (unescaped value, position after the closing quote).

    Raises:
        QuerySyntaxError: If the string is unterminated or has a bad escape.
    """
    quote = query[pos]
    start_pos = pos
    pos += 1  # Skip opening quote
    value_chars: list[str] = []

    while pos < len(query):
        char = query[pos]

        if char == quote:
            return "".join(value_chars), pos + 1
        elif char == "\\":
            if pos + 1 >= len(query):
                raise QuerySyntaxError(
                    "Unterminated escape sequence", query, pos, expected=_ESCAPES
                )
            next_char = query[pos + 1]
            if next_char not in _ESCAPES:
                raise QuerySyntaxError(
                    f"Invalid escape sequence: \\{next_char}",
                    query,
                    pos,
                    expected=_ESCAPES,
                )
            value_chars.append(_ESCAPES[next_char])
            pos += 2
        else:
            value_chars.append(char)
            pos += 1

    raise QuerySyntaxError("Unterminated string", query, start_pos, expected=[quote])


def _parse_set(query: str, pos: int) -> tuple[tuple[str, ...], int]:
    """Parse a bracketed set starting at pos (the opening bracket).

    Items are separated by commas, may be quoted, and a trailing comma is
    allowed.

    Returns:
        Tuple of (items, position after the closing bracket).
    """
    pos += 1  # Skip opening bracket
    items: list[str] = []
    while True:
        pos = _skip_whitespace(query, pos)
        if pos >= len(query):
            raise QuerySyntaxError("Unterminated set", query, pos, expected=["]"])
        char = query[pos]
        if char == "]":
            return tuple(items), pos + 1
        if char in _QUOTES:
            item, pos = _parse_string(query, pos)
        else:
            start = pos
            while pos < len(query) and query[pos] not in _WHITESPACE + ",]" + _QUOTES:
                pos += 1
            item = query[start:pos]
            if not item:
                raise QuerySyntaxError(
                    "Expected set item", query, pos, expected=["value", "]"]
                )
        items.append(item)
        pos = _skip_whitespace(query, pos)
        if pos < len(query) and query[pos] == ",":
            pos += 1
        elif pos < len(query) and query[pos] != "]":
            raise QuerySyntaxError(
                f"Unexpected character in set: {query[pos]}",
                query,
                pos,
                expected=[",", "]"],
            )


def _scan_bracket(query: str, pos: int) -> int:
    """Skip a bracketed segment inside a bare word, honoring quotes."""
    start = pos
    pos += 1
    while pos < len(query):
        char = query[pos]
        if char in _QUOTES:
            _, pos = _parse_string(query, pos)
            continue
        if char == "]":
            return pos + 1
        pos += 1
    raise QuerySyntaxError("Unterminated bracket", query, start, expected=["]"])


def _is_word_end(query: str, pos: int) -> bool:
    """Check whether a bare word ends at pos."""
    char = query[pos]
    if char in _WHITESPACE or char in "()" or char in _QUOTES:
        return True
    return query[pos : pos + 2] in ("&&", "||")


def tokenize(query: str) -> Iterator[Token]:
    """Tokenize a query string into tokens.

    ``AND``, ``OR`` and ``NOT`` keywords are emitted as WORD tokens; whether a
    word is a keyword depends on where it appears, which only the parser knows.

    Args:
        query: The query string to tokenize.

    Yields:
        Token objects, ending with an EOF token.

    Raises:
        QuerySyntaxError: If tokenization fails.
    """
    pos = 0
    length = len(query)

    while pos < length:
        pos = _skip_whitespace(query, pos)
        if pos >= length:
            break

        char = query[pos]
        two = query[pos : pos + 2]

        if two == "&&":
            yield Token(type=TokenType.AND, value=two, position=pos)
            pos += 2
        elif two == "||":
            yield Token(type=TokenType.OR, value=two, position=pos)
            pos += 2
        # A lone '!' is negation; '!=' starts an operator word
        elif char == "!" and two != "!=":
            yield Token(type=TokenType.NOT, value="!", position=pos)
            pos += 1
        elif char == "(":
            yield Token(type=TokenType.LPAREN, value="(", position=pos)
            pos += 1
        elif char == ")":
            yield Token(type=TokenType.RPAREN, value=")", position=pos)
            pos += 1
        elif char in _QUOTES:
            start = pos
            value, pos = _parse_string(query, pos)
            yield Token(type=TokenType.STRING, value=value, position=start)
        elif char == "[":
            start = pos
            items, pos = _parse_set(query, pos)
            yield Token(
                type=TokenType.SET,
                value=query[start:pos],
                position=start,
                items=items,
            )
        else:
            start = pos
            while pos < length and not _is_word_end(query, pos):
                if query[pos] == "[":
                    pos = _scan_bracket(query, pos)
                else:
                    pos += 1
            yield Token(type=TokenType.WORD, value=query[start:pos], position=start)

    yield Token(type=TokenType.EOF, value="", position=length)
