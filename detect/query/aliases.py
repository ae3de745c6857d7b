"""Static spelling tables for selectors, operators and enum values.

All lookups are case-insensitive: callers lower-case the spelling first.
Every table is built once at import time.
"""

import difflib
from collections.abc import Iterable

from .._types import FileType, Operator
from ..structured.codecs import DataFormat
from .types import Family, Selector

SELECTOR_ALIASES: dict[str, Selector] = {
    "name": Selector.NAME,
    "filename": Selector.NAME,
    "basename": Selector.BASENAME,
    "stem": Selector.BASENAME,
    "ext": Selector.EXT,
    "extension": Selector.EXT,
    "path": Selector.PATH,
    "dir": Selector.DIR,
    "parent": Selector.DIR,
    "directory": Selector.DIR,
    "depth": Selector.DEPTH,
    "size": Selector.SIZE,
    "filesize": Selector.SIZE,
    "bytes": Selector.SIZE,
    "type": Selector.TYPE,
    "filetype": Selector.TYPE,
    "modified": Selector.MODIFIED,
    "mtime": Selector.MODIFIED,
    "created": Selector.CREATED,
    "ctime": Selector.CREATED,
    "accessed": Selector.ACCESSED,
    "atime": Selector.ACCESSED,
    "content": Selector.CONTENT,
    "contents": Selector.CONTENT,
    "text": Selector.CONTENT,
}

STRUCTURED_FORMATS: dict[str, tuple[Selector, DataFormat]] = {
    "yaml": (Selector.YAML, DataFormat.YAML),
    "json": (Selector.JSON, DataFormat.JSON),
    "toml": (Selector.TOML, DataFormat.TOML),
}

FILE_TYPE_ALIASES: dict[str, FileType] = {
    "file": FileType.FILE,
    "dir": FileType.DIR,
    "directory": FileType.DIR,
    "symlink": FileType.SYMLINK,
    "link": FileType.SYMLINK,
    "socket": FileType.SOCKET,
    "sock": FileType.SOCKET,
    "fifo": FileType.FIFO,
    "pipe": FileType.FIFO,
    "block": FileType.BLOCK,
    "blockdev": FileType.BLOCK,
    "char": FileType.CHAR,
    "chardev": FileType.CHAR,
}

_EQUALITY = {
    "==": Operator.EQ,
    "=": Operator.EQ,
    "eq": Operator.EQ,
    "!=": Operator.NE,
    "<>": Operator.NE,
    "ne": Operator.NE,
    "neq": Operator.NE,
}

_MATCHES = {
    "~=": Operator.MATCHES,
    "=~": Operator.MATCHES,
    "~": Operator.MATCHES,
    "matches": Operator.MATCHES,
    "regex": Operator.MATCHES,
}

_CONTAINS = {
    "contains": Operator.CONTAINS,
    "has": Operator.CONTAINS,
    "includes": Operator.CONTAINS,
}

_ORDERING = {
    ">": Operator.GT,
    "gt": Operator.GT,
    ">=": Operator.GE,
    "=>": Operator.GE,
    "gte": Operator.GE,
    "ge": Operator.GE,
    "<": Operator.LT,
    "lt": Operator.LT,
    "<=": Operator.LE,
    "=<": Operator.LE,
    "lte": Operator.LE,
    "le": Operator.LE,
}

_IN = {"in": Operator.IN}

OPERATOR_ALIASES: dict[Family, dict[str, Operator]] = {
    Family.STRING: {
        **_EQUALITY,
        **_MATCHES,
        **_CONTAINS,
        **_IN,
        "glob": Operator.GLOB,
        "like": Operator.GLOB,
    },
    Family.NUMERIC: {**_EQUALITY, **_ORDERING, **_IN},
    Family.TEMPORAL: {
        **_EQUALITY,
        **_ORDERING,
        "on": Operator.EQ,
        "before": Operator.LT,
        "after": Operator.GT,
    },
    Family.ENUM: {**_EQUALITY, **_IN},
    Family.CONTENT: {
        "==": Operator.EQ,
        "=": Operator.EQ,
        "eq": Operator.EQ,
        **_MATCHES,
        **_CONTAINS,
    },
    Family.STRUCTURED: {**_EQUALITY, **_ORDERING, **_MATCHES, **_CONTAINS, **_IN},
}

ALL_OPERATOR_SPELLINGS = frozenset(
    spelling for table in OPERATOR_ALIASES.values() for spelling in table
)

GLOB_CHARS = frozenset("*?[")


def canonical_operators(family: Family) -> list[str]:
    """Canonical spellings of the operators valid for a family."""
    seen: list[str] = []
    for operator in OPERATOR_ALIASES[family].values():
        if operator.value not in seen:
            seen.append(operator.value)
    return seen


def close_matches(spelling: str, candidates: Iterable[str]) -> list[str]:
    """Return the valid spellings nearest to ``spelling``."""
    return difflib.get_close_matches(
        spelling.lower(), list(candidates), n=3, cutoff=0.6
    )


def suggest(spelling: str, candidates: Iterable[str], always_list: bool = False) -> str:
    """Build a correction hint: the nearest spellings, or the full list.

    Args:
        spelling: What the user wrote.
        candidates: Valid spellings at that position.
        always_list: Append the full list even when a close match exists.
    """
    options = list(candidates)
    nearest = close_matches(spelling, options)
    listing = f"valid values: {', '.join(options)}"
    if not nearest:
        return listing
    hint = "did you mean " + " or ".join(f"'{n}'" for n in nearest) + "?"
    return f"{hint} {listing}" if always_list else hint
