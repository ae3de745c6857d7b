"""Vocabulary shared by the query compiler, the matchers and the backends."""

import stat
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Category(Enum):
    """Predicate categories, in ascending evaluation cost."""

    NAME = 1  # Path string only, no I/O
    METADATA = 2  # One stat-like call
    STRUCTURED = 3  # Read and parse the entity as a document
    CONTENT = 4  # Stream the entity's bytes


class Operator(Enum):
    """Canonical comparison operators."""

    EQ = "=="
    NE = "!="
    MATCHES = "~="
    CONTAINS = "contains"
    IN = "in"
    GLOB = "glob"
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="

    @property
    def is_ordering(self) -> bool:
        """Whether this is one of >, >=, <, <=."""
        return self in (Operator.GT, Operator.GE, Operator.LT, Operator.LE)


class FileType(Enum):
    """Kinds of entity, as seen by ``type`` predicates."""

    FILE = "file"
    DIR = "dir"
    SYMLINK = "symlink"
    SOCKET = "socket"
    FIFO = "fifo"
    BLOCK = "block"
    CHAR = "char"

    @classmethod
    def from_mode(cls, mode: int) -> "FileType":
        """Classify an ``st_mode`` value."""
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        if stat.S_ISDIR(mode):
            return cls.DIR
        if stat.S_ISSOCK(mode):
            return cls.SOCKET
        if stat.S_ISFIFO(mode):
            return cls.FIFO
        if stat.S_ISBLK(mode):
            return cls.BLOCK
        if stat.S_ISCHR(mode):
            return cls.CHAR
        return cls.FILE


@dataclass(frozen=True)
class EntityMetadata:
    """Result of an entity's metadata accessor.

    Attributes that a backend cannot supply are None; predicates over them
    evaluate to false.
    """

    file_type: FileType
    size: int | None = None
    modified: datetime | None = None
    created: datetime | None = None
    accessed: datetime | None = None
