"""The accessor interface every traversal backend implements."""

from collections.abc import Iterator
from typing import Any, Protocol

from .._types import EntityMetadata
from ..structured.codecs import DataFormat


class Entity(Protocol):
    """One candidate entity, as seen by the evaluation engine.

    ``path`` must be available without I/O. The accessor methods are called
    lazily, at most once per evaluation, and only when a predicate of the
    matching phase survives short-circuiting. Any of them may raise
    ``OSError`` (or ``StructuredDataError``); the engine treats that as a
    false predicate for this entity only.
    """

    @property
    def path(self) -> str:
        """Path relative to the traversal root, with ``/`` separators."""
        ...

    def metadata(self) -> EntityMetadata:
        """Return the entity's type, size and timestamps."""
        ...

    def content_stream(self, chunk_size: int) -> Iterator[bytes]:
        """Yield the entity's bytes in chunks of at most ``chunk_size``."""
        ...

    def structured_documents(self, data_format: DataFormat, max_size: int) -> list[Any]:
        """Parse the entity as ``data_format``, refusing documents over ``max_size``."""
        ...
