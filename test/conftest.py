"""Pytest configuration for detect tests."""

import sys
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

# Add parent directory to path so we can import detect without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from detect._types import EntityMetadata, FileType  # noqa: E402
from detect.structured.codecs import (  # noqa: E402
    DataFormat,
    check_size,
    load_documents,
)


class MemoryEntity:
    """An in-memory entity that records how often each accessor is called."""

    def __init__(
        self,
        path: str,
        content: bytes | None,
        metadata: EntityMetadata | None,
        chunk_size: int | None,
    ) -> None:
        self._path = path
        self.content = content
        self._metadata = metadata
        self.forced_chunk_size = chunk_size
        self.metadata_calls = 0
        self.content_calls = 0
        self.structured_calls = 0

    @property
    def path(self) -> str:
        return self._path

    def metadata(self) -> EntityMetadata:
        self.metadata_calls += 1
        if self._metadata is None:
            raise PermissionError(f"cannot stat {self._path}")
        return self._metadata

    def content_stream(self, chunk_size: int) -> Iterator[bytes]:
        self.content_calls += 1
        if self.content is None:
            raise PermissionError(f"cannot read {self._path}")
        size = self.forced_chunk_size or chunk_size
        return iter(
            [self.content[i : i + size] for i in range(0, len(self.content), size)]
        )

    def structured_documents(self, data_format: DataFormat, max_size: int) -> list[Any]:
        self.structured_calls += 1
        if self.content is None:
            raise PermissionError(f"cannot read {self._path}")
        check_size(data_format, len(self.content), max_size)
        return load_documents(data_format, self.content)


@pytest.fixture
def make_entity() -> "type[_EntityFactory]":  # Return a callable factory class
    """Fixture that provides a factory for creating in-memory entities."""
    return _EntityFactory


class _EntityFactory:
    """Factory class for creating MemoryEntity objects in tests."""

    @staticmethod
    def create(
        path: str = "src/lib.rs",
        content: bytes | str | None = b"",
        file_type: FileType = FileType.FILE,
        size: int | None = None,
        modified: datetime | None = None,
        unreadable_metadata: bool = False,
        chunk_size: int | None = None,
    ) -> MemoryEntity:
        """Create a MemoryEntity for testing.

        ``size`` defaults to the length of ``content``.
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        if size is None and content is not None:
            size = len(content)
        metadata = None
        if not unreadable_metadata:
            metadata = EntityMetadata(
                file_type=file_type,
                size=size,
                modified=modified,
                created=modified,
                accessed=modified,
            )
        return MemoryEntity(path, content, metadata, chunk_size)
