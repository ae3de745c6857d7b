"""Filesystem traversal backend."""

import logging
import os
from collections.abc import Iterator
from datetime import datetime
from pathlib import PurePath
from typing import Any

from .._types import EntityMetadata, FileType
from ..config import DetectConfig
from ..errors import DirectoryNotFoundError, RootNotADirectoryError
from ..structured.codecs import DataFormat, check_size, load_documents

logger = logging.getLogger(__name__)


def _timestamp(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds).astimezone()


class FsEntity:
    """A file, directory or other node below a traversal root.

    Metadata comes from ``os.lstat``, so symlinks are reported as symlinks
    rather than as their targets.
    """

    def __init__(self, root: str, path: str) -> None:
        self.root = root
        self._path = path
        self.full_path = os.path.join(root, path)

    def __repr__(self) -> str:
        return f"FsEntity({self._path!r})"

    @property
    def path(self) -> str:
        return self._path

    def metadata(self) -> EntityMetadata:
        st = os.lstat(self.full_path)
        # st_birthtime exists on macOS/BSD (and Windows from 3.12); elsewhere
        # the inode change time is the closest available value.
        created = getattr(st, "st_birthtime", None) or st.st_ctime
        return EntityMetadata(
            file_type=FileType.from_mode(st.st_mode),
            size=st.st_size,
            modified=_timestamp(st.st_mtime),
            created=_timestamp(created),
            accessed=_timestamp(st.st_atime),
        )

    def content_stream(self, chunk_size: int) -> Iterator[bytes]:
        with open(self.full_path, "rb") as f:
            while chunk := f.read(chunk_size):
                yield chunk

    def structured_documents(self, data_format: DataFormat, max_size: int) -> list[Any]:
        with open(self.full_path, "rb") as f:
            data = f.read(max_size + 1)
        check_size(data_format, len(data), max_size)
        return load_documents(data_format, data)


def _relative(root: str, full_path: str) -> str:
    return PurePath(os.path.relpath(full_path, root)).as_posix()


def walk_fs(root: str, config: DetectConfig | None = None) -> Iterator[FsEntity]:
    """Yield every entity below ``root`` (the root itself excluded).

    Directories are yielded before their contents, in sorted order. Hidden
    entries (names starting with ``.``) are skipped unless
    ``config.include_hidden`` is set. Unreadable directories are logged and
    skipped.

    Raises:
        DirectoryNotFoundError: If ``root`` does not exist.
        RootNotADirectoryError: If ``root`` is not a directory.
    """
    config = config or DetectConfig()
    if not os.path.exists(root):
        raise DirectoryNotFoundError(root)
    if not os.path.isdir(root):
        raise RootNotADirectoryError(root)

    def _on_error(error: OSError) -> None:
        logger.debug(f"Skipping unreadable directory: {error}")

    for dirpath, dirnames, filenames in os.walk(
        root, onerror=_on_error, followlinks=config.follow_symlinks
    ):
        if not config.include_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            filenames = [f for f in filenames if not f.startswith(".")]
        dirnames.sort()
        for name in dirnames:
            yield FsEntity(root, _relative(root, os.path.join(dirpath, name)))
        for name in sorted(filenames):
            yield FsEntity(root, _relative(root, os.path.join(dirpath, name)))
