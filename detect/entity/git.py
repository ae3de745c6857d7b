"""Git tree traversal backend.

Entities are the blobs and trees of one revision, as listed by
``git ls-tree``. Trees behave like directories (no size); blobs behave like
files. Git stores no timestamps per entry, so temporal predicates are false.
"""

import logging
import subprocess
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from .._types import EntityMetadata, FileType
from ..errors import GitCommandError
from ..structured.codecs import DataFormat, check_size, load_documents

logger = logging.getLogger(__name__)

_SYMLINK_MODE = "120000"


@dataclass
class CommandOutput:
    """Result of running a git subprocess command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Whether the command succeeded (returncode == 0)."""
        return self.returncode == 0


def _run(cmd: list[str], cwd: str, *, timeout: int = 300) -> CommandOutput:
    """Run a subprocess command and return a :class:`CommandOutput`.

    Output is decoded as UTF-8; bytes that are not (such as path names in
    another encoding) survive as lone surrogates, like :func:`os.fsdecode`.
    """
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            check=False,
            timeout=timeout,
        )
        return CommandOutput(
            result.returncode,
            result.stdout.decode("utf-8", errors="surrogateescape"),
            result.stderr.decode("utf-8", errors="replace"),
        )
    except subprocess.TimeoutExpired:
        return CommandOutput(1, "", f"{cmd[0]} timed out")
    except FileNotFoundError:
        return CommandOutput(1, "", f"{cmd[0]} command not found")


def _read_blob(repo: str, sha: str, *, timeout: int = 300) -> bytes:
    """Return the raw bytes of a blob.

    Raises:
        OSError: If git cannot produce the blob.
    """
    try:
        result = subprocess.run(
            ["git", "cat-file", "blob", sha],
            cwd=repo,
            capture_output=True,
            check=False,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise OSError(f"git cat-file timed out for {sha}") from e
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise OSError(f"git cat-file failed for {sha}: {stderr}")
    return result.stdout


class GitTreeEntity:
    """A blob or tree entry of a git revision."""

    def __init__(
        self,
        repo: str,
        path: str,
        object_type: str,
        sha: str,
        mode: str,
        size: int | None,
    ) -> None:
        self.repo = repo
        self._path = path
        self.object_type = object_type
        self.sha = sha
        self.mode = mode
        self.size = size

    def __repr__(self) -> str:
        return f"GitTreeEntity({self._path!r}, {self.object_type})"

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_blob(self) -> bool:
        return self.object_type == "blob"

    def metadata(self) -> EntityMetadata:
        if not self.is_blob:
            # Trees and submodule commits
            return EntityMetadata(file_type=FileType.DIR)
        file_type = FileType.SYMLINK if self.mode == _SYMLINK_MODE else FileType.FILE
        return EntityMetadata(file_type=file_type, size=self.size)

    def content_stream(self, chunk_size: int) -> Iterator[bytes]:
        if not self.is_blob:
            raise IsADirectoryError(f"{self._path} is a git tree")
        data = _read_blob(self.repo, self.sha)
        for start in range(0, len(data), chunk_size):
            yield data[start : start + chunk_size]

    def structured_documents(self, data_format: DataFormat, max_size: int) -> list[Any]:
        if not self.is_blob:
            raise IsADirectoryError(f"{self._path} is a git tree")
        if self.size is not None:
            check_size(data_format, self.size, max_size)
        data = _read_blob(self.repo, self.sha)
        check_size(data_format, len(data), max_size)
        return load_documents(data_format, data)


def _parse_ls_tree(repo: str, output: str) -> Iterator[GitTreeEntity]:
    """Parse ``git ls-tree -r -t -l -z`` output."""
    for record in output.split("\0"):
        if not record:
            continue
        meta, _, path = record.partition("\t")
        mode, object_type, sha, size = meta.split()
        yield GitTreeEntity(
            repo,
            path,
            object_type,
            sha,
            mode,
            int(size) if size.isdigit() else None,
        )


def walk_git(repo: str, revision: str = "HEAD") -> Iterator[GitTreeEntity]:
    """Yield every tree and blob reachable from ``revision``'s root tree.

    Raises:
        GitCommandError: If the revision cannot be listed.
    """
    out = _run(["git", "ls-tree", "-r", "-t", "-l", "-z", revision], repo)
    if not out.success:
        error_msg = out.stderr.strip() or out.stdout.strip()
        raise GitCommandError("git ls-tree", error_msg or f"cannot list {revision}")
    logger.debug(f"Listing git tree of {revision} in {repo}")
    yield from _parse_ls_tree(repo, out.stdout)
