"""Tests for the filesystem backend."""

import os
from pathlib import Path

import pytest
from detect._types import FileType
from detect.config import DetectConfig
from detect.engine import evaluate
from detect.entity import FsEntity, walk_fs
from detect.errors import DirectoryNotFoundError, RootNotADirectoryError
from detect.query import parse_query
from detect.structured import DataFormat


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """A small project tree."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "lib.rs").write_bytes(b"x" * 2000)
    (tmp_path / "src" / "small.rs").write_text("// TODO\n")
    (tmp_path / "Cargo.toml").write_text('[package]\nname = "demo"\nversion = "1.2"\n')
    (tmp_path / ".hidden").mkdir()
    (tmp_path / ".hidden" / "secret.rs").write_text("")
    (tmp_path / "config.yaml").write_text("port: 8080\n")
    return tmp_path


def _paths(root: Path, config: DetectConfig | None = None) -> list[str]:
    return [entity.path for entity in walk_fs(str(root), config)]


def test_walk_is_sorted_and_relative(tree: Path) -> None:
    """Test walk order and relative posix paths."""
    assert _paths(tree) == [
        "src",
        "Cargo.toml",
        "config.yaml",
        "src/lib.rs",
        "src/small.rs",
    ]


def test_walk_include_hidden(tree: Path) -> None:
    """Test that hidden entries are visited when configured."""
    paths = _paths(tree, DetectConfig(include_hidden=True))
    assert ".hidden" in paths
    assert ".hidden/secret.rs" in paths


def test_walk_missing_root(tmp_path: Path) -> None:
    """Test a root that does not exist."""
    with pytest.raises(DirectoryNotFoundError):
        list(walk_fs(str(tmp_path / "missing")))


def test_walk_root_is_file(tree: Path) -> None:
    """Test a root that is a file."""
    with pytest.raises(RootNotADirectoryError):
        list(walk_fs(str(tree / "Cargo.toml")))


def test_metadata(tree: Path) -> None:
    """Test lstat-based metadata."""
    metadata = FsEntity(str(tree), "src/lib.rs").metadata()
    assert metadata.file_type == FileType.FILE
    assert metadata.size == 2000
    assert metadata.modified is not None
    assert metadata.modified.tzinfo is not None
    assert FsEntity(str(tree), "src").metadata().file_type == FileType.DIR


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
def test_symlink_is_not_followed(tree: Path) -> None:
    """Test that a symlink reports itself, not its target."""
    os.symlink(tree / "src", tree / "link")
    metadata = FsEntity(str(tree), "link").metadata()
    assert metadata.file_type == FileType.SYMLINK


def test_metadata_of_missing_entity_raises(tree: Path) -> None:
    """Test that the accessor raises OSError for the engine to absorb."""
    with pytest.raises(OSError):
        FsEntity(str(tree), "gone.txt").metadata()


def test_content_stream_chunks(tree: Path) -> None:
    """Test that content is read in bounded chunks."""
    chunks = list(FsEntity(str(tree), "src/lib.rs").content_stream(512))
    assert [len(c) for c in chunks] == [512, 512, 512, 464]


def test_structured_documents(tree: Path) -> None:
    """Test parsing a TOML file."""
    documents = FsEntity(str(tree), "Cargo.toml").structured_documents(
        DataFormat.TOML, 1024
    )
    assert documents[0]["package"]["name"] == "demo"


def test_evaluate_over_walk(tree: Path) -> None:
    """Test end-to-end matching over a real tree."""
    config = DetectConfig()

    def matches(query: str) -> list[str]:
        expr = parse_query(query)
        return [e.path for e in walk_fs(str(tree), config) if evaluate(expr, e, config)]

    assert matches("ext == rs AND size > 1024") == ["src/lib.rs"]
    assert matches('content contains "TODO"') == ["src/small.rs"]
    assert matches("toml:.package.version == 1.2") == ["Cargo.toml"]
    assert matches("yaml:.port == 8080") == ["config.yaml"]
    assert matches("dir") == ["src"]
    assert matches("content contains x") == ["src/lib.rs"]
