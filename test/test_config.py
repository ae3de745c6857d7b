"""Tests for detect.yml loading."""

import logging
from pathlib import Path

import pytest
from detect.config import DetectConfig, _get_config_path, load_config


def _write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "detect.yml"
    path.write_text(text)
    return str(path)


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    """Test that a missing config file yields the defaults."""
    assert load_config(str(tmp_path / "nope.yml")) == DetectConfig()


def test_defaults() -> None:
    """Test the default limits."""
    config = DetectConfig()
    assert config.max_structured_size == 10 * 1024 * 1024
    assert config.content_chunk_size == 64 * 1024
    assert not config.include_hidden
    assert not config.follow_symlinks


def test_load_values(tmp_path: Path) -> None:
    """Test reading the detect section."""
    path = _write(
        tmp_path,
        "detect:\n"
        "  max_structured_size: 1024\n"
        "  include_hidden: true\n"
        "  log_level: DEBUG\n",
    )
    config = load_config(path)
    assert config.max_structured_size == 1024
    assert config.include_hidden is True
    assert config.log_level == "DEBUG"
    assert config.content_chunk_size == 64 * 1024


def test_missing_section(tmp_path: Path) -> None:
    """Test a file without a detect section."""
    assert load_config(_write(tmp_path, "other: 1\n")) == DetectConfig()


def test_invalid_yaml_warns(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """Test that malformed YAML falls back to defaults with a warning."""
    path = _write(tmp_path, "detect: [unclosed\n")
    with caplog.at_level(logging.WARNING, logger="detect.config"):
        assert load_config(path) == DetectConfig()
    assert "Ignoring unreadable config file" in caplog.text


def test_section_not_mapping(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """Test a detect section that is not a mapping."""
    path = _write(tmp_path, "detect: 5\n")
    with caplog.at_level(logging.WARNING, logger="detect.config"):
        assert load_config(path) == DetectConfig()
    assert "not a mapping" in caplog.text


def test_wrong_types_ignored(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """Test that values of the wrong type are skipped individually."""
    path = _write(
        tmp_path,
        "detect:\n"
        "  max_structured_size: big\n"
        "  content_chunk_size: true\n"
        "  follow_symlinks: true\n",
    )
    with caplog.at_level(logging.WARNING, logger="detect.config"):
        config = load_config(path)
    assert config.max_structured_size == DetectConfig().max_structured_size
    assert config.content_chunk_size == DetectConfig().content_chunk_size
    assert config.follow_symlinks is True
    assert "'max_structured_size'" in caplog.text
    assert "'content_chunk_size'" in caplog.text


def test_unknown_keys_ignored(tmp_path: Path) -> None:
    """Test that unknown keys do not break loading."""
    path = _write(tmp_path, "detect:\n  colour: blue\n  include_hidden: true\n")
    assert load_config(path) == DetectConfig(include_hidden=True)


def test_config_path_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that DETECT_CONFIG overrides the default location."""
    monkeypatch.setenv("DETECT_CONFIG", "/tmp/custom.yml")
    assert _get_config_path() == "/tmp/custom.yml"
    monkeypatch.delenv("DETECT_CONFIG")
    assert _get_config_path().endswith(".config/detect/detect.yml")
