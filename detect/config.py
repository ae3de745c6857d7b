"""Runtime configuration loading from detect.yml."""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any

import yaml  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

_DEFAULT_MAX_STRUCTURED_SIZE = 10 * 1024 * 1024
_DEFAULT_CONTENT_CHUNK_SIZE = 64 * 1024


@dataclass
class DetectConfig:
    """Configuration for the ``detect`` section of detect.yml.

    Attributes:
        max_structured_size: Documents larger than this many bytes are not
            parsed; structured predicates on them are false.
        content_chunk_size: Bytes read per chunk when streaming content.
        include_hidden: Whether the filesystem walk visits dot-entries.
        follow_symlinks: Whether the filesystem walk descends into
            symlinked directories.
        log_level: Logging level name used by the command line.
    """

    max_structured_size: int = _DEFAULT_MAX_STRUCTURED_SIZE
    content_chunk_size: int = _DEFAULT_CONTENT_CHUNK_SIZE
    include_hidden: bool = False
    follow_symlinks: bool = False
    log_level: str = "WARNING"


def _get_config_path() -> str:
    """Get the path to the detect config file."""
    env_path = os.environ.get("DETECT_CONFIG")
    if env_path:
        return os.path.expanduser(env_path)
    return os.path.expanduser("~/.config/detect/detect.yml")


def load_config(config_path: str | None = None) -> DetectConfig:
    """Load detect config from detect.yml.

    Missing files and missing sections yield the defaults. Values of the
    wrong type are ignored with a warning.

    Args:
        config_path: Explicit path to the config file; defaults to
            ``$DETECT_CONFIG`` or ``~/.config/detect/detect.yml``.

    Returns:
        DetectConfig with values from config or defaults.
    """
    path = config_path or _get_config_path()
    if not os.path.exists(path):
        return DetectConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return DetectConfig()

    if not isinstance(data, dict) or "detect" not in data:
        return DetectConfig()

    section = data["detect"]
    if not isinstance(section, dict):
        logger.warning(f"Ignoring 'detect' section of {path}: not a mapping")
        return DetectConfig()

    return DetectConfig(**_typed_values(section, path))


def _typed_values(section: dict[str, Any], path: str) -> dict[str, Any]:
    """Keep the known keys whose values have the declared type."""
    defaults = DetectConfig()
    values: dict[str, Any] = {}
    known = {f.name for f in fields(DetectConfig)}
    for key, value in section.items():
        if key not in known:
            logger.debug(f"Ignoring unknown config key {key!r} in {path}")
            continue
        expected = type(getattr(defaults, key))
        # bool is an int subclass; don't let `true` pass as a size
        if isinstance(value, bool) and expected is not bool:
            valid = False
        else:
            valid = isinstance(value, expected)
        if not valid:
            logger.warning(
                f"Ignoring config key {key!r} in {path}: expected "
                f"{expected.__name__}, got {type(value).__name__}"
            )
            continue
        values[key] = value
    return values
