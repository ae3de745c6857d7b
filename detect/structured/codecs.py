"""Decoding of YAML, JSON and TOML documents into plain Python values."""

import json
import tomllib
from enum import Enum
from pathlib import PurePosixPath
from typing import Any

import yaml  # type: ignore[import-untyped]

from ..errors import StructuredDataError


class DataFormat(Enum):
    """Structured document formats recognized by ``yaml:``/``json:``/``toml:``."""

    YAML = "yaml"
    JSON = "json"
    TOML = "toml"

    @property
    def extensions(self) -> frozenset[str]:
        """File extensions (without the dot) recognized as this format."""
        return _EXTENSIONS[self]

    def matches_path(self, path: str) -> bool:
        """Whether an entity at ``path`` is recognized as this format."""
        suffix = PurePosixPath(path).suffix
        return suffix[1:] in self.extensions


_EXTENSIONS = {
    DataFormat.YAML: frozenset({"yaml", "yml"}),
    DataFormat.JSON: frozenset({"json"}),
    DataFormat.TOML: frozenset({"toml"}),
}


def load_documents(data_format: DataFormat, data: bytes) -> list[Any]:
    """Decode ``data`` into a list of document roots.

    YAML streams may hold several documents; every one of them is returned.
    JSON and TOML always produce exactly one root.

    Args:
        data_format: The format to decode.
        data: Raw document bytes.

    Returns:
        The decoded document roots.

    Raises:
        StructuredDataError: If the bytes are not valid UTF-8 or not a valid
            document of the given format, or nest deeper than the parser can
            follow.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise StructuredDataError(data_format.value, f"not valid UTF-8: {e}") from e

    try:
        if data_format == DataFormat.YAML:
            return list(yaml.safe_load_all(text))
        if data_format == DataFormat.JSON:
            return [json.loads(text)]
        return [tomllib.loads(text)]
    except (yaml.YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise StructuredDataError(data_format.value, f"parse error: {e}") from e
    except RecursionError as e:
        raise StructuredDataError(
            data_format.value, "document nested too deeply"
        ) from e


def check_size(data_format: DataFormat, size: int, max_size: int) -> None:
    """Raise if a document of ``size`` bytes exceeds the structured-data ceiling."""
    if size > max_size:
        raise StructuredDataError(
            data_format.value,
            f"document is {size} bytes, larger than the {max_size} byte limit",
        )
