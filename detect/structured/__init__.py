"""Structured document support: path grammar, codecs and resolution."""

from .codecs import DataFormat, check_size, load_documents
from .path import StructuredPath, StructuredPathError, parse_path
from .resolver import StructuredMatcher, navigate

__all__ = [
    "DataFormat",
    "StructuredMatcher",
    "StructuredPath",
    "StructuredPathError",
    "check_size",
    "load_documents",
    "navigate",
    "parse_path",
]
