"""detect: find files by name, metadata, structured data and content.

Typical use::

    from detect import evaluate, parse_query, walk_fs

    expr = parse_query("ext == rs && size > 1kb")
    for entity in walk_fs("src"):
        if evaluate(expr, entity):
            print(entity.path)

A query is parsed and type-checked once; evaluation then runs per entity and
reads as little as possible (see :mod:`detect.engine.evaluator`).
"""

from .config import DetectConfig, load_config
from .engine import Verdict, evaluate
from .entity import Entity, FsEntity, GitTreeEntity, walk_fs, walk_git
from .errors import (
    DetectError,
    QueryError,
    QuerySyntaxError,
    QueryTypeError,
    StructuredDataError,
)
from .query import parse_query, to_canonical_string

__all__ = [
    # Query
    "parse_query",
    "to_canonical_string",
    # Evaluation
    "evaluate",
    "Verdict",
    # Entities
    "Entity",
    "FsEntity",
    "GitTreeEntity",
    "walk_fs",
    "walk_git",
    # Config
    "DetectConfig",
    "load_config",
    # Errors
    "DetectError",
    "QueryError",
    "QuerySyntaxError",
    "QueryTypeError",
    "StructuredDataError",
]
