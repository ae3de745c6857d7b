"""Traversal backends that supply entities to the evaluation engine."""

from ._base import Entity
from .fs import FsEntity, walk_fs
from .git import GitTreeEntity, walk_git

__all__ = [
    "Entity",
    "FsEntity",
    "GitTreeEntity",
    "walk_fs",
    "walk_git",
]
