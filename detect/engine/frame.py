"""Per-entity evaluation state."""

import logging
from enum import Enum
from typing import Any

from .._types import EntityMetadata
from ..config import DetectConfig
from ..entity import Entity
from ..errors import StructuredDataError
from ..query.types import Expr
from ..structured.codecs import DataFormat

logger = logging.getLogger(__name__)


class Phase(Enum):
    """States of an evaluation frame, in the only order they may occur."""

    NAME_PENDING = 1
    METADATA_PENDING = 2
    STRUCTURED_PENDING = 3
    CONTENT_PENDING = 4
    RESOLVED = 5


class Verdict(Enum):
    """The outcome of evaluating a query against one entity."""

    MATCH = "match"
    NO_MATCH = "no match"

    def __bool__(self) -> bool:
        return self is Verdict.MATCH


class EvaluationFrame:
    """State of one entity's evaluation.

    Holds the partially reduced tree and caches accessor results so that
    several predicates of the same phase share one stat call or one document
    parse. Accessor failures are logged and cached as None. A frame only moves
    forward through :class:`Phase` and is discarded once resolved.
    """

    def __init__(self, expr: Expr, entity: Entity, config: DetectConfig) -> None:
        self.expr = expr
        self.entity = entity
        self.config = config
        self.phase = Phase.NAME_PENDING
        self.verdict: Verdict | None = None
        self._metadata: EntityMetadata | None = None
        self._metadata_loaded = False
        self._documents: dict[DataFormat, list[Any] | None] = {}

    def advance(self, phase: Phase) -> None:
        """Move to a later phase.

        Raises:
            ValueError: If ``phase`` is not after the current phase.
        """
        if phase.value <= self.phase.value:
            raise ValueError(f"Cannot move from {self.phase.name} to {phase.name}")
        self.phase = phase

    def resolve(self, verdict: Verdict) -> Verdict:
        """Record the final verdict and enter the terminal state."""
        self.advance(Phase.RESOLVED)
        self.verdict = verdict
        return verdict

    def metadata(self) -> EntityMetadata | None:
        """The entity's metadata, or None if it could not be read."""
        if not self._metadata_loaded:
            self._metadata_loaded = True
            try:
                self._metadata = self.entity.metadata()
            except OSError as e:
                logger.debug(f"{self.entity.path}: metadata unavailable: {e}")
        return self._metadata

    def documents(self, data_format: DataFormat) -> list[Any] | None:
        """The entity parsed as ``data_format``, or None if it is not one.

        Entities whose extension does not belong to the format are rejected
        without any I/O.
        """
        if data_format in self._documents:
            return self._documents[data_format]

        documents: list[Any] | None = None
        if data_format.matches_path(self.entity.path):
            try:
                documents = self.entity.structured_documents(
                    data_format, self.config.max_structured_size
                )
            except (OSError, StructuredDataError) as e:
                logger.debug(
                    f"{self.entity.path}: no {data_format.value} document: {e}"
                )
        self._documents[data_format] = documents
        return documents
