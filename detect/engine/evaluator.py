"""Cost-ordered, short-circuiting evaluation of a query against one entity.

Evaluation runs four phases in ascending cost: name (path string only),
metadata (one stat-like call), structured (read and parse a document), and
content (stream the bytes). After each phase the tree is folded; as soon as
its root is known the remaining phases are skipped, so e.g. a query that is
decided by its name predicates never touches the disk.
"""

import logging
from functools import partial
from pathlib import PurePosixPath

from .._types import Category
from ..config import DetectConfig
from ..content import ContentMatcher, ContentScanner, scan
from ..entity import Entity
from ..errors import StructuredDataError
from ..query.types import Expr, KnownResult, Predicate, Selector, iter_predicates
from ..structured.resolver import StructuredMatcher
from .compare import compare_ordered, compare_string, compare_time
from .fold import fold
from .frame import EvaluationFrame, Phase, Verdict

logger = logging.getLogger(__name__)

_PHASES = (
    (Category.NAME, Phase.NAME_PENDING),
    (Category.METADATA, Phase.METADATA_PENDING),
    (Category.STRUCTURED, Phase.STRUCTURED_PENDING),
    (Category.CONTENT, Phase.CONTENT_PENDING),
)


def name_attribute(selector: Selector, path: str) -> str | int:
    """Derive a name-phase attribute from a path, without I/O."""
    pure = PurePosixPath(path)
    if selector == Selector.NAME:
        return pure.name
    if selector == Selector.BASENAME:
        return pure.stem
    if selector == Selector.EXT:
        return pure.suffix[1:]
    if selector == Selector.PATH:
        return path
    if selector == Selector.DIR:
        parent = str(pure.parent)
        return "" if parent == "." else parent
    if selector == Selector.DEPTH:
        return len(pure.parts) - (1 if pure.anchor else 0)
    raise ValueError(f"{selector.value} is not a name selector")


def resolve_name(frame: EvaluationFrame, predicate: Predicate) -> bool | None:
    if predicate.category != Category.NAME:
        return None
    assert predicate.operator is not None
    actual = name_attribute(predicate.selector, frame.entity.path)
    if isinstance(actual, int):
        return compare_ordered(predicate.operator, predicate.value, actual)
    return compare_string(predicate.operator, predicate.value, actual)


def resolve_metadata(frame: EvaluationFrame, predicate: Predicate) -> bool | None:
    if predicate.category != Category.METADATA:
        return None
    assert predicate.operator is not None
    metadata = frame.metadata()
    if metadata is None:
        return False

    selector = predicate.selector
    if selector == Selector.TYPE:
        actual = metadata.file_type
        return compare_ordered(predicate.operator, predicate.value, actual)
    if selector == Selector.SIZE:
        if metadata.size is None:
            return False
        return compare_ordered(predicate.operator, predicate.value, metadata.size)

    moment = {
        Selector.MODIFIED: metadata.modified,
        Selector.CREATED: metadata.created,
        Selector.ACCESSED: metadata.accessed,
    }[selector]
    if moment is None:
        return False
    return compare_time(predicate.operator, predicate.value, moment)


def resolve_structured(frame: EvaluationFrame, predicate: Predicate) -> bool | None:
    if predicate.category != Category.STRUCTURED:
        return None
    matcher: StructuredMatcher = predicate.value
    documents = frame.documents(matcher.data_format)
    if documents is None:
        return False
    try:
        return matcher.matches(documents)
    except StructuredDataError as e:
        logger.debug(f"{frame.entity.path}: {matcher.selector_text()}: {e}")
        return False


def _content_phase(frame: EvaluationFrame) -> Expr:
    """Stream the entity once, feeding every content predicate together."""
    scanners: dict[ContentMatcher, ContentScanner] = {}
    for predicate in iter_predicates(frame.expr):
        if predicate.category != Category.CONTENT:
            continue
        if predicate.value not in scanners:
            scanners[predicate.value] = predicate.value.scanner()

    def decided(predicate: Predicate) -> bool | None:
        return scanners[predicate.value].result

    def root_known() -> bool:
        return isinstance(fold(frame.expr, decided), KnownResult)

    try:
        stream = frame.entity.content_stream(frame.config.content_chunk_size)
        scan(stream, list(scanners.values()), should_stop=root_known)
    except OSError as e:
        logger.debug(f"{frame.entity.path}: content unavailable: {e}")
        for scanner in scanners.values():
            scanner.abort()

    reduced = fold(frame.expr, decided)
    if isinstance(reduced, KnownResult):
        return reduced
    return fold(frame.expr, lambda predicate: scanners[predicate.value].finish())


def evaluate(
    expr: Expr, entity: Entity, config: DetectConfig | None = None
) -> Verdict:
    """Decide whether ``entity`` matches ``expr``.

    Accessor failures (I/O errors, permission problems, oversized or invalid
    documents, undecodable content) make only the affected predicates false;
    they are never raised.

    Args:
        expr: A typed tree from :func:`detect.query.parse_query`.
        entity: The candidate entity.
        config: Runtime limits; defaults to :class:`DetectConfig` defaults.

    Returns:
        ``Verdict.MATCH`` or ``Verdict.NO_MATCH``.
    """
    frame = EvaluationFrame(expr, entity, config or DetectConfig())
    resolvers = {
        Category.NAME: partial(resolve_name, frame),
        Category.METADATA: partial(resolve_metadata, frame),
        Category.STRUCTURED: partial(resolve_structured, frame),
    }

    for category, phase in _PHASES:
        if frame.phase != phase:
            frame.advance(phase)
        if category == Category.CONTENT:
            frame.expr = _content_phase(frame)
        else:
            frame.expr = fold(frame.expr, resolvers[category])

        if isinstance(frame.expr, KnownResult):
            logger.debug(
                f"{entity.path}: resolved after {category.name.lower()} phase"
            )
            verdict = Verdict.MATCH if frame.expr.value else Verdict.NO_MATCH
            return frame.resolve(verdict)

    raise RuntimeError(f"{entity.path}: query left unresolved after content phase")
