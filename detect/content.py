"""Streaming matcher for ``content`` predicates.

A :class:`ContentMatcher` is compiled once per predicate and shared by every
entity in a run. Each entity gets its own :class:`ContentScanner`, which is fed
decoded text chunk by chunk, so a file never has to be held in memory.

Plans:
    contains   - substring search; the last ``len(needle) - 1`` characters of
                 each chunk are carried into the next one so matches that
                 straddle a chunk boundary are found.
    ~=         - regex search, applied line by line as lines complete; an
                 over-long line is searched in overlapping windows.
    ==         - whole-content equality, compared incrementally.

Bytes are decoded as strict UTF-8. Text up to the first undecodable byte is
still searched; after that the predicate is false.
"""

from __future__ import annotations

import codecs
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from ._types import Operator

logger = logging.getLogger(__name__)

CONTENT_OPERATORS = (Operator.CONTAINS, Operator.MATCHES, Operator.EQ)

MAX_LINE_CHARS = 1024 * 1024
LINE_OVERLAP_CHARS = 4096


@dataclass(frozen=True)
class ContentMatcher:
    """An immutable, compiled content predicate."""

    operator: Operator
    text: str
    pattern: re.Pattern[str] | None = field(default=None, compare=False)

    @classmethod
    def compile(cls, operator: Operator, text: str) -> ContentMatcher:
        """Compile a content predicate.

        Raises:
            ValueError: If the operator is not supported for content.
            re.error: If a regex does not compile.
        """
        if operator not in CONTENT_OPERATORS:
            raise ValueError(f"operator '{operator.value}' is not valid for content")
        pattern = re.compile(text) if operator == Operator.MATCHES else None
        return cls(operator=operator, text=text, pattern=pattern)

    def scanner(self) -> ContentScanner:
        """Create per-entity scanning state."""
        if self.operator == Operator.CONTAINS:
            return _SubstringScanner(self.text)
        if self.operator == Operator.MATCHES:
            assert self.pattern is not None
            return _LineRegexScanner(self.pattern)
        return _EqualityScanner(self.text)

    def matches(self, chunks: Iterable[bytes]) -> bool:
        """Scan a byte stream with this matcher alone."""
        scanner = self.scanner()
        scan(chunks, [scanner])
        return scanner.finish()


class ContentScanner:
    """Mutable per-entity state of one content predicate."""

    def __init__(self) -> None:
        self.result: bool | None = None

    @property
    def decided(self) -> bool:
        """Whether the outcome is known without reading further."""
        return self.result is not None

    def feed(self, text: str) -> None:
        raise NotImplementedError

    def _finish(self) -> bool:
        raise NotImplementedError

    def finish(self) -> bool:
        """Return the outcome after the whole stream has been fed."""
        if self.result is None:
            self.result = self._finish()
        return self.result

    def abort(self) -> None:
        """Stop scanning: an undecided predicate becomes false."""
        if self.result is None:
            self.result = False


class _SubstringScanner(ContentScanner):
    def __init__(self, needle: str) -> None:
        super().__init__()
        self.needle = needle
        self.tail = ""

    def feed(self, text: str) -> None:
        haystack = self.tail + text
        if self.needle in haystack:
            self.result = True
            return
        keep = len(self.needle) - 1
        self.tail = haystack[-keep:] if keep > 0 else ""

    def _finish(self) -> bool:
        return self.needle in self.tail


class _LineRegexScanner(ContentScanner):
    """Regex search over complete lines.

    A line longer than ``MAX_LINE_CHARS`` is searched in windows that overlap
    by ``LINE_OVERLAP_CHARS``, so at most one window is buffered. ``skip`` is
    1 while the buffer starts with a character kept only as
    context from the previous window, so ``^`` cannot match there.
    """

    def __init__(self, pattern: re.Pattern[str]) -> None:
        super().__init__()
        self.pattern = pattern
        self.partial = ""
        self.skip = 0
        self.empty = True

    def feed(self, text: str) -> None:
        self.empty = False
        buffered = self.partial + text
        end = buffered.rfind("\n")
        if end >= 0:
            start = self.skip
            for line in buffered[:end].split("\n"):
                if self.pattern.search(line, start):
                    self.result = True
                    return
                start = 0
            buffered = buffered[end + 1 :]
            self.skip = 0

        if len(buffered) <= MAX_LINE_CHARS:
            self.partial = buffered
            return
        # A match touching the window's end may depend on text not read yet
        match = self.pattern.search(buffered, self.skip)
        if match is not None and match.end() < len(buffered):
            self.result = True
            return
        self.partial = buffered[-(LINE_OVERLAP_CHARS + 1) :]
        self.skip = 1

    def _finish(self) -> bool:
        if not self.partial and not self.empty:
            return False
        return self.pattern.search(self.partial, self.skip) is not None


class _EqualityScanner(ContentScanner):
    def __init__(self, expected: str) -> None:
        super().__init__()
        self.expected = expected
        self.position = 0

    def feed(self, text: str) -> None:
        end = self.position + len(text)
        if self.expected[self.position : end] != text:
            self.result = False
            return
        self.position = end

    def _finish(self) -> bool:
        return self.position == len(self.expected)


def scan(
    chunks: Iterable[bytes],
    scanners: Sequence[ContentScanner],
    should_stop: Callable[[], bool] | None = None,
) -> None:
    """Feed a byte stream to several scanners in one pass.

    Scanning stops when every scanner is decided, when ``should_stop``
    returns True, or at end of stream. The stream is closed on early exit.
    """
    decoder = codecs.getincrementaldecoder("utf-8")()
    iterator = iter(chunks)
    try:
        for chunk in iterator:
            try:
                text = decoder.decode(chunk)
            except UnicodeDecodeError as e:
                _feed_valid_prefix(e, scanners)
                return
            _feed(text, scanners)
            if all(s.decided for s in scanners):
                return
            if should_stop is not None and should_stop():
                return
        try:
            _feed(decoder.decode(b"", final=True), scanners)
        except UnicodeDecodeError as e:
            _feed_valid_prefix(e, scanners)
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()


def _feed(text: str, scanners: Sequence[ContentScanner]) -> None:
    if not text:
        return
    for scanner in scanners:
        if not scanner.decided:
            scanner.feed(text)


def _feed_valid_prefix(
    error: UnicodeDecodeError, scanners: Sequence[ContentScanner]
) -> None:
    """Search the text before an undecodable sequence, then give up."""
    logger.debug(f"Undecodable content: {error}")
    prefix = bytes(error.object[: error.start]).decode("utf-8")
    _feed(prefix, scanners)
    for scanner in scanners:
        if not scanner.decided:
            scanner.abort()
