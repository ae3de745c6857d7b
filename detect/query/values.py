"""Literal parsing for query values: byte counts, timestamps, sets, patterns."""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?|\.\d+)\s*([a-z]*)$", re.IGNORECASE)

_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "m": 1024**2,
    "mb": 1024**2,
    "g": 1024**3,
    "gb": 1024**3,
    "t": 1024**4,
    "tb": 1024**4,
}

_RELATIVE_TIME_RE = re.compile(
    r"^([+-]?)(\d+(?:\.\d+)?)\.?\s*([a-z]+)$", re.IGNORECASE
)

_TIME_UNITS = {
    **dict.fromkeys(("s", "sec", "secs", "second", "seconds"), 1),
    **dict.fromkeys(("m", "min", "mins", "minute", "minutes"), 60),
    **dict.fromkeys(("h", "hr", "hrs", "hour", "hours"), 3600),
    **dict.fromkeys(("d", "day", "days"), 86400),
    **dict.fromkeys(("w", "week", "weeks"), 7 * 86400),
}

SUPPORTED_TIME_FORMATS = (
    "relative (-7d, -2.hours, -30minutes, 1w)",
    "YYYY-MM-DD",
    "YYYY-MM-DDTHH:MM:SS",
    "RFC 3339 (2024-01-15T10:30:00Z, 2024-01-15T10:30:00+02:00)",
    "now, today, yesterday",
)


def parse_size(text: str) -> int:
    """Parse a byte count such as ``1024``, ``10kb`` or ``1.5mb``.

    Units are powers of 1024 and may be written in any case.

    Raises:
        ValueError: If the text is not a byte count.
    """
    match = _SIZE_RE.match(text.strip())
    if not match:
        raise ValueError(f"'{text}' is not a size (e.g. 1024, 100kb, 1.5mb)")
    number, unit = match.groups()
    multiplier = _SIZE_UNITS.get(unit.lower())
    if multiplier is None:
        raise ValueError(
            f"unknown size unit '{unit}' (use b, kb, mb, gb or tb)"
        )
    try:
        return int(Decimal(number) * multiplier)
    except InvalidOperation as e:
        raise ValueError(f"'{text}' is not a size") from e


def parse_count(text: str) -> int:
    """Parse a non-negative integer."""
    stripped = text.strip()
    if not stripped.isdigit():
        raise ValueError(f"'{text}' is not a non-negative integer")
    return int(stripped)


def parse_time(text: str, now: datetime | None = None) -> datetime:
    """Parse a relative or absolute timestamp into an aware datetime.

    Relative values are resolved against ``now``: a leading ``-`` means the
    past, no sign means the future. Absolute values without an offset are
    taken as local time.

    Args:
        text: The time literal.
        now: The reference time for relative values (defaults to now).

    Returns:
        A timezone-aware datetime.

    Raises:
        ValueError: If the text matches none of the supported formats.
    """
    value = text.strip()
    if now is None:
        now = datetime.now().astimezone()

    keyword = value.lower()
    if keyword == "now":
        return now
    if keyword in ("today", "yesterday"):
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight if keyword == "today" else midnight - timedelta(days=1)

    match = _RELATIVE_TIME_RE.match(value)
    if match:
        sign, amount, unit = match.groups()
        seconds = _TIME_UNITS.get(unit.lower())
        if seconds is not None:
            delta = timedelta(seconds=float(amount) * seconds)
            return now - delta if sign == "-" else now + delta

    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(
            f"invalid time '{text}'. Supported formats: "
            + "; ".join(SUPPORTED_TIME_FORMATS)
        ) from None
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment


def split_items(text: str) -> tuple[str, ...]:
    """Split a bare ``a,b,c`` set into its members."""
    return tuple(item.strip() for item in text.split(",") if item.strip())


@dataclass(frozen=True)
class CompiledPattern:
    """A regex or glob literal, compiled once.

    Equality and hashing use only the source text, so two parses of the same
    query compare equal.
    """

    source: str
    is_glob: bool = False
    regex: re.Pattern[str] = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        pattern = fnmatch.translate(self.source) if self.is_glob else self.source
        object.__setattr__(self, "regex", re.compile(pattern))

    def matches(self, text: str) -> bool:
        """Unanchored search for regexes, whole-string match for globs."""
        if self.is_glob:
            return self.regex.match(text) is not None
        return self.regex.search(text) is not None
