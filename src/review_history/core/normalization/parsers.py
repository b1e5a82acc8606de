"""
Field-level parsers used by the Normalizer.

Each parser takes one loosely typed source value and returns the canonical
value, or None when the value is absent or cannot be interpreted.
"""

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Sequence

TRUTHY_TOKENS = frozenset({"true", "t", "yes", "y", "1"})
FALSY_TOKENS = frozenset({"false", "f", "no", "n", "0"})

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Range of the BIGINT epoch column
EPOCH_MIN = -(2 ** 63)
EPOCH_MAX = 2 ** 63 - 1

_WHITESPACE_RUN = re.compile(r"\s+")


def strip_nul(text: str) -> str:
    """Drop NUL characters, which PostgreSQL text columns cannot hold."""
    return text.replace("\x00", "")


def blank_to_none(value: Any) -> str | None:
    """Trim a value; empty or missing becomes None."""
    if value is None:
        return None
    text = strip_nul(str(value)).strip()
    return text or None


def parse_entity_ref(value: Any) -> str | None:
    text = blank_to_none(value)
    return text.upper() if text else None


def parse_measured_value(value: Any, lower: float = 0.0, upper: float = 5.0) -> float | None:
    """
    Cast to float and clamp into [lower, upper].

    Args:
        value: Raw value ("4", 4, "4.5", ...)
        lower: Lower bound
        upper: Upper bound

    Returns:
        Clamped float, or None if the value is not numeric
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value.strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return min(max(number, lower), upper)


def parse_flag(value: Any) -> bool | None:
    """Map a truthy/falsy token to a bool; anything else is unknown (None)."""
    if isinstance(value, bool):
        return value
    token = blank_to_none(value)
    if token is None:
        return None
    token = token.lower()
    if token in TRUTHY_TOKENS:
        return True
    if token in FALSY_TOKENS:
        return False
    return None


def parse_epoch(value: Any) -> int | None:
    """
    Cast an epoch-seconds value to int ("1383350400", 1383350400.0).

    Values outside the BIGINT range are treated as unknown.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if EPOCH_MIN <= value <= EPOCH_MAX else None
    text = blank_to_none(value)
    if text is None:
        return None
    try:
        return parse_epoch(int(text))
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return parse_epoch(int(number))


def parse_event_date(
    text_value: Any,
    epoch_seconds: int | None,
    formats: Sequence[str],
) -> date | None:
    """
    Resolve the event date through an ordered fallback chain.

    Each strptime format is tried in order against the text value; if none
    matches, the epoch seconds are converted to a UTC calendar date.

    Args:
        text_value: Raw date text (e.g. "09 13, 2009")
        epoch_seconds: Parsed epoch timestamp, if any
        formats: strptime formats to try, in priority order

    Returns:
        The resolved date, or None if nothing could be parsed
    """
    text = blank_to_none(text_value)
    if text is not None:
        for fmt in formats:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

    if epoch_seconds is None:
        return None
    try:
        return (UNIX_EPOCH + timedelta(seconds=epoch_seconds)).date()
    except OverflowError:
        return None


def clean_text(value: Any) -> str | None:
    """Collapse whitespace runs to one space and trim; empty becomes None."""
    if value is None:
        return None
    collapsed = _WHITESPACE_RUN.sub(" ", strip_nul(str(value))).strip()
    return collapsed or None
