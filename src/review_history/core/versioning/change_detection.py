"""
Change detection policy for SCD-2 versioning.
"""

from typing import Sequence

from review_history.core.models import ATTRIBUTE_FIELDS, CanonicalRecord, HistoryEntry

DEFAULT_TRACKED_FIELDS: tuple[str, ...] = ("measured_value",)


def validate_tracked_fields(tracked_fields: Sequence[str]) -> tuple[str, ...]:
    """
    Check that every tracked field is a canonical attribute.

    Raises:
        ValueError: If the list is empty or names an unknown attribute
    """
    fields = tuple(tracked_fields)
    if not fields:
        raise ValueError("At least one tracked field is required")
    unknown = [name for name in fields if name not in ATTRIBUTE_FIELDS]
    if unknown:
        raise ValueError(f"Unknown tracked fields: {', '.join(unknown)}")
    return fields


def has_changed(
    candidate: CanonicalRecord,
    current: HistoryEntry | None,
    tracked_fields: Sequence[str] = DEFAULT_TRACKED_FIELDS,
) -> bool:
    """
    Decide whether a candidate needs a new history row.

    A candidate is a change when its key has no current row, or when any
    tracked attribute is distinct from the current row's value (None and a
    value are distinct; None and None are not).

    Args:
        candidate: Incoming canonical record
        current: Current history row for the candidate's business key
        tracked_fields: Attributes whose change produces a new version

    Returns:
        True if a new version must be inserted
    """
    if current is None:
        return True
    return any(getattr(candidate, name) != getattr(current, name) for name in tracked_fields)
