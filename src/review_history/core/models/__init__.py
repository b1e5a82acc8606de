"""
Core data models for the review history pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .canonical_record import (
    ATTRIBUTE_FIELDS,
    UNKNOWN_ACTOR,
    CanonicalRecord,
    NaturalKey,
    RawRecord,
)
from .history_entry import HistoryEntry, HistorySnapshot
from .run_result import InvariantReport, RejectedRecord, RunMode, RunResult

__all__ = [
    "ATTRIBUTE_FIELDS",
    "UNKNOWN_ACTOR",
    "RawRecord",
    "NaturalKey",
    "CanonicalRecord",
    "HistoryEntry",
    "HistorySnapshot",
    "RejectedRecord",
    "InvariantReport",
    "RunMode",
    "RunResult",
]
