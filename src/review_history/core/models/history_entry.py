"""
HistoryEntry model representing one SCD-2 row of the review history table.
"""

from datetime import date, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from .canonical_record import ATTRIBUTE_FIELDS, CanonicalRecord


class HistoryEntry(BaseModel):
    """
    One state a review has held, with its validity window.

    Rows are insert-only. The only transition a row ever makes is
    (is_current=True, effective_to=None) -> (False, <timestamp>), performed
    by the Expirer; every other column keeps its insert-time value.

    Attributes:
        surrogate_id: Globally unique row id, generated at insert time
        business_key: Content-derived review identity (not unique alone)
        version: 1..N per business_key, contiguous
        is_current: Whether this row is the latest known state
        effective_from: When this state became current
        effective_to: When this state was superseded (None while current)
        loaded_at: Audit timestamp of the load
    """

    surrogate_id: UUID = Field(default_factory=uuid4)
    business_key: str = Field(..., min_length=1)
    version: int = Field(..., ge=1)
    is_current: bool = True
    effective_from: datetime
    effective_to: datetime | None = None

    source_ref: str | None = None
    entity_ref: str = Field(..., min_length=1)
    measured_value: float
    flag: bool | None = None
    event_date: date
    event_year: str
    free_text_1: str | None = None
    free_text_2: str | None = None
    actor_id: str | None = None
    actor_label: str | None = None
    epoch_timestamp: int | None = None

    loaded_at: datetime

    @model_validator(mode="after")
    def check_validity_window(self) -> "HistoryEntry":
        """A row is current exactly when its validity window is still open."""
        if self.is_current and self.effective_to is not None:
            raise ValueError("is_current=True but effective_to is set")
        if not self.is_current and self.effective_to is None:
            raise ValueError("is_current=False but effective_to is not set")
        return self

    @classmethod
    def from_record(
        cls,
        business_key: str,
        record: CanonicalRecord,
        version: int,
        now: datetime,
    ) -> "HistoryEntry":
        """Build a fresh current row carrying a copy of the record's attributes."""
        return cls(
            business_key=business_key,
            version=version,
            is_current=True,
            effective_from=now,
            effective_to=None,
            loaded_at=now,
            **record.model_dump(),
        )

    def attributes(self) -> dict:
        """Canonical attribute values copied at insert time."""
        return {name: getattr(self, name) for name in ATTRIBUTE_FIELDS}

    def closed(self, at: datetime) -> "HistoryEntry":
        """Return the expired form of this row."""
        return self.model_copy(update={"is_current": False, "effective_to": at})


class HistorySnapshot(BaseModel):
    """
    Current state of the history table for a set of business keys.

    Attributes:
        current: Current row per business key (highest current version wins
            if a prior run left more than one)
        max_versions: Highest version ever inserted per business key
    """

    current: dict[str, HistoryEntry] = Field(default_factory=dict)
    max_versions: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_entries(cls, entries) -> "HistorySnapshot":
        snapshot = cls()
        for entry in entries:
            key = entry.business_key
            if entry.version > snapshot.max_versions.get(key, 0):
                snapshot.max_versions[key] = entry.version
            if entry.is_current:
                incumbent = snapshot.current.get(key)
                if incumbent is None or entry.version > incumbent.version:
                    snapshot.current[key] = entry
        return snapshot
