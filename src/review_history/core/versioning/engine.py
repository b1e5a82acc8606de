"""
VersioningEngine - decides which history rows a batch produces.

Per business key the engine moves through:

    Absent -> Current(1) -> Current(2) -> ...

It only ever builds new rows. Closing the row a new version supersedes is the
Expirer's job and happens after the new rows are committed.
"""

from datetime import datetime
from typing import Iterable, Sequence

from review_history.core.keys import KeyedRecord
from review_history.core.models import CanonicalRecord, HistoryEntry, HistorySnapshot
from review_history.observability.logger import get_logger

from .change_detection import DEFAULT_TRACKED_FIELDS, has_changed, validate_tracked_fields

logger = get_logger(__name__)


class VersioningEngine:
    """
    Builds version rows for seed and incremental runs.

    Seed runs turn every candidate into version 1. Incremental runs compare
    each candidate against its key's current row and emit a row only for new
    keys and changed tracked attributes, so unchanged input is a no-op.
    """

    def __init__(self, tracked_fields: Sequence[str] = DEFAULT_TRACKED_FIELDS):
        """
        Initialize versioning engine.

        Args:
            tracked_fields: Attributes whose change produces a new version

        Raises:
            ValueError: If tracked_fields is empty or names an unknown attribute
        """
        self.tracked_fields = validate_tracked_fields(tracked_fields)

    def is_change(self, candidate: CanonicalRecord, current: HistoryEntry | None) -> bool:
        return has_changed(candidate, current, self.tracked_fields)

    def seed(self, batch: Iterable[KeyedRecord], now: datetime) -> list[HistoryEntry]:
        """
        Build the initial history: one version-1 current row per candidate.

        Args:
            batch: Keyed candidate records
            now: Effective-from / load timestamp

        Returns:
            Rows to insert
        """
        entries: list[HistoryEntry] = []
        seen: set[str] = set()

        for business_key, record in batch:
            if business_key in seen:
                continue
            seen.add(business_key)
            entries.append(HistoryEntry.from_record(business_key, record, version=1, now=now))

        logger.debug(f"Seed produced {len(entries)} version-1 rows")
        return entries

    def apply_increment(
        self,
        batch: Iterable[KeyedRecord],
        snapshot: HistorySnapshot,
        now: datetime,
    ) -> list[HistoryEntry]:
        """
        Build new-version rows for new or changed candidates.

        Args:
            batch: Keyed candidate records
            snapshot: Current rows and max versions for the batch's keys
            now: Effective-from / load timestamp

        Returns:
            Rows to insert; existing rows are never included
        """
        entries: list[HistoryEntry] = []
        seen: set[str] = set()
        new_keys = 0

        for business_key, record in batch:
            if business_key in seen:
                continue
            seen.add(business_key)

            current = snapshot.current.get(business_key)
            if not self.is_change(record, current):
                continue

            if current is None:
                new_keys += 1
            version = snapshot.max_versions.get(business_key, 0) + 1
            entries.append(HistoryEntry.from_record(business_key, record, version=version, now=now))

        logger.debug(
            f"Increment produced {len(entries)} rows "
            f"({new_keys} new keys, {len(entries) - new_keys} changed)"
        )
        return entries
