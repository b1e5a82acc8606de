"""
In-memory history store used for dry runs and tests.
"""

from datetime import datetime
from typing import Iterable, Sequence

from review_history.core.models import HistoryEntry, HistorySnapshot, InvariantReport
from review_history.core.versioning import Expirer, check_history_invariants

from .history_store import HistoryStore


class InMemoryHistoryStore(HistoryStore):
    """
    List-backed history table.

    Rows handed out are copies, so callers cannot alter stored history.
    """

    def __init__(self, entries: Iterable[HistoryEntry] | None = None):
        self._rows: list[HistoryEntry] = [entry.model_copy() for entry in entries or ()]

    def count_rows(self) -> int:
        return len(self._rows)

    def load_snapshot(self, business_keys: Iterable[str]) -> HistorySnapshot:
        wanted = set(business_keys)
        return HistorySnapshot.from_entries(
            entry.model_copy() for entry in self._rows if entry.business_key in wanted
        )

    def insert_entries(self, entries: Sequence[HistoryEntry], replace_all: bool = False) -> int:
        staged = [] if replace_all else list(self._rows)
        taken = {(row.business_key, row.version) for row in staged}

        for entry in entries:
            slot = (entry.business_key, entry.version)
            if slot in taken:
                raise ValueError(
                    f"Duplicate version {entry.version} for business key {entry.business_key}"
                )
            taken.add(slot)
            staged.append(entry.model_copy())

        self._rows = staged
        return len(entries)

    def expire_superseded(self, now: datetime) -> int:
        stale = {row.surrogate_id for row in Expirer.superseded(self._rows)}
        if not stale:
            return 0
        self._rows = [row.closed(now) if row.surrogate_id in stale else row for row in self._rows]
        return len(stale)

    def find_inconsistent_keys(self) -> dict[str, int]:
        return dict(check_history_invariants(self._rows).multiple_current)

    def fetch_history(self, business_key: str) -> list[HistoryEntry]:
        rows = [row.model_copy() for row in self._rows if row.business_key == business_key]
        return sorted(rows, key=lambda row: row.version)

    def all_entries(self) -> list[HistoryEntry]:
        return sorted(
            (row.model_copy() for row in self._rows),
            key=lambda row: (row.business_key, row.version),
        )

    def check_invariants(self) -> InvariantReport:
        return check_history_invariants(self._rows)
