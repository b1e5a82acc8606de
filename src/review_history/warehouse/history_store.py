"""
Storage interface for the review history table.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Sequence

from review_history.core.models import HistoryEntry, HistorySnapshot, InvariantReport


class HistoryStore(ABC):
    """
    A single logical history table with single-writer batch semantics.

    Implementations must make insert_entries atomic: either every row of the
    batch becomes visible or none does.
    """

    @abstractmethod
    def count_rows(self) -> int:
        """Total number of history rows."""

    @abstractmethod
    def load_snapshot(self, business_keys: Iterable[str]) -> HistorySnapshot:
        """
        Load current rows and max versions for the given keys.

        Args:
            business_keys: Keys of the incoming batch

        Returns:
            HistorySnapshot restricted to those keys
        """

    @abstractmethod
    def insert_entries(self, entries: Sequence[HistoryEntry], replace_all: bool = False) -> int:
        """
        Insert rows in one transaction (phase 1 of a run).

        Args:
            entries: New rows
            replace_all: Delete every existing row in the same transaction
                (full-refresh seed)

        Returns:
            Number of rows inserted
        """

    @abstractmethod
    def expire_superseded(self, now: datetime) -> int:
        """
        Close every current row that a higher current version of its key supersedes.

        Args:
            now: effective_to timestamp

        Returns:
            Number of rows closed
        """

    @abstractmethod
    def find_inconsistent_keys(self) -> dict[str, int]:
        """Keys with more than one current row, mapped to their current row count."""

    @abstractmethod
    def fetch_history(self, business_key: str) -> list[HistoryEntry]:
        """All rows of one key, ordered by version."""

    @abstractmethod
    def all_entries(self) -> list[HistoryEntry]:
        """All rows, ordered by business key and version."""

    @abstractmethod
    def check_invariants(self) -> InvariantReport:
        """Check single-current and version-contiguity invariants."""
