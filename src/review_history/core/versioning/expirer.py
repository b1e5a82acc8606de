"""
Expirer - closes out superseded current rows.

A current row is superseded when another current row of the same business
key has a strictly greater version. The rule is an existence check rather
than a diff against the incoming batch, so it also repairs keys that a
previous run left with several current rows, and re-running it after the
table is consistent changes nothing.
"""

import time
from collections import defaultdict
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from review_history.core.errors import StorageUnavailableError
from review_history.core.models import HistoryEntry
from review_history.observability import metrics
from review_history.observability.logger import get_logger

if TYPE_CHECKING:
    from review_history.warehouse.history_store import HistoryStore

logger = get_logger(__name__)


class Expirer:
    """
    Second phase of a run. Must only be invoked once the phase-1 inserts are
    committed; before that it could see a stale single current row per key.
    """

    def __init__(self, max_retries: int = 3, retry_delay: float = 2.0):
        """
        Initialize expirer.

        Args:
            max_retries: Attempts before giving up when storage is unavailable
            retry_delay: Delay between attempts in seconds
        """
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

    @staticmethod
    def superseded(entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
        """
        Find current rows that a higher current version of the same key supersedes.

        Args:
            entries: History rows (any subset containing whole keys)

        Returns:
            The rows to close
        """
        current_by_key: dict[str, list[HistoryEntry]] = defaultdict(list)
        for entry in entries:
            if entry.is_current:
                current_by_key[entry.business_key].append(entry)

        stale: list[HistoryEntry] = []
        for rows in current_by_key.values():
            if len(rows) < 2:
                continue
            newest = max(row.version for row in rows)
            stale.extend(row for row in rows if row.version < newest)
        return stale

    def expire(self, store: "HistoryStore", now: datetime) -> int:
        """
        Close every superseded current row in the store.

        Args:
            store: History store
            now: effective_to timestamp for closed rows

        Returns:
            Number of rows closed

        Raises:
            StorageUnavailableError: If the store stays unavailable after all retries
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                expired = store.expire_superseded(now)
                break
            except StorageUnavailableError as e:
                metrics.increment_counter(
                    metrics.retries_total, 1, operation="expire",
                    status="failure" if attempt == self.max_retries else "retry",
                )
                if attempt == self.max_retries:
                    logger.error(
                        f"Expiration failed after {attempt} attempts; "
                        "run 'review-history repair' once storage is back"
                    )
                    raise
                logger.warning(f"Expiration attempt {attempt} failed: {e}; retrying")
                time.sleep(self.retry_delay)

        metrics.increment_counter(metrics.history_rows_expired_total, expired)
        logger.info(f"Expired {expired} superseded rows")
        return expired
