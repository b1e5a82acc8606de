"""
Deduplicator - collapses duplicates within one ingestion batch.
"""

from typing import Iterable, Tuple

from review_history.core.models import CanonicalRecord, NaturalKey


class Deduplicator:
    """
    Keeps one record per natural key (entity + actor + epoch timestamp).

    Winner selection does not depend on input order:
    1. greatest epoch_timestamp (absent counts as 0)
    2. smallest content fingerprint among records still tied
    """

    def dedupe(self, records: Iterable[CanonicalRecord]) -> Tuple[list[CanonicalRecord], int]:
        """
        Remove duplicate records.

        Args:
            records: Canonical records from one batch

        Returns:
            Tuple of (deduplicated_records, duplicate_count). Output keeps the
            first-seen order of natural keys.
        """
        winners: dict[NaturalKey, CanonicalRecord] = {}
        seen = 0

        for record in records:
            seen += 1
            key = record.natural_key
            incumbent = winners.get(key)
            if incumbent is None or self.prefers(record, incumbent):
                winners[key] = record

        return list(winners.values()), seen - len(winners)

    @staticmethod
    def prefers(candidate: CanonicalRecord, incumbent: CanonicalRecord) -> bool:
        """Whether candidate should replace incumbent for the same natural key."""
        candidate_ts = candidate.epoch_timestamp or 0
        incumbent_ts = incumbent.epoch_timestamp or 0
        if candidate_ts != incumbent_ts:
            return candidate_ts > incumbent_ts
        return candidate.fingerprint() < incumbent.fingerprint()
