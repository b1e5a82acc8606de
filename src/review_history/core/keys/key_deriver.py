"""
KeyDeriver - deterministic, content-derived business keys.

The business key is the only identity shared across runs. It is a SHA-256
digest over:

    entity_ref | actor_id | event_date (ISO) | epoch_timestamp | sha256(free_text_1)

Absent parts are rendered as empty strings. Because the review body is part
of the key, editing the text yields a new identity rather than a new version.
"""

import hashlib
from typing import Iterable, NamedTuple, Tuple

from review_history.core.models import CanonicalRecord
from review_history.observability.logger import get_logger

logger = get_logger(__name__)

KEY_SEPARATOR = "|"


class KeyedRecord(NamedTuple):
    business_key: str
    record: CanonicalRecord


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def derive_business_key(record: CanonicalRecord) -> str:
    """
    Compute the business key of a record.

    Args:
        record: Canonical record

    Returns:
        64-character hexadecimal key
    """
    parts = [
        record.entity_ref,
        record.actor_id or "",
        record.event_date.isoformat(),
        "" if record.epoch_timestamp is None else str(record.epoch_timestamp),
        _sha256(record.free_text_1 or ""),
    ]
    return _sha256(KEY_SEPARATOR.join(parts))


class KeyDeriver:
    """Attaches business keys to a deduplicated batch."""

    def derive(self, record: CanonicalRecord) -> str:
        return derive_business_key(record)

    def key_batch(self, records: Iterable[CanonicalRecord]) -> Tuple[list[KeyedRecord], int]:
        """
        Key every record in a batch.

        Deduplicated records have distinct key inputs, so a repeated key means
        the caller skipped deduplication or the hash collided. Only the first
        record is kept so a single insert never creates two current rows for
        one key.

        Args:
            records: Deduplicated canonical records

        Returns:
            Tuple of (keyed_records, collision_count)
        """
        keyed: list[KeyedRecord] = []
        seen: set[str] = set()
        collisions = 0

        for record in records:
            business_key = self.derive(record)
            if business_key in seen:
                collisions += 1
                logger.warning(
                    "Business key repeated within batch; keeping first record",
                    extra={"business_key": business_key, "source_ref": record.source_ref},
                )
                continue
            seen.add(business_key)
            keyed.append(KeyedRecord(business_key, record))

        return keyed, collisions
