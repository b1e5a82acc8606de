"""
Normalizer - turns one raw review record into a CanonicalRecord.
"""

from typing import Iterable, Tuple

from review_history.core.config import PipelineConfig
from review_history.core.errors import MalformedRecordError
from review_history.core.models import CanonicalRecord, RawRecord, RejectedRecord
from review_history.observability import metrics
from review_history.observability.logger import get_logger

from .parsers import (
    blank_to_none,
    clean_text,
    parse_entity_ref,
    parse_epoch,
    parse_event_date,
    parse_flag,
    parse_measured_value,
)

logger = get_logger(__name__)


class Normalizer:
    """
    Cleans and types raw review records.

    Records missing an entity reference, a numeric measured value or a
    resolvable event date are rejected here, before deduplication, so a
    malformed row never competes with a valid one for the same natural key.
    """

    def __init__(self, config: PipelineConfig | None = None):
        """
        Initialize normalizer.

        Args:
            config: Pipeline configuration (defaults used if None)
        """
        self.config = config or PipelineConfig()
        self.field_map = self.config.field_map

    def normalize(self, raw: RawRecord) -> CanonicalRecord:
        """
        Normalize a single raw record.

        Args:
            raw: Raw source record

        Returns:
            CanonicalRecord

        Raises:
            MalformedRecordError: If a required field cannot be resolved
        """
        fm = self.field_map

        entity_ref = parse_entity_ref(raw.get(fm.entity_ref))
        if entity_ref is None:
            raise MalformedRecordError("entity_ref", f"'{fm.entity_ref}' is missing or empty")

        measured_value = parse_measured_value(
            raw.get(fm.measured_value),
            lower=self.config.value_min,
            upper=self.config.value_max,
        )
        if measured_value is None:
            raise MalformedRecordError(
                "measured_value", f"'{fm.measured_value}' is not numeric: {raw.get(fm.measured_value)!r}"
            )

        epoch_timestamp = parse_epoch(raw.get(fm.epoch_timestamp))
        event_time_text = blank_to_none(raw.get(fm.event_time_text))
        event_date = parse_event_date(event_time_text, epoch_timestamp, self.config.date_formats)
        if event_date is None:
            raise MalformedRecordError(
                "event_date", f"no parseable '{fm.event_time_text}' and no '{fm.epoch_timestamp}' fallback"
            )

        if epoch_timestamp is not None:
            source_ref = f"{entity_ref}::{epoch_timestamp}"
        elif event_time_text is not None:
            source_ref = f"{entity_ref}::{event_time_text}"
        else:
            source_ref = None

        return CanonicalRecord(
            source_ref=source_ref,
            entity_ref=entity_ref,
            measured_value=measured_value,
            flag=parse_flag(raw.get(fm.flag)),
            event_date=event_date,
            event_year=f"{event_date.year:04d}",
            free_text_1=clean_text(raw.get(fm.free_text_1)),
            free_text_2=clean_text(raw.get(fm.free_text_2)),
            actor_id=blank_to_none(raw.get(fm.actor_id)),
            actor_label=blank_to_none(raw.get(fm.actor_label)),
            epoch_timestamp=epoch_timestamp,
        )

    def try_normalize(self, raw: RawRecord) -> CanonicalRecord | RejectedRecord:
        """Normalize a record, returning a RejectedRecord instead of raising."""
        try:
            return self.normalize(raw)
        except MalformedRecordError as e:
            return RejectedRecord(field_name=e.field_name, reason=e.message, raw_payload=dict(raw))

    def normalize_batch(
        self, raws: Iterable[RawRecord]
    ) -> Tuple[list[CanonicalRecord], list[RejectedRecord]]:
        """
        Normalize a batch, separating accepted and rejected records.

        Args:
            raws: Raw source records

        Returns:
            Tuple of (canonical_records, rejected_records)
        """
        records: list[CanonicalRecord] = []
        rejected: list[RejectedRecord] = []

        for raw in raws:
            outcome = self.try_normalize(raw)
            if isinstance(outcome, RejectedRecord):
                rejected.append(outcome)
            else:
                records.append(outcome)

        record_rejections(rejected)
        return records, rejected


def record_rejections(rejected: list[RejectedRecord]) -> None:
    """Count rejected records by field and log a summary."""
    if not rejected:
        return

    by_field: dict[str, int] = {}
    for rejection in rejected:
        by_field[rejection.field_name] = by_field.get(rejection.field_name, 0) + 1

    for field_name, count in by_field.items():
        metrics.increment_counter(metrics.records_rejected_total, count, field_name=field_name)

    logger.info(f"Rejected {len(rejected)} malformed records", extra={"rejected_by_field": by_field})
