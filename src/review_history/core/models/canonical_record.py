"""
CanonicalRecord model representing one normalized review (ephemeral).
"""

import hashlib
from datetime import date
from typing import Any, NamedTuple

from pydantic import BaseModel, Field

# Raw source row exactly as delivered by a reader
RawRecord = dict[str, Any]

UNKNOWN_ACTOR = "UNKNOWN"


class NaturalKey(NamedTuple):
    """Intra-batch duplicate key: entity + actor + submission timestamp."""

    entity_ref: str
    actor_id: str
    epoch_timestamp: int


class CanonicalRecord(BaseModel):
    """
    Normalized, typed projection of a raw review record.

    Only records with an entity reference, a measured value and an event
    date are ever built; everything else is rejected by the Normalizer.

    Attributes:
        source_ref: Informational review id (ENTITY::<epoch or raw date text>)
        entity_ref: Product reference, trimmed and upper-cased
        measured_value: Star rating clamped into the configured bounds
        flag: Verified-purchase flag (None when unknown)
        event_date: Calendar date the review was written
        event_year: Four-digit year of event_date
        free_text_1: Review body, whitespace-normalized
        free_text_2: Review summary, whitespace-normalized
        actor_id: Reviewer id
        actor_label: Reviewer display name
        epoch_timestamp: Submission time in seconds since 1970-01-01 UTC
    """

    source_ref: str | None = None
    entity_ref: str = Field(..., min_length=1)
    measured_value: float
    flag: bool | None = None
    event_date: date
    event_year: str = Field(..., pattern=r"^\d{4}$")
    free_text_1: str | None = None
    free_text_2: str | None = None
    actor_id: str | None = None
    actor_label: str | None = None
    epoch_timestamp: int | None = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "source_ref": "B000FA64PK::1383350400",
                "entity_ref": "B000FA64PK",
                "measured_value": 4.0,
                "flag": True,
                "event_date": "2013-11-02",
                "event_year": "2013",
                "free_text_1": "Works as advertised.",
                "free_text_2": "Good value",
                "actor_id": "A3SBTW3WS4IQSN",
                "actor_label": "Jane D.",
                "epoch_timestamp": 1383350400,
            }
        }

    @property
    def natural_key(self) -> NaturalKey:
        return NaturalKey(
            self.entity_ref,
            self.actor_id or UNKNOWN_ACTOR,
            self.epoch_timestamp if self.epoch_timestamp is not None else 0,
        )

    def fingerprint(self) -> str:
        """SHA-256 of the record's canonical JSON form."""
        return hashlib.sha256(self.model_dump_json().encode("utf-8")).hexdigest()


# Attribute columns copied onto every history row, in table order
ATTRIBUTE_FIELDS: tuple[str, ...] = tuple(CanonicalRecord.model_fields)
