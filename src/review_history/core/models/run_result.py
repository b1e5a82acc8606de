"""
Run-level models: rejected input records, invariant reports and run results.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

RunMode = Literal["seed", "incremental"]


class RejectedRecord(BaseModel):
    """
    A raw record that could not be normalized (ephemeral).

    Attributes:
        field_name: Required field that could not be resolved
        reason: Human-readable rejection reason
        raw_payload: Original unmodified data
    """

    field_name: str
    reason: str
    raw_payload: dict[str, Any] = Field(default_factory=dict)


class InvariantReport(BaseModel):
    """
    Result of checking the history table's SCD-2 invariants.

    Attributes:
        total_rows: Number of rows in the table
        business_keys: Number of distinct business keys
        multiple_current: Keys with more than one current row -> current row count
        missing_current: Keys with no current row
        version_gaps: Keys whose versions are not exactly 1..N
    """

    total_rows: int = 0
    business_keys: int = 0
    multiple_current: dict[str, int] = Field(default_factory=dict)
    missing_current: list[str] = Field(default_factory=list)
    version_gaps: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.multiple_current or self.missing_current or self.version_gaps)


class RunResult(BaseModel):
    """
    Outcome of one pipeline run.

    Attributes:
        mode: "seed" or "incremental"
        run_id: Id tagging every log line of the run
        total_records: Raw records received
        rejected_records: Raw records dropped as malformed
        duplicate_records: Records collapsed by natural-key deduplication
        key_collisions: Records dropped because their business key repeated in the batch
        candidate_records: Keyed records offered to the versioning engine
        inserted_rows: History rows inserted in phase 1
        expired_rows: History rows closed in phase 2
        simulated_keys: Business keys perturbed by the mutation simulator
        inconsistent_keys_before: Keys found with more than one current row before the run
    """

    mode: RunMode
    run_id: str | None = None
    total_records: int = 0
    rejected_records: int = 0
    duplicate_records: int = 0
    key_collisions: int = 0
    candidate_records: int = 0
    inserted_rows: int = 0
    expired_rows: int = 0
    simulated_keys: list[str] = Field(default_factory=list)
    inconsistent_keys_before: int = 0
    started_at: datetime
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    class Config:
        json_schema_extra = {
            "example": {
                "mode": "incremental",
                "total_records": 1000,
                "rejected_records": 12,
                "duplicate_records": 3,
                "key_collisions": 0,
                "candidate_records": 985,
                "inserted_rows": 10,
                "expired_rows": 10,
                "simulated_keys": ["9f86d081884c7d65..."],
                "inconsistent_keys_before": 0,
            }
        }
