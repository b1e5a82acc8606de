"""
Review history pipeline orchestration.

Coordinates the flow: normalize -> deduplicate -> key -> version -> expire

A run has two strictly ordered phases:
1. Insert: all new history rows are written in one transaction. After this
   phase no business key has fewer current rows than before the run.
2. Expire: current rows superseded by a higher current version are closed.

Phase 2 is idempotent and can be re-run alone (repair) if a run is
interrupted between the phases.
"""

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from pydantic import BaseModel, Field
from pyspark.sql import SparkSession

from review_history.core.config import PipelineConfig
from review_history.core.dedup import Deduplicator
from review_history.core.errors import SeedConflictError
from review_history.core.keys import KeyDeriver, KeyedRecord
from review_history.core.models import CanonicalRecord, RawRecord, RejectedRecord, RunMode, RunResult
from review_history.core.normalization import Normalizer
from review_history.core.simulation import MutationSimulator
from review_history.core.versioning import Expirer, VersioningEngine
from review_history.observability import metrics
from review_history.observability.logger import get_logger, log_run
from review_history.warehouse.history_store import HistoryStore

from .readers import SparkCandidateReader

logger = get_logger(__name__)

RUN_MODES = ("seed", "incremental")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CandidateBatch(BaseModel):
    """
    Deduplicated, keyed records ready for versioning.

    Attributes:
        keyed: (business_key, record) pairs, one per business key
        total_records: Raw records received
        rejected: Records dropped by the Normalizer
        duplicate_count: Records collapsed by the Deduplicator
        key_collisions: Records dropped for repeating a business key
    """

    keyed: list[KeyedRecord] = Field(default_factory=list)
    total_records: int = 0
    rejected: list[RejectedRecord] = Field(default_factory=list)
    duplicate_count: int = 0
    key_collisions: int = 0

    @property
    def business_keys(self) -> list[str]:
        return [business_key for business_key, _ in self.keyed]


class HistoryPipeline:
    """
    Orchestrates a seed or incremental run against a history store.

    Flow:
    1. Normalize raw records (rejecting malformed ones)
    2. Deduplicate by natural key
    3. Derive business keys
    4. Seed: insert version 1 for every candidate
       Incremental: optionally simulate changes, then insert new/changed versions
    5. Expire superseded current rows
    """

    def __init__(
        self,
        store: HistoryStore,
        config: Optional[PipelineConfig] = None,
        simulator: Optional[MutationSimulator] = None,
        spark: Optional[SparkSession] = None,
        expirer: Optional[Expirer] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize history pipeline.

        Args:
            store: History store to read and write
            config: Pipeline configuration (defaults used if None)
            simulator: Mutation simulator; runs never perturb data without one
            spark: Spark session, required only for process_file
            expirer: Expirer (default retry settings if None)
            clock: Source of run timestamps
        """
        self.store = store
        self.config = config or PipelineConfig()
        self.simulator = simulator
        self.spark = spark
        self.clock = clock

        self.normalizer = Normalizer(self.config)
        self.deduplicator = Deduplicator()
        self.key_deriver = KeyDeriver()
        self.engine = VersioningEngine(self.config.tracked_fields)
        self.expirer = expirer or Expirer()

    @classmethod
    def from_config(
        cls,
        store: HistoryStore,
        config: PipelineConfig,
        spark: Optional[SparkSession] = None,
    ) -> "HistoryPipeline":
        """Build a pipeline, attaching a simulator only when the config enables one."""
        simulator = None
        if config.simulation.enabled:
            logger.warning("Mutation simulation is ENABLED; incremental runs will perturb input data")
            simulator = MutationSimulator.from_config(config.simulation)
        return cls(store, config=config, simulator=simulator, spark=spark)

    # ------------------------------------------------------------------
    # Candidate building
    # ------------------------------------------------------------------

    def build_candidates(self, raw_records: Iterable[RawRecord]) -> CandidateBatch:
        """
        Normalize, deduplicate and key an in-memory batch.

        Args:
            raw_records: Raw source records

        Returns:
            CandidateBatch
        """
        raws = list(raw_records)
        records, rejected = self.normalizer.normalize_batch(raws)
        return self._finalize_candidates(records, rejected, len(raws))

    def _finalize_candidates(
        self,
        records: list[CanonicalRecord],
        rejected: list[RejectedRecord],
        total_records: int,
    ) -> CandidateBatch:
        deduped, duplicate_count = self.deduplicator.dedupe(records)
        if duplicate_count:
            logger.info(f"Removed {duplicate_count} duplicate records")

        keyed, key_collisions = self.key_deriver.key_batch(deduped)

        return CandidateBatch(
            keyed=keyed,
            total_records=total_records,
            rejected=rejected,
            duplicate_count=duplicate_count,
            key_collisions=key_collisions,
        )

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run(
        self,
        raw_records: Iterable[RawRecord],
        mode: RunMode = "incremental",
        full_refresh: bool = False,
    ) -> RunResult:
        """
        Run the pipeline over an in-memory batch.

        Args:
            raw_records: Raw source records
            mode: "seed" or "incremental"
            full_refresh: Seed only; replace existing history instead of failing

        Returns:
            RunResult with inserted/expired/rejected counts

        Raises:
            ValueError: If mode is unknown
            SeedConflictError: If seeding a non-empty table without full_refresh
            StorageUnavailableError: If the history store cannot be reached
        """
        self._check_mode(mode)
        return self.execute(self.build_candidates(raw_records), mode, full_refresh)

    def process_file(
        self,
        file_path: str,
        mode: RunMode = "incremental",
        file_format: str = "json",
        full_refresh: bool = False,
        **read_options
    ) -> RunResult:
        """
        Run the pipeline over a file read with Spark.

        Args:
            file_path: Path to input file
            mode: "seed" or "incremental"
            file_format: File format (json, csv, parquet)
            full_refresh: Seed only; replace existing history instead of failing
            **read_options: Additional reader options

        Returns:
            RunResult
        """
        self._check_mode(mode)
        if self.spark is None:
            raise RuntimeError("process_file requires a Spark session")

        logger.info(f"Reading {file_format} file: {file_path}")
        reader = SparkCandidateReader(self.spark, self.normalizer)
        records, rejected, total = reader.read(file_path, file_format=file_format, **read_options)
        return self.execute(self._finalize_candidates(records, rejected, total), mode, full_refresh)

    def execute(self, candidates: CandidateBatch, mode: RunMode, full_refresh: bool = False) -> RunResult:
        """
        Apply a candidate batch to the history store (both phases).

        Args:
            candidates: Candidate batch from build_candidates
            mode: "seed" or "incremental"
            full_refresh: Seed only; replace existing history instead of failing

        Returns:
            RunResult
        """
        self._check_mode(mode)
        result = RunResult(
            mode=mode,
            total_records=candidates.total_records,
            rejected_records=len(candidates.rejected),
            duplicate_records=candidates.duplicate_count,
            key_collisions=candidates.key_collisions,
            candidate_records=len(candidates.keyed),
            started_at=self.clock(),
        )

        try:
            with log_run(mode, logger=logger, candidates=len(candidates.keyed)) as run:
                result.run_id = run.run_id
                with metrics.track_duration(metrics.run_duration_seconds, mode=mode):
                    result.inconsistent_keys_before = self._preflight()

                    if mode == "seed":
                        result.inserted_rows = self._seed_phase(candidates, result.started_at, full_refresh)
                    else:
                        result.inserted_rows, result.simulated_keys = self._increment_phase(
                            candidates, result.started_at
                        )

                    result.expired_rows = self.expirer.expire(self.store, self.clock())
        except Exception:
            metrics.runs_total.labels(mode=mode, status="failure").inc()
            raise

        result.finished_at = self.clock()
        metrics.record_run(result)
        logger.info(
            f"Run complete: {result.inserted_rows} inserted, {result.expired_rows} expired, "
            f"{result.rejected_records} rejected",
            extra={"run_result": result.model_dump(mode="json", exclude={"simulated_keys"})},
        )
        return result

    def repair(self) -> int:
        """
        Re-run phase 2 alone to close rows left current by an interrupted run.

        Returns:
            Number of rows closed
        """
        inconsistent = self._preflight()
        expired = self.expirer.expire(self.store, self.clock())
        logger.info(f"Repair closed {expired} rows across {inconsistent} inconsistent keys")
        return expired

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _preflight(self) -> int:
        inconsistent = self.store.find_inconsistent_keys()
        metrics.set_gauge(metrics.inconsistent_keys, len(inconsistent))
        if inconsistent:
            sample = sorted(inconsistent)[:5]
            logger.warning(
                f"History has {len(inconsistent)} keys with more than one current row; "
                "a previous run was probably interrupted before expiration. "
                "They will be repaired by this run's expire phase.",
                extra={"sample_keys": sample},
            )
        return len(inconsistent)

    def _seed_phase(self, candidates: CandidateBatch, now: datetime, full_refresh: bool) -> int:
        existing = self.store.count_rows()
        if existing and not full_refresh:
            raise SeedConflictError(existing)

        entries = self.engine.seed(candidates.keyed, now)
        return self.store.insert_entries(entries, replace_all=full_refresh)

    def _increment_phase(self, candidates: CandidateBatch, now: datetime) -> tuple[int, list[str]]:
        snapshot = self.store.load_snapshot(candidates.business_keys)
        batch = candidates.keyed
        simulated: list[str] = []

        if self.simulator is not None:
            mutation = self.simulator.perturb(batch, snapshot.current.keys())
            batch, simulated = mutation.batch, mutation.mutated_keys

        entries = self.engine.apply_increment(batch, snapshot, now)
        inserted = self.store.insert_entries(entries) if entries else 0
        return inserted, simulated

    @staticmethod
    def _check_mode(mode: str) -> None:
        if mode not in RUN_MODES:
            raise ValueError(f"Unknown run mode: {mode}. Expected one of: {', '.join(RUN_MODES)}")
