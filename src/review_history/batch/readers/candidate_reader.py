"""
Spark fan-out of record normalization.

Normalization is a pure function of one record, so it runs on the executors;
only the normalized results are collected to the driver, where
deduplication, keying and versioning happen.
"""

from typing import Any, Tuple

from pyspark.sql import SparkSession

from review_history.core.models import CanonicalRecord, RejectedRecord
from review_history.core.normalization import Normalizer, record_rejections
from review_history.observability.logger import get_logger

from .csv_reader import CORRUPT_RECORD_COLUMN
from .file_reader import FileReader

logger = get_logger(__name__)


def _normalize_row(normalizer: Normalizer, row: dict[str, Any]) -> CanonicalRecord | RejectedRecord:
    if row.get(CORRUPT_RECORD_COLUMN):
        return RejectedRecord(
            field_name=CORRUPT_RECORD_COLUMN,
            reason="row could not be parsed by the reader",
            raw_payload={CORRUPT_RECORD_COLUMN: row[CORRUPT_RECORD_COLUMN]},
        )
    row.pop(CORRUPT_RECORD_COLUMN, None)
    return normalizer.try_normalize(row)


class SparkCandidateReader:
    """
    Reads a review file with Spark and normalizes it in parallel.
    """

    def __init__(self, spark: SparkSession, normalizer: Normalizer):
        """
        Initialize candidate reader.

        Args:
            spark: Active Spark session
            normalizer: Normalizer applied to every row
        """
        self.spark = spark
        self.normalizer = normalizer
        self.file_reader = FileReader(spark)

    def read(
        self,
        file_path: str,
        file_format: str = "json",
        **read_options
    ) -> Tuple[list[CanonicalRecord], list[RejectedRecord], int]:
        """
        Read and normalize a file.

        Args:
            file_path: Path to input file
            file_format: File format (json, csv, parquet)
            **read_options: Additional reader options

        Returns:
            Tuple of (canonical_records, rejected_records, total_records)
        """
        df = self.file_reader.read(file_path, file_format=file_format, **read_options)

        normalizer = self.normalizer
        outcomes = (
            df.rdd
            .map(lambda row: _normalize_row(normalizer, row.asDict(recursive=True)))
            .collect()
        )

        records = [o for o in outcomes if isinstance(o, CanonicalRecord)]
        rejected = [o for o in outcomes if isinstance(o, RejectedRecord)]
        record_rejections(rejected)

        logger.info(
            f"Normalized {len(outcomes)} rows from {file_path}: "
            f"{len(records)} accepted, {len(rejected)} rejected"
        )
        return records, rejected, len(outcomes)
