"""
CSV reader for review exports.
"""

from typing import Optional

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import StructType

CORRUPT_RECORD_COLUMN = "_corrupt_record"

# Review bodies contain commas, quotes and newlines
REVIEW_CSV_OPTIONS = {
    "header": "true",
    "delimiter": ",",
    "multiLine": "true",
    "quote": '"',
    "escape": '"',
    "mode": "PERMISSIVE",
    "columnNameOfCorruptRecord": CORRUPT_RECORD_COLUMN,
}


class CSVReader:
    """
    Reads review CSV exports with Spark.

    No schema inference: every column arrives as a string and the Normalizer
    does all typing, so a stray "N/A" in the rating column rejects one record
    instead of turning the whole column into strings or nulls.
    """

    def __init__(self, spark: SparkSession):
        self.spark = spark

    def read(
        self,
        file_path: str,
        schema: Optional[StructType] = None,
        **options: str,
    ) -> DataFrame:
        """
        Read a CSV export into a DataFrame.

        Args:
            file_path: Path to CSV file or directory
            schema: Optional explicit schema; include CORRUPT_RECORD_COLUMN
                in it to keep unparseable lines
            **options: Overrides for REVIEW_CSV_OPTIONS (e.g. delimiter=";")

        Returns:
            Spark DataFrame
        """
        reader = self.spark.read.options(**{**REVIEW_CSV_OPTIONS, **options})
        if schema is not None:
            reader = reader.schema(schema)
        return reader.csv(file_path)
