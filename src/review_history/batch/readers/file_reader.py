"""
Format dispatch for review dumps (JSON lines, CSV, Parquet).
"""

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import StructType

from .csv_reader import CORRUPT_RECORD_COLUMN, CSVReader

SUPPORTED_FORMATS = ("json", "csv", "parquet")

# Primitives stay strings so mixed-type columns ("4" next to 4.0) need no
# schema reconciliation; typing happens in the Normalizer.
REVIEW_JSON_OPTIONS = {
    "mode": "PERMISSIVE",
    "primitivesAsString": "true",
    "columnNameOfCorruptRecord": CORRUPT_RECORD_COLUMN,
}


class FileReader:
    """
    Reads a review dump in any supported format into a DataFrame.
    """

    def __init__(self, spark: SparkSession):
        self.spark = spark
        self.csv_reader = CSVReader(spark)

    def read(
        self,
        file_path: str,
        file_format: str = "json",
        schema: StructType | None = None,
        **options
    ) -> DataFrame:
        """
        Read a review dump.

        Args:
            file_path: Path to file or directory
            file_format: One of SUPPORTED_FORMATS
            schema: Optional explicit schema (json and csv)
            **options: Reader option overrides

        Returns:
            Spark DataFrame

        Raises:
            ValueError: If file format is unsupported
        """
        fmt = file_format.lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported file format: {file_format}. Supported: {', '.join(SUPPORTED_FORMATS)}"
            )

        if fmt == "csv":
            return self.csv_reader.read(file_path, schema=schema, **options)
        if fmt == "parquet":
            return self.spark.read.options(**options).parquet(file_path)

        reader = self.spark.read.options(**{**REVIEW_JSON_OPTIONS, **options})
        if schema is not None:
            reader = reader.schema(schema)
        return reader.json(file_path)
