"""
Batch data source readers.
"""

from .candidate_reader import SparkCandidateReader
from .csv_reader import CSVReader
from .file_reader import FileReader

__all__ = [
    "CSVReader",
    "FileReader",
    "SparkCandidateReader",
]
