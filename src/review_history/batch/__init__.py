"""
Spark batch processing module.
"""

from .pipeline import CandidateBatch, HistoryPipeline
from .readers import CSVReader, FileReader, SparkCandidateReader

__all__ = [
    "CandidateBatch",
    "HistoryPipeline",
    "CSVReader",
    "FileReader",
    "SparkCandidateReader",
]
