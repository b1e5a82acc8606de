"""
Intra-batch deduplication.
"""

from .deduplicator import Deduplicator

__all__ = ["Deduplicator"]
