"""
SCD-2 versioning: change detection, version building and expiration.
"""

from .change_detection import DEFAULT_TRACKED_FIELDS, has_changed, validate_tracked_fields
from .engine import VersioningEngine
from .expirer import Expirer
from .invariants import check_history_invariants

__all__ = [
    "DEFAULT_TRACKED_FIELDS",
    "has_changed",
    "validate_tracked_fields",
    "VersioningEngine",
    "Expirer",
    "check_history_invariants",
]
