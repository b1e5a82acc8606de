"""
Raw record normalization.
"""

from .normalizer import Normalizer, record_rejections
from .parsers import (
    FALSY_TOKENS,
    TRUTHY_TOKENS,
    clean_text,
    parse_entity_ref,
    parse_epoch,
    parse_event_date,
    parse_flag,
    parse_measured_value,
)

__all__ = [
    "Normalizer",
    "record_rejections",
    "TRUTHY_TOKENS",
    "FALSY_TOKENS",
    "clean_text",
    "parse_entity_ref",
    "parse_epoch",
    "parse_event_date",
    "parse_flag",
    "parse_measured_value",
]
