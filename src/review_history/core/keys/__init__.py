"""
Business key derivation.
"""

from .key_deriver import KeyDeriver, KeyedRecord, derive_business_key

__all__ = ["KeyDeriver", "KeyedRecord", "derive_business_key"]
