"""
Core review history logic: normalization, deduplication, keying and SCD-2 versioning.
"""
