"""
review-history: SCD-2 temporal history of product reviews.
"""

__version__ = "0.1.0"
