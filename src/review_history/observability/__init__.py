"""
Logging and metrics.
"""
