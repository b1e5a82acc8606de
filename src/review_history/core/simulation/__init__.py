"""
Synthetic change generation for exercising versioning outside production.
"""

from .mutation_simulator import MutationResult, MutationSimulator

__all__ = ["MutationResult", "MutationSimulator"]
