"""
MutationSimulator - synthesizes change events for non-production runs.

Picks a sample of keys that are both in the incoming batch and currently
current in history, and overwrites one tracked attribute with a random value
from its valid domain. The pipeline only invokes it when simulation is
explicitly enabled.
"""

import random
from typing import Collection, NamedTuple, Sequence

from review_history.core.config import SIMULATABLE_FIELDS, SimulationConfig
from review_history.core.keys import KeyedRecord
from review_history.observability.logger import get_logger

logger = get_logger(__name__)


class MutationResult(NamedTuple):
    batch: list[KeyedRecord]
    mutated_keys: list[str]


class MutationSimulator:
    """
    Seedable perturbation of a candidate batch.

    With a fixed seed the same batch and history always yield the same
    sampled keys and values.
    """

    def __init__(
        self,
        sample_size: int = 10,
        seed: int | None = None,
        field: str = "measured_value",
        low: float = 1.0,
        high: float = 5.0,
        decimals: int = 1,
    ):
        """
        Initialize mutation simulator.

        Args:
            sample_size: Maximum number of keys to perturb per run
            seed: Random seed (None for non-reproducible runs)
            field: Attribute to overwrite
            low: Lower bound of synthesized values
            high: Upper bound of synthesized values
            decimals: Rounding applied to synthesized values

        Raises:
            ValueError: If the field is not supported or the bounds are inverted
        """
        if field not in SIMULATABLE_FIELDS:
            raise ValueError(f"Cannot simulate changes to '{field}'")
        if low > high:
            raise ValueError(f"low ({low}) must not exceed high ({high})")
        if sample_size < 0:
            raise ValueError("sample_size must be non-negative")

        self.sample_size = sample_size
        self.seed = seed
        self.field = field
        self.low = low
        self.high = high
        self.decimals = decimals
        self._rng = random.Random(seed)

    @classmethod
    def from_config(cls, config: SimulationConfig) -> "MutationSimulator":
        return cls(
            sample_size=config.sample_size,
            seed=config.seed,
            field=config.field,
            low=config.low,
            high=config.high,
            decimals=config.decimals,
        )

    def synthesize_value(self) -> float:
        value = round(self._rng.uniform(self.low, self.high), self.decimals)
        return min(max(value, self.low), self.high)

    def perturb(self, batch: Sequence[KeyedRecord], current_keys: Collection[str]) -> MutationResult:
        """
        Replace sampled candidates with perturbed copies.

        Args:
            batch: Keyed candidate records
            current_keys: Business keys currently marked current in history

        Returns:
            MutationResult with the new batch (original order kept) and the
            perturbed keys
        """
        eligible = sorted({key for key, _ in batch if key in current_keys})
        if not eligible or self.sample_size == 0:
            return MutationResult(list(batch), [])

        chosen = self._rng.sample(eligible, min(self.sample_size, len(eligible)))
        values = {key: self.synthesize_value() for key in sorted(chosen)}

        perturbed: list[KeyedRecord] = []
        for business_key, record in batch:
            if business_key in values:
                record = record.model_copy(update={self.field: values[business_key]})
            perturbed.append(KeyedRecord(business_key, record))

        logger.info(
            f"Simulated changes for {len(values)} keys",
            extra={"field": self.field, "sampled": len(values), "eligible": len(eligible)},
        )
        return MutationResult(perturbed, sorted(values))
