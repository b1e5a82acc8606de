"""
Unit tests for the mutation simulator.
"""
import pytest

from review_history.core.config import SimulationConfig
from review_history.core.simulation import MutationSimulator


@pytest.fixture
def batch(make_keyed):
    # Ratings below the synthesized domain so every mutation is visible
    return [make_keyed(reviewer=f"A{i}", overall=0.5) for i in range(20)]


@pytest.mark.unit
class TestMutationSimulator:
    """Tests for MutationSimulator"""

    def test_only_current_keys_are_eligible(self, batch):
        current = {key for key, _ in batch[:3]}

        result = MutationSimulator(sample_size=10, seed=1).perturb(batch, current)

        assert set(result.mutated_keys) == current

    def test_sample_size_caps_mutations(self, batch):
        current = {key for key, _ in batch}

        result = MutationSimulator(sample_size=5, seed=1).perturb(batch, current)

        assert len(result.mutated_keys) == 5
        changed = [
            key for (key, before), (_, after) in zip(batch, result.batch)
            if before != after
        ]
        assert sorted(changed) == result.mutated_keys

    def test_batch_order_and_keys_preserved(self, batch):
        current = {key for key, _ in batch}

        result = MutationSimulator(seed=3).perturb(batch, current)

        assert [key for key, _ in result.batch] == [key for key, _ in batch]

    def test_only_target_field_changes(self, batch):
        current = {key for key, _ in batch}
        result = MutationSimulator(seed=3).perturb(batch, current)

        for (key, before), (_, after) in zip(batch, result.batch):
            if key in result.mutated_keys:
                assert before.model_dump(exclude={"measured_value"}) == after.model_dump(
                    exclude={"measured_value"}
                )

    def test_values_within_domain(self, batch):
        current = {key for key, _ in batch}
        result = MutationSimulator(sample_size=20, seed=7).perturb(batch, current)

        for _, record in result.batch:
            assert 1.0 <= record.measured_value <= 5.0
            assert round(record.measured_value, 1) == record.measured_value

    def test_seeded_runs_are_reproducible(self, batch):
        current = {key for key, _ in batch}

        first = MutationSimulator(seed=42).perturb(batch, current)
        second = MutationSimulator(seed=42).perturb(list(reversed(batch)), current)

        assert first.mutated_keys == second.mutated_keys
        first_values = {key: r.measured_value for key, r in first.batch}
        second_values = {key: r.measured_value for key, r in second.batch}
        assert first_values == second_values

    def test_no_eligible_keys_returns_batch_unchanged(self, batch):
        result = MutationSimulator(seed=1).perturb(batch, set())

        assert result.batch == batch
        assert result.mutated_keys == []

    def test_zero_sample_size(self, batch):
        current = {key for key, _ in batch}
        assert MutationSimulator(sample_size=0).perturb(batch, current).mutated_keys == []

    @pytest.mark.parametrize("kwargs", [
        {"field": "free_text_1"},
        {"low": 5.0, "high": 1.0},
        {"sample_size": -1},
    ])
    def test_invalid_settings_rejected(self, kwargs):
        with pytest.raises(ValueError):
            MutationSimulator(**kwargs)

    def test_from_config(self):
        config = SimulationConfig(enabled=True, sample_size=3, seed=9, low=2.0, high=3.0, decimals=0)
        simulator = MutationSimulator.from_config(config)

        assert simulator.sample_size == 3
        assert simulator.seed == 9
        assert simulator.synthesize_value() in (2.0, 3.0)
