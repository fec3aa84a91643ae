from __future__ import annotations

import numpy as np
import pytest

from prelutest.core import RandomValueGenerator, SequenceValueGenerator, ShapeSampler
from prelutest.core.generators import INPUT_RANGE, SLOPE_RANGE, slope_shape_for
from prelutest.core.models import broadcast_compatible


def test_random_values_stay_in_half_open_range() -> None:
    values = RandomValueGenerator(seed=3).uniform(*SLOPE_RANGE, 10_000)
    assert values.dtype == np.float32
    assert values.shape == (10_000,)
    assert values.min() >= np.float32(0.25)
    assert values.max() < np.float32(0.5)


def test_random_values_cover_negative_inputs() -> None:
    values = RandomValueGenerator(seed=11).uniform(*INPUT_RANGE, 1000)
    assert values.min() >= np.float32(-1.0)
    assert values.max() < np.float32(1.0)
    assert (values < 0).any() and (values >= 0).any()


def test_seeded_generators_repeat_draws() -> None:
    first = RandomValueGenerator(seed=42).uniform(-1.0, 1.0, 16)
    second = RandomValueGenerator(seed=42).uniform(-1.0, 1.0, 16)
    np.testing.assert_array_equal(first, second)


def test_sequence_generator_cycles_values() -> None:
    generator = SequenceValueGenerator([0.5, -0.5, 0.25])
    np.testing.assert_array_equal(generator.uniform(-1, 1, 2), np.array([0.5, -0.5], dtype=np.float32))
    np.testing.assert_array_equal(
        generator.uniform(-1, 1, 4), np.array([0.25, 0.5, -0.5, 0.25], dtype=np.float32)
    )


def test_sequence_generator_requires_values() -> None:
    with pytest.raises(ValueError):
        SequenceValueGenerator([])


@pytest.mark.parametrize("broadcast", ["channel", "channel_nd", "trailing", "full"])
@pytest.mark.parametrize("rank", [1, 2, 3, 4])
def test_shape_sampler_produces_broadcastable_pairs(rank: int, broadcast: str) -> None:
    sampler = ShapeSampler(rank=rank, broadcast=broadcast)
    rng = np.random.default_rng(rank)
    for shapes in sampler.sample_many(rng, 5):
        assert len(shapes.input_shape) == rank
        assert all(2 <= dim <= 5 for dim in shapes.input_shape)
        assert broadcast_compatible(shapes.input_shape, shapes.slope_shape)


def test_slope_shape_for_modes() -> None:
    assert slope_shape_for((2, 3, 4, 5), "channel") == (5,)
    assert slope_shape_for((2, 3, 4, 5), "channel_nd") == (1, 1, 1, 5)
    assert slope_shape_for((2, 3, 4, 5), "trailing") == (3, 4, 5)
    assert slope_shape_for((2, 3, 4, 5), "full") == (2, 3, 4, 5)
    assert slope_shape_for((7,), "trailing") == (7,)


def test_shape_sampler_validates_configuration() -> None:
    with pytest.raises(ValueError):
        ShapeSampler(rank=5)
    with pytest.raises(ValueError):
        ShapeSampler(broadcast="diagonal")
    with pytest.raises(ValueError):
        ShapeSampler(min_dim=4, max_dim=2)
