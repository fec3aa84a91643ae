"""Value and shape generators feeding the harness."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence

import numpy as np

from .models import Shape, ShapeSpec

INPUT_RANGE = (-1.0, 1.0)
SLOPE_RANGE = (0.25, 0.5)

BROADCAST_MODES = ("channel", "channel_nd", "trailing", "full")


class ValueGenerator(Protocol):
    """Source of float32 values drawn uniformly from ``[low, high)``."""

    def uniform(self, low: float, high: float, size: int) -> np.ndarray:
        ...


class RandomValueGenerator:
    """Generator backed by :class:`numpy.random.Generator`.

    Without a seed the bit generator is initialised from OS entropy, so every
    run draws fresh values.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def uniform(self, low: float, high: float, size: int) -> np.ndarray:
        low32 = np.float32(low)
        high32 = np.float32(high)
        values = self._rng.random(size, dtype=np.float32) * (high32 - low32) + low32
        # float32 rounding may land exactly on the open upper bound
        ceiling = np.nextafter(high32, low32)
        return np.minimum(values, ceiling).astype(np.float32)


class SequenceValueGenerator:
    """Deterministic generator replaying a fixed value sequence.

    Values are cycled when more are requested than supplied; the requested
    range is ignored. Meant for reproducing a mismatch.
    """

    def __init__(self, values: Iterable[float]) -> None:
        self._values = np.asarray(list(values), dtype=np.float32)
        if self._values.size == 0:
            raise ValueError("SequenceValueGenerator needs at least one value")
        self._cursor = 0

    def uniform(self, low: float, high: float, size: int) -> np.ndarray:
        indices = (np.arange(size) + self._cursor) % self._values.size
        self._cursor = (self._cursor + size) % self._values.size
        return self._values[indices].copy()


@dataclass
class ShapeSampler:
    """Draws random input/slope shape pairs.

    Dimensions are uniform in ``[min_dim, max_dim]``. The broadcast mode picks
    the slope shape: ``channel`` -> ``[C]``, ``channel_nd`` -> ``[1, ..., 1, C]``,
    ``trailing`` -> input shape without its batch dimension, ``full`` -> same as
    the input.
    """

    rank: int = 4
    broadcast: str = "channel"
    min_dim: int = 2
    max_dim: int = 5

    def __post_init__(self) -> None:
        if not 1 <= self.rank <= 4:
            raise ValueError(f"rank must be between 1 and 4, got {self.rank}")
        if self.broadcast not in BROADCAST_MODES:
            raise ValueError(
                f"Unknown broadcast mode '{self.broadcast}' (expected one of: {', '.join(BROADCAST_MODES)})"
            )
        if self.min_dim < 1 or self.max_dim < self.min_dim:
            raise ValueError("Invalid dimension range for shape sampling")

    def sample(self, rng: np.random.Generator) -> ShapeSpec:
        dims = rng.integers(self.min_dim, self.max_dim, size=self.rank, endpoint=True)
        input_shape: Shape = tuple(int(dim) for dim in dims)
        return ShapeSpec(input_shape=input_shape, slope_shape=slope_shape_for(input_shape, self.broadcast))

    def sample_many(self, rng: np.random.Generator, count: int) -> List[ShapeSpec]:
        return [self.sample(rng) for _ in range(count)]


def slope_shape_for(input_shape: Sequence[int], broadcast: str) -> Shape:
    channels = int(input_shape[-1])
    if broadcast == "channel":
        return (channels,)
    if broadcast == "channel_nd":
        return tuple([1] * (len(input_shape) - 1) + [channels])
    if broadcast == "trailing":
        return tuple(int(dim) for dim in input_shape[1:]) or (channels,)
    if broadcast == "full":
        return tuple(int(dim) for dim in input_shape)
    raise ValueError(f"Unknown broadcast mode '{broadcast}'")
