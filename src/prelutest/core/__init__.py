"""Core models and helpers exposed at the package level."""
from .comparator import ExactComparison, compare_exact
from .generators import (
    RandomValueGenerator,
    SequenceValueGenerator,
    ShapeSampler,
    ValueGenerator,
)
from .models import (
    DenseWeights,
    DiffCase,
    EngineConfig,
    HalfPrecisionWeights,
    ShapeSpec,
    SparseWeights,
    WeightStorage,
    broadcast_compatible,
    compute_size,
    parse_weight_storage,
)

__all__ = [
    "DenseWeights",
    "DiffCase",
    "EngineConfig",
    "ExactComparison",
    "HalfPrecisionWeights",
    "RandomValueGenerator",
    "SequenceValueGenerator",
    "ShapeSampler",
    "ShapeSpec",
    "SparseWeights",
    "ValueGenerator",
    "WeightStorage",
    "broadcast_compatible",
    "compare_exact",
    "compute_size",
    "parse_weight_storage",
]
