"""Core dataclasses shared across prelutest subsystems."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Optional, Sequence, Tuple, Union

Shape = Tuple[int, ...]


def compute_size(shape: Iterable[int]) -> int:
    """Number of elements in ``shape``; the empty shape holds one element."""

    size = 1
    for dim in shape:
        size *= int(dim)
    return size


def broadcast_compatible(input_shape: Sequence[int], slope_shape: Sequence[int]) -> bool:
    """Whether ``slope_shape`` broadcasts against ``input_shape`` from the right."""

    if len(slope_shape) > len(input_shape):
        return False
    for slope_dim, input_dim in zip(reversed(slope_shape), reversed(input_shape)):
        if slope_dim not in (1, input_dim):
            return False
    return True


@dataclass(frozen=True)
class ShapeSpec:
    """Input and slope shapes of one PReLU case; output mirrors the input."""

    input_shape: Shape
    slope_shape: Shape

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_shape", tuple(int(dim) for dim in self.input_shape))
        object.__setattr__(self, "slope_shape", tuple(int(dim) for dim in self.slope_shape))

    @property
    def output_shape(self) -> Shape:
        return self.input_shape

    @property
    def input_size(self) -> int:
        return compute_size(self.input_shape)

    @property
    def slope_size(self) -> int:
        return compute_size(self.slope_shape)

    @property
    def output_size(self) -> int:
        return compute_size(self.output_shape)

    def label(self) -> str:
        def fmt(shape: Shape) -> str:
            return "x".join(str(dim) for dim in shape) or "scalar"

        return f"{fmt(self.input_shape)}/{fmt(self.slope_shape)}"


@dataclass(frozen=True)
class DenseWeights:
    """Slope stored as plain float32 constants."""

    kind: ClassVar[str] = "dense"


@dataclass(frozen=True)
class HalfPrecisionWeights:
    """Slope stored as float16 constants expanded by a DEQUANTIZE operator."""

    kind: ClassVar[str] = "fp16"


@dataclass(frozen=True)
class SparseWeights:
    """Slope tagged with sparsity metadata and expanded by a DENSIFY operator.

    Every dimension is declared dense, so the payload is identical to the
    dense encoding and only the decompression path is exercised.
    """

    kind: ClassVar[str] = "sparse"


WeightStorage = Union[DenseWeights, HalfPrecisionWeights, SparseWeights]

_STORAGE_ALIASES = {
    "dense": DenseWeights,
    "float32": DenseWeights,
    "fp32": DenseWeights,
    "fp16": HalfPrecisionWeights,
    "float16": HalfPrecisionWeights,
    "half": HalfPrecisionWeights,
    "sparse": SparseWeights,
    "densify": SparseWeights,
}

WEIGHT_KINDS: Tuple[str, ...] = ("dense", "fp16", "sparse")


def parse_weight_storage(value: Union[str, WeightStorage]) -> WeightStorage:
    """Resolve a storage name such as ``"fp16"`` into its variant instance."""

    if isinstance(value, (DenseWeights, HalfPrecisionWeights, SparseWeights)):
        return value
    key = str(value).strip().lower()
    try:
        return _STORAGE_ALIASES[key]()
    except KeyError:
        supported = ", ".join(WEIGHT_KINDS)
        raise ValueError(f"Unknown weight storage '{value}' (expected one of: {supported})") from None


@dataclass(frozen=True)
class EngineConfig:
    """Names a registered engine factory and the options passed to it."""

    name: str
    options: Tuple[Tuple[str, object], ...] = tuple()

    def option_dict(self) -> dict:
        return dict(self.options)


@dataclass
class DiffCase:
    """Concrete description of one differential run."""

    name: str
    shapes: ShapeSpec
    weights: WeightStorage = field(default_factory=DenseWeights)
    num_threads: Optional[int] = None
    seed: Optional[int] = None
    tags: Tuple[str, ...] = tuple()

    def identifier(self) -> str:
        threads = f",threads={self.num_threads}" if self.num_threads else ""
        return f"{self.name}[{self.weights.kind}{threads}]({self.shapes.label()})"
