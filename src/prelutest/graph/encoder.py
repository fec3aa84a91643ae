"""Slope weight encodings and the decode operators they require."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from prelutest._logging import get_logger
from prelutest.core.generators import SLOPE_RANGE, ValueGenerator
from prelutest.core.models import (
    DenseWeights,
    HalfPrecisionWeights,
    Shape,
    SparseWeights,
    WeightStorage,
    compute_size,
)

from .schema import (
    BuiltinOperator,
    DimensionMetadataDef,
    DimensionType,
    GraphContext,
    SparsityDef,
    TensorDef,
    TensorType,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecodeStep:
    """Operator that expands the stored slope into the dense float32 tensor."""

    opcode_index: int
    input_tensor: int


@dataclass(frozen=True)
class EncodedWeights:
    """What the encoder added to the graph context.

    ``decode`` is set when the slope needs a decode operator before PRELU can
    consume it; the operator itself is wired by the graph builder once the
    dense slope tensor exists.
    """

    values: np.ndarray
    buffer_index: int
    decode: Optional[DecodeStep] = None

    @property
    def needs_decode(self) -> bool:
        return self.decode is not None


class WeightEncoder:
    """Draws slope values and stores them in the requested encoding."""

    def __init__(self, values: ValueGenerator) -> None:
        self._values = values

    def encode(self, context: GraphContext, slope_shape: Shape, storage: WeightStorage) -> EncodedWeights:
        slope = self._values.uniform(SLOPE_RANGE[0], SLOPE_RANGE[1], compute_size(slope_shape))
        slope = np.asarray(slope, dtype=np.float32)
        if isinstance(storage, HalfPrecisionWeights):
            return self._encode_half(context, slope_shape, slope)
        if isinstance(storage, SparseWeights):
            return self._encode_sparse(context, slope_shape, slope)
        if isinstance(storage, DenseWeights):
            buffer_index = context.add_buffer(slope.tobytes())
            logger.debug("dense slope: %d float32 values in buffer %d", slope.size, buffer_index)
            return EncodedWeights(values=slope, buffer_index=buffer_index)
        raise TypeError(f"Unsupported weight storage {storage!r}")

    def _encode_half(self, context: GraphContext, slope_shape: Shape, slope: np.ndarray) -> EncodedWeights:
        opcode_index = context.add_operator_code(BuiltinOperator.DEQUANTIZE)
        half = slope.astype(np.float16)
        buffer_index = context.add_buffer(half.tobytes())
        tensor_index = context.add_tensor(
            TensorDef(
                shape=tuple(slope_shape),
                type=TensorType.FLOAT16,
                buffer=buffer_index,
                name="slope_fp16",
            )
        )
        logger.debug("fp16 slope: tensor %d, buffer %d", tensor_index, buffer_index)
        # The values PRELU sees after expansion are the rounded halves.
        return EncodedWeights(
            values=half.astype(np.float32),
            buffer_index=buffer_index,
            decode=DecodeStep(opcode_index=opcode_index, input_tensor=tensor_index),
        )

    def _encode_sparse(self, context: GraphContext, slope_shape: Shape, slope: np.ndarray) -> EncodedWeights:
        opcode_index = context.add_operator_code(BuiltinOperator.DENSIFY)
        buffer_index = context.add_buffer(slope.tobytes())
        sparsity = SparsityDef(
            traversal_order=tuple(range(len(slope_shape))),
            dim_metadata=tuple(
                DimensionMetadataDef(format=DimensionType.DENSE, dense_size=int(dim)) for dim in slope_shape
            ),
        )
        tensor_index = context.add_tensor(
            TensorDef(
                shape=tuple(slope_shape),
                type=TensorType.FLOAT32,
                buffer=buffer_index,
                name="slope_sparse",
                sparsity=sparsity,
            )
        )
        logger.debug("sparse slope: tensor %d, buffer %d, %d dense dims", tensor_index, buffer_index, len(slope_shape))
        return EncodedWeights(
            values=slope,
            buffer_index=buffer_index,
            decode=DecodeStep(opcode_index=opcode_index, input_tensor=tensor_index),
        )
