"""Synthesizes the single-PRELU TFLite graph for one case.

All tensor index arithmetic lives here. Tensors are appended in a fixed order
(decode input if any, input, slope, output), so PRELU always reads the two
tensors immediately preceding the final output tensor.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from prelutest._logging import get_logger
from prelutest.core.generators import RandomValueGenerator, ValueGenerator
from prelutest.core.models import ShapeSpec, WeightStorage

from .encoder import WeightEncoder
from .schema import BuiltinOperator, GraphContext, ModelDef, OperatorDef, TensorDef, TensorType
from .writer import serialize_model

logger = get_logger(__name__)

MODEL_DESCRIPTION = "PReLU model"


@dataclass(frozen=True)
class BuiltGraph:
    """A synthesized graph together with the slope values PRELU will read."""

    model: ModelDef
    slope: np.ndarray

    def serialize(self) -> bytes:
        return serialize_model(self.model)


class GraphBuilder:
    """Builds PRELU graphs, delegating slope storage to :class:`WeightEncoder`."""

    def __init__(self, values: Optional[ValueGenerator] = None) -> None:
        self._encoder = WeightEncoder(values or RandomValueGenerator())

    def build(self, shapes: ShapeSpec, storage: WeightStorage) -> bytes:
        """Return the serialized flatbuffer for ``shapes`` and ``storage``."""

        return self.build_graph(shapes, storage).serialize()

    def build_model(self, shapes: ShapeSpec, storage: WeightStorage) -> ModelDef:
        return self.build_graph(shapes, storage).model

    def build_graph(self, shapes: ShapeSpec, storage: WeightStorage) -> BuiltGraph:
        context = GraphContext()
        prelu_opcode = context.add_operator_code(BuiltinOperator.PRELU)
        context.add_buffer()

        weights = self._encoder.encode(context, shapes.slope_shape, storage)

        context.add_tensor(TensorDef(shape=shapes.input_shape, type=TensorType.FLOAT32, name="input"))
        context.add_tensor(
            TensorDef(
                shape=shapes.slope_shape,
                type=TensorType.FLOAT32,
                buffer=0 if weights.needs_decode else weights.buffer_index,
                name="slope",
            )
        )
        context.add_tensor(TensorDef(shape=shapes.output_shape, type=TensorType.FLOAT32, name="output"))

        count = len(context.tensors)
        input_index, slope_index, output_index = count - 3, count - 2, count - 1
        if weights.decode is not None:
            context.add_operator(
                OperatorDef(
                    opcode_index=weights.decode.opcode_index,
                    inputs=(weights.decode.input_tensor,),
                    outputs=(slope_index,),
                )
            )
        context.add_operator(
            OperatorDef(
                opcode_index=prelu_opcode,
                inputs=(input_index, slope_index),
                outputs=(output_index,),
            )
        )
        model = context.finish(
            inputs=(input_index,),
            outputs=(output_index,),
            description=MODEL_DESCRIPTION,
        )
        logger.debug(
            "built %s graph for %s: %d tensors, %d operators",
            storage.kind,
            shapes.label(),
            len(model.subgraph.tensors),
            len(model.subgraph.operators),
        )
        return BuiltGraph(model=model, slope=weights.values)
