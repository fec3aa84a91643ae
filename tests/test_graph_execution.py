"""Runs synthesized graphs through a small numpy interpreter built on the tflite schema bindings."""
from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np
import pytest

from prelutest.core import (
    DenseWeights,
    HalfPrecisionWeights,
    RandomValueGenerator,
    ShapeSpec,
    SparseWeights,
)
from prelutest.core.runner import DifferentialRunner
from prelutest.engines import ExecutionEngine
from prelutest.graph import BuiltinOperator, GraphBuilder, TensorType

tflite = pytest.importorskip("tflite")

_DTYPES = {TensorType.FLOAT32: np.float32, TensorType.FLOAT16: np.float16}


class NumpyGraphEngine(ExecutionEngine):
    """Evaluates DEQUANTIZE, DENSIFY and PRELU graphs with numpy."""

    name = "numpy"

    def __init__(self, *, accelerate: bool = False, num_threads: Optional[int] = None) -> None:
        self.accelerated = accelerate
        self._model = None
        self._values: Dict[int, np.ndarray] = {}

    def load(self, model: bytes) -> None:
        self._model = tflite.Model.GetRootAsModel(model, 0)
        self._graph = self._model.Subgraphs(0)

    def input_count(self) -> int:
        return self._graph.InputsLength()

    def output_count(self) -> int:
        return self._graph.OutputsLength()

    def input_shape(self) -> Tuple[int, ...]:
        return self._shape(self._graph.Inputs(0))

    def allocate(self) -> None:
        for index in range(self._graph.TensorsLength()):
            tensor = self._graph.Tensors(index)
            data = self._model.Buffers(tensor.Buffer()).DataAsNumpy()
            if isinstance(data, np.ndarray) and data.size:
                dtype = _DTYPES[tensor.Type()]
                self._values[index] = data.view(dtype).reshape(self._shape(index))

    def attach_accelerator(self) -> None:
        pass

    def set_input(self, values: np.ndarray) -> None:
        self._values[self._graph.Inputs(0)] = np.asarray(values, dtype=np.float32).reshape(self.input_shape())

    def invoke(self) -> None:
        for op_index in range(self._graph.OperatorsLength()):
            op = self._graph.Operators(op_index)
            code = self._model.OperatorCodes(op.OpcodeIndex())
            builtin = max(code.BuiltinCode(), code.DeprecatedBuiltinCode())
            inputs = [self._values[int(i)] for i in op.InputsAsNumpy()]
            if builtin == BuiltinOperator.PRELU:
                x, alpha = inputs
                result = np.where(x >= 0, x, x * alpha).astype(np.float32)
            elif builtin in (BuiltinOperator.DEQUANTIZE, BuiltinOperator.DENSIFY):
                result = inputs[0].astype(np.float32)
            else:
                raise RuntimeError(f"unsupported operator {builtin}")
            self._values[int(op.Outputs(0))] = result

    def get_output(self) -> np.ndarray:
        return self._values[self._graph.Outputs(0)]

    def _shape(self, index: int) -> Tuple[int, ...]:
        shape = self._graph.Tensors(index).ShapeAsNumpy()
        if not isinstance(shape, np.ndarray):
            return tuple()
        return tuple(int(dim) for dim in shape)


@pytest.mark.parametrize(
    "storage",
    [DenseWeights(), HalfPrecisionWeights(), SparseWeights()],
    ids=lambda storage: storage.kind,
)
def test_decoded_slope_matches_effective_values(storage) -> None:
    shapes = ShapeSpec(input_shape=(1, 4, 4, 3), slope_shape=(3,))
    built = GraphBuilder(RandomValueGenerator(5)).build_graph(shapes, storage)
    engine = NumpyGraphEngine()
    engine.load(built.serialize())
    engine.allocate()
    x = -np.ones(shapes.input_shape, dtype=np.float32)
    engine.set_input(x)
    engine.invoke()
    output = engine.get_output()
    assert output.shape == shapes.input_shape
    np.testing.assert_array_equal(output[0, 0, 0], -built.slope)


def test_numpy_engines_agree_through_differential_runner() -> None:
    shapes = ShapeSpec(input_shape=(2, 3, 4), slope_shape=(3, 4))
    values = RandomValueGenerator(9)
    model = GraphBuilder(values).build(shapes, SparseWeights())
    runner = DifferentialRunner(NumpyGraphEngine, lambda: NumpyGraphEngine(accelerate=True), values=values)
    comparison = runner.run(model, shapes)
    assert comparison.passed
    assert comparison.total == 24
