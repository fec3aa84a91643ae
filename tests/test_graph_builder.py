from __future__ import annotations

import numpy as np
import pytest

from prelutest.core import (
    DenseWeights,
    HalfPrecisionWeights,
    SequenceValueGenerator,
    ShapeSpec,
    SparseWeights,
)
from prelutest.graph import (
    MODEL_DESCRIPTION,
    BuiltinOperator,
    DecodeStep,
    DimensionType,
    GraphBuilder,
    GraphContext,
    TensorType,
    WeightEncoder,
    assert_well_formed,
    check_graph,
)
from prelutest.graph.schema import OperatorDef, SCHEMA_VERSION

NHWC = ShapeSpec(input_shape=(1, 4, 4, 3), slope_shape=(3,))
VARIANTS = [DenseWeights(), HalfPrecisionWeights(), SparseWeights()]


def _builder() -> GraphBuilder:
    return GraphBuilder(SequenceValueGenerator([0.3, 0.4, 0.45]))


def test_dense_graph_has_three_tensors_and_one_operator() -> None:
    model = _builder().build_model(NHWC, DenseWeights())
    graph = model.subgraph
    assert len(graph.tensors) == 3
    assert len(graph.operators) == 1
    assert [code.builtin_code for code in model.operator_codes] == [BuiltinOperator.PRELU]
    assert [tensor.name for tensor in graph.tensors] == ["input", "slope", "output"]
    slope = graph.tensors[1]
    assert slope.buffer == 1
    data = np.frombuffer(model.buffers[slope.buffer].data, dtype=np.float32)
    np.testing.assert_array_equal(data, np.array([0.3, 0.4, 0.45], dtype=np.float32))
    assert model.buffers[0].data == b""


def test_fp16_graph_expands_slope_with_dequantize() -> None:
    model = _builder().build_model(NHWC, HalfPrecisionWeights())
    graph = model.subgraph
    assert len(graph.tensors) == 4
    assert len(graph.operators) == 2
    assert [code.builtin_code for code in model.operator_codes] == [
        BuiltinOperator.PRELU,
        BuiltinOperator.DEQUANTIZE,
    ]
    half, _, dense_slope, _ = graph.tensors
    assert half.type == TensorType.FLOAT16
    assert half.shape == (3,)
    decode = graph.operators[0]
    assert model.operator_codes[decode.opcode_index].builtin_code == BuiltinOperator.DEQUANTIZE
    assert decode.inputs == (0,)
    assert decode.outputs == (2,)
    assert dense_slope.type == TensorType.FLOAT32
    assert dense_slope.shape == NHWC.slope_shape
    assert dense_slope.buffer == 0
    stored = np.frombuffer(model.buffers[half.buffer].data, dtype=np.float16)
    np.testing.assert_array_equal(stored, np.array([0.3, 0.4, 0.45], dtype=np.float32).astype(np.float16))


def test_sparse_graph_declares_all_dimensions_dense() -> None:
    shapes = ShapeSpec(input_shape=(1, 4, 4, 3), slope_shape=(1, 1, 3))
    model = _builder().build_model(shapes, SparseWeights())
    graph = model.subgraph
    assert len(graph.tensors) == 4
    assert len(graph.operators) == 2
    assert model.operator_codes[graph.operators[0].opcode_index].builtin_code == BuiltinOperator.DENSIFY
    sparse = graph.tensors[0]
    assert sparse.type == TensorType.FLOAT32
    assert sparse.sparsity is not None
    assert sparse.sparsity.traversal_order == (0, 1, 2)
    assert [dim.format for dim in sparse.sparsity.dim_metadata] == [DimensionType.DENSE] * 3
    assert [dim.dense_size for dim in sparse.sparsity.dim_metadata] == [1, 1, 3]
    assert graph.tensors[2].shape == shapes.slope_shape
    assert graph.operators[0].outputs == (2,)


@pytest.mark.parametrize("storage", VARIANTS, ids=lambda storage: storage.kind)
@pytest.mark.parametrize(
    "shapes",
    [
        NHWC,
        ShapeSpec(input_shape=(1, 1, 1, 1), slope_shape=(1,)),
        ShapeSpec(input_shape=(2, 5), slope_shape=(2, 5)),
        ShapeSpec(input_shape=(3, 2, 4), slope_shape=()),
    ],
    ids=lambda shapes: shapes.label(),
)
def test_prelu_reads_two_tensors_before_output(shapes: ShapeSpec, storage) -> None:
    model = _builder().build_model(shapes, storage)
    graph = model.subgraph
    count = len(graph.tensors)
    prelu = graph.operators[-1]
    assert model.operator_codes[prelu.opcode_index].builtin_code == BuiltinOperator.PRELU
    assert prelu.inputs == (count - 3, count - 2)
    assert prelu.outputs == (count - 1,)
    assert graph.inputs == (count - 3,)
    assert graph.outputs == (count - 1,)
    assert graph.tensors[-1].shape == shapes.input_shape
    assert check_graph(model) == []


@pytest.mark.parametrize("storage", VARIANTS, ids=lambda storage: storage.kind)
def test_exactly_one_decode_operator_for_encoded_slopes(storage) -> None:
    model = _builder().build_model(NHWC, storage)
    decode_codes = {BuiltinOperator.DEQUANTIZE, BuiltinOperator.DENSIFY}
    used = [model.operator_codes[op.opcode_index].builtin_code for op in model.subgraph.operators]
    decode_count = sum(1 for code in used if code in decode_codes)
    assert decode_count == (0 if isinstance(storage, DenseWeights) else 1)


@pytest.mark.parametrize(
    "storage, decode_code",
    [
        (DenseWeights(), None),
        (HalfPrecisionWeights(), BuiltinOperator.DEQUANTIZE),
        (SparseWeights(), BuiltinOperator.DENSIFY),
    ],
    ids=["dense", "fp16", "sparse"],
)
def test_encoder_reports_decode_step(storage, decode_code) -> None:
    context = GraphContext()
    context.add_buffer()
    weights = WeightEncoder(SequenceValueGenerator([0.3])).encode(context, (3,), storage)
    if decode_code is None:
        assert weights.decode is None
        assert not weights.needs_decode
        return
    assert isinstance(weights.decode, DecodeStep)
    assert context.operator_codes[weights.decode.opcode_index].builtin_code == decode_code
    assert context.tensors[weights.decode.input_tensor].buffer == weights.buffer_index


@pytest.mark.parametrize("storage", VARIANTS, ids=lambda storage: storage.kind)
def test_slope_payload_is_16_byte_aligned(storage) -> None:
    built = _builder().build_graph(NHWC, storage)
    payload = built.slope.astype(np.float16 if isinstance(storage, HalfPrecisionWeights) else np.float32)
    offset = built.serialize().find(payload.tobytes())
    assert offset > 0
    assert offset % 16 == 0

def test_model_header() -> None:
    model = _builder().build_model(NHWC, DenseWeights())
    assert model.version == SCHEMA_VERSION == 3
    assert model.description == MODEL_DESCRIPTION == "PReLU model"


def test_built_graph_exposes_effective_slope() -> None:
    built = GraphBuilder(SequenceValueGenerator([0.3])).build_graph(NHWC, HalfPrecisionWeights())
    expected = np.float32(np.float16(0.3))
    np.testing.assert_array_equal(built.slope, np.full(3, expected, dtype=np.float32))


def test_check_graph_detects_miswired_prelu() -> None:
    model = _builder().build_model(NHWC, DenseWeights())
    graph = model.subgraph
    broken = type(graph)(
        tensors=graph.tensors,
        inputs=graph.inputs,
        outputs=graph.outputs,
        operators=(OperatorDef(opcode_index=0, inputs=(1, 0), outputs=(2,)),),
    )
    bad_model = type(model)(
        operator_codes=model.operator_codes,
        subgraphs=(broken,),
        buffers=model.buffers,
        description=model.description,
    )
    problems = check_graph(bad_model)
    assert any("PRELU inputs" in problem for problem in problems)
    with pytest.raises(ValueError):
        assert_well_formed(bad_model)


def test_check_graph_detects_dangling_tensor_reference() -> None:
    model = _builder().build_model(NHWC, DenseWeights())
    graph = model.subgraph
    broken = type(graph)(
        tensors=graph.tensors,
        inputs=graph.inputs,
        outputs=(9,),
        operators=graph.operators,
    )
    bad_model = type(model)(
        operator_codes=model.operator_codes,
        subgraphs=(broken,),
        buffers=model.buffers,
    )
    assert check_graph(bad_model) == ["subgraph references missing tensor 9"]


def test_describe_lists_tables() -> None:
    lines = _builder().build_model(NHWC, SparseWeights()).describe()
    assert lines[0] == "model v3: PReLU model"
    assert "  opcode[1] DENSIFY" in lines
    assert any(line.startswith("  tensor[0] slope_sparse FLOAT32[3]") and line.endswith("sparse") for line in lines)
    assert "  op[1] PRELU inputs=[1, 2] outputs=[3]" in lines
