"""Serializes a :class:`ModelDef` into TFLite flatbuffer bytes.

Tables are written bottom-up with the low level ``flatbuffers.Builder`` API;
slot numbers follow the field order of ``schema.fbs``. Nested objects must be
finished before the table that references them is started.
"""
from __future__ import annotations

from typing import Sequence

import flatbuffers

from .schema import (
    BUFFER_ALIGNMENT,
    FILE_IDENTIFIER,
    BufferDef,
    BuiltinOperator,
    DimensionMetadataDef,
    ModelDef,
    OperatorCodeDef,
    OperatorDef,
    SparsityDef,
    SubGraphDef,
    TensorDef,
)

# Field counts per table, as declared in schema.fbs.
_MODEL_FIELDS = 8
_OPERATOR_CODE_FIELDS = 4
_BUFFER_FIELDS = 3
_SUBGRAPH_FIELDS = 5
_TENSOR_FIELDS = 10
_SPARSITY_FIELDS = 3
_DIM_METADATA_FIELDS = 6
_OPERATOR_FIELDS = 9


def serialize_model(model: ModelDef) -> bytes:
    builder = flatbuffers.Builder(1024)
    operator_codes = [_write_operator_code(builder, code) for code in model.operator_codes]
    buffers = [_write_buffer(builder, buffer) for buffer in model.buffers]
    subgraphs = [_write_subgraph(builder, subgraph) for subgraph in model.subgraphs]
    description = builder.CreateString(model.description)
    codes_vec = _offset_vector(builder, operator_codes)
    subgraphs_vec = _offset_vector(builder, subgraphs)
    buffers_vec = _offset_vector(builder, buffers)

    builder.StartObject(_MODEL_FIELDS)
    builder.PrependUint32Slot(0, model.version, 0)
    builder.PrependUOffsetTRelativeSlot(1, codes_vec, 0)
    builder.PrependUOffsetTRelativeSlot(2, subgraphs_vec, 0)
    builder.PrependUOffsetTRelativeSlot(3, description, 0)
    builder.PrependUOffsetTRelativeSlot(4, buffers_vec, 0)
    root = builder.EndObject()
    builder.Finish(root, file_identifier=FILE_IDENTIFIER)
    return bytes(builder.Output())


def _write_operator_code(builder: flatbuffers.Builder, code: OperatorCodeDef) -> int:
    # Readers take max(deprecated_builtin_code, builtin_code); older ones only
    # know the int8 field.
    deprecated = min(code.builtin_code, BuiltinOperator.PLACEHOLDER_FOR_GREATER_OP_CODES)
    builder.StartObject(_OPERATOR_CODE_FIELDS)
    builder.PrependInt8Slot(0, deprecated, 0)
    builder.PrependInt32Slot(2, code.version, 1)
    builder.PrependInt32Slot(3, code.builtin_code, 0)
    return builder.EndObject()


def _write_buffer(builder: flatbuffers.Builder, buffer: BufferDef) -> int:
    data = _byte_vector(builder, buffer.data, BUFFER_ALIGNMENT)
    builder.StartObject(_BUFFER_FIELDS)
    builder.PrependUOffsetTRelativeSlot(0, data, 0)
    return builder.EndObject()


def _write_subgraph(builder: flatbuffers.Builder, subgraph: SubGraphDef) -> int:
    tensors = [_write_tensor(builder, tensor) for tensor in subgraph.tensors]
    operators = [_write_operator(builder, op) for op in subgraph.operators]
    tensors_vec = _offset_vector(builder, tensors)
    inputs_vec = _int32_vector(builder, subgraph.inputs)
    outputs_vec = _int32_vector(builder, subgraph.outputs)
    operators_vec = _offset_vector(builder, operators)
    name = builder.CreateString(subgraph.name) if subgraph.name else None

    builder.StartObject(_SUBGRAPH_FIELDS)
    builder.PrependUOffsetTRelativeSlot(0, tensors_vec, 0)
    builder.PrependUOffsetTRelativeSlot(1, inputs_vec, 0)
    builder.PrependUOffsetTRelativeSlot(2, outputs_vec, 0)
    builder.PrependUOffsetTRelativeSlot(3, operators_vec, 0)
    if name is not None:
        builder.PrependUOffsetTRelativeSlot(4, name, 0)
    return builder.EndObject()


def _write_tensor(builder: flatbuffers.Builder, tensor: TensorDef) -> int:
    shape = _int32_vector(builder, tensor.shape)
    name = builder.CreateString(tensor.name) if tensor.name else None
    sparsity = _write_sparsity(builder, tensor.sparsity) if tensor.sparsity is not None else None

    builder.StartObject(_TENSOR_FIELDS)
    builder.PrependUOffsetTRelativeSlot(0, shape, 0)
    builder.PrependInt8Slot(1, tensor.type, 0)
    builder.PrependUint32Slot(2, tensor.buffer, 0)
    if name is not None:
        builder.PrependUOffsetTRelativeSlot(3, name, 0)
    if sparsity is not None:
        builder.PrependUOffsetTRelativeSlot(6, sparsity, 0)
    return builder.EndObject()


def _write_sparsity(builder: flatbuffers.Builder, sparsity: SparsityDef) -> int:
    dims = [_write_dim_metadata(builder, dim) for dim in sparsity.dim_metadata]
    traversal = _int32_vector(builder, sparsity.traversal_order)
    dims_vec = _offset_vector(builder, dims)

    builder.StartObject(_SPARSITY_FIELDS)
    builder.PrependUOffsetTRelativeSlot(0, traversal, 0)
    builder.PrependUOffsetTRelativeSlot(2, dims_vec, 0)
    return builder.EndObject()


def _write_dim_metadata(builder: flatbuffers.Builder, dim: DimensionMetadataDef) -> int:
    builder.StartObject(_DIM_METADATA_FIELDS)
    builder.PrependInt8Slot(0, dim.format, 0)
    builder.PrependInt32Slot(1, dim.dense_size, 0)
    return builder.EndObject()


def _write_operator(builder: flatbuffers.Builder, op: OperatorDef) -> int:
    inputs = _int32_vector(builder, op.inputs)
    outputs = _int32_vector(builder, op.outputs)

    builder.StartObject(_OPERATOR_FIELDS)
    builder.PrependUint32Slot(0, op.opcode_index, 0)
    builder.PrependUOffsetTRelativeSlot(1, inputs, 0)
    builder.PrependUOffsetTRelativeSlot(2, outputs, 0)
    return builder.EndObject()


def _int32_vector(builder: flatbuffers.Builder, values: Sequence[int]) -> int:
    builder.StartVector(4, len(values), 4)
    for value in reversed(values):
        builder.PrependInt32(int(value))
    return builder.EndVector()


def _offset_vector(builder: flatbuffers.Builder, offsets: Sequence[int]) -> int:
    builder.StartVector(4, len(offsets), 4)
    for offset in reversed(offsets):
        builder.PrependUOffsetTRelative(offset)
    return builder.EndVector()


def _byte_vector(builder: flatbuffers.Builder, data: bytes, alignment: int) -> int:
    # CreateByteVector takes no alignment argument, so the vector is opened with
    # StartVector and the payload copied in the same way CreateNumpyVector does.
    builder.StartVector(1, len(data), alignment)
    builder.head = builder.head - len(data)
    builder.Bytes[builder.head : builder.head + len(data)] = data
    return builder.EndVector()
