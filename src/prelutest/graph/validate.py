"""Structural checks over a synthesized PRELU graph."""
from __future__ import annotations

from typing import List

from .schema import BuiltinOperator, ModelDef, TensorType

DECODE_OPERATORS = (BuiltinOperator.DEQUANTIZE, BuiltinOperator.DENSIFY)


def check_graph(model: ModelDef) -> List[str]:
    """Return a list of problems found in ``model``; empty when well formed."""

    problems: List[str] = []
    if len(model.subgraphs) != 1:
        return [f"expected exactly one subgraph, found {len(model.subgraphs)}"]
    graph = model.subgraph
    tensor_count = len(graph.tensors)
    if tensor_count < 3:
        return [f"expected at least 3 tensors, found {tensor_count}"]

    for index, tensor in enumerate(graph.tensors):
        if not 0 <= tensor.buffer < len(model.buffers):
            problems.append(f"tensor {index} references missing buffer {tensor.buffer}")

    for op_index, op in enumerate(graph.operators):
        if not 0 <= op.opcode_index < len(model.operator_codes):
            problems.append(f"operator {op_index} references missing opcode {op.opcode_index}")
        for tensor_index in tuple(op.inputs) + tuple(op.outputs):
            if not 0 <= tensor_index < tensor_count:
                problems.append(f"operator {op_index} references missing tensor {tensor_index}")
    for tensor_index in tuple(graph.inputs) + tuple(graph.outputs):
        if not 0 <= tensor_index < tensor_count:
            problems.append(f"subgraph references missing tensor {tensor_index}")
    if problems:
        return problems

    if not graph.operators:
        return problems + ["graph has no operators"]
    codes = [model.operator_codes[op.opcode_index].builtin_code for op in graph.operators]
    prelu = graph.operators[-1]
    if codes[-1] != BuiltinOperator.PRELU:
        problems.append("last operator is not PRELU")
    if tuple(prelu.inputs) != (tensor_count - 3, tensor_count - 2):
        problems.append(
            f"PRELU inputs {list(prelu.inputs)} are not the two tensors before the output "
            f"({tensor_count - 3}, {tensor_count - 2})"
        )
    if tuple(prelu.outputs) != (tensor_count - 1,):
        problems.append(f"PRELU output {list(prelu.outputs)} is not the final tensor {tensor_count - 1}")
    if tuple(graph.inputs) != (tensor_count - 3,):
        problems.append(f"subgraph inputs {list(graph.inputs)} do not name the primary input tensor")
    if tuple(graph.outputs) != (tensor_count - 1,):
        problems.append(f"subgraph outputs {list(graph.outputs)} do not name the final tensor")

    decode_ops = graph.operators[:-1]
    if len(decode_ops) > 1:
        problems.append(f"expected at most one decode operator, found {len(decode_ops)}")
    for code, op in zip(codes, decode_ops):
        if code not in DECODE_OPERATORS:
            problems.append(f"unexpected operator code {code} before PRELU")
        if tuple(op.outputs) != (tensor_count - 2,):
            problems.append(f"decode operator writes {list(op.outputs)} instead of the slope tensor")
        if tensor_count != 4:
            problems.append(f"decode graph should hold 4 tensors, found {tensor_count}")
    if not decode_ops and tensor_count != 3:
        problems.append(f"dense graph should hold 3 tensors, found {tensor_count}")

    input_tensor = graph.tensors[tensor_count - 3]
    slope_tensor = graph.tensors[tensor_count - 2]
    output_tensor = graph.tensors[tensor_count - 1]
    if tuple(output_tensor.shape) != tuple(input_tensor.shape):
        problems.append(f"output shape {list(output_tensor.shape)} differs from input {list(input_tensor.shape)}")
    for label, tensor in (("input", input_tensor), ("slope", slope_tensor), ("output", output_tensor)):
        if tensor.type != TensorType.FLOAT32:
            problems.append(f"{label} tensor is not FLOAT32")
    if decode_ops and slope_tensor.buffer != 0:
        problems.append("decoded slope tensor must use the runtime buffer")
    if not decode_ops and slope_tensor.buffer == 0:
        problems.append("dense slope tensor has no constant buffer")
    return problems


def assert_well_formed(model: ModelDef) -> None:
    problems = check_graph(model)
    if problems:
        raise ValueError("malformed PRELU graph: " + "; ".join(problems))
