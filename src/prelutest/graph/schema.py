"""In-memory mirror of the TFLite flatbuffer schema subset used by the harness.

Enum values and field order follow ``tensorflow/lite/schema/schema.fbs``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

SCHEMA_VERSION = 3
FILE_IDENTIFIER = b"TFL3"

# Buffer.data carries (force_align: 16) in the schema.
BUFFER_ALIGNMENT = 16


class BuiltinOperator:
    DEQUANTIZE = 6
    PRELU = 54
    DENSIFY = 124

    NAMES = {
        DEQUANTIZE: "DEQUANTIZE",
        PRELU: "PRELU",
        DENSIFY: "DENSIFY",
    }

    # Codes above this only fit the int32 builtin_code field.
    PLACEHOLDER_FOR_GREATER_OP_CODES = 127


class TensorType:
    FLOAT32 = 0
    FLOAT16 = 1

    NAMES = {
        FLOAT32: "FLOAT32",
        FLOAT16: "FLOAT16",
    }


class DimensionType:
    DENSE = 0
    SPARSE_CSR = 1


@dataclass(frozen=True)
class OperatorCodeDef:
    builtin_code: int
    version: int = 1

    @property
    def name(self) -> str:
        return BuiltinOperator.NAMES.get(self.builtin_code, str(self.builtin_code))


@dataclass(frozen=True)
class BufferDef:
    data: bytes = b""


@dataclass(frozen=True)
class DimensionMetadataDef:
    format: int
    dense_size: int = 0


@dataclass(frozen=True)
class SparsityDef:
    traversal_order: Tuple[int, ...]
    dim_metadata: Tuple[DimensionMetadataDef, ...]


@dataclass(frozen=True)
class TensorDef:
    shape: Tuple[int, ...]
    type: int = TensorType.FLOAT32
    buffer: int = 0
    name: str = ""
    sparsity: Optional[SparsityDef] = None


@dataclass(frozen=True)
class OperatorDef:
    opcode_index: int
    inputs: Tuple[int, ...]
    outputs: Tuple[int, ...]


@dataclass(frozen=True)
class SubGraphDef:
    tensors: Tuple[TensorDef, ...]
    inputs: Tuple[int, ...]
    outputs: Tuple[int, ...]
    operators: Tuple[OperatorDef, ...]
    name: str = ""


@dataclass(frozen=True)
class ModelDef:
    operator_codes: Tuple[OperatorCodeDef, ...]
    subgraphs: Tuple[SubGraphDef, ...]
    buffers: Tuple[BufferDef, ...]
    description: str = ""
    version: int = SCHEMA_VERSION

    @property
    def subgraph(self) -> SubGraphDef:
        return self.subgraphs[0]

    def describe(self) -> list[str]:
        """Human readable table dump, one entry per line."""

        lines = [f"model v{self.version}: {self.description}"]
        for index, code in enumerate(self.operator_codes):
            lines.append(f"  opcode[{index}] {code.name}")
        for index, buffer in enumerate(self.buffers):
            lines.append(f"  buffer[{index}] {len(buffer.data)} bytes")
        for graph in self.subgraphs:
            for index, tensor in enumerate(graph.tensors):
                sparse = " sparse" if tensor.sparsity is not None else ""
                lines.append(
                    f"  tensor[{index}] {tensor.name or '-'} "
                    f"{TensorType.NAMES.get(tensor.type, tensor.type)}{list(tensor.shape)} "
                    f"buffer={tensor.buffer}{sparse}"
                )
            for index, op in enumerate(graph.operators):
                lines.append(
                    f"  op[{index}] {self.operator_codes[op.opcode_index].name} "
                    f"inputs={list(op.inputs)} outputs={list(op.outputs)}"
                )
            lines.append(f"  inputs={list(graph.inputs)} outputs={list(graph.outputs)}")
        return lines


@dataclass
class GraphContext:
    """Append-only tables collected while a graph is under construction.

    Indices are handed out in insertion order and never reused.
    """

    operator_codes: list = field(default_factory=list)
    buffers: list = field(default_factory=list)
    tensors: list = field(default_factory=list)
    operators: list = field(default_factory=list)

    def add_operator_code(self, builtin_code: int) -> int:
        for index, code in enumerate(self.operator_codes):
            if code.builtin_code == builtin_code:
                return index
        self.operator_codes.append(OperatorCodeDef(builtin_code=builtin_code))
        return len(self.operator_codes) - 1

    def add_buffer(self, data: bytes = b"") -> int:
        self.buffers.append(BufferDef(data=bytes(data)))
        return len(self.buffers) - 1

    def add_tensor(self, tensor: TensorDef) -> int:
        self.tensors.append(tensor)
        return len(self.tensors) - 1

    def add_operator(self, operator: OperatorDef) -> int:
        self.operators.append(operator)
        return len(self.operators) - 1

    def finish(self, inputs: Tuple[int, ...], outputs: Tuple[int, ...], description: str) -> ModelDef:
        subgraph = SubGraphDef(
            tensors=tuple(self.tensors),
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            operators=tuple(self.operators),
        )
        return ModelDef(
            operator_codes=tuple(self.operator_codes),
            subgraphs=(subgraph,),
            buffers=tuple(self.buffers),
            description=description,
        )
