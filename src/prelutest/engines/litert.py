"""Engines backed by the LiteRT (TensorFlow Lite) Python interpreter.

The reference engine runs the builtin kernels without default delegates. The
accelerated engine either lets the interpreter apply its default XNNPACK
delegate or loads an external delegate library. LiteRT wires delegates in
while the interpreter is constructed and tensors are allocated, so
:meth:`LiteRTEngine.attach_accelerator` checks the execution plan and fails
when the delegate left the graph output on the builtin kernels.
"""
from __future__ import annotations

import functools
from typing import Any, Mapping, Optional, Tuple

import numpy as np

from prelutest._logging import get_logger
from prelutest.exceptions import (
    AllocationError,
    DelegateAttachError,
    EngineLoadError,
    InvocationError,
)

from .base import EngineManager, ExecutionEngine

logger = get_logger(__name__)

DELEGATE_NODE = "DELEGATE"


def _interpreter_api(label: str) -> Any:
    try:
        from ai_edge_litert import interpreter
    except ImportError as exc:
        raise EngineLoadError(label, "ai-edge-litert is not installed (pip install 'prelutest[litert]')") from exc
    return interpreter


class LiteRTEngine(ExecutionEngine):
    """Single-model LiteRT interpreter wrapper."""

    name = "litert"

    def __init__(
        self,
        *,
        accelerate: bool = False,
        num_threads: Optional[int] = None,
        delegate_library: Optional[str] = None,
        delegate_options: Optional[Mapping[str, Any]] = None,
        label: Optional[str] = None,
    ) -> None:
        self.accelerated = bool(accelerate)
        self.num_threads = num_threads
        self.delegate_library = delegate_library
        self.delegate_options = dict(delegate_options or {})
        self.label = label or ("accelerated" if self.accelerated else "reference")
        self._interpreter: Any = None
        self._input_index: Optional[int] = None
        self._output_index: Optional[int] = None
        self._input_shape: Tuple[int, ...] = ()

    def load(self, model: bytes) -> None:
        api = _interpreter_api(self.label)
        delegates = self._load_delegates(api)
        if self.accelerated and not delegates:
            resolver = api.OpResolverType.BUILTIN
        else:
            resolver = api.OpResolverType.BUILTIN_WITHOUT_DEFAULT_DELEGATES
        try:
            self._interpreter = api.Interpreter(
                model_content=bytes(model),
                num_threads=self.num_threads,
                experimental_delegates=delegates,
                experimental_op_resolver_type=resolver,
            )
        except ValueError as exc:
            if delegates and "delegate" in str(exc).lower():
                raise DelegateAttachError(self.label, str(exc)) from exc
            raise EngineLoadError(self.label, str(exc)) from exc
        inputs = self._interpreter.get_input_details()
        outputs = self._interpreter.get_output_details()
        if inputs:
            self._input_index = int(inputs[0]["index"])
            self._input_shape = tuple(int(dim) for dim in inputs[0]["shape"])
        if outputs:
            self._output_index = int(outputs[0]["index"])
        logger.debug(
            "%s: loaded %d-byte model (resolver=%s, threads=%s, delegates=%d)",
            self.label,
            len(model),
            resolver,
            self.num_threads,
            len(delegates or ()),
        )

    def _load_delegates(self, api: Any) -> Optional[list]:
        if not (self.accelerated and self.delegate_library):
            return None
        try:
            delegate = api.load_delegate(self.delegate_library, self.delegate_options)
        except (ValueError, OSError, RuntimeError) as exc:
            raise DelegateAttachError(
                self.label, f"cannot load delegate library {self.delegate_library}: {exc}"
            ) from exc
        return [delegate]

    def input_count(self) -> int:
        return len(self._require_interpreter().get_input_details())

    def output_count(self) -> int:
        return len(self._require_interpreter().get_output_details())

    def input_shape(self) -> Tuple[int, ...]:
        self._require_interpreter()
        return self._input_shape

    def allocate(self) -> None:
        try:
            self._require_interpreter().allocate_tensors()
        except RuntimeError as exc:
            raise AllocationError(self.label, str(exc)) from exc

    def attach_accelerator(self) -> None:
        interpreter = self._require_interpreter()
        if not self.accelerated:
            raise DelegateAttachError(self.label, "engine was created without an accelerator")
        source = self.delegate_library or "default XNNPACK delegate"
        # Rejected nodes silently stay on the builtin kernels, so the graph
        # output must come from a DELEGATE node.
        nodes = interpreter._get_ops_details()
        delegated = [node for node in nodes if node.get("op_name") == DELEGATE_NODE]
        if not any(self._output_index in {int(i) for i in node.get("outputs", ())} for node in delegated):
            names = [node.get("op_name") for node in nodes]
            raise DelegateAttachError(self.label, f"{source} did not take over the graph output (nodes: {names})")
        logger.debug("%s: accelerator active (%s), %d delegate node(s)", self.label, source, len(delegated))

    def set_input(self, values: np.ndarray) -> None:
        interpreter = self._require_interpreter()
        data = np.asarray(values, dtype=np.float32).reshape(self._input_shape)
        try:
            interpreter.set_tensor(self._input_index, data)
        except ValueError as exc:
            raise InvocationError(self.label, f"cannot set input: {exc}") from exc

    def invoke(self) -> None:
        try:
            self._require_interpreter().invoke()
        except RuntimeError as exc:
            raise InvocationError(self.label, str(exc)) from exc

    def get_output(self) -> np.ndarray:
        return np.array(self._require_interpreter().get_tensor(self._output_index), copy=True)

    def close(self) -> None:
        self._interpreter = None

    def _require_interpreter(self) -> Any:
        if self._interpreter is None:
            raise EngineLoadError(self.label, "no model loaded")
        return self._interpreter


def register_litert_engines(manager: EngineManager) -> None:
    """Register ``litert`` (reference) and ``xnnpack`` (accelerated) factories."""

    manager.register("litert", LiteRTEngine, replace=True)
    manager.register("xnnpack", functools.partial(LiteRTEngine, accelerate=True), replace=True)
