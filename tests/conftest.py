from __future__ import annotations

import functools
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pytest

from prelutest import bootstrap
from prelutest.engines import EngineManager, ExecutionEngine


@pytest.fixture(scope="session", autouse=True)
def setup_prelutest_engines() -> None:
    """Register the built-in engines once for the entire test session."""

    bootstrap()


class StubEngine(ExecutionEngine):
    """PReLU computed with numpy against a fixed slope; ignores the graph bytes.

    ``perturb_index`` nudges one output element by one ulp and ``fail_at``
    makes the named lifecycle step raise, mimicking a broken backend.
    """

    name = "stub"

    def __init__(
        self,
        *,
        shape: Sequence[int],
        slope: float = 0.25,
        accelerate: bool = False,
        num_threads: Optional[int] = None,
        perturb_index: Optional[int] = None,
        fail_at: Optional[str] = None,
        inputs: int = 1,
        outputs: int = 1,
        seen: Optional[List[np.ndarray]] = None,
    ) -> None:
        self.shape: Tuple[int, ...] = tuple(shape)
        self.slope = np.float32(slope)
        self.accelerated = accelerate
        self.num_threads = num_threads
        self.perturb_index = perturb_index
        self.fail_at = fail_at
        self.inputs = inputs
        self.outputs = outputs
        self.seen = seen if seen is not None else []
        self.model: Optional[bytes] = None
        self.closed = False
        self._input: Optional[np.ndarray] = None
        self._output: Optional[np.ndarray] = None

    def _maybe_fail(self, step: str, error: type = RuntimeError) -> None:
        if self.fail_at == step:
            raise error(f"{step} rejected by stub")

    def load(self, model: bytes) -> None:
        self._maybe_fail("load", ValueError)
        self.model = model

    def input_count(self) -> int:
        return self.inputs

    def output_count(self) -> int:
        return self.outputs

    def input_shape(self) -> Tuple[int, ...]:
        return self.shape

    def allocate(self) -> None:
        self._maybe_fail("allocate")

    def attach_accelerator(self) -> None:
        self._maybe_fail("attach")

    def set_input(self, values: np.ndarray) -> None:
        self._input = np.asarray(values, dtype=np.float32).reshape(self.shape)
        self.seen.append(self._input.copy())

    def invoke(self) -> None:
        self._maybe_fail("invoke")
        x = self._input
        out = np.where(x >= 0, x, x * self.slope).astype(np.float32)
        if self.perturb_index is not None:
            flat = out.reshape(-1)
            flat[self.perturb_index] = np.nextafter(flat[self.perturb_index], np.float32(np.inf))
        self._output = out

    def get_output(self) -> np.ndarray:
        return self._output.copy()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_engine() -> type:
    return StubEngine


@pytest.fixture
def stub_manager():
    """Build an EngineManager with ``stub-ref`` and ``stub-acc`` bound to one shape."""

    def _make(shape: Sequence[int], **accelerated_kwargs) -> EngineManager:
        manager = EngineManager()
        manager.register("stub-ref", functools.partial(StubEngine, shape=shape))
        manager.register(
            "stub-acc",
            functools.partial(StubEngine, shape=shape, accelerate=True, **accelerated_kwargs),
        )
        return manager

    return _make
