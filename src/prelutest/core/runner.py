"""Differential execution of a synthesized graph on two engines."""
from __future__ import annotations

import time
from typing import Any, Callable, List, Optional, Sequence, Tuple, Type

import numpy as np

from prelutest._logging import get_logger
from prelutest.engines.base import EngineManager, ExecutionEngine, engine_manager
from prelutest.exceptions import (
    AllocationError,
    DelegateAttachError,
    EngineError,
    EngineLoadError,
    InvocationError,
)
from prelutest.graph.builder import GraphBuilder

from .comparator import ExactComparison, compare_exact
from .generators import INPUT_RANGE, RandomValueGenerator, ValueGenerator
from .models import DiffCase, EngineConfig, ShapeSpec, compute_size
from .results import CaseResult

logger = get_logger(__name__)

REFERENCE = "reference"
ACCELERATED = "accelerated"


def _stage(label: str, error_cls: Type[EngineError], func: Callable[..., Any], *args: Any) -> Any:
    try:
        return func(*args)
    except EngineError:
        raise
    except Exception as exc:
        raise error_cls(label, f"{type(exc).__name__}: {exc}") from exc


class DifferentialRunner:
    """Runs one serialized graph on a reference and an accelerated engine.

    Args:
        reference: Factory returning a fresh reference engine.
        accelerated: Factory returning a fresh engine with the accelerator.
        values: Source of input values; defaults to an OS-entropy seeded
            :class:`RandomValueGenerator`.
    """

    def __init__(
        self,
        reference: Callable[[], ExecutionEngine],
        accelerated: Callable[[], ExecutionEngine],
        *,
        values: Optional[ValueGenerator] = None,
    ) -> None:
        self._reference = reference
        self._accelerated = accelerated
        self._values = values or RandomValueGenerator()

    def run(self, model: bytes, shapes: ShapeSpec) -> ExactComparison:
        """Like :meth:`compare`, but raises :class:`OutputMismatchError` on any difference."""

        comparison = self.compare(model, shapes)
        comparison.raise_for_mismatch()
        return comparison

    def compare(self, model: bytes, shapes: ShapeSpec) -> ExactComparison:
        engines: List[Tuple[str, ExecutionEngine]] = []
        try:
            engines.append((REFERENCE, _stage(REFERENCE, EngineLoadError, self._reference)))
            engines.append((ACCELERATED, _stage(ACCELERATED, EngineLoadError, self._accelerated)))
            for label, engine in engines:
                self._load(label, engine, model, shapes)
            for label, engine in engines:
                _stage(label, AllocationError, engine.allocate)
            accelerated = engines[1][1]
            _stage(ACCELERATED, DelegateAttachError, accelerated.attach_accelerator)

            values = np.asarray(
                self._values.uniform(INPUT_RANGE[0], INPUT_RANGE[1], shapes.input_size),
                dtype=np.float32,
            )
            for label, engine in engines:
                _stage(label, InvocationError, engine.set_input, values.copy())
            for label, engine in engines:
                _stage(label, InvocationError, engine.invoke)
            outputs = [_stage(label, InvocationError, engine.get_output) for label, engine in engines]
        finally:
            for _, engine in engines:
                engine.close()

        comparison = compare_exact(outputs[0], outputs[1])
        comparison.engines_compared = len(engines)
        if comparison.passed:
            logger.debug("%s: %d values identical across %d engines", shapes.label(), comparison.total, len(engines))
        else:
            logger.info(
                "%s: %d/%d values differ, first at %s (reference=%r accelerated=%r)",
                shapes.label(),
                comparison.mismatched,
                comparison.total,
                comparison.first_mismatch_index,
                comparison.reference_value,
                comparison.accelerated_value,
            )
        return comparison

    def _load(self, label: str, engine: ExecutionEngine, model: bytes, shapes: ShapeSpec) -> None:
        _stage(label, EngineLoadError, engine.load, model)
        inputs = _stage(label, EngineLoadError, engine.input_count)
        outputs = _stage(label, EngineLoadError, engine.output_count)
        if inputs != 1:
            raise EngineLoadError(label, f"expected exactly one graph input, found {inputs}")
        if outputs != 1:
            raise EngineLoadError(label, f"expected exactly one graph output, found {outputs}")
        input_shape = _stage(label, EngineLoadError, engine.input_shape)
        if compute_size(input_shape) != shapes.input_size:
            raise EngineLoadError(
                label, f"input tensor holds {compute_size(input_shape)} values, expected {shapes.input_size}"
            )


class CaseRunner:
    """Executes a collection of differential cases sequentially."""

    def __init__(
        self,
        reference: EngineConfig,
        accelerated: EngineConfig,
        *,
        seed: Optional[int] = None,
        fail_fast: bool = False,
        manager: Optional[EngineManager] = None,
    ) -> None:
        self._reference = reference
        self._accelerated = accelerated
        self._seed = seed
        self._fail_fast = fail_fast
        self._manager = manager or engine_manager

    def run(
        self,
        cases: Sequence[DiffCase],
        *,
        on_result: Optional[Callable[[CaseResult, int, int], None]] = None,
    ) -> List[CaseResult]:
        results: List[CaseResult] = []
        master_rng = np.random.default_rng(self._seed)
        total = len(cases)
        for index, case in enumerate(cases, start=1):
            case_seed = case.seed if case.seed is not None else int(master_rng.integers(0, 2**32 - 1))
            result = self.execute(case, case_seed)
            results.append(result)
            if on_result:
                on_result(result, index, total)
            if self._fail_fast and not result.passed:
                break
        return results

    def execute(self, case: DiffCase, seed: Optional[int] = None) -> CaseResult:
        start = time.perf_counter()
        values = RandomValueGenerator(seed)
        try:
            model = GraphBuilder(values).build(case.shapes, case.weights)
            runner = DifferentialRunner(
                lambda: self._manager.create(self._reference),
                lambda: self._manager.create(self._accelerated, num_threads=case.num_threads),
                values=values,
            )
            comparison = runner.compare(model, case.shapes)
            status = "passed" if comparison.passed else "failed"
            return CaseResult(
                case=case,
                status=status,
                duration_s=time.perf_counter() - start,
                comparison=comparison,
                seed=seed,
            )
        except EngineError as exc:
            logger.debug("%s failed at %s stage: %s", case.identifier(), exc.stage, exc)
            return CaseResult(
                case=case,
                status="error",
                duration_s=time.perf_counter() - start,
                error=str(exc),
                stage=exc.stage,
                seed=seed,
            )
        except Exception as exc:  # pragma: no cover - aggregated error path
            return CaseResult(
                case=case,
                status="error",
                duration_s=time.perf_counter() - start,
                error=f"{type(exc).__name__}: {exc}",
                seed=seed,
            )
