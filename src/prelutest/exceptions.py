"""Exception hierarchy for prelutest.

Each stage of a differential run raises its own type so callers can tell a
graph that failed to load apart from a genuine numerical mismatch.
"""
from __future__ import annotations

from typing import Optional


class PreluTestError(Exception):
    """Base exception for all prelutest errors."""


class PlanError(PreluTestError):
    """Raised when a plan file or CLI option set cannot be turned into cases."""


class EngineError(PreluTestError):
    """Base for failures reported by an execution engine.

    Args:
        engine: Label of the engine that failed (``"reference"`` or
            ``"accelerated"`` inside a differential run).
        message: Human readable reason.
    """

    stage = "engine"

    def __init__(self, engine: str, message: str) -> None:
        self.engine = engine
        super().__init__(f"[{self.stage}] {engine}: {message}")


class EngineLoadError(EngineError):
    """The serialized graph could not be loaded, or has unexpected inputs/outputs."""

    stage = "load"


class AllocationError(EngineError):
    """Tensor memory could not be allocated."""

    stage = "allocate"


class DelegateAttachError(EngineError):
    """The acceleration backend rejected the graph."""

    stage = "attach"


class InvocationError(EngineError):
    """An engine reported an error while executing the graph."""

    stage = "invoke"


class OutputMismatchError(PreluTestError):
    """Accelerated output differs from the reference output.

    Carries the first differing flat index and the two values found there.
    """

    def __init__(
        self,
        index: int,
        reference_value: float,
        accelerated_value: float,
        *,
        mismatched: int = 1,
        total: Optional[int] = None,
    ) -> None:
        self.index = index
        self.reference_value = reference_value
        self.accelerated_value = accelerated_value
        self.mismatched = mismatched
        self.total = total
        of_total = f"/{total}" if total is not None else ""
        super().__init__(
            f"outputs differ at index {index}: reference={reference_value!r} "
            f"accelerated={accelerated_value!r} ({mismatched}{of_total} elements mismatched)"
        )
