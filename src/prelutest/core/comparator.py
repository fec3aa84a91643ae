"""Exact, bitwise comparison of reference and accelerated outputs."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from prelutest.exceptions import OutputMismatchError


@dataclass
class ExactComparison:
    """Outcome of comparing two output tensors without tolerance."""

    passed: bool
    total: int
    mismatched: int
    engines_compared: int = 2
    first_mismatch_index: Optional[int] = None
    reference_value: Optional[float] = None
    accelerated_value: Optional[float] = None
    detail: Optional[str] = None

    def raise_for_mismatch(self) -> None:
        if self.passed:
            return
        if self.first_mismatch_index is None:
            raise OutputMismatchError(-1, float("nan"), float("nan"), mismatched=self.mismatched, total=self.total)
        raise OutputMismatchError(
            self.first_mismatch_index,
            self.reference_value,
            self.accelerated_value,
            mismatched=self.mismatched,
            total=self.total,
        )


def compare_exact(reference: np.ndarray, accelerated: np.ndarray) -> ExactComparison:
    """Compare two float32 tensors bit for bit in flat (row-major) order."""

    ref = np.ascontiguousarray(reference, dtype=np.float32).reshape(-1)
    acc = np.ascontiguousarray(accelerated, dtype=np.float32).reshape(-1)
    if np.shape(reference) != np.shape(accelerated):
        return ExactComparison(
            passed=False,
            total=ref.size,
            mismatched=max(ref.size, acc.size),
            detail=f"shape mismatch: reference {np.shape(reference)}, accelerated {np.shape(accelerated)}",
        )
    differs = ref.view(np.uint32) != acc.view(np.uint32)
    mismatched = int(np.count_nonzero(differs))
    if mismatched == 0:
        return ExactComparison(passed=True, total=ref.size, mismatched=0)
    first = int(np.flatnonzero(differs)[0])
    return ExactComparison(
        passed=False,
        total=ref.size,
        mismatched=mismatched,
        first_mismatch_index=first,
        reference_value=float(ref[first]),
        accelerated_value=float(acc[first]),
    )
