"""Result data structures produced by the runners."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .comparator import ExactComparison
from .models import DiffCase


@dataclass
class CaseResult:
    """Outcome of executing a single differential case."""

    case: DiffCase
    status: str
    duration_s: float
    comparison: Optional[ExactComparison] = None
    error: Optional[str] = None
    stage: Optional[str] = None
    seed: Optional[int] = None

    @property
    def passed(self) -> bool:
        return self.status == "passed"
