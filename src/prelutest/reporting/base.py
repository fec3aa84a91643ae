"""Reporter hooks and the manager that fans run events out to them."""
from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Iterable, List, Sequence

from prelutest.core.results import CaseResult

if TYPE_CHECKING:
    from prelutest.plan.models import RunSettings


class Reporter:
    """Receives run lifecycle events; subclasses override the hooks they use."""

    def on_start(self, settings: RunSettings, total: int) -> None:
        """Called once before the first case executes."""

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        """Called after each case with its 1-based position."""

    def on_complete(self, results: Sequence[CaseResult]) -> None:
        """Called once with every result, in execution order."""


def count_statuses(results: Iterable[CaseResult]) -> Counter:
    counts: Counter = Counter({"passed": 0, "failed": 0, "error": 0})
    counts.update(result.status for result in results)
    return counts


class ReportManager:
    """Forwards events to each reporter and keeps a running status tally."""

    def __init__(self, reporters: Iterable[Reporter] = ()) -> None:
        self._reporters: List[Reporter] = list(reporters)
        self.counts: Counter = count_statuses(())

    def add(self, reporter: Reporter) -> None:
        self._reporters.append(reporter)

    def start(self, settings: RunSettings, total: int) -> None:
        self.counts = count_statuses(())
        for reporter in self._reporters:
            reporter.on_start(settings, total)

    def handle_result(self, result: CaseResult, index: int, total: int) -> None:
        self.counts[result.status] += 1
        for reporter in self._reporters:
            reporter.on_case_result(result, index, total)

    def complete(self, results: Sequence[CaseResult]) -> None:
        for reporter in self._reporters:
            reporter.on_complete(results)

    @property
    def failures(self) -> int:
        return sum(count for status, count in self.counts.items() if status != "passed")

    def reporters(self) -> List[Reporter]:
        return list(self._reporters)
