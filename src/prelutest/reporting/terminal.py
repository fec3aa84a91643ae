"""Terminal reporter rendering progress and summaries."""
from __future__ import annotations

import time
from typing import TYPE_CHECKING, Sequence

import click

from prelutest.core.results import CaseResult

from .base import Reporter, count_statuses

if TYPE_CHECKING:
    from prelutest.plan.models import RunSettings

STATUS_COLORS = {
    "passed": "green",
    "failed": "red",
    "error": "yellow",
}


class TerminalReporter(Reporter):
    """Human-readable reporter that streams to stdout."""

    def __init__(self, *, use_color: bool = True) -> None:
        self._use_color = use_color
        self._start_time = 0.0
        self._failures: list[tuple[int, CaseResult]] = []

    def on_start(self, settings: RunSettings, total: int) -> None:
        self._start_time = time.perf_counter()
        self._failures.clear()
        seed = settings.seed if settings.seed is not None else "entropy"
        click.echo(
            self._styled(
                f"Starting run: {total} case(s) {settings.reference} vs {settings.accelerated} "
                f"seed={seed} fail_fast={settings.fail_fast}",
                force_color="cyan",
            )
        )

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        ms = result.duration_s * 1000
        status_text = self._styled(result.status.upper())
        click.echo(f"[{index}/{total}] {result.case.identifier()} -> {status_text} ({ms:.2f} ms)")
        if not result.passed:
            self._failures.append((index, result))
            self._print_failure_details(result)

    def on_complete(self, results: Sequence[CaseResult]) -> None:
        elapsed = time.perf_counter() - self._start_time
        counts = count_statuses(results)
        line = (
            f"Summary: total={len(results)} passed={counts['passed']} failed={counts['failed']} "
            f"errors={counts['error']} duration={elapsed:.2f}s"
        )
        click.echo(self._styled(line, force_color="cyan"))
        if self._failures:
            click.echo(self._styled("Failure details:", force_color="red"))
            for index, result in self._failures:
                click.echo(f"  [{index}] {result.case.identifier()} -> {result.status}")
                self._print_failure_details(result, indent="    ")

    def _styled(self, text: str, *, force_color: str | None = None) -> str:
        color = force_color or STATUS_COLORS.get(text.lower())
        return click.style(text, fg=color) if self._use_color and color else text

    def _print_failure_details(self, result: CaseResult, *, indent: str = "    ") -> None:
        case = result.case
        seed_text = result.seed if result.seed is not None else "?"
        threads = case.num_threads if case.num_threads is not None else "default"
        click.echo(
            f"{indent}weights={case.weights.kind} threads={threads} seed={seed_text} "
            f"input={list(case.shapes.input_shape)} slope={list(case.shapes.slope_shape)}"
        )
        if result.error:
            stage = f" ({result.stage})" if result.stage else ""
            click.echo(f"{indent}error{stage}: {result.error}")
            return
        comparison = result.comparison
        if comparison is None:
            click.echo(f"{indent}comparison data unavailable")
            return
        if comparison.detail:
            click.echo(f"{indent}reason: {comparison.detail}")
        percent = (comparison.mismatched / comparison.total * 100) if comparison.total else 0.0
        click.echo(
            f"{indent}mismatched {comparison.mismatched}/{comparison.total} ({percent:.2f}%) "
            f"across {comparison.engines_compared} engines"
        )
        if comparison.first_mismatch_index is not None:
            click.echo(
                f"{indent}  first mismatch at {comparison.first_mismatch_index}: "
                f"reference={comparison.reference_value!r} accelerated={comparison.accelerated_value!r}"
            )
