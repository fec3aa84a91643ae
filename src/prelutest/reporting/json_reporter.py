"""JSON reporter emitting structured execution results."""
from __future__ import annotations

import datetime as dt
import json
import math
import pathlib
import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

import click
from jsonschema import validate

from prelutest.core.results import CaseResult
from prelutest.exceptions import PreluTestError

from .base import Reporter, count_statuses
from .schema import JSON_SCHEMA_V1, SCHEMA_VERSION

if TYPE_CHECKING:
    from prelutest.plan.models import RunSettings


class JsonReporter(Reporter):
    """Writes results to a JSON file validated against the schema."""

    def __init__(self, path: str) -> None:
        self._path = pathlib.Path(path)
        self._records: list[Dict[str, Any]] = []
        self._settings: RunSettings | None = None
        self._start_time = 0.0

    def on_start(self, settings: RunSettings, total: int) -> None:
        self._settings = settings
        self._records.clear()
        self._start_time = time.perf_counter()

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        self._records.append(_case_to_dict(result))

    def on_complete(self, results: Sequence[CaseResult]) -> None:
        if self._settings is None:
            return
        total_duration = time.perf_counter() - self._start_time
        payload = {
            "schema_version": SCHEMA_VERSION,
            "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds"),
            "summary": _build_summary(self._settings, results, total_duration),
            "cases": self._records,
        }
        validate(instance=payload, schema=JSON_SCHEMA_V1)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem protection
            raise PreluTestError(f"cannot write JSON report {self._path}: {exc}") from exc
        click.echo(f"JSON report written to {self._path}")


def _build_summary(settings: RunSettings, results: Sequence[CaseResult], duration: float) -> Dict[str, Any]:
    counts = count_statuses(results)
    return {
        "total": len(results),
        "passed": counts["passed"],
        "failed": counts["failed"],
        "errors": counts["error"],
        "reference": settings.reference,
        "accelerated": settings.accelerated,
        "seed": settings.seed,
        "duration_s": duration,
    }


def _case_to_dict(result: CaseResult) -> Dict[str, Any]:
    case = result.case
    record: Dict[str, Any] = {
        "id": case.identifier(),
        "name": case.name,
        "status": result.status,
        "duration_ms": result.duration_s * 1000,
        "weights": case.weights.kind,
        "threads": case.num_threads,
        "seed": result.seed,
        "input_shape": list(case.shapes.input_shape),
        "slope_shape": list(case.shapes.slope_shape),
        "tags": list(case.tags),
    }
    if result.error:
        record["error"] = result.error
    if result.stage:
        record["stage"] = result.stage
    comparison = result.comparison
    if comparison is not None:
        record["comparison"] = {
            "passed": comparison.passed,
            "mismatched": comparison.mismatched,
            "total": comparison.total,
            "engines_compared": comparison.engines_compared,
            "first_mismatch_index": comparison.first_mismatch_index,
            "reference_value": _finite(comparison.reference_value),
            "accelerated_value": _finite(comparison.accelerated_value),
        }
    return record


def _finite(value: Optional[float]) -> Optional[float]:
    # NaN/inf are not valid JSON numbers.
    if value is None or not math.isfinite(value):
        return None
    return value
