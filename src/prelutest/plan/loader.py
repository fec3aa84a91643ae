"""YAML loader and validation for plan files."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import yaml
from jsonschema import Draft7Validator

from prelutest.core.generators import BROADCAST_MODES
from prelutest.core.models import (
    EngineConfig,
    ShapeSpec,
    broadcast_compatible,
    parse_weight_storage,
)
from prelutest.exceptions import PlanError

from .models import CaseConfig, ExecutionPlan, SampleConfig

DEFAULT_REFERENCE = EngineConfig(name="litert")
DEFAULT_ACCELERATED = EngineConfig(name="xnnpack")

_SHAPE_SCHEMA = {"type": "array", "items": {"type": "integer", "minimum": 1}}

PLAN_SCHEMA = {
    "type": "object",
    "required": ["cases"],
    "properties": {
        "description": {"type": "string"},
        "seed": {"type": "integer", "minimum": 0},
        "fail_fast": {"type": "boolean"},
        "engines": {
            "type": "object",
            "properties": {
                "reference": {"type": ["string", "object"]},
                "accelerated": {"type": ["string", "object"]},
            },
            "additionalProperties": False,
        },
        "cases": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "input_shape": _SHAPE_SCHEMA,
                    "slope_shape": _SHAPE_SCHEMA,
                    "shapes": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "required": ["input", "slope"],
                            "properties": {"input": _SHAPE_SCHEMA, "slope": _SHAPE_SCHEMA},
                        },
                    },
                    "sample": {
                        "type": "object",
                        "properties": {
                            "rank": {"type": "integer", "minimum": 1, "maximum": 4},
                            "broadcast": {"type": "string", "enum": list(BROADCAST_MODES)},
                            "count": {"type": "integer", "minimum": 1},
                            "min_dim": {"type": "integer", "minimum": 1},
                            "max_dim": {"type": "integer", "minimum": 1},
                        },
                    },
                    "weights": {"type": ["string", "array"]},
                    "threads": {"type": ["integer", "array"]},
                    "repeat": {"type": "integer", "minimum": 1},
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "seed": {"type": "integer", "minimum": 0},
                },
            },
        },
    },
}
_validator = Draft7Validator(PLAN_SCHEMA)


def load_plan(path: str) -> ExecutionPlan:
    """Load and validate a plan file."""

    plan_path = Path(path).expanduser().resolve()
    raw = yaml.safe_load(plan_path.read_text(encoding="utf-8")) or {}
    return parse_plan(raw)


def parse_plan(raw: Any) -> ExecutionPlan:
    if not isinstance(raw, Mapping):
        raise PlanError("Plan file must contain a mapping at the top level")
    errors = sorted(_validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        messages = "; ".join(f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors)
        raise PlanError(f"Plan schema validation failed: {messages}")
    engines = raw.get("engines") or {}
    cases = tuple(_parse_case(entry) for entry in raw["cases"])
    names = [case.name for case in cases]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise PlanError(f"Duplicate case names: {', '.join(duplicates)}")
    seed = raw.get("seed")
    return ExecutionPlan(
        description=str(raw.get("description", "")),
        reference=_parse_engine(engines.get("reference"), DEFAULT_REFERENCE),
        accelerated=_parse_engine(engines.get("accelerated"), DEFAULT_ACCELERATED),
        cases=cases,
        seed=int(seed) if seed is not None else None,
        fail_fast=bool(raw.get("fail_fast", False)),
    )


def _parse_engine(raw: Any, default: EngineConfig) -> EngineConfig:
    if raw is None:
        return default
    if isinstance(raw, str):
        return EngineConfig(name=raw)
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise PlanError("engine entries require a 'name' string")
    options = tuple(sorted((str(key), value) for key, value in raw.items() if key != "name"))
    return EngineConfig(name=name.strip(), options=options)


def _parse_case(entry: Mapping[str, Any]) -> CaseConfig:
    name = entry["name"].strip()
    shapes = _parse_shapes(name, entry)
    sample = _parse_sample(name, entry.get("sample"))
    if not shapes and sample is None:
        raise PlanError(f"Case '{name}' needs input_shape/slope_shape, shapes, or sample")
    if shapes and sample is not None:
        raise PlanError(f"Case '{name}' cannot combine explicit shapes with sample")
    seed = entry.get("seed")
    return CaseConfig(
        name=name,
        shapes=shapes,
        sample=sample,
        weights=_parse_weights(name, entry.get("weights")),
        threads=_parse_threads(name, entry.get("threads")),
        repeat=int(entry.get("repeat", 1)),
        tags=tuple(str(tag) for tag in entry.get("tags", []) or []),
        seed=int(seed) if seed is not None else None,
    )


def _parse_shapes(name: str, entry: Mapping[str, Any]) -> tuple[ShapeSpec, ...]:
    pairs: list[tuple[Sequence[int], Sequence[int]]] = []
    if "input_shape" in entry or "slope_shape" in entry:
        if "input_shape" not in entry or "slope_shape" not in entry:
            raise PlanError(f"Case '{name}' must give both input_shape and slope_shape")
        pairs.append((entry["input_shape"], entry["slope_shape"]))
    for item in entry.get("shapes", []) or []:
        pairs.append((item["input"], item["slope"]))
    shapes: list[ShapeSpec] = []
    for input_shape, slope_shape in pairs:
        if not input_shape:
            raise PlanError(f"Case '{name}' has an empty input shape")
        if not broadcast_compatible(input_shape, slope_shape):
            raise PlanError(
                f"Case '{name}': slope shape {list(slope_shape)} does not broadcast to input {list(input_shape)}"
            )
        shapes.append(ShapeSpec(input_shape=tuple(input_shape), slope_shape=tuple(slope_shape)))
    return tuple(shapes)


def _parse_sample(name: str, raw: Any) -> Optional[SampleConfig]:
    if raw is None:
        return None
    sample = SampleConfig(
        rank=int(raw.get("rank", 4)),
        broadcast=str(raw.get("broadcast", "channel")),
        count=int(raw.get("count", 1)),
        min_dim=int(raw.get("min_dim", 2)),
        max_dim=int(raw.get("max_dim", 5)),
    )
    if sample.max_dim < sample.min_dim:
        raise PlanError(f"Case '{name}': sample max_dim must be >= min_dim")
    return sample


def _parse_weights(name: str, raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ("dense",)
    items = [raw] if isinstance(raw, str) else list(raw)
    if not items:
        raise PlanError(f"Case '{name}' lists no weight storage")
    kinds: list[str] = []
    for item in items:
        try:
            kind = parse_weight_storage(str(item)).kind
        except ValueError as exc:
            raise PlanError(f"Case '{name}': {exc}") from exc
        if kind not in kinds:
            kinds.append(kind)
    return tuple(kinds)


def _parse_threads(name: str, raw: Any) -> tuple[Optional[int], ...]:
    if raw is None:
        return (None,)
    items = [raw] if isinstance(raw, int) else list(raw)
    threads: list[Optional[int]] = []
    for item in items:
        if not isinstance(item, int) or item < 1:
            raise PlanError(f"Case '{name}': threads entries must be positive integers")
        threads.append(item)
    return tuple(threads) or (None,)
