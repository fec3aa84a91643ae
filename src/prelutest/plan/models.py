"""Data models for plan files."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from prelutest.core.models import EngineConfig, ShapeSpec


@dataclass(frozen=True)
class SampleConfig:
    rank: int = 4
    broadcast: str = "channel"
    count: int = 1
    min_dim: int = 2
    max_dim: int = 5


@dataclass(frozen=True)
class CaseConfig:
    name: str
    shapes: Sequence[ShapeSpec] = field(default_factory=tuple)
    sample: Optional[SampleConfig] = None
    weights: Sequence[str] = ("dense",)
    threads: Sequence[Optional[int]] = (None,)
    repeat: int = 1
    tags: Sequence[str] = field(default_factory=tuple)
    seed: Optional[int] = None


@dataclass(frozen=True)
class ExecutionPlan:
    description: str
    reference: EngineConfig
    accelerated: EngineConfig
    cases: Sequence[CaseConfig]
    seed: Optional[int] = None
    fail_fast: bool = False


@dataclass(frozen=True)
class PlanOptions:
    cases: Sequence[str] = field(default_factory=tuple)
    tags: Sequence[str] = field(default_factory=tuple)
    skip_tags: Sequence[str] = field(default_factory=tuple)
    weights: Sequence[str] = field(default_factory=tuple)
    seed: Optional[int] = None
    threads: Optional[int] = None
    fail_fast: bool = False
    list_only: bool = False


@dataclass(frozen=True)
class RunSettings:
    reference: str
    accelerated: str
    seed: Optional[int]
    fail_fast: bool
    description: str = ""
