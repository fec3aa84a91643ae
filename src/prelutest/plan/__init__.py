"""Plan loader and executor."""

from .loader import load_plan, parse_plan
from .models import CaseConfig, ExecutionPlan, PlanOptions, RunSettings, SampleConfig
from .runner import resolve_cases, run_plan

__all__ = [
    "CaseConfig",
    "ExecutionPlan",
    "PlanOptions",
    "RunSettings",
    "SampleConfig",
    "load_plan",
    "parse_plan",
    "resolve_cases",
    "run_plan",
]
