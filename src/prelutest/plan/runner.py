"""Executor for plan files."""
from __future__ import annotations

import fnmatch
from typing import List, Optional

import click
import numpy as np

from prelutest._logging import get_logger
from prelutest.core.generators import ShapeSampler
from prelutest.core.models import DiffCase, parse_weight_storage
from prelutest.core.runner import CaseRunner
from prelutest.engines.base import EngineManager
from prelutest.reporting import JsonReporter, ReportManager, TerminalReporter

from .models import CaseConfig, ExecutionPlan, PlanOptions, RunSettings

logger = get_logger(__name__)


def resolve_cases(plan: ExecutionPlan, options: PlanOptions) -> List[DiffCase]:
    """Expand plan cases into concrete differential cases after filtering."""

    seed = options.seed if options.seed is not None else plan.seed
    sampler_rng = np.random.default_rng(seed)
    resolved: List[DiffCase] = []
    for config in plan.cases:
        if not _selected(config, options):
            continue
        shapes = list(config.shapes)
        if config.sample is not None:
            sampler = ShapeSampler(
                rank=config.sample.rank,
                broadcast=config.sample.broadcast,
                min_dim=config.sample.min_dim,
                max_dim=config.sample.max_dim,
            )
            case_rng = np.random.default_rng(config.seed) if config.seed is not None else sampler_rng
            shapes = sampler.sample_many(case_rng, config.sample.count)
        weights = [kind for kind in config.weights if not options.weights or kind in options.weights]
        threads = [options.threads] if options.threads is not None else list(config.threads)
        for shape in shapes:
            for kind in weights:
                for thread_count in threads:
                    for attempt in range(config.repeat):
                        name = config.name if config.repeat == 1 else f"{config.name}#{attempt}"
                        resolved.append(
                            DiffCase(
                                name=name,
                                shapes=shape,
                                weights=parse_weight_storage(kind),
                                num_threads=thread_count,
                                seed=config.seed if config.repeat == 1 else None,
                                tags=tuple(config.tags),
                            )
                        )
    return resolved


def _selected(config: CaseConfig, options: PlanOptions) -> bool:
    if options.cases and not any(fnmatch.fnmatchcase(config.name, pattern) for pattern in options.cases):
        return False
    if options.tags and not set(options.tags) & set(config.tags):
        return False
    if options.skip_tags and set(options.skip_tags) & set(config.tags):
        return False
    return True


def run_plan(
    plan: ExecutionPlan,
    options: PlanOptions,
    *,
    report_format: str = "terminal",
    report_path: Optional[str] = None,
    use_color: bool = True,
    manager: Optional[EngineManager] = None,
) -> int:
    """Execute the plan; returns process exit code (0 success, 1 failures)."""

    cases = resolve_cases(plan, options)
    if options.list_only:
        for case in cases:
            click.echo(case.identifier())
        return 0
    if not cases:
        click.echo("No cases matched the provided filters.")
        return 1
    settings = RunSettings(
        reference=plan.reference.name,
        accelerated=plan.accelerated.name,
        seed=options.seed if options.seed is not None else plan.seed,
        fail_fast=options.fail_fast or plan.fail_fast,
        description=plan.description,
    )
    if report_format == "json":
        if not report_path:
            raise click.UsageError("--report json requires --report-path")
        reporters = [JsonReporter(report_path)]
    else:
        reporters = [TerminalReporter(use_color=use_color)]
    reports = ReportManager(reporters)
    reports.start(settings, len(cases))
    runner = CaseRunner(
        plan.reference,
        plan.accelerated,
        seed=settings.seed,
        fail_fast=settings.fail_fast,
        manager=manager,
    )
    results = runner.run(cases, on_result=reports.handle_result)
    reports.complete(results)
    failures = reports.failures
    logger.info("plan finished: %d case(s), %d failure(s)", len(results), failures)
    return 0 if failures == 0 else 1
