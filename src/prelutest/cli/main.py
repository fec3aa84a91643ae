"""CLI entry point for prelutest."""
from __future__ import annotations

import sys
from typing import Optional, Tuple

import click

from prelutest import __version__, bootstrap
from prelutest._logging import set_log_level
from prelutest.core.generators import RandomValueGenerator
from prelutest.core.models import (
    EngineConfig,
    ShapeSpec,
    broadcast_compatible,
    parse_weight_storage,
)
from prelutest.graph import GraphBuilder, check_graph, serialize_model
from prelutest.plan import (
    CaseConfig,
    ExecutionPlan,
    PlanOptions,
    load_plan,
    run_plan,
)
from prelutest.plan.loader import DEFAULT_ACCELERATED, DEFAULT_REFERENCE

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class CliState:
    """Holds global CLI state."""

    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose


def _print_version(_: click.Context, __: click.Parameter, value: bool) -> None:
    if not value or click.get_current_context().resilient_parsing:
        return
    click.echo(f"prelutest {__version__}")
    raise click.exceptions.Exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--verbose", is_flag=True, help="Enable debug logging output.")
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show the prelutest version and exit.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Differential PReLU checks between a reference and an accelerated engine."""

    bootstrap()
    if verbose:
        set_log_level("DEBUG")
    ctx.obj = CliState(verbose=verbose)


@cli.command()
@click.option(
    "--plan",
    "plan_path",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="YAML plan file.",
)
@click.option("--cases", "case_filters", type=str, help="Comma-separated case filters (supports globs).")
@click.option("--tags", "tag_filters", type=str, help="Comma-separated tags to include.")
@click.option("--skip-tags", "skip_tag_filters", type=str, help="Comma-separated tags to skip.")
@click.option("--weights", "weight_filters", type=str, help="Comma-separated weight storages to keep.")
@click.option("--seed", type=int, help="Master seed overriding the plan seed.")
@click.option("--threads", type=click.IntRange(min=1), help="Accelerated engine thread count for every case.")
@click.option("--fail-fast", is_flag=True, help="Stop at the first failing case.")
@click.option("--list", "list_only", is_flag=True, help="List matched cases without running.")
@click.option(
    "--report",
    "report_format",
    type=click.Choice(["terminal", "json"]),
    default="terminal",
    show_default=True,
    help="Report format (terminal by default).",
)
@click.option("--report-path", type=str, help="When --report json, write to this path.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.pass_obj
def run(
    state: CliState,
    plan_path: str,
    case_filters: Optional[str],
    tag_filters: Optional[str],
    skip_tag_filters: Optional[str],
    weight_filters: Optional[str],
    seed: Optional[int],
    threads: Optional[int],
    fail_fast: bool,
    list_only: bool,
    report_format: str,
    report_path: Optional[str],
    no_color: bool,
) -> None:
    """Execute the differential cases defined in a plan file."""

    options = PlanOptions(
        cases=_split_csv(case_filters),
        tags=_split_csv(tag_filters),
        skip_tags=_split_csv(skip_tag_filters),
        weights=_parse_weight_kinds(weight_filters),
        seed=seed,
        threads=threads,
        fail_fast=fail_fast,
        list_only=list_only,
    )
    try:
        plan = load_plan(plan_path)
        exit_code = run_plan(
            plan,
            options,
            report_format=report_format,
            report_path=report_path,
            use_color=not no_color,
        )
    except click.ClickException:
        raise
    except Exception as exc:  # pragma: no cover - CLI error translation
        raise click.ClickException(str(exc)) from exc
    raise click.exceptions.Exit(exit_code)


@cli.command()
@click.option("--input-shape", required=True, help="Input dimensions, e.g. 1x4x4x3.")
@click.option("--slope-shape", required=True, help="Slope dimensions, e.g. 3 (or 'scalar').")
@click.option("--weights", "weights", default="dense", show_default=True, help="Comma-separated weight storages.")
@click.option("--threads", type=click.IntRange(min=1), help="Accelerated engine thread count.")
@click.option("--seed", type=int, help="Case seed as printed in reports (master seed with --repeat).")
@click.option("--repeat", type=click.IntRange(min=1), default=1, show_default=True, help="Independent draws per storage.")
@click.option("--reference", default=DEFAULT_REFERENCE.name, show_default=True, help="Reference engine name.")
@click.option("--accelerated", default=DEFAULT_ACCELERATED.name, show_default=True, help="Accelerated engine name.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.pass_obj
def check(
    state: CliState,
    input_shape: str,
    slope_shape: str,
    weights: str,
    threads: Optional[int],
    seed: Optional[int],
    repeat: int,
    reference: str,
    accelerated: str,
    no_color: bool,
) -> None:
    """Run a single shape through every requested weight storage."""

    shapes = _shape_spec(input_shape, slope_shape)
    kinds = _parse_weight_kinds(weights) or ("dense",)
    plan = ExecutionPlan(
        description="command line check",
        reference=EngineConfig(name=reference),
        accelerated=EngineConfig(name=accelerated),
        cases=(
            CaseConfig(
                name="check",
                shapes=(shapes,),
                weights=kinds,
                threads=(threads,),
                repeat=repeat,
                seed=seed,
            ),
        ),
        seed=seed,
    )
    try:
        exit_code = run_plan(plan, PlanOptions(), use_color=not no_color)
    except Exception as exc:  # pragma: no cover - CLI error translation
        raise click.ClickException(str(exc)) from exc
    raise click.exceptions.Exit(exit_code)


@cli.command()
@click.option("--input-shape", required=True, help="Input dimensions, e.g. 1x4x4x3.")
@click.option("--slope-shape", required=True, help="Slope dimensions, e.g. 3 (or 'scalar').")
@click.option("--weights", default="dense", show_default=True, help="Weight storage: dense, fp16 or sparse.")
@click.option("--seed", type=int, help="Seed for the slope values.")
def describe(input_shape: str, slope_shape: str, weights: str, seed: Optional[int]) -> None:
    """Print the tables of the graph synthesized for one case."""

    shapes = _shape_spec(input_shape, slope_shape)
    try:
        storage = parse_weight_storage(weights)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--weights") from exc
    model = GraphBuilder(RandomValueGenerator(seed)).build_model(shapes, storage)
    for line in model.describe():
        click.echo(line)
    click.echo(f"  serialized {len(serialize_model(model))} bytes")
    problems = check_graph(model)
    for problem in problems:
        click.echo(click.style(f"  problem: {problem}", fg="red"))
    if problems:
        raise click.exceptions.Exit(1)


def main(argv: Optional[list[str]] = None) -> int:
    """Program entry point for console_scripts shim."""

    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=argv, prog_name="prelutest", standalone_mode=True)
    except click.ClickException as err:  # pragma: no cover - click handles display
        err.show()
        return err.exit_code
    except SystemExit as exc:  # click may raise exit code
        return int(exc.code or 0)
    return 0


def _shape_spec(input_raw: str, slope_raw: str) -> ShapeSpec:
    input_shape = _parse_shape_dims(input_raw, param_hint="--input-shape")
    if not input_shape:
        raise click.BadParameter("input shape needs at least one dimension", param_hint="--input-shape")
    slope_shape = _parse_shape_dims(slope_raw, param_hint="--slope-shape")
    if not broadcast_compatible(input_shape, slope_shape):
        raise click.BadParameter(
            f"slope shape {list(slope_shape)} does not broadcast to input {list(input_shape)}",
            param_hint="--slope-shape",
        )
    return ShapeSpec(input_shape=input_shape, slope_shape=slope_shape)


def _parse_shape_dims(raw: str, *, param_hint: str) -> Tuple[int, ...]:
    text = raw.strip().lower()
    if text in ("", "scalar"):
        return tuple()
    normalized = text.replace(",", "x")
    parts = [part.strip() for part in normalized.split("x") if part.strip()]
    try:
        dims = tuple(int(part) for part in parts)
    except ValueError as exc:
        raise click.BadParameter(f"Non-integer dimension in shape '{raw}'", param_hint=param_hint) from exc
    if any(dim < 1 for dim in dims):
        raise click.BadParameter(f"Dimensions must be positive in shape '{raw}'", param_hint=param_hint)
    return dims


def _parse_weight_kinds(value: Optional[str]) -> Tuple[str, ...]:
    kinds: list[str] = []
    for item in _split_csv(value):
        try:
            kind = parse_weight_storage(item).kind
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--weights") from exc
        if kind not in kinds:
            kinds.append(kind)
    return tuple(kinds)


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return tuple()
    parts = [part.strip() for part in value.split(",") if part.strip()]
    return tuple(parts)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
