"""apperf objective — Solve the adversarial game for one batch."""
from __future__ import annotations

import json
import warnings
from pathlib import Path

import structlog
import typer

from apperf.cli.metrics_cmd import resolve_metric
from apperf.config import APPerfConfig, load_config
from apperf.core.exceptions import (
    DegenerateMetricError,
    InfeasibleConstraintError,
    NonConvergenceWarning,
)
from apperf.objective import objective

logger = structlog.get_logger(__name__)

objective_app = typer.Typer(help="Compute the adversarial objective and its gradient.")


def _load_batch(path: Path) -> tuple[list[float], list[int]]:
    """Load a batch from a JSON file with 'scores' and 'labels' lists.

    Raises:
        typer.BadParameter: If the file is missing or malformed.
    """
    if not path.exists():
        raise typer.BadParameter(f"Batch file not found: {path}")
    try:
        data = json.loads(path.read_text())
        return [float(s) for s in data["scores"]], [int(v) for v in data["labels"]]
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise typer.BadParameter(f"Invalid batch file {path}: {exc}") from exc


@objective_app.callback(invoke_without_command=True)
def run_objective(
    ctx: typer.Context,  # noqa: ARG001
    batch: Path = typer.Option(  # noqa: B008
        ..., "--batch", "-b", help="JSON file with 'scores' and 'labels'"
    ),
    metric_name: str = typer.Option(  # noqa: B008
        ..., "--metric", "-m", help="Registered metric name (see `apperf metrics`)"
    ),
    params: list[float] | None = typer.Option(  # noqa: B008
        None, "--param", "-p", help="Metric parameter, repeat in definition order"
    ),
    config_path: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="YAML solver configuration"
    ),
    max_iter: int | None = typer.Option(  # noqa: B008
        None, "--max-iter", help="Override the solver iteration budget"
    ),
    output: Path | None = typer.Option(  # noqa: B008
        None, "--output", "-o", help="Write results to this JSON file"
    ),
) -> None:
    """Run the ADMM solver and report loss, gradient and diagnostics."""
    metric = resolve_metric(metric_name, params)
    scores, labels = _load_batch(batch)

    try:
        config = load_config(config_path) if config_path is not None else APPerfConfig()
    except FileNotFoundError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if max_iter is not None:
        solver = config.solver.model_copy(update={"max_iter": max_iter})
        config = config.model_copy(update={"solver": solver})

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NonConvergenceWarning)
            result = objective(metric, scores, labels, config)
    except (DegenerateMetricError, InfeasibleConstraintError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    typer.echo(f"\n--- {metric_name} (m={len(labels)}) ---")
    typer.echo(f"  Loss:       {result.value:.6f}")
    typer.echo(
        f"  Converged:  {result.converged} "
        f"({result.iterations} iterations, {result.cuts} cuts)"
    )
    typer.echo("  Gradient:   " + ", ".join(f"{g:.4f}" for g in result.gradient))
    for i, c_value in enumerate(result.constraint_values):
        typer.echo(f"  Constraint {i}: {c_value:.4f}")
    if not result.converged:
        typer.echo("Warning: solver did not reach the tolerance; result is approximate.")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(
            {
                "metric": metric_name,
                "value": result.value,
                "gradient": result.gradient.tolist(),
                "q": result.q.tolist(),
                "constraints": result.constraint_values,
                "converged": result.converged,
                "iterations": result.iterations,
                "cuts": result.cuts,
            },
            indent=2,
        ))
        typer.echo(f"Results saved to {output}")
