"""apperf evaluate — Compute a metric and its constraints on labeled predictions."""
from __future__ import annotations

import csv
import json
from pathlib import Path

import structlog
import typer

from apperf.cli.metrics_cmd import resolve_metric
from apperf.core.exceptions import DegenerateMetricError
from apperf.objective import compute_constraints, compute_metric

logger = structlog.get_logger(__name__)

evaluate_app = typer.Typer(help="Evaluate a metric on predicted and gold labels.")


def _load_label_pairs(path: Path) -> tuple[list[int], list[int]]:
    """Load predicted and gold labels from a CSV file.

    Expected columns: predicted, label (0/1).

    Args:
        path: Path to the CSV file.

    Returns:
        Tuple of (predicted, gold) label lists.

    Raises:
        typer.BadParameter: If the file cannot be read or has invalid format.
    """
    if not path.exists():
        raise typer.BadParameter(f"Input file not found: {path}")

    predicted: list[int] = []
    gold: list[int] = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or not {"predicted", "label"} <= set(reader.fieldnames):
            raise typer.BadParameter(
                f"Input CSV must have 'predicted' and 'label' columns: {path}"
            )
        for row in reader:
            try:
                predicted.append(int(row["predicted"]))
                gold.append(int(row["label"]))
            except (ValueError, KeyError) as exc:
                raise typer.BadParameter(f"Invalid row in {path}: {exc}") from exc
    return predicted, gold


@evaluate_app.callback(invoke_without_command=True)
def evaluate(
    ctx: typer.Context,  # noqa: ARG001
    input_path: Path = typer.Option(  # noqa: B008
        ..., "--input", "-i", help="CSV with 'predicted' and 'label' columns"
    ),
    metric_name: str = typer.Option(  # noqa: B008
        ..., "--metric", "-m", help="Registered metric name (see `apperf metrics`)"
    ),
    params: list[float] | None = typer.Option(  # noqa: B008
        None, "--param", "-p", help="Metric parameter, repeat in definition order"
    ),
    output: Path | None = typer.Option(  # noqa: B008
        None, "--output", "-o", help="Write results to this JSON file"
    ),
) -> None:
    """Compute the metric value and constraint values."""
    metric = resolve_metric(metric_name, params)
    predicted, gold = _load_label_pairs(input_path)
    typer.echo(f"Loaded {len(gold)} label pairs from {input_path}")

    try:
        value = compute_metric(metric, predicted, gold)
        constraint_values = compute_constraints(metric, predicted, gold)
    except DegenerateMetricError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    logger.info("metric_evaluated", metric=metric_name, n_records=len(gold), value=value)
    typer.echo(f"\n--- {metric_name} ---")
    typer.echo(f"  Value:        {value:.4f}")
    for i, (constraint, c_value) in enumerate(zip(metric.constraints, constraint_values, strict=True)):
        typer.echo(f"  Constraint {i}: {c_value:.4f}  ({constraint})")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(
            {"metric": metric_name, "value": value, "constraints": constraint_values},
            indent=2,
        ))
        typer.echo(f"Results saved to {output}")
