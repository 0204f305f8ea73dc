"""apperf metrics — List registered performance metrics."""
from __future__ import annotations

import typer

from apperf.core.exceptions import ArityError
from apperf.metric import get_metric, list_metrics
from apperf.metric.base import PerformanceMetric, create_metric

metrics_app = typer.Typer(help="List registered performance metrics.")


def resolve_metric(name: str, params: list[float] | None) -> PerformanceMetric:
    """Instantiate a registered metric from CLI arguments.

    Raises:
        typer.BadParameter: If the metric is unknown or the parameter count
            does not match its definition.
    """
    try:
        return create_metric(name, *(params or []))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except ArityError as exc:
        raise typer.BadParameter(str(exc)) from exc


@metrics_app.callback(invoke_without_command=True)
def metrics(
    ctx: typer.Context,  # noqa: ARG001
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show descriptions"),  # noqa: B008
) -> None:
    """List every registered metric with its parameter count."""
    registered = list_metrics()
    typer.echo(f"{len(registered)} registered metrics")
    for name, arity in registered.items():
        line = f"  {name:<36} params={arity}"
        if verbose:
            doc = (get_metric(name).__doc__ or "").strip().splitlines()
            if doc:
                line += f"  {doc[0]}"
        typer.echo(line)
