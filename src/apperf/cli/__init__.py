"""apperf CLI — Typer application."""
from __future__ import annotations

import typer

from apperf.cli.evaluate_cmd import evaluate_app
from apperf.cli.metrics_cmd import metrics_app
from apperf.cli.objective_cmd import objective_app

app = typer.Typer(
    name="apperf",
    help="apperf: adversarial prediction for non-decomposable performance metrics.",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(metrics_app, name="metrics")
app.add_typer(evaluate_app, name="evaluate")
app.add_typer(objective_app, name="objective")


def main() -> None:
    """Entry point for the apperf CLI."""
    app()


if __name__ == "__main__":
    main()
