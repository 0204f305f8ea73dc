"""Evaluation facade: metric values and the adversarial training objective.

``objective`` turns a batch of scores into a loss for gradient descent.
With ``W(f)`` the value of the game solved by
:class:`~apperf.solver.admm.ADMMSolver`, the loss is ``-(W(f) + f . y)``
and its gradient is ``q - y``, where ``q`` holds the adversary's
per-sample positive marginals at the solution. The loss is convex in the
scores.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import structlog
from numpy.typing import NDArray

from apperf.config import APPerfConfig, SolverConfig
from apperf.metric.base import PerformanceMetric
from apperf.metric.expression import evaluate
from apperf.metric.statistics import ConfusionMatrixStatistics, as_binary_vector
from apperf.solver.admm import ADMMSolver
from apperf.solver.payoff import build_game

logger = structlog.get_logger(__name__)


@dataclass
class ObjectiveResult:
    """Loss, gradient, and solver diagnostics for one batch.

    Attributes:
        value: Loss ``-(W + f . y)``.
        gradient: ``q - y``, one entry per sample.
        q: Adversary's per-sample positive marginals.
        constraint_values: Expected constraint values under the predictor.
        converged: Whether the solver met its tolerance.
        iterations: ADMM iterations performed.
        cuts: Certificate rounds performed.
    """

    value: float
    gradient: NDArray[np.float64]
    q: NDArray[np.float64]
    constraint_values: list[float] = field(default_factory=list)
    converged: bool = True
    iterations: int = 0
    cuts: int = 0


def compute_metric(
    metric: PerformanceMetric,
    yhat: Sequence[int] | NDArray[Any],
    y: Sequence[int] | NDArray[Any],
) -> float:
    """Evaluate a metric on predicted and actual binary labels.

    Raises:
        ValueError: If the vectors differ in length or are not binary.
        DegenerateMetricError: On a zero denominator without a matching
            special case.
    """
    stats = ConfusionMatrixStatistics.from_labels(yhat, y)
    return evaluate(metric.expression, stats, metric.special_case)


def compute_constraints(
    metric: PerformanceMetric,
    yhat: Sequence[int] | NDArray[Any],
    y: Sequence[int] | NDArray[Any],
) -> list[float]:
    """Evaluate every constraint expression, in registration order."""
    stats = ConfusionMatrixStatistics.from_labels(yhat, y)
    return metric.constraints.evaluate(stats)


def to_host(values: Any) -> NDArray[np.float64]:
    """Copy an array-like, possibly living on an accelerator, to host memory."""
    if hasattr(values, "detach"):
        values = values.detach().cpu().numpy()
    return np.asarray(values, dtype=float)


def _as_scores(scores: Any) -> NDArray[np.float64]:
    f = to_host(scores)
    if f.ndim != 1:
        msg = f"scores must be a 1-D vector, got shape {f.shape}"
        raise ValueError(msg)
    if not np.all(np.isfinite(f)):
        msg = "scores must be finite"
        raise ValueError(msg)
    return f


def objective(
    metric: PerformanceMetric,
    scores: Sequence[float] | NDArray[Any],
    labels: Sequence[int] | NDArray[Any],
    config: APPerfConfig | None = None,
) -> ObjectiveResult:
    """Solve the adversarial game for one batch.

    Args:
        metric: Metric (and constraints) to optimize.
        scores: Predictor scores, one per sample.
        labels: Binary ground-truth labels.
        config: Solver and accelerator settings; defaults apply when omitted.

    Returns:
        ObjectiveResult with the loss, its gradient and diagnostics.

    Raises:
        ValueError: If scores and labels differ in length, scores are not
            finite, or labels are not binary.
        DegenerateMetricError: If the metric hits an unguarded zero
            denominator on some count combination of the batch.
        InfeasibleConstraintError: If no predictor strategy meets the
            metric's constraints on this batch.
    """
    cfg = config or APPerfConfig()
    f = _as_scores(scores)
    y = as_binary_vector(to_host(labels), name="labels")
    if len(f) != len(y):
        msg = f"Mismatched length: scores={len(f)}, labels={len(y)}"
        raise ValueError(msg)

    game = build_game(metric, y)
    result = ADMMSolver(cfg.solver).solve(game, f)

    value = -(result.objective + float(f @ y))
    gradient = result.q - y
    logger.debug(
        "objective_computed",
        metric=metric.name or type(metric).__name__,
        m=len(y),
        value=value,
        converged=result.converged,
        cuts=result.cuts,
        accelerator=cfg.accelerator,
        iterations=result.iterations,
    )
    return ObjectiveResult(
        value=value,
        gradient=gradient,
        q=result.q,
        constraint_values=[float(v) for v in result.constraint_values],
        converged=result.converged,
        iterations=result.iterations,
        cuts=result.cuts,
    )


def objective_and_gradient(
    metric: PerformanceMetric,
    scores: Sequence[float] | NDArray[Any],
    labels: Sequence[int] | NDArray[Any],
    *,
    max_iter: int = 100,
    tolerance: float = 1e-6,
    max_cuts: int = 1000,
) -> tuple[float, NDArray[np.float64]]:
    """Loss and gradient with explicit solver budgets."""
    config = APPerfConfig(
        solver=SolverConfig(max_iter=max_iter, tolerance=tolerance, max_cuts=max_cuts)
    )
    result = objective(metric, scores, labels, config)
    return result.value, result.gradient
