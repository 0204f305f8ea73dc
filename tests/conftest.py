"""Shared pytest fixtures for apperf tests."""
from __future__ import annotations

import os

# Prevent Rich/Typer from emitting ANSI escape codes in CLI output.
os.environ["NO_COLOR"] = "1"

import itertools
from collections.abc import Callable

import numpy as np
import pytest
from scipy.optimize import linprog

from apperf.metric import create_metric
from apperf.metric.base import PerformanceMetric
from apperf.objective import compute_constraints, compute_metric

BruteForce = Callable[[PerformanceMetric, np.ndarray, np.ndarray], float]


def _all_label_vectors(m: int) -> np.ndarray:
    return np.array(list(itertools.product([0, 1], repeat=m)), dtype=float)


def _brute_force_game_value(
    metric: PerformanceMetric,
    scores: np.ndarray,
    labels: np.ndarray,
) -> float:
    """Game value max_pi min_ycheck E_pi[metric] - f . ycheck by linear programming."""
    vectors = _all_label_vectors(len(labels))
    n = len(vectors)
    payoff = np.array(
        [
            [compute_metric(metric, yhat, ycheck) - float(scores @ ycheck) for ycheck in vectors]
            for yhat in vectors
        ]
    )

    # Variables: pi (n), v. Maximize v.
    c = np.zeros(n + 1)
    c[-1] = -1.0
    a_ub = [np.append(-payoff[:, b], 1.0) for b in range(n)]
    b_ub = [0.0] * n
    for j, constraint in enumerate(metric.constraints):
        values = np.array([compute_constraints(metric, yhat, labels)[j] for yhat in vectors])
        a_ub.append(np.append(-values, 0.0))
        b_ub.append(-constraint.threshold)
    a_eq = [np.append(np.ones(n), 0.0)]
    bounds = [(0.0, None)] * n + [(None, None)]

    result = linprog(c, A_ub=np.array(a_ub), b_ub=b_ub, A_eq=np.array(a_eq), b_eq=[1.0],
                     bounds=bounds, method="highs")
    assert result.success, result.message
    return float(-result.fun)


@pytest.fixture
def brute_force_value() -> BruteForce:
    """Exact game value over all 2^m pure strategies (small m only)."""
    return _brute_force_game_value


@pytest.fixture
def f1_metric() -> PerformanceMetric:
    """Registered F1 score with the positive special case."""
    return create_metric("f1_score")


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator for reproducible scores."""
    return np.random.default_rng(42)
