"""Custom exception hierarchy for apperf.

Never use bare except clauses. Always catch specific exceptions.
"""
from __future__ import annotations

from typing import Any


class APPerfError(Exception):
    """Base exception for all apperf errors."""


# Definition-time exceptions
class StructuralError(APPerfError):
    """Metric or constraint expression is not a sum of fractions.

    Raised once, when the metric is defined, if a denominator references
    tp or tn or if the expression is not affine in (tp, tn) for fixed
    marginals.
    """

    def __init__(self, message: str, node: str | None = None) -> None:
        super().__init__(message)
        self.node = node


class ArityError(APPerfError):
    """A vector of flags or parameters has the wrong length."""

    def __init__(self, message: str, expected: int = 0, actual: int = 0) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


# Evaluation-time exceptions
class DegenerateMetricError(APPerfError):
    """Zero denominator encountered without a matching special case."""

    def __init__(
        self,
        message: str,
        statistics: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.statistics = statistics or {}


class InfeasibleConstraintError(APPerfError):
    """No predictor strategy meets every constraint threshold on the batch."""

    def __init__(self, message: str, thresholds: list[float] | None = None) -> None:
        super().__init__(message)
        self.thresholds = thresholds or []


# Warnings
class NonConvergenceWarning(UserWarning):
    """Solver budget exhausted before the duality gap met the tolerance.

    Non-fatal: the best available iterate is still returned.
    """
