"""Metric module — expressions, special cases, constraints, and the registry."""
from __future__ import annotations

from apperf.metric import common
from apperf.metric.base import (
    PerformanceMetric,
    create_metric,
    cs_special_case_negative,
    cs_special_case_positive,
    get_metric,
    list_metrics,
    metric_arity,
    register_metric,
    special_case_negative,
    special_case_positive,
)
from apperf.metric.constraints import Constraint, ConstraintSet
from apperf.metric.expression import (
    Affine,
    Expression,
    Inequality,
    evaluate,
    exp,
    linearize,
    log,
    sqrt,
    validate,
)
from apperf.metric.special_case import SpecialCasePolicy
from apperf.metric.statistics import (
    ConfusionMatrix,
    ConfusionMatrixStatistics,
    Marginals,
    as_binary_vector,
)

__all__ = [
    "Affine",
    "ConfusionMatrix",
    "ConfusionMatrixStatistics",
    "Constraint",
    "ConstraintSet",
    "Expression",
    "Inequality",
    "Marginals",
    "PerformanceMetric",
    "SpecialCasePolicy",
    "as_binary_vector",
    "common",
    "create_metric",
    "cs_special_case_negative",
    "cs_special_case_positive",
    "evaluate",
    "exp",
    "get_metric",
    "linearize",
    "list_metrics",
    "log",
    "metric_arity",
    "register_metric",
    "special_case_negative",
    "special_case_positive",
    "sqrt",
    "validate",
]
