"""Tests for the custom exception hierarchy."""
import warnings

from apperf.core.exceptions import (
    APPerfError,
    ArityError,
    DegenerateMetricError,
    InfeasibleConstraintError,
    NonConvergenceWarning,
    StructuralError,
)


def test_base_exception() -> None:
    err = APPerfError("base error")
    assert str(err) == "base error"


def test_structural_error_is_base() -> None:
    err = StructuralError("bad denominator", node="(tp / tp)")
    assert isinstance(err, APPerfError)
    assert err.node == "(tp / tp)"


def test_arity_error_stores_counts() -> None:
    err = ArityError("wrong flag count", expected=2, actual=1)
    assert err.expected == 2
    assert err.actual == 1


def test_degenerate_metric_error_stores_statistics() -> None:
    err = DegenerateMetricError("zero denominator", statistics={"pp": 0.0, "ap": 0.0})
    assert isinstance(err, APPerfError)
    assert err.statistics == {"pp": 0.0, "ap": 0.0}


def test_degenerate_metric_error_defaults_to_empty_statistics() -> None:
    assert DegenerateMetricError("zero denominator").statistics == {}


def test_infeasible_constraint_error_stores_thresholds() -> None:
    err = InfeasibleConstraintError("no feasible strategy", thresholds=[1.5])
    assert isinstance(err, APPerfError)
    assert err.thresholds == [1.5]


def test_non_convergence_is_a_warning() -> None:
    assert issubclass(NonConvergenceWarning, UserWarning)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        warnings.warn("budget exhausted", NonConvergenceWarning, stacklevel=1)
    assert caught[0].category is NonConvergenceWarning
