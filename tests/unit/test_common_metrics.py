"""Tests for the common metric library."""
from __future__ import annotations

import pytest

from apperf.core.exceptions import DegenerateMetricError
from apperf.metric import PerformanceMetric, create_metric, list_metrics
from apperf.metric.common import (
    Accuracy,
    CohenKappa,
    F1Score,
    FBetaScore,
    GeometricMeanPrecisionRecall,
    Informedness,
    Markedness,
    MatthewsCorrelation,
    Precision,
    Recall,
    Specificity,
)
from apperf.metric.statistics import ConfusionMatrix
from apperf.objective import compute_metric

YHAT = [1, 0, 1, 1, 0, 0]
Y = [1, 0, 1, 0, 1, 0]
# tp=2, tn=2, fp=1, fn=1, pp=3, ap=3


class TestKnownValues:
    """Metric values on a fixed batch."""

    def test_f1_reference(self) -> None:
        assert compute_metric(F1Score(), [1, 0, 1, 1], [1, 0, 1, 0]) == pytest.approx(0.8)

    @pytest.mark.parametrize(
        ("metric", "expected"),
        [
            (Accuracy(), 4 / 6),
            (Precision(), 2 / 3),
            (Recall(), 2 / 3),
            (Specificity(), 2 / 3),
            (F1Score(), 2 / 3),
            (FBetaScore(1.0), 2 / 3),
            (GeometricMeanPrecisionRecall(), 2 / 3),
            (Informedness(), 1 / 3),
            (Markedness(), 1 / 3),
            (MatthewsCorrelation(), 1 / 3),
            (CohenKappa(), 1 / 3),
        ],
    )
    def test_values(self, metric: PerformanceMetric, expected: float) -> None:
        assert compute_metric(metric, YHAT, Y) == pytest.approx(expected)

    def test_fbeta_weights_recall(self) -> None:
        # precision 1/2, recall 1
        yhat, y = [1, 1, 0, 0], [1, 0, 0, 0]
        f2 = compute_metric(FBetaScore(2.0), yhat, y)
        assert f2 == pytest.approx(5 * 0.5 / (4 * 0.5 + 1))

    def test_idempotent(self) -> None:
        metric = MatthewsCorrelation()
        first = compute_metric(metric, YHAT, Y)
        assert compute_metric(metric, YHAT, Y) == first


class TestPerfectPredictions:
    """Perfect predictions reach the perfect value."""

    @pytest.mark.parametrize(
        "name", ["accuracy", "f1_score", "precision", "recall", "mcc", "kappa", "informedness"]
    )
    def test_perfect(self, name: str) -> None:
        y = [1, 0, 0, 1, 1]
        assert compute_metric(create_metric(name), y, y) == pytest.approx(1.0)


class TestPositiveSpecialCase:
    """All-zero predictions and labels."""

    @pytest.mark.parametrize("m", [1, 3, 7])
    def test_all_zero_is_one(self, m: int) -> None:
        for name, arity in list_metrics().items():
            metric = create_metric(name, *([0.5] * arity))
            if metric.special_case.positive:
                assert compute_metric(metric, [0] * m, [0] * m) == 1.0, name

    def test_all_zero_without_flag_raises(self) -> None:
        class BarePrecision(PerformanceMetric):
            def define(self, C: ConfusionMatrix):  # type: ignore[no-untyped-def]
                return C.tp / C.pp

        with pytest.raises(DegenerateMetricError):
            compute_metric(BarePrecision(), [0, 0, 0], [0, 0, 0])


class TestNegativeSpecialCase:
    """All-one predictions and labels."""

    def test_specificity_all_ones(self) -> None:
        assert compute_metric(Specificity(), [1, 1], [1, 1]) == 1.0

    def test_mcc_single_class(self) -> None:
        # Predictions all positive, labels mixed: pn = 0 makes the fraction vanish.
        assert compute_metric(MatthewsCorrelation(), [1, 1, 1], [1, 0, 1]) == 0.0
