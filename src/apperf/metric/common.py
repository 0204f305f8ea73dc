"""Library of commonly used performance metrics.

Every metric here is registered under a snake_case name and ships with the
special-case flags it needs to be defined on every batch, so it can be
passed to the solver as-is.
"""
from __future__ import annotations

from apperf.metric.base import (
    PerformanceMetric,
    cs_special_case_negative,
    cs_special_case_positive,
    register_metric,
    special_case_negative,
    special_case_positive,
)
from apperf.metric.expression import Expression, Inequality, sqrt
from apperf.metric.statistics import ConfusionMatrix


@register_metric("accuracy")
class Accuracy(PerformanceMetric):
    """Fraction of correct predictions, ``(tp + tn) / all``."""

    def define(self, C: ConfusionMatrix) -> Expression:
        return (C.tp + C.tn) / C.all


@register_metric("precision")
class Precision(PerformanceMetric):
    """``tp / pp``."""

    def __init__(self) -> None:
        super().__init__()
        special_case_positive(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / C.pp


@register_metric("recall")
class Recall(PerformanceMetric):
    """``tp / ap``, also known as sensitivity."""

    def __init__(self) -> None:
        super().__init__()
        special_case_positive(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / C.ap


@register_metric("specificity")
class Specificity(PerformanceMetric):
    """``tn / an``."""

    def __init__(self) -> None:
        super().__init__()
        special_case_negative(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tn / C.an


@register_metric("f1_score")
class F1Score(PerformanceMetric):
    """Harmonic mean of precision and recall, ``2 tp / (pp + ap)``."""

    def __init__(self) -> None:
        super().__init__()
        special_case_positive(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        return (2 * C.tp) / (C.pp + C.ap)


@register_metric("fbeta_score")
class FBetaScore(PerformanceMetric):
    """Weighted harmonic mean of precision and recall.

    Args:
        beta: Weight of recall relative to precision.
    """

    def __init__(self, beta: float) -> None:
        self.beta = beta
        super().__init__()
        special_case_positive(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        b2 = self.beta**2
        return ((1 + b2) * C.tp) / (b2 * C.ap + C.pp)


@register_metric("gm_precision_recall")
class GeometricMeanPrecisionRecall(PerformanceMetric):
    """Geometric mean of precision and recall, ``tp / sqrt(pp * ap)``."""

    def __init__(self) -> None:
        super().__init__()
        special_case_positive(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / sqrt(C.pp * C.ap)


@register_metric("informedness")
class Informedness(PerformanceMetric):
    """Youden's J statistic, ``tp / ap + tn / an - 1``."""

    def __init__(self) -> None:
        super().__init__()
        special_case_positive(self)
        special_case_negative(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / C.ap + C.tn / C.an - 1


@register_metric("markedness")
class Markedness(PerformanceMetric):
    """``tp / pp + tn / pn - 1``."""

    def __init__(self) -> None:
        super().__init__()
        special_case_positive(self)
        special_case_negative(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / C.pp + C.tn / C.pn - 1


@register_metric("mcc")
class MatthewsCorrelation(PerformanceMetric):
    """Matthews correlation coefficient."""

    def __init__(self) -> None:
        super().__init__()
        special_case_positive(self)
        special_case_negative(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        return (C.all * C.tp - C.ap * C.pp) / sqrt(C.ap * C.an * C.pp * C.pn)


@register_metric("kappa")
class CohenKappa(PerformanceMetric):
    """Cohen's kappa, agreement corrected for chance.

    Written as one fraction: ``(all (tp + tn) - E) / (all^2 - E)`` with
    ``E = ap pp + an pn``.
    """

    def __init__(self) -> None:
        super().__init__()
        special_case_positive(self)
        special_case_negative(self)

    def define(self, C: ConfusionMatrix) -> Expression:
        chance = C.ap * C.pp + C.an * C.pn
        return (C.all * (C.tp + C.tn) - chance) / (C.all**2 - chance)


@register_metric("precision_given_recall")
class PrecisionGivenRecall(PerformanceMetric):
    """Precision subject to ``recall >= threshold``."""

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold
        super().__init__()
        special_case_positive(self)
        cs_special_case_positive(self, True)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / C.pp

    def constraint(self, C: ConfusionMatrix) -> Inequality:
        return C.tp / C.ap >= self.threshold


@register_metric("recall_given_precision")
class RecallGivenPrecision(PerformanceMetric):
    """Recall subject to ``precision >= threshold``."""

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold
        super().__init__()
        special_case_positive(self)
        cs_special_case_positive(self, True)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / C.ap

    def constraint(self, C: ConfusionMatrix) -> Inequality:
        return C.tp / C.pp >= self.threshold


@register_metric("precision_given_specificity")
class PrecisionGivenSpecificity(PerformanceMetric):
    """Precision subject to ``specificity >= threshold``."""

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold
        super().__init__()
        special_case_positive(self)
        cs_special_case_negative(self, True)

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / C.pp

    def constraint(self, C: ConfusionMatrix) -> Inequality:
        return C.tn / C.an >= self.threshold


@register_metric("precision_given_recall_specificity")
class PrecisionGivenRecallSpecificity(PerformanceMetric):
    """Precision subject to recall and specificity lower bounds.

    Args:
        recall_threshold: Lower bound on recall (first constraint).
        specificity_threshold: Lower bound on specificity (second constraint).
    """

    def __init__(self, recall_threshold: float, specificity_threshold: float) -> None:
        self.recall_threshold = recall_threshold
        self.specificity_threshold = specificity_threshold
        super().__init__()
        special_case_positive(self)
        cs_special_case_positive(self, [True, False])
        cs_special_case_negative(self, [False, True])

    def define(self, C: ConfusionMatrix) -> Expression:
        return C.tp / C.pp

    def constraint(self, C: ConfusionMatrix) -> list[Inequality]:
        return [
            C.tp / C.ap >= self.recall_threshold,
            C.tn / C.an >= self.specificity_threshold,
        ]
