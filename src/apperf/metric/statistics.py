"""Confusion-matrix statistics: symbolic handle and bound numeric values.

A metric definition receives a :class:`ConfusionMatrix` whose attributes
are expression leaves. At evaluation time the same slots are bound to the
numbers in a :class:`ConfusionMatrixStatistics` (one batch) or to the
arrays of a :class:`Marginals` grid (all count combinations the solver
has to consider).
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any, NamedTuple

import numpy as np
from numpy.typing import ArrayLike, NDArray

from apperf.core.enums import Statistic
from apperf.metric.expression import Expression, Stat


class ConfusionMatrix:
    """Symbolic confusion matrix passed to ``define`` and ``constraint``.

    Attributes:
        tp: True positives.
        tn: True negatives.
        pp: Predicted positives.
        ap: Actual positives.
        pn: Predicted negatives.
        an: Actual negatives.
        all: Batch size.
    """

    __slots__ = ("tp", "tn", "pp", "ap", "pn", "an", "all")

    def __init__(self) -> None:
        for stat in Statistic:
            object.__setattr__(self, stat.value, Stat(stat))

    def __setattr__(self, name: str, value: Any) -> None:
        msg = "ConfusionMatrix is read-only"
        raise AttributeError(msg)

    @property
    def fp(self) -> Expression:
        """False positives, ``pp - tp``."""
        return self.pp - self.tp

    @property
    def fn(self) -> Expression:
        """False negatives, ``ap - tp``."""
        return self.ap - self.tp


class Marginals(NamedTuple):
    """Numeric marginals, scalars or broadcastable arrays."""

    pp: Any
    ap: Any
    pn: Any
    an: Any
    all: Any

    @classmethod
    def grid(cls, m: int) -> Marginals:
        """All (pp, ap) combinations for a batch of size ``m``.

        Rows index the predicted positive count k = 0..m and columns the
        actual positive count l = 0..m.
        """
        k = np.arange(m + 1, dtype=float)[:, None]
        l_ = np.arange(m + 1, dtype=float)[None, :]
        return cls(pp=k, ap=l_, pn=m - k, an=m - l_, all=float(m))

    @classmethod
    def column(cls, m: int, ap: int) -> Marginals:
        """All predicted positive counts k = 0..m against a fixed ``ap``."""
        k = np.arange(m + 1, dtype=float)
        return cls(pp=k, ap=float(ap), pn=m - k, an=float(m - ap), all=float(m))


@dataclass(frozen=True)
class ConfusionMatrixStatistics:
    """Bound confusion-matrix statistics of a single batch.

    Attributes:
        tp: True positive count.
        tn: True negative count.
        pp: Predicted positive count.
        ap: Actual positive count.
        pn: Predicted negative count.
        an: Actual negative count.
        all: Batch size.
    """

    tp: float
    tn: float
    pp: float
    ap: float
    pn: float
    an: float
    all: float

    def __post_init__(self) -> None:
        if self.all < 0:
            msg = f"Batch size must be non-negative, got all={self.all}"
            raise ValueError(msg)
        if self.pn != self.all - self.pp or self.an != self.all - self.ap:
            msg = (
                "Inconsistent marginals: "
                f"pp={self.pp}, pn={self.pn}, ap={self.ap}, an={self.an}, all={self.all}"
            )
            raise ValueError(msg)
        if not 0 <= self.tp <= min(self.pp, self.ap):
            msg = f"tp={self.tp} outside [0, min(pp, ap)]"
            raise ValueError(msg)
        if not 0 <= self.tn <= min(self.pn, self.an):
            msg = f"tn={self.tn} outside [0, min(pn, an)]"
            raise ValueError(msg)

    @classmethod
    def from_labels(
        cls,
        predicted: ArrayLike | Sequence[int],
        actual: ArrayLike | Sequence[int],
    ) -> ConfusionMatrixStatistics:
        """Count statistics from binary predicted and actual label vectors.

        Args:
            predicted: Predicted labels (0 or 1).
            actual: Ground-truth labels (0 or 1).

        Returns:
            ConfusionMatrixStatistics for the pair.

        Raises:
            ValueError: If lengths differ or a vector is not binary.
        """
        yhat = as_binary_vector(predicted, name="predicted")
        y = as_binary_vector(actual, name="actual")
        if len(yhat) != len(y):
            msg = f"Mismatched length: predicted={len(yhat)}, actual={len(y)}"
            raise ValueError(msg)

        n = float(len(y))
        pp = float(yhat.sum())
        ap = float(y.sum())
        tp = float(np.dot(yhat, y))
        tn = float(np.dot(1.0 - yhat, 1.0 - y))
        return cls(tp=tp, tn=tn, pp=pp, ap=ap, pn=n - pp, an=n - ap, all=n)

    @property
    def marginals(self) -> Marginals:
        """The marginal slots as a :class:`Marginals` tuple."""
        return Marginals(pp=self.pp, ap=self.ap, pn=self.pn, an=self.an, all=self.all)

    def to_dict(self) -> dict[str, float]:
        """Plain dict of the seven slots."""
        return asdict(self)


def as_binary_vector(values: ArrayLike | Sequence[int], name: str = "labels") -> NDArray[np.float64]:
    """Convert a label vector to a 1-D float array of zeros and ones.

    Raises:
        ValueError: If the input is not one-dimensional or not binary.
    """
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        msg = f"{name} must be a 1-D vector, got shape {arr.shape}"
        raise ValueError(msg)
    if not np.all((arr == 0.0) | (arr == 1.0)):
        msg = f"{name} must contain only 0 and 1"
        raise ValueError(msg)
    return arr
