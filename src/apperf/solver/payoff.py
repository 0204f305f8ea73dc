"""Bilinear payoff of the adversarial prediction game.

Both players are represented by marginals of a distribution over label
vectors. For the predictor, ``p[k] = Pr(pp = k)`` for k = 0..m and
``P[i, k-1] = Pr(yhat_i = 1, pp = k)`` for k = 1..m; the adversary's
``Q`` and ``q`` are defined the same way over ``ap``. Column 0 is dropped
because it carries no positives.

For fixed (pp, ap) = (k, l) the metric linearizes to
``a tp + b tn + c``, and with ``tn = m - k - l + tp`` the expected metric
becomes ``sum_{k,l} A[k,l] <P_k, Q_l> + p^T B q`` with ``A = a + b`` and
``B = b (m - k - l) + c``.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from apperf.metric.base import PerformanceMetric
from apperf.metric.expression import linearize
from apperf.metric.statistics import Marginals, as_binary_vector


@dataclass(frozen=True)
class Game:
    """Payoff tensors of one batch.

    Attributes:
        m: Batch size.
        A: Cross-term coefficients, shape (m, m), rows k = 1..m and
            columns l = 1..m.
        B: Constant-term coefficients, shape (m + 1, m + 1).
        G: Constraint coefficients on P, shape (n_constraints, m, m).
        h: Constraint coefficients on p, shape (n_constraints, m + 1).
        tau: Constraint thresholds, shape (n_constraints,).
        labels: Ground-truth labels the constraints are evaluated against.
    """

    m: int
    A: NDArray[np.float64]
    B: NDArray[np.float64]
    G: NDArray[np.float64]
    h: NDArray[np.float64]
    tau: NDArray[np.float64]
    labels: NDArray[np.float64]

    @property
    def n_constraints(self) -> int:
        return int(self.tau.shape[0])

    def payoff(
        self,
        P: NDArray[np.float64],
        p: NDArray[np.float64],
        Q: NDArray[np.float64],
        q: NDArray[np.float64],
        scores: NDArray[np.float64],
    ) -> float:
        """Expected metric minus ``scores . q(Q)``."""
        cross = float(np.sum(P * (Q @ self.A.T)))
        return cross + float(p @ self.B @ q) - float(scores @ Q.sum(axis=1))

    def constraint_values(
        self,
        P: NDArray[np.float64],
        p: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """Expected constraint expressions under the predictor."""
        if self.n_constraints == 0:
            return np.zeros(0)
        return np.einsum("jik,ik->j", self.G, P) + self.h @ p

    def pure_strategy(self, ycheck: NDArray[np.float64]) -> tuple[NDArray, NDArray]:
        """Marginals ``(Q, q)`` of the adversary playing the label vector ``ycheck``."""
        count = int(round(ycheck.sum()))
        Q = np.zeros((self.m, self.m))
        q = np.zeros(self.m + 1)
        if count:
            Q[:, count - 1] = ycheck
        q[count] = 1.0
        return Q, q

    def best_response(
        self,
        P: NDArray[np.float64],
        p: NDArray[np.float64],
        scores: NDArray[np.float64],
    ) -> tuple[NDArray[np.float64], float]:
        """Adversary's best label vector against ``(P, p)``.

        For a fixed count ``l`` the payoff is linear in the chosen samples,
        so the best vector with ``l`` positives takes the ``l`` cheapest
        samples of column ``l``. The best count is then picked over all
        ``l``.

        Returns:
            The label vector and the payoff it concedes.
        """
        costs = P @ self.A - scores[:, None]
        order = np.argsort(costs, axis=0, kind="stable")
        ranked = np.take_along_axis(costs, order, axis=0)
        values = p @ self.B
        values[1:] += np.diagonal(np.cumsum(ranked, axis=0))
        count = int(np.argmin(values))
        ycheck = np.zeros(self.m)
        if count:
            ycheck[order[:count, count - 1]] = 1.0
        return ycheck, float(values[count])


def _grid_coefficients(tp: NDArray, tn: NDArray, const: NDArray, m: int) -> tuple[NDArray, NDArray]:
    k = np.arange(m + 1, dtype=float)[:, None]
    l_ = np.arange(m + 1, dtype=float)[None, :]
    A = tp + tn
    B = tn * (m - k - l_) + const
    return A, B


def build_game(metric: PerformanceMetric, labels: NDArray[np.float64] | list[int]) -> Game:
    """Linearize a metric and its constraints into payoff tensors.

    Args:
        metric: Metric whose expected value the predictor maximizes.
        labels: Ground-truth labels of the batch; they fix ``ap`` for the
            constraints.

    Returns:
        Game for a batch of ``len(labels)`` samples.

    Raises:
        DegenerateMetricError: If some reachable (pp, ap) combination hits
            a zero denominator the special-case flags do not cover.
    """
    y = as_binary_vector(labels, name="labels")
    m = len(y)

    form = linearize(metric.expression, Marginals.grid(m), metric.special_case)
    A, B = _grid_coefficients(form.tp, form.tn, form.const, m)

    n = len(metric.constraints)
    G = np.zeros((n, m, m))
    h = np.zeros((n, m + 1))
    tau = np.zeros(n)
    ap = int(y.sum())
    k = np.arange(m + 1, dtype=float)
    for j, constraint in enumerate(metric.constraints):
        cform = linearize(constraint.expression, Marginals.column(m, ap), constraint.policy)
        ctp, ctn, cconst = (np.broadcast_to(c, (m + 1,)) for c in cform)
        G[j] = np.outer(y, (ctp + ctn)[1:])
        h[j] = ctn * (m - k - ap) + cconst
        tau[j] = constraint.threshold

    return Game(m=m, A=np.ascontiguousarray(A[1:, 1:]), B=B, G=G, h=h, tau=tau, labels=y)
