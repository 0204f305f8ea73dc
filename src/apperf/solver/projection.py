"""Euclidean projections onto the pieces of the marginal polytope.

A player's strategy is the pair ``(P, p)`` with ``P`` of shape (m, m),
column ``k - 1`` holding ``Pr(y_i = 1, count = k)``, and ``p`` of length
m + 1 holding ``Pr(count = k)``. The marginal polytope is the
intersection of

* the affine set ``sum_i P[i, k] = k p_k`` (k = 1..m), ``sum_k p_k = 1``;
* the box ``p_0 >= 0``, ``0 <= P[i, k] <= p_k``.

Each function returns new arrays and leaves its inputs untouched.
"""
from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

Strategy = tuple[NDArray[np.float64], NDArray[np.float64]]


def project_marginal_consistency(P: NDArray[np.float64], p: NDArray[np.float64]) -> Strategy:
    """Project onto the affine consistency set in closed form.

    Args:
        P: Joint marginals, shape (m, m).
        p: Count marginals, shape (m + 1,).

    Returns:
        Projected ``(P, p)``.
    """
    m = P.shape[0]
    k = np.arange(1, m + 1, dtype=float)
    col_sums = P.sum(axis=0)
    denom = m + k**2

    # Stationarity gives P_k = X_k + alpha_k and p_k = x_k - k alpha_k + beta.
    beta = (1.0 - p.sum() + np.sum(k * (k * p[1:] - col_sums) / denom)) / (
        m + 1.0 - np.sum(k**2 / denom)
    )
    alpha = (k * p[1:] + k * beta - col_sums) / denom

    P_out = P + alpha[None, :]
    p_out = p + beta
    p_out[1:] -= k * alpha
    return P_out, p_out


def project_box(P: NDArray[np.float64], p: NDArray[np.float64]) -> Strategy:
    """Project onto ``{p_0 >= 0, 0 <= P[i, k] <= p_k}`` column by column.

    For a column ``x`` with bound ``t`` the optimal bound is
    ``s = max(0, (t + sum of the c largest x) / (1 + c))`` where ``c`` is
    the number of entries above ``s``; ``c`` is found from the sorted
    column in one pass.

    Args:
        P: Joint marginals, shape (m, m).
        p: Count marginals, shape (m + 1,).

    Returns:
        Projected ``(P, p)``.
    """
    m = P.shape[0]
    p_out = np.empty_like(p, dtype=float)
    p_out[0] = max(0.0, float(p[0]))
    if m == 0:
        return P.astype(float, copy=True), p_out

    t = p[1:]
    desc = -np.sort(-P, axis=0)
    cums = np.vstack([np.zeros((1, m)), np.cumsum(desc, axis=0)])
    ranks = np.arange(m, dtype=float)[:, None]
    # Entry r of a column lies strictly above the optimal bound iff the
    # derivative of the reduced objective is positive there.
    slope = desc - t[None, :] - (cums[:-1] - ranks * desc)
    count = np.sum(slope > 0, axis=0)
    bound = np.maximum(0.0, (t + cums[count, np.arange(m)]) / (1.0 + count))

    p_out[1:] = bound
    return np.clip(P, 0.0, bound[None, :]), p_out


def project_halfspace(
    P: NDArray[np.float64],
    p: NDArray[np.float64],
    G: NDArray[np.float64],
    h: NDArray[np.float64],
    threshold: float,
) -> Strategy:
    """Project onto ``{<G, P> + h . p >= threshold}``.

    A constraint whose coefficients are all zero is left as is.
    """
    value = float(np.sum(G * P) + h @ p)
    norm_sq = float(np.sum(G * G) + h @ h)
    if value >= threshold or norm_sq == 0.0:
        return P.copy(), p.copy()
    step = (threshold - value) / norm_sq
    return P + step * G, p + step * h


def project_multipliers(eta: NDArray[np.float64]) -> NDArray[np.float64]:
    """Project constraint multipliers onto the nonnegative orthant."""
    return np.maximum(eta, 0.0)
