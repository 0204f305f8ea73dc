"""ADMM solver for the adversarial prediction game.

The predictor maximizes and the adversary minimizes

    E_{P,Q}[metric] - f . q(Q)

over their marginal polytopes, with the predictor additionally bound by
the metric's constraints. A solve runs in two stages.

ADMM stage, up to ``max_iter`` iterations:

1. the adversary plays its exact best response to the predictor, and its
   strategy is the running mean of those responses;
2. the predictor takes a proximal step on the payoff against that mean,
   followed by the projection chain marginal-consistency, box,
   constraint half-spaces;
3. the constraint multipliers take a projected ascent step on the
   constraint residuals.

Certificate stage, up to ``max_cuts`` rounds. Every best response is a
vertex of the adversary's polytope and so a cut on the payoff the
predictor can guarantee. The master problem maximizes that guarantee
over the predictor's polytope subject to the cuts found so far; it is a
linear program whose value bounds the game from above. The adversary's
best response to its solution bounds the game from below and becomes
the next cut. The duals of the cuts are the adversary's mixed strategy.
The adversary has finitely many vertices, so the gap closes exactly.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import sparse
from scipy.optimize import linprog
from scipy.stats import binom

from apperf.config import SolverConfig
from apperf.core.exceptions import APPerfError, InfeasibleConstraintError, NonConvergenceWarning
from apperf.solver.payoff import Game
from apperf.solver.projection import (
    project_box,
    project_halfspace,
    project_marginal_consistency,
    project_multipliers,
)

logger = structlog.get_logger(__name__)

_LP_INFEASIBLE = 2


@dataclass
class SolverResult:
    """Outcome of one solve.

    Attributes:
        objective: Game value at the returned strategies.
        q: Adversary's per-sample positive marginals, clipped to [0, 1].
        constraint_values: Expected constraint values under the predictor,
            in registration order.
        converged: Whether the duality gap (or, without the certificate
            stage, the iterate movement) fell below the tolerance.
        iterations: ADMM iterations performed.
        cuts: Certificate rounds performed.
        residual: Final duality gap, or iterate movement without the
            certificate stage.
    """

    objective: float
    q: NDArray[np.float64]
    constraint_values: NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    converged: bool = True
    iterations: int = 0
    cuts: int = 0
    residual: float = 0.0


def _independent_strategy(m: int, rate: float) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Marginals of m independent Bernoulli(rate) labels."""
    counts = np.arange(m + 1)
    p = binom.pmf(counts, m, rate)
    P = np.tile((counts[1:] / m) * p[1:], (m, 1))
    return P, p


class _MasterProblem:
    """Predictor's best guaranteed payoff against a finite set of adversary vertices.

    Variables are ``vec(P)`` (row-major), ``p`` and the guarantee ``t``;
    the program minimizes ``-t``.
    """

    def __init__(self, game: Game, scores: NDArray[np.float64]) -> None:
        m = game.m
        self.game = game
        self.scores = scores
        self.n_joint = m * m
        n_vars = self.n_joint + m + 2
        self.cost = np.zeros(n_vars)
        self.cost[-1] = -1.0
        self.bounds = [(0.0, None)] * (n_vars - 1) + [(None, None)]

        cells = np.arange(self.n_joint)
        column = cells % m
        count_slot = self.n_joint + 1 + column

        # sum_i P[i, k] - k p_k = 0 and sum_k p_k = 1.
        k = np.arange(m)
        self.a_eq = sparse.csr_matrix(
            (
                np.concatenate([np.ones(self.n_joint), -(k + 1.0), np.ones(m + 1)]),
                (
                    np.concatenate([column, k, np.full(m + 1, m)]),
                    np.concatenate([cells, self.n_joint + 1 + k, self.n_joint + np.arange(m + 1)]),
                ),
            ),
            shape=(m + 1, n_vars),
        )
        self.b_eq = np.append(np.zeros(m), 1.0)

        # P[i, k] - p_k <= 0.
        box = sparse.csr_matrix(
            (
                np.concatenate([np.ones(self.n_joint), -np.ones(self.n_joint)]),
                (np.concatenate([cells, cells]), np.concatenate([cells, count_slot])),
            ),
            shape=(self.n_joint, n_vars),
        )
        blocks = [box]
        n = game.n_constraints
        if n:
            # <G_j, P> + h_j . p >= tau_j.
            rows = np.concatenate([-game.G.reshape(n, -1), -game.h, np.zeros((n, 1))], axis=1)
            blocks.append(sparse.csr_matrix(rows))
        self.a_fixed = sparse.vstack(blocks, format="csr")
        self.b_fixed = np.concatenate([np.zeros(self.n_joint), -game.tau])

        self.vertices: dict[bytes, NDArray[np.float64]] = {}
        self._cut_rows: list[NDArray[np.float64]] = []
        self._cut_bounds: list[float] = []

    def __contains__(self, ycheck: NDArray[np.float64]) -> bool:
        return ycheck.tobytes() in self.vertices

    def __len__(self) -> int:
        return len(self.vertices)

    def add_cut(self, ycheck: NDArray[np.float64]) -> None:
        """Add ``t <= payoff(P, p; ycheck)`` unless the vertex is already present."""
        if ycheck in self:
            return
        game = self.game
        count = int(round(ycheck.sum()))
        joint = np.zeros((game.m, game.m))
        if count:
            joint = np.outer(ycheck, game.A[:, count - 1])
        self._cut_rows.append(np.concatenate([-joint.ravel(), -game.B[:, count], [1.0]]))
        self._cut_bounds.append(-float(self.scores @ ycheck))
        self.vertices[ycheck.tobytes()] = ycheck

    def solve(self) -> tuple[NDArray, NDArray, float, NDArray, NDArray]:
        """Solve the master problem.

        Returns:
            Predictor ``(P, p)``, the upper bound on the game value and the
            adversary mixture ``(Q, q)`` read off the cut duals.

        Raises:
            InfeasibleConstraintError: If no predictor strategy meets the
                constraints.
            APPerfError: If the linear program fails for any other reason.
        """
        game = self.game
        m = game.m
        cuts = sparse.csr_matrix(np.array(self._cut_rows))
        a_ub = sparse.vstack([self.a_fixed, cuts], format="csr")
        b_ub = np.concatenate([self.b_fixed, self._cut_bounds])
        result = linprog(
            self.cost,
            A_ub=a_ub,
            b_ub=b_ub,
            A_eq=self.a_eq,
            b_eq=self.b_eq,
            bounds=self.bounds,
            method="highs",
        )
        if result.status == _LP_INFEASIBLE:
            msg = "No predictor strategy satisfies the constraints on this batch"
            raise InfeasibleConstraintError(msg, thresholds=game.tau.tolist())
        if not result.success:
            msg = f"Master problem failed: {result.message}"
            raise APPerfError(msg)

        x = result.x
        P = x[: self.n_joint].reshape(m, m)
        p = x[self.n_joint : self.n_joint + m + 1]

        weights = np.maximum(-result.ineqlin.marginals[-len(self) :], 0.0)
        total = weights.sum()
        vertices = list(self.vertices.values())
        if total <= 0.0:
            weights, total = np.eye(len(vertices))[-1], 1.0
        Q = np.zeros((m, m))
        q = np.zeros(m + 1)
        for weight, ycheck in zip(weights / total, vertices, strict=True):
            Qv, qv = game.pure_strategy(ycheck)
            Q += weight * Qv
            q += weight * qv
        return P, p, float(-result.fun), Q, q


class ADMMSolver:
    """Solve the adversarial prediction game of a :class:`Game`.

    Args:
        config: Iteration budgets, tolerance and step size.
    """

    def __init__(self, config: SolverConfig | None = None) -> None:
        self.config = config or SolverConfig()

    def solve(self, game: Game, scores: NDArray[np.float64]) -> SolverResult:
        """Run the ADMM stage, then certify the result.

        Args:
            game: Payoff tensors of the batch.
            scores: Predictor scores ``f``, one per sample.

        Returns:
            SolverResult with the objective, the adversary's marginals and
            the constraint values. An exhausted budget sets
            ``converged=False`` and issues a ``NonConvergenceWarning``.

        Raises:
            InfeasibleConstraintError: If the constraints cannot be met.
        """
        f = np.asarray(scores, dtype=float)
        m = game.m
        if m == 0:
            values = game.h[:, 0] if game.n_constraints else np.zeros(0)
            return SolverResult(
                objective=float(game.B[0, 0]), q=np.zeros(0), constraint_values=values
            )

        cfg = self.config
        P, p = _independent_strategy(m, float(game.labels.sum()) / m)
        Q, q = P.copy(), p.copy()
        eta = np.zeros(game.n_constraints)
        responses: list[NDArray[np.float64]] = []

        residual = float("inf")
        iteration = 0
        for iteration in range(1, cfg.max_iter + 1):
            ycheck, _ = game.best_response(P, p, f)
            responses.append(ycheck)
            Qv, qv = game.pure_strategy(ycheck)
            Q += (Qv - Q) / (iteration + 1)
            q += (qv - q) / (iteration + 1)

            P_new, p_new = self._predictor_step(game, P, p, Q, q, eta)
            eta = project_multipliers(
                eta + cfg.step_size * (game.tau - game.constraint_values(P_new, p_new))
            )
            movement = np.sqrt(np.sum((P_new - P) ** 2) + np.sum((p_new - p) ** 2))
            residual = float(movement) / cfg.step_size
            P, p = P_new, p_new
            if residual < cfg.tolerance:
                break

        converged = residual < cfg.tolerance
        rounds = 0
        if cfg.max_cuts > 0:
            master = _MasterProblem(game, f)
            for ycheck in responses:
                master.add_cut(ycheck)
            converged = False
            for rounds in range(1, cfg.max_cuts + 1):
                P, p, upper, Q, q = master.solve()
                ycheck, lower = game.best_response(P, p, f)
                residual = max(upper - lower, 0.0)
                # A repeated vertex means the cut is already tight up to LP accuracy.
                if residual <= cfg.tolerance or ycheck in master:
                    converged = True
                    break
                master.add_cut(ycheck)

        result = SolverResult(
            objective=game.payoff(P, p, Q, q, f),
            q=np.clip(Q.sum(axis=1), 0.0, 1.0),
            constraint_values=game.constraint_values(P, p),
            converged=converged,
            iterations=iteration,
            cuts=rounds,
            residual=residual,
        )

        if converged:
            logger.debug(
                "admm_converged", m=m, iterations=iteration, cuts=rounds, residual=residual
            )
        else:
            logger.warning(
                "admm_not_converged",
                m=m,
                iterations=iteration,
                cuts=rounds,
                residual=residual,
                tolerance=cfg.tolerance,
            )
            warnings.warn(
                f"ADMM stopped after {iteration} iterations and {rounds} cuts with "
                f"residual {residual:.3g} (tolerance {cfg.tolerance:.3g})",
                NonConvergenceWarning,
                stacklevel=2,
            )
        return result

    def _predictor_step(
        self,
        game: Game,
        P: NDArray[np.float64],
        p: NDArray[np.float64],
        Q: NDArray[np.float64],
        q: NDArray[np.float64],
        eta: NDArray[np.float64],
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Proximal ascent on the Lagrangian, then the projection chain."""
        step = self.config.step_size
        grad_P = Q @ game.A.T + np.einsum("j,jik->ik", eta, game.G)
        grad_p = game.B @ q + eta @ game.h
        P, p = project_marginal_consistency(P + step * grad_P, p + step * grad_p)
        P, p = project_box(P, p)
        for j in range(game.n_constraints):
            P, p = project_halfspace(P, p, game.G[j], game.h[j], game.tau[j])
        return P, p
