"""Solver module — payoff construction, projections, and the ADMM loop."""
from __future__ import annotations

from apperf.solver.admm import ADMMSolver, SolverResult
from apperf.solver.payoff import Game, build_game
from apperf.solver.projection import (
    project_box,
    project_halfspace,
    project_marginal_consistency,
    project_multipliers,
)

__all__ = [
    "ADMMSolver",
    "Game",
    "SolverResult",
    "build_game",
    "project_box",
    "project_halfspace",
    "project_marginal_consistency",
    "project_multipliers",
]
