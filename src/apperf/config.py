"""Configuration loading for the apperf solver.

Loads solver budgets and accelerator settings from YAML configuration
files so training runs are reproducible.
"""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class SolverConfig(BaseModel):
    """ADMM solver configuration.

    Attributes:
        max_iter: ADMM iterations per solve.
        tolerance: Threshold on the duality gap, or on the iterate
            movement when the certificate stage is disabled.
        step_size: Proximal step of the predictor and of the constraint
            multipliers.
        max_cuts: Rounds of the cutting-plane certificate; 0 keeps the
            ADMM iterate as the answer.
    """

    max_iter: int = Field(default=100, gt=0)
    tolerance: float = Field(default=1e-6, gt=0.0)
    step_size: float = Field(default=1.0, gt=0.0)
    max_cuts: int = Field(default=1000, ge=0)


class APPerfConfig(BaseModel):
    """Root configuration for apperf.

    Attributes:
        solver: ADMM solver settings.
        accelerator: Whether inputs are expected on an accelerator device.
            Inputs are always copied to host memory before solving; the
            flag is reported in the solve log.
    """

    solver: SolverConfig = Field(default_factory=SolverConfig)
    accelerator: bool = False


def load_config(path: Path) -> APPerfConfig:
    """Load apperf configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        APPerfConfig with solver and accelerator settings.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return APPerfConfig(
        solver=SolverConfig(**data.get("solver", {})),
        accelerator=bool(data.get("accelerator", False)),
    )
