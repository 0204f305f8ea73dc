"""PyTorch boundary: the adversarial objective as a differentiable op.

Usage::

    metric = create_metric("f1_score")
    loss = ap_objective(model(x).squeeze(-1), y, metric)
    loss.backward()

Requires the ``torch`` extra.
"""
from __future__ import annotations

from typing import Any

import torch

from apperf.config import APPerfConfig
from apperf.metric.base import PerformanceMetric
from apperf.objective import objective

ACCELERATOR_AVAILABLE: bool = torch.cuda.is_available()


class APObjective(torch.autograd.Function):
    """Loss ``-(W + f . y)`` in the forward pass, ``q - y`` in the backward pass."""

    @staticmethod
    def forward(  # type: ignore[override]
        ctx: Any,
        scores: torch.Tensor,
        labels: torch.Tensor,
        metric: PerformanceMetric,
        config: APPerfConfig,
    ) -> torch.Tensor:
        result = objective(metric, scores.detach(), labels.detach(), config)
        gradient = torch.as_tensor(result.gradient, dtype=scores.dtype, device=scores.device)
        ctx.save_for_backward(gradient)
        return torch.tensor(result.value, dtype=scores.dtype, device=scores.device)

    @staticmethod
    def backward(  # type: ignore[override]
        ctx: Any,
        grad_output: torch.Tensor,
    ) -> tuple[torch.Tensor, None, None, None]:
        (gradient,) = ctx.saved_tensors
        return grad_output * gradient, None, None, None


def ap_objective(
    scores: torch.Tensor,
    labels: torch.Tensor,
    metric: PerformanceMetric,
    config: APPerfConfig | None = None,
) -> torch.Tensor:
    """Differentiable adversarial objective of one batch.

    Args:
        scores: Predictor scores, shape (m,), on any device.
        labels: Binary labels, shape (m,).
        metric: Metric to optimize.
        config: Solver settings; by default the accelerator flag follows
            ``ACCELERATOR_AVAILABLE``.

    Returns:
        Scalar loss tensor on the device of ``scores``.
    """
    cfg = config or APPerfConfig(accelerator=ACCELERATOR_AVAILABLE)
    return APObjective.apply(scores, labels, metric, cfg)
