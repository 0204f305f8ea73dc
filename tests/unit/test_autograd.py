"""Tests for the PyTorch autograd boundary."""
from __future__ import annotations

import numpy as np
import pytest

torch = pytest.importorskip("torch")

from apperf.autograd import ACCELERATOR_AVAILABLE, APObjective, ap_objective  # noqa: E402
from apperf.config import APPerfConfig  # noqa: E402
from apperf.metric import create_metric  # noqa: E402
from apperf.objective import objective  # noqa: E402

CONFIG = APPerfConfig()


class TestAPObjective:
    """Forward value and backward gradient."""

    def test_forward_matches_facade(self) -> None:
        metric = create_metric("f1_score")
        scores = torch.tensor([0.3, -0.2, 0.5, 0.0], dtype=torch.float64, requires_grad=True)
        labels = torch.tensor([1.0, 0.0, 1.0, 0.0], dtype=torch.float64)
        loss = ap_objective(scores, labels, metric, CONFIG)
        expected = objective(metric, scores.detach().numpy(), labels.numpy(), CONFIG)
        assert loss.item() == pytest.approx(expected.value, abs=1e-9)
        assert loss.dtype == torch.float64

    def test_backward_returns_q_minus_y(self) -> None:
        metric = create_metric("f1_score")
        scores = torch.tensor([0.3, -0.2, 0.5], dtype=torch.float64, requires_grad=True)
        labels = torch.tensor([1.0, 0.0, 1.0], dtype=torch.float64)
        loss = ap_objective(scores, labels, metric, CONFIG)
        loss.backward()
        expected = objective(metric, scores.detach().numpy(), labels.numpy(), CONFIG)
        np.testing.assert_allclose(scores.grad.numpy(), expected.gradient, atol=1e-9)

    def test_upstream_gradient_scales(self) -> None:
        metric = create_metric("f1_score")
        scores = torch.tensor([0.1, 0.2], dtype=torch.float64, requires_grad=True)
        labels = torch.tensor([1.0, 0.0], dtype=torch.float64)
        (3.0 * APObjective.apply(scores, labels, metric, CONFIG)).backward()
        expected = objective(metric, [0.1, 0.2], [1, 0], CONFIG)
        np.testing.assert_allclose(scores.grad.numpy(), 3.0 * expected.gradient, atol=1e-9)

    def test_float32_model_output(self) -> None:
        layer = torch.nn.Linear(2, 1)
        features = torch.randn(4, 2)
        labels = torch.tensor([1.0, 0.0, 1.0, 0.0])
        loss = ap_objective(layer(features).squeeze(-1), labels, create_metric("f1_score"), CONFIG)
        loss.backward()
        assert layer.weight.grad is not None
        assert loss.dtype == torch.float32

    def test_accelerator_flag_is_bool(self) -> None:
        assert isinstance(ACCELERATOR_AVAILABLE, bool)


class TestFacadeWithTensors:
    """Tensors passed straight to the numpy facade."""

    def test_grad_requiring_scores_under_default_config(self) -> None:
        metric = create_metric("f1_score")
        scores = torch.tensor([0.3, -0.2, 0.5, 0.0], dtype=torch.float64, requires_grad=True)
        labels = torch.tensor([1.0, 0.0, 1.0, 0.0], dtype=torch.float64)
        result = objective(metric, scores, labels)
        expected = objective(metric, [0.3, -0.2, 0.5, 0.0], [1, 0, 1, 0])
        assert result.value == pytest.approx(expected.value, abs=1e-12)
        np.testing.assert_allclose(result.gradient, expected.gradient, atol=1e-12)
        assert scores.grad is None

    def test_accelerator_off_still_copies_to_host(self) -> None:
        scores = torch.tensor([0.1, 0.2], requires_grad=True)
        result = objective(
            create_metric("f1_score"), scores, torch.tensor([1, 0]), APPerfConfig(accelerator=False)
        )
        assert isinstance(result.gradient, np.ndarray)
        assert result.gradient.shape == (2,)
