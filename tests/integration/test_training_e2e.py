"""Integration tests: metric definition to training signal, end to end."""
from __future__ import annotations

import json
import warnings
from pathlib import Path

import numpy as np
import pytest
import yaml
from typer.testing import CliRunner

from apperf.cli import app
from apperf.config import load_config
from apperf.core.exceptions import NonConvergenceWarning
from apperf.metric import (
    PerformanceMetric,
    create_metric,
    cs_special_case_positive,
    register_metric,
    special_case_positive,
)
from apperf.metric.statistics import ConfusionMatrix
from apperf.objective import compute_constraints, compute_metric, objective

runner = CliRunner()


@register_metric("e2e_recall_given_f1")
class RecallGivenF1(PerformanceMetric):
    """Recall subject to an F1 floor, defined the way a user would."""

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold
        super().__init__()
        special_case_positive(self)
        cs_special_case_positive(self)

    def define(self, C: ConfusionMatrix):  # type: ignore[no-untyped-def]
        return C.tp / C.ap

    def constraint(self, C: ConfusionMatrix):  # type: ignore[no-untyped-def]
        return 2 * C.tp / (C.pp + C.ap) >= self.threshold


@pytest.fixture
def solver_config_file(tmp_path: Path) -> Path:
    """YAML solver configuration as a training run would ship it."""
    path = tmp_path / "apperf.yaml"
    path.write_text(yaml.dump({"solver": {"max_iter": 100, "tolerance": 1e-6}}))
    return path


class TestGradientDescentOnScores:
    """The gradient drives scores toward the labels."""

    def test_scores_separate_and_loss_decreases(self, solver_config_file: Path) -> None:
        config = load_config(solver_config_file)
        metric = create_metric("f1_score")
        labels = np.array([1, 0, 1, 0, 0], dtype=float)
        scores = np.zeros(5)

        with warnings.catch_warnings():
            warnings.simplefilter("error", NonConvergenceWarning)
            initial = objective(metric, scores, labels, config).value
            losses = []
            for _ in range(15):
                result = objective(metric, scores, labels, config)
                losses.append(result.value)
                scores = scores - 0.5 * result.gradient

        assert scores[labels == 1].min() >= scores[labels == 0].max()
        assert losses[-1] <= initial + 1e-2


class TestUserDefinedMetric:
    """A metric registered outside the library flows through every layer."""

    def test_evaluation_and_constraints(self) -> None:
        metric = create_metric("e2e_recall_given_f1", 0.5)
        assert compute_metric(metric, [1, 1, 0, 0], [1, 0, 1, 0]) == pytest.approx(0.5)
        assert compute_constraints(metric, [1, 1, 0, 0], [1, 0, 1, 0]) == [pytest.approx(0.5)]

    def test_solver_respects_constraint(self, solver_config_file: Path) -> None:
        metric = create_metric("e2e_recall_given_f1", 0.5)
        config = load_config(solver_config_file)
        with warnings.catch_warnings():
            warnings.simplefilter("error", NonConvergenceWarning)
            result = objective(metric, [0.2, -0.1, 0.4, -0.3], [1, 0, 1, 0], config)
        assert result.constraint_values[0] >= 0.5 - 1e-6
        assert result.gradient.shape == (4,)

    def test_cli_round_trip(self, tmp_path: Path, solver_config_file: Path) -> None:
        listing = runner.invoke(app, ["metrics"])
        assert "e2e_recall_given_f1" in listing.output

        batch = tmp_path / "batch.json"
        batch.write_text(json.dumps({"scores": [0.2, -0.1, 0.4], "labels": [1, 0, 1]}))
        out = tmp_path / "result.json"
        result = runner.invoke(app, [
            "objective", "--batch", str(batch), "--metric", "e2e_recall_given_f1",
            "--param", "0.5", "--config", str(solver_config_file), "--output", str(out),
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text())
        assert data["constraints"][0] >= 0.5 - 1e-6


class TestTorchTraining:
    """A few optimizer steps on a linear model."""

    def test_linear_model_step(self) -> None:
        torch = pytest.importorskip("torch")
        from apperf.autograd import ap_objective

        torch.manual_seed(0)
        features = torch.tensor([[1.0, 0.2], [-0.8, 0.1], [0.9, -0.3], [-1.1, 0.4]])
        labels = torch.tensor([1.0, 0.0, 1.0, 0.0])
        model = torch.nn.Linear(2, 1)
        optimizer = torch.optim.SGD(model.parameters(), lr=0.1)
        metric = create_metric("f1_score")

        with warnings.catch_warnings():
            warnings.simplefilter("error", NonConvergenceWarning)
            for _ in range(5):
                optimizer.zero_grad()
                loss = ap_objective(model(features).squeeze(-1), labels, metric)
                loss.backward()
                optimizer.step()

        assert torch.isfinite(loss)
        assert model.weight.grad is not None
