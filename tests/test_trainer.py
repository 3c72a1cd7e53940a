import math

import pytest
import torch

from facehealth.errors import InsufficientData, NumericInstability
from facehealth.store import Dataset
from facehealth.trainer import Trainer


def _orthogonal_dataset(base_time):
    # feature 0 and feature 1 are uncorrelated after centering; all others constant
    f0 = [1, 2, 3, 4, 5, 6, 7, 8]
    f1 = [1, -1, -1, 1, 1, -1, -1, 1]
    features = []
    for a, b in zip(f0, f1):
        row = [0.5] * 24
        row[0], row[1] = float(a), float(b)
        features.append(tuple(row))
    targets = tuple(2.0 * a - 5.0 * b for a, b in zip(f0, f1))
    return Dataset("target", tuple(base_time for _ in f0), tuple(features), targets)


def test_trainer_fit_recovers_linear_map():
    torch.manual_seed(0)
    T, dim = 100, 5
    X = torch.randn(T, dim, dtype=torch.float64)
    true_W = torch.randn(dim, dtype=torch.float64)
    Y = X @ true_W + 3.0 + 0.01 * torch.randn(T, dtype=torch.float64)
    fit = Trainer().fit(X, Y, lam=1e-6)
    assert fit.coefficients.shape == (dim,)
    mse = torch.mean((fit.predict(X) - Y) ** 2).item()
    assert mse < 0.01


def test_intercept_is_target_mean(noisy_dataset):
    fit = Trainer().fit(noisy_dataset.features, noisy_dataset.targets, lam=10.0)
    assert fit.intercept == pytest.approx(sum(noisy_dataset.targets) / len(noisy_dataset))


def test_inverse_and_solve_agree(noisy_dataset):
    a = Trainer(learning_algo="solve").fit(noisy_dataset.features, noisy_dataset.targets, 1.0)
    b = Trainer(learning_algo="inv").fit(noisy_dataset.features, noisy_dataset.targets, 1.0)
    assert torch.allclose(a.coefficients, b.coefficients, atol=1e-9)


def test_unknown_algorithm():
    with pytest.raises(NotImplementedError):
        Trainer(learning_algo="cholesky").fit([[1.0], [2.0]], [1.0, 2.0], 1.0)


@pytest.mark.parametrize("lam", [0.0, -1.0])
def test_non_positive_lambda_rejected(lam):
    with pytest.raises(ValueError):
        Trainer().fit([[1.0], [2.0]], [1.0, 2.0], lam)


def test_constant_features_get_zero_weight(base_time):
    model = Trainer().train(_orthogonal_dataset(base_time), lam=1.0)
    assert all(c == 0.0 for c in model.coefficients[2:])
    assert model.informative_features == ("eye_openness_left", "eye_openness_right")


def test_train_requires_minimum_samples(base_time):
    ds = _orthogonal_dataset(base_time)
    small = Dataset(ds.target_name, ds.timestamps[:6], ds.features[:6], ds.targets[:6])
    with pytest.raises(InsufficientData) as info:
        Trainer(min_samples=7).train(small, lam=1.0)
    assert info.value.required == 7
    assert info.value.actual == 6


def test_shrinkage_is_monotonic(base_time):
    ds = _orthogonal_dataset(base_time)
    trainer = Trainer()
    sums = [sum(abs(c) for c in trainer.train(ds, lam).coefficients)
            for lam in (0.1, 1.0, 10.0, 100.0)]
    assert all(later <= earlier for earlier, later in zip(sums, sums[1:]))
    assert sums[-1] < sums[0]


def test_model_stats_match_training_data(base_time):
    ds = _orthogonal_dataset(base_time)
    model = Trainer().train(ds, lam=1.0)
    assert model.trained_on == 8
    assert model.feature_means[0] == pytest.approx(4.5)
    assert model.feature_std_devs[0] == pytest.approx(math.sqrt(5.25))
    assert model.feature_std_devs[5] == 0.0


def test_non_finite_solution_raises(monkeypatch, noisy_dataset):
    def broken_solve(A, b):
        return torch.full_like(b, float("nan"))

    monkeypatch.setattr(torch.linalg, "solve", broken_solve)
    with pytest.raises(NumericInstability):
        Trainer().fit(noisy_dataset.features, noisy_dataset.targets, 1.0)
