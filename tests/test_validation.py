from datetime import timedelta

import pytest

from facehealth.errors import InsufficientData
from facehealth.features import FEATURE_NAMES
from facehealth.store import Dataset
from facehealth.trainer import Trainer
from facehealth.validation import CrossValidator
from facehealth.utils import as_tensor


@pytest.fixture
def validator():
    return CrossValidator(Trainer(min_samples=7), lambda_grid=(0.1, 1.0, 10.0, 100.0))


def _linear_dataset(base_time, make_vector, n=10):
    xs = range(1, n + 1)
    return Dataset(
        target_name="target",
        timestamps=tuple(base_time + timedelta(days=i) for i in xs),
        features=tuple(tuple(make_vector(f0=i)) for i in xs),
        targets=tuple(3.0 * i + 2.0 for i in xs),
    )


def test_perfect_fit_selects_small_lambda(validator, base_time, make_vector):
    ds = _linear_dataset(base_time, make_vector)
    lam, cv = validator.select_lambda(ds)
    assert lam == 0.1
    assert cv.r > 0.99
    assert cv.mae < 0.2
    assert cv.sample_count == 10
    assert cv.actuals == ds.targets
    assert cv.timestamps == ds.timestamps


def test_error_shrinks_with_more_samples(validator, base_time, make_vector):
    small = validator.leave_one_out(_linear_dataset(base_time, make_vector, 10), 0.1)
    large = validator.leave_one_out(_linear_dataset(base_time, make_vector, 40), 0.1)
    assert large.r == pytest.approx(1.0, abs=1e-9)
    assert large.mae < small.mae


def test_fold_statistics_exclude_held_out_sample(validator, noisy_dataset):
    cv = validator.leave_one_out(noisy_dataset, 1.0)
    # refit fold 3 by hand
    X = as_tensor(noisy_dataset.features)
    Y = as_tensor(noisy_dataset.targets)
    keep = [i for i in range(len(noisy_dataset)) if i != 3]
    fit = Trainer().fit(X[keep], Y[keep], 1.0)
    assert cv.predictions[3] == pytest.approx(fit.predict(X[3:4]).item(), abs=1e-12)


def test_metrics_consistent_with_pairs(validator, noisy_dataset):
    cv = validator.leave_one_out(noisy_dataset, 10.0)
    errors = [a - p for a, p in cv.pairs]
    assert cv.mae == pytest.approx(sum(abs(e) for e in errors) / len(errors))
    assert cv.rmse == pytest.approx((sum(e * e for e in errors) / len(errors)) ** 0.5)
    assert cv.mean_actual == pytest.approx(sum(noisy_dataset.targets) / len(noisy_dataset))
    assert [r for _, r in cv.residuals()] == pytest.approx(errors)


def test_feature_importance_normalized_and_ranked(validator, noisy_dataset):
    cv = validator.leave_one_out(noisy_dataset, 1.0)
    assert list(cv.feature_importance) == list(FEATURE_NAMES)
    assert sum(cv.feature_importance.values()) == pytest.approx(1.0)
    assert all(v >= 0 for v in cv.feature_importance.values())
    assert cv.ranked_importance()[0][0] == FEATURE_NAMES[0]


def test_importance_ignores_constant_features(validator, base_time, make_vector):
    cv = validator.leave_one_out(_linear_dataset(base_time, make_vector), 1.0)
    assert cv.feature_importance[FEATURE_NAMES[0]] == pytest.approx(1.0)
    assert all(cv.feature_importance[name] == 0.0 for name in FEATURE_NAMES[1:])


def test_all_zero_importance_when_no_feature_varies(validator, base_time, make_vector):
    ds = Dataset("target",
                 tuple(base_time + timedelta(days=i) for i in range(8)),
                 tuple(tuple(make_vector()) for _ in range(8)),
                 tuple(float(i) for i in range(8)))
    cv = validator.leave_one_out(ds, 1.0)
    assert all(v == 0.0 for v in cv.feature_importance.values())
    # with no signal each fold falls back to the mean of the other targets
    assert list(cv.predictions) == pytest.approx([(28.0 - i) / 7.0 for i in range(8)])


def test_ties_go_to_larger_lambda(validator, base_time, make_vector):
    # constant target: every penalty predicts it perfectly
    ds = Dataset("target",
                 tuple(base_time + timedelta(days=i) for i in range(8)),
                 tuple(tuple(make_vector(f0=i)) for i in range(8)),
                 tuple(5.0 for _ in range(8)))
    lam, cv = validator.select_lambda(ds)
    assert lam == 100.0
    assert cv.rmse == pytest.approx(0.0, abs=1e-9)


def test_insufficient_data_checked_before_any_fold(validator, base_time, make_vector, monkeypatch):
    calls = []
    monkeypatch.setattr(validator.trainer, "fit", lambda *a, **k: calls.append(a))
    ds = _linear_dataset(base_time, make_vector, n=6)
    with pytest.raises(InsufficientData):
        validator.select_lambda(ds)
    with pytest.raises(InsufficientData):
        validator.leave_one_out(ds, 1.0)
    assert calls == []


def test_parallel_folds_match_sequential(noisy_dataset):
    sequential = CrossValidator(Trainer(), max_workers=1).select_lambda(noisy_dataset)
    parallel = CrossValidator(Trainer(), max_workers=4).select_lambda(noisy_dataset)
    assert sequential == parallel


def test_select_lambda_is_deterministic(validator, noisy_dataset):
    assert validator.select_lambda(noisy_dataset) == validator.select_lambda(noisy_dataset)
