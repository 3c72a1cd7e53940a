from datetime import datetime, timedelta, timezone

import pytest
import torch

from facehealth import FaceHealthConfig, FaceHealthContext, FEATURE_COUNT
from facehealth.store import Dataset, SampleStore

BASE_TIME = datetime(2026, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


def vector(**by_index):
    v = [0.0] * FEATURE_COUNT
    for key, value in by_index.items():
        v[int(key.lstrip("f"))] = float(value)
    return v


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def make_vector():
    return vector


@pytest.fixture
def store():
    return SampleStore()


@pytest.fixture
def linear_context():
    """10 samples with feature_0 = 1..10 and target = 3 * feature_0 + 2."""
    ctx = FaceHealthContext()
    for i in range(1, 11):
        ctx.add_sample(vector(f0=i), {"target": 3.0 * i + 2.0},
                       BASE_TIME + timedelta(days=i))
    return ctx


@pytest.fixture
def noisy_dataset():
    """30 samples, all 24 features random, target a noisy mix of three of them."""
    gen = torch.Generator().manual_seed(7)
    X = torch.randn(30, FEATURE_COUNT, generator=gen, dtype=torch.float64)
    y = 4.0 * X[:, 0] - 2.0 * X[:, 5] + X[:, 17] + 0.5 * torch.randn(30, generator=gen, dtype=torch.float64)
    return Dataset(target_name="hrv",
                   timestamps=tuple(BASE_TIME + timedelta(days=i) for i in range(30)),
                   features=tuple(tuple(row) for row in X.tolist()),
                   targets=tuple(y.tolist()))


@pytest.fixture
def storage_config(tmp_path):
    return FaceHealthConfig(storage_dir=tmp_path)
