import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np
import torch

from .errors import InsufficientData, NumericInstability
from .features import FEATURE_NAMES, validate_feature_vector
from .utils import as_tensor, standardization_stats, standardize, SPREAD_EPS

if TYPE_CHECKING:
    from .validation import CVResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RidgeFit:
    """Result of one closed-form solve, in standardized feature space."""
    intercept: float
    coefficients: torch.Tensor
    means: torch.Tensor
    stds: torch.Tensor

    def predict(self, X: torch.Tensor) -> torch.Tensor:
        Z = standardize(X, self.means, self.stds)
        return self.intercept + Z @ self.coefficients


@dataclass(frozen=True)
class Model:
    target_name: str
    intercept: float
    coefficients: Tuple[float, ...]
    feature_means: Tuple[float, ...]
    feature_std_devs: Tuple[float, ...]
    lam: float
    trained_on: int
    trained_at: datetime
    cv: Optional["CVResult"] = None

    @property
    def informative_features(self) -> Tuple[str, ...]:
        return tuple(name for name, mean, std in
                     zip(FEATURE_NAMES, self.feature_means, self.feature_std_devs)
                     if std > SPREAD_EPS * (1.0 + abs(mean)))

    def predict(self, feature_vector) -> float:
        """Point estimate for one vector using the frozen training statistics."""
        x = as_tensor(validate_feature_vector(feature_vector))
        z = standardize(x, as_tensor(self.feature_means), as_tensor(self.feature_std_devs))
        return self.intercept + float(torch.dot(z, as_tensor(self.coefficients)))


class Trainer:
    """
    Standardized ridge regression with an unpenalized intercept.

    fit() is a pure function of its inputs so cross-validation folds can share
    one Trainer, including across threads.
    """

    def __init__(self, min_samples=7, learning_algo="solve"):
        self.min_samples = min_samples
        self.learning_algo = learning_algo

    def fit(self, X, Y, lam) -> RidgeFit:
        """
        X: (n, d) raw features
        Y: (n,) targets
        lam: penalty strength, must be > 0
        """
        if not lam > 0:
            raise ValueError(f"ridge penalty must be > 0, got {lam}")
        X = as_tensor(X)
        Y = as_tensor(Y).reshape(-1)
        n, d = X.shape

        means, stds = standardization_stats(X)
        Z = standardize(X, means, stds)

        # intercept is column 0 and stays out of the penalty
        Xa = torch.cat([torch.ones(n, 1, dtype=Z.dtype), Z], dim=1)
        xTx = Xa.T @ Xa
        xTy = Xa.T @ Y
        penalty = torch.full((d + 1,), float(lam), dtype=Z.dtype)
        penalty[0] = 0.0
        A = xTx + torch.diag(penalty)

        if self.learning_algo == "solve":
            beta = torch.linalg.solve(A, xTy)
        elif self.learning_algo == "inv":
            beta = torch.linalg.inv(A) @ xTy
        else:
            raise NotImplementedError(f"Learning algorithm '{self.learning_algo}' not implemented.")

        if logger.isEnabledFor(logging.DEBUG):
            self.debug_covariance(A)

        if not bool(torch.isfinite(beta).all()):
            raise NumericInstability(
                f"ridge solve produced non-finite coefficients (lambda={lam})")

        return RidgeFit(intercept=beta[0].item(), coefficients=beta[1:],
                        means=means, stds=stds)

    def train(self, dataset, lam, cv=None, trained_at=None) -> Model:
        """Fit a Model on a whole Dataset (see SampleStore.dataset_for)."""
        if len(dataset) < self.min_samples:
            raise InsufficientData(dataset.target_name, self.min_samples, len(dataset))

        fit = self.fit(dataset.features, dataset.targets, lam)
        coefficients = tuple(fit.coefficients.tolist())
        if not all(math.isfinite(c) for c in coefficients + (fit.intercept,)):
            raise NumericInstability(f"non-finite model for '{dataset.target_name}'")

        return Model(
            target_name=dataset.target_name,
            intercept=fit.intercept,
            coefficients=coefficients,
            feature_means=tuple(fit.means.tolist()),
            feature_std_devs=tuple(fit.stds.tolist()),
            lam=float(lam),
            trained_on=len(dataset),
            trained_at=trained_at or datetime.now(timezone.utc),
            cv=cv,
        )

    @staticmethod
    def debug_covariance(A: torch.Tensor):
        # inspect the regularized normal matrix for conditioning issues
        arr = A.cpu().numpy()
        rank = np.linalg.matrix_rank(arr)
        cond = np.linalg.cond(arr)
        logger.debug("normal matrix shape: %s, rank: %d, condition #: %.2e",
                     arr.shape, rank, cond)

