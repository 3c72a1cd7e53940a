import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Tuple

import torch

from .errors import InsufficientData
from .features import FEATURE_NAMES
from .trainer import Trainer
from .utils import (as_tensor, mean_absolute_error, pearson_correlation,
                    root_mean_squared_error, SPREAD_EPS)

logger = logging.getLogger(__name__)

# Relative RMSE difference below which two penalties count as tied.
TIE_TOLERANCE = 1e-12


@dataclass(frozen=True)
class CVResult:
    """Leave-one-out diagnostics, one entry per held-out sample in dataset order."""
    actuals: Tuple[float, ...]
    predictions: Tuple[float, ...]
    timestamps: Tuple[datetime, ...]
    r: float
    mae: float
    rmse: float
    mean_actual: float
    feature_importance: Dict[str, float]

    @property
    def pairs(self) -> List[Tuple[float, float]]:
        return list(zip(self.actuals, self.predictions))

    @property
    def sample_count(self) -> int:
        return len(self.actuals)

    def residuals(self) -> List[Tuple[datetime, float]]:
        return [(ts, a - p) for ts, a, p in zip(self.timestamps, self.actuals, self.predictions)]

    def ranked_importance(self) -> List[Tuple[str, float]]:
        return sorted(self.feature_importance.items(), key=lambda kv: kv[1], reverse=True)


class CrossValidator:
    def __init__(self, trainer: Trainer, lambda_grid=(0.1, 1.0, 10.0, 100.0), max_workers=1):
        self.trainer = trainer
        self.lambda_grid = tuple(sorted(lambda_grid))
        self.max_workers = max_workers

    def leave_one_out(self, dataset, lam) -> CVResult:
        """Run every fold for one penalty."""
        self._check_size(dataset)
        return self._leave_one_out(dataset, as_tensor(dataset.features),
                                   as_tensor(dataset.targets), lam)

    def select_lambda(self, dataset):
        """
        Grid search over lambda_grid by leave-one-out RMSE.

        Returns (lam, CVResult). Ties go to the larger penalty.
        """
        self._check_size(dataset)
        X = as_tensor(dataset.features)
        Y = as_tensor(dataset.targets)

        best_lam, best_cv = None, None
        for lam in self.lambda_grid:
            cv = self._leave_one_out(dataset, X, Y, lam)
            logger.debug("%s: lambda=%g r=%.4f mae=%.4f rmse=%.4f",
                         dataset.target_name, lam, cv.r, cv.mae, cv.rmse)
            # grid is ascending, so "<= within tolerance" hands ties to the larger lambda
            if best_cv is None or cv.rmse <= best_cv.rmse + TIE_TOLERANCE * max(1.0, best_cv.rmse):
                best_lam, best_cv = lam, cv

        logger.info("%s: selected lambda=%g (LOO r=%.3f, rmse=%.4f, n=%d)",
                    dataset.target_name, best_lam, best_cv.r, best_cv.rmse, len(dataset))
        return best_lam, best_cv

    def _check_size(self, dataset):
        if len(dataset) < self.trainer.min_samples:
            raise InsufficientData(dataset.target_name, self.trainer.min_samples, len(dataset))

    def _fold(self, X, Y, i, lam):
        # statistics and coefficients come from the fold only, never from sample i
        keep = torch.arange(X.shape[0]) != i
        fit = self.trainer.fit(X[keep], Y[keep], lam)
        prediction = fit.predict(X[i:i + 1]).item()
        informative = fit.stds > SPREAD_EPS * (1.0 + fit.means.abs())
        magnitude = torch.where(informative, fit.coefficients.abs(),
                                torch.zeros_like(fit.coefficients))
        return prediction, magnitude

    def _leave_one_out(self, dataset, X, Y, lam) -> CVResult:
        n = X.shape[0]
        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                # map() yields in submission order, i.e. dataset order
                folds = list(pool.map(lambda i: self._fold(X, Y, i, lam), range(n)))
        else:
            folds = [self._fold(X, Y, i, lam) for i in range(n)]

        predictions = as_tensor([p for p, _ in folds])
        importance = torch.stack([m for _, m in folds]).mean(dim=0)
        total = importance.sum().item()
        if total > 0:
            importance = importance / total
        else:
            importance = torch.zeros_like(importance)

        return CVResult(
            actuals=tuple(Y.tolist()),
            predictions=tuple(predictions.tolist()),
            timestamps=tuple(dataset.timestamps),
            r=pearson_correlation(Y, predictions),
            mae=mean_absolute_error(predictions, Y).item(),
            rmse=root_mean_squared_error(predictions, Y).item(),
            mean_actual=Y.mean().item(),
            feature_importance=dict(zip(FEATURE_NAMES, importance.tolist())),
        )
