import torch

DTYPE = torch.float64

# Columns whose spread is below this, relative to their magnitude, count as constant.
SPREAD_EPS = 1e-12


def as_tensor(values) -> torch.Tensor:
    """Convert nested sequences of numbers to a float64 tensor."""
    return torch.as_tensor(values, dtype=DTYPE)


def mean_absolute_error(predictions: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
    """Mean absolute error between predictions and targets."""
    return torch.mean(torch.abs(predictions - targets))


def mean_squared_error(predictions: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
    """Mean squared error between predictions and targets."""
    return torch.mean((predictions - targets) ** 2)


def root_mean_squared_error(predictions: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
    """Root mean squared error between predictions and targets."""
    return torch.sqrt(mean_squared_error(predictions, targets))


def pearson_correlation(actual: torch.Tensor, predicted: torch.Tensor) -> float:
    """Pearson r of two 1-D sequences; 0.0 when either has zero variance."""
    if actual.numel() < 2 or actual.numel() != predicted.numel():
        return 0.0
    da = actual - actual.mean()
    dp = predicted - predicted.mean()
    denom = torch.sqrt(torch.sum(da * da) * torch.sum(dp * dp))
    if denom.item() <= 0.0:
        return 0.0
    r = (torch.sum(da * dp) / denom).item()
    # rounding can push |r| a hair past 1
    return max(-1.0, min(1.0, r))


def standardization_stats(X: torch.Tensor):
    """Per-column mean and population standard deviation of X (n, d)."""
    means = X.mean(dim=0)
    stds = torch.sqrt(torch.mean((X - means) ** 2, dim=0))
    return means, stds


def standardize(X: torch.Tensor, means: torch.Tensor, stds: torch.Tensor) -> torch.Tensor:
    """
    Scale X with frozen statistics. Columns with zero spread map to 0 for every
    row, at training and at inference time alike.
    """
    informative = stds > SPREAD_EPS * (1.0 + means.abs())
    safe = torch.where(informative, stds, torch.ones_like(stds))
    Z = (X - means) / safe
    return torch.where(informative, Z, torch.zeros_like(Z))
