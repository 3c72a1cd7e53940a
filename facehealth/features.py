import math

import numpy as np

from .errors import InvalidFeatureVector

# Order matters: coefficients, means and stddevs are indexed by position.
FEATURE_NAMES = (
    "eye_openness_left",
    "eye_openness_right",
    "eye_blink_left",
    "eye_blink_right",
    "eye_squint_left",
    "eye_squint_right",
    "brow_raise_left",
    "brow_raise_right",
    "brow_furrow",
    "smile_left",
    "smile_right",
    "frown_left",
    "frown_right",
    "mouth_open",
    "lip_press",
    "cheek_squint_left",
    "cheek_squint_right",
    "alertness",
    "tension",
    "smile_score",
    "symmetry",
    "head_pitch",
    "head_yaw",
    "head_roll",
)

FEATURE_COUNT = len(FEATURE_NAMES)


def validate_feature_vector(values) -> tuple:
    """Return the vector as a tuple of floats, or raise InvalidFeatureVector."""
    try:
        vector = tuple(float(v) for v in values)
    except (TypeError, ValueError) as exc:
        raise InvalidFeatureVector(f"feature vector is not numeric: {exc}") from exc

    if len(vector) != FEATURE_COUNT:
        raise InvalidFeatureVector(
            f"expected {FEATURE_COUNT} features, got {len(vector)}")
    finite = np.isfinite(np.asarray(vector, dtype=np.float64))
    if not finite.all():
        bad = [FEATURE_NAMES[i] for i in np.flatnonzero(~finite)]
        raise InvalidFeatureVector(f"non-finite values for: {', '.join(bad)}")
    return vector


def feature_vector_from_metrics(metrics) -> tuple:
    """Build a vector from a mapping keyed by feature name."""
    missing = [name for name in FEATURE_NAMES if name not in metrics]
    if missing:
        raise InvalidFeatureVector(f"missing features: {', '.join(missing)}")
    return validate_feature_vector(metrics[name] for name in FEATURE_NAMES)


def is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
