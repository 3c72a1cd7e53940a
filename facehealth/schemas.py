"""
Typed records for everything facehealth writes to disk.

Each record is validated when loaded, so call sites never deal with
loosely-typed JSON.
"""
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .features import FEATURE_COUNT, FEATURE_NAMES
from .trainer import Model
from .validation import CVResult

SCHEMA_VERSION = 1


class _Record(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False, extra="forbid", frozen=True)


class FacialMetricsRecord(_Record):
    captured_at: datetime
    eye_openness_left: float
    eye_openness_right: float
    eye_blink_left: float
    eye_blink_right: float
    eye_squint_left: float
    eye_squint_right: float
    brow_raise_left: float
    brow_raise_right: float
    brow_furrow: float
    smile_left: float
    smile_right: float
    frown_left: float
    frown_right: float
    mouth_open: float
    lip_press: float
    cheek_squint_left: float
    cheek_squint_right: float
    alertness: float
    tension: float
    smile_score: float
    symmetry: float
    head_pitch: float
    head_yaw: float
    head_roll: float

    @classmethod
    def from_vector(cls, captured_at, vector):
        return cls(captured_at=captured_at, **dict(zip(FEATURE_NAMES, vector)))

    def to_vector(self) -> Tuple[float, ...]:
        return tuple(getattr(self, name) for name in FEATURE_NAMES)


class HealthSnapshotRecord(_Record):
    captured_at: datetime
    metrics: Dict[str, Optional[float]] = Field(default_factory=dict)


class CVRecord(_Record):
    actuals: List[float]
    predictions: List[float]
    timestamps: List[datetime]
    r: float
    mae: float
    rmse: float
    mean_actual: float
    feature_importance: Dict[str, float]


class ModelRecord(_Record):
    schema_version: int = SCHEMA_VERSION
    target_name: str
    feature_names: List[str]
    intercept: float
    coefficients: List[float]
    feature_means: List[float]
    feature_std_devs: List[float]
    lambda_: float = Field(alias="lambda", gt=0)
    trained_on: int
    trained_at: datetime
    cv: Optional[CVRecord] = None

    model_config = ConfigDict(allow_inf_nan=False, extra="forbid", frozen=True,
                              populate_by_name=True)

    @field_validator("feature_names")
    @classmethod
    def _same_schema(cls, names):
        if tuple(names) != FEATURE_NAMES:
            raise ValueError("model was trained on a different feature schema")
        return names

    @field_validator("coefficients", "feature_means", "feature_std_devs")
    @classmethod
    def _one_per_feature(cls, values):
        if len(values) != FEATURE_COUNT:
            raise ValueError(f"expected {FEATURE_COUNT} values, got {len(values)}")
        return values


class SnapshotRecord(_Record):
    snapshot_id: str
    name: str
    created_at: datetime
    target_names: List[str]


def model_to_record(model) -> ModelRecord:
    cv = model.cv
    cv_record = None
    if cv is not None:
        cv_record = CVRecord(
            actuals=list(cv.actuals),
            predictions=list(cv.predictions),
            timestamps=list(cv.timestamps),
            r=cv.r,
            mae=cv.mae,
            rmse=cv.rmse,
            mean_actual=cv.mean_actual,
            feature_importance=dict(cv.feature_importance),
        )
    return ModelRecord(
        target_name=model.target_name,
        feature_names=list(FEATURE_NAMES),
        intercept=model.intercept,
        coefficients=list(model.coefficients),
        feature_means=list(model.feature_means),
        feature_std_devs=list(model.feature_std_devs),
        lambda_=model.lam,
        trained_on=model.trained_on,
        trained_at=model.trained_at,
        cv=cv_record,
    )


def record_to_model(record: ModelRecord) -> Model:
    cv = record.cv
    cv_result = None
    if cv is not None:
        cv_result = CVResult(
            actuals=tuple(cv.actuals),
            predictions=tuple(cv.predictions),
            timestamps=tuple(cv.timestamps),
            r=cv.r,
            mae=cv.mae,
            rmse=cv.rmse,
            mean_actual=cv.mean_actual,
            feature_importance=dict(cv.feature_importance),
        )
    return Model(
        target_name=record.target_name,
        intercept=record.intercept,
        coefficients=tuple(record.coefficients),
        feature_means=tuple(record.feature_means),
        feature_std_devs=tuple(record.feature_std_devs),
        lam=record.lambda_,
        trained_on=record.trained_on,
        trained_at=record.trained_at,
        cv=cv_result,
    )
