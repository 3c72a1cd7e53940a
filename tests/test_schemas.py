import pytest
from pydantic import ValidationError

from facehealth.features import FEATURE_NAMES
from facehealth.schemas import FacialMetricsRecord, ModelRecord, model_to_record


def test_facial_metrics_record_round_trip(base_time, make_vector):
    vector = tuple(make_vector(f0=0.1, f23=0.9))
    record = FacialMetricsRecord.from_vector(base_time, vector)
    assert record.to_vector() == vector
    assert FacialMetricsRecord.model_validate_json(record.model_dump_json()) == record


def test_facial_metrics_record_rejects_nan(base_time, make_vector):
    values = dict(zip(FEATURE_NAMES, make_vector()))
    values["brow_furrow"] = float("nan")
    with pytest.raises(ValidationError):
        FacialMetricsRecord(captured_at=base_time, **values)


def test_model_record_checks_feature_schema(linear_context):
    record = model_to_record(linear_context.train("target"))
    data = record.model_dump(by_alias=True)
    assert data["lambda"] == 0.1

    data["feature_names"] = list(reversed(data["feature_names"]))
    with pytest.raises(ValidationError):
        ModelRecord.model_validate(data)

    data = record.model_dump(by_alias=True)
    data["coefficients"] = data["coefficients"][:-1]
    with pytest.raises(ValidationError):
        ModelRecord.model_validate(data)
