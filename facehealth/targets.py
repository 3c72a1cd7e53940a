"""
Prediction targets and their derivation from raw health snapshots.

A raw snapshot maps provider metric names (e.g. "Resting Heart Rate (count/min)")
to values, often as strings. Built-in targets are read or derived from it;
any other target name is looked up verbatim.
"""
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

SLEEP_TOTAL_KEY = "Sleep Analysis [Total] (hr)"
SLEEP_DEEP_KEY = "Sleep Analysis [Deep] (hr)"
SLEEP_REM_KEY = "Sleep Analysis [REM] (hr)"
SLEEP_IN_BED_KEY = "Sleep Analysis [In Bed] (hr)"
HRV_KEY = "Heart Rate Variability (ms)"
RESTING_HR_KEY = "Resting Heart Rate (count/min)"

DURATION_WEIGHT, DURATION_TARGET = 40.0, 7.5
DEEP_WEIGHT, DEEP_TARGET = 20.0, 1.5
REM_WEIGHT, REM_TARGET = 20.0, 1.75
EFFICIENCY_WEIGHT = 20.0
UNKNOWN_EFFICIENCY_SCORE = 15.0


@dataclass(frozen=True)
class TargetDefinition:
    target_id: str
    display_name: str
    unit: str


BUILTIN_TARGETS = {
    "sleepScore": TargetDefinition("sleepScore", "Sleep Score", "pts"),
    "hrv": TargetDefinition("hrv", "HRV", "ms"),
    "restingHR": TargetDefinition("restingHR", "Resting Heart Rate", "bpm"),
}


def parse_value(raw) -> Optional[float]:
    """Numbers pass through, numeric strings are parsed, anything else is missing."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class SleepScoreBreakdown:
    total: float
    duration_score: float
    deep_score: float
    rem_score: float
    efficiency_score: float
    efficiency: Optional[float]

    @property
    def status(self) -> str:
        return sleep_score_status(self.total)


def sleep_score_breakdown(total_sleep, deep_sleep=0.0, rem_sleep=0.0, time_in_bed=0.0):
    duration = min(total_sleep / DURATION_TARGET * DURATION_WEIGHT, DURATION_WEIGHT)
    deep = min(deep_sleep / DEEP_TARGET * DEEP_WEIGHT, DEEP_WEIGHT)
    rem = min(rem_sleep / REM_TARGET * REM_WEIGHT, REM_WEIGHT)
    if time_in_bed > 0:
        efficiency = min(total_sleep / time_in_bed, 1.0)
        efficiency_score = efficiency * EFFICIENCY_WEIGHT
    else:
        efficiency = None
        efficiency_score = UNKNOWN_EFFICIENCY_SCORE
    return SleepScoreBreakdown(
        total=duration + deep + rem + efficiency_score,
        duration_score=duration,
        deep_score=deep,
        rem_score=rem,
        efficiency_score=efficiency_score,
        efficiency=efficiency,
    )


def sleep_score(snapshot: Mapping) -> Optional[float]:
    """0-100 score, or None when the snapshot has no positive total sleep."""
    total = parse_value(snapshot.get(SLEEP_TOTAL_KEY))
    if total is None or total <= 0:
        return None
    return sleep_score_breakdown(
        total,
        parse_value(snapshot.get(SLEEP_DEEP_KEY)) or 0.0,
        parse_value(snapshot.get(SLEEP_REM_KEY)) or 0.0,
        parse_value(snapshot.get(SLEEP_IN_BED_KEY)) or 0.0,
    ).total


def sleep_score_status(score: float) -> str:
    if score >= 85:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 60:
        return "fair"
    return "poor"


def extract_target(target_id: str, snapshot: Mapping) -> Optional[float]:
    if target_id == "sleepScore":
        return sleep_score(snapshot)
    if target_id == "hrv":
        return parse_value(snapshot.get(HRV_KEY))
    if target_id == "restingHR":
        return parse_value(snapshot.get(RESTING_HR_KEY))
    return parse_value(snapshot.get(target_id))


def display_name(target_id: str) -> str:
    definition = BUILTIN_TARGETS.get(target_id)
    return definition.display_name if definition else target_id


def targets_from_health_snapshot(snapshot: Mapping, custom_targets=()) -> Dict[str, Optional[float]]:
    """
    Turn a raw provider snapshot into the `targets` mapping of a Sample.

    Every numeric raw metric is kept under its own name, the built-in targets
    are added, and each name in `custom_targets` is present (None if absent).
    """
    targets = {}
    for key, raw in snapshot.items():
        value = parse_value(raw)
        if value is not None:
            targets[key] = value
    for target_id in BUILTIN_TARGETS:
        targets[target_id] = extract_target(target_id, snapshot)
    for target_id in custom_targets:
        targets.setdefault(target_id, extract_target(target_id, snapshot))
    return targets
