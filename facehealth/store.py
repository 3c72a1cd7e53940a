import logging
import math
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .errors import (DuplicateTimestamp, InvalidTargetValue, PersistenceFailure,
                     SampleNotFound, TargetAlreadySet)
from .features import is_finite_number, validate_feature_vector
from .storage import SampleFiles, capture_id, to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
    feature_vector: Tuple[float, ...]
    targets: Mapping[str, Optional[float]]
    captured_at: datetime

    @property
    def capture_id(self) -> str:
        return capture_id(self.captured_at)

    def target(self, name) -> Optional[float]:
        return self.targets.get(name)


@dataclass(frozen=True)
class Dataset:
    """Samples that carry a value for one target, oldest first."""
    target_name: str
    timestamps: Tuple[datetime, ...] = ()
    features: Tuple[Tuple[float, ...], ...] = ()
    targets: Tuple[float, ...] = ()

    def __len__(self):
        return len(self.targets)


def _clean_targets(targets) -> Mapping[str, Optional[float]]:
    cleaned = {}
    for name, value in (targets or {}).items():
        if value is not None:
            if not is_finite_number(value):
                raise InvalidTargetValue(f"target '{name}' must be a finite number, got {value!r}")
            value = float(value)
        cleaned[str(name)] = value
    return MappingProxyType(cleaned)


class SampleStore:
    """
    Owns every Sample. Timestamps are unique at `timestamp_resolution_seconds`
    and kept in UTC; naive timestamps are read as local time.
    When `directory` is given each sample is mirrored to two JSON records.
    """

    def __init__(self, timestamp_resolution_seconds=1.0, allow_target_overwrite=False,
                 directory=None):
        self.resolution = timestamp_resolution_seconds
        self.allow_target_overwrite = allow_target_overwrite
        self.files = SampleFiles(directory) if directory is not None else None
        self._samples = {}
        self._lock = threading.RLock()
        if self.files is not None:
            self._load()

    @classmethod
    def from_config(cls, config):
        return cls(timestamp_resolution_seconds=config.timestamp_resolution_seconds,
                   allow_target_overwrite=config.allow_target_overwrite,
                   directory=config.storage_dir)

    def _key(self, timestamp: datetime) -> int:
        return math.floor(to_utc(timestamp).timestamp() / self.resolution)

    def _load(self):
        for metrics, health in self.files.load_all():
            key = self._key(metrics.captured_at)
            if key in self._samples:
                raise PersistenceFailure(
                    f"two stored samples share the instant {metrics.captured_at.isoformat()}")
            targets = health.metrics if health is not None else {}
            self._samples[key] = Sample(feature_vector=metrics.to_vector(),
                                        targets=_clean_targets(targets),
                                        captured_at=to_utc(metrics.captured_at))
        logger.info("loaded %d stored samples", len(self._samples))

    def __len__(self):
        with self._lock:
            return len(self._samples)

    def add_sample(self, feature_vector, targets, captured_at) -> Sample:
        # naive and aware inputs share one UTC timeline
        captured_at = to_utc(captured_at)
        sample = Sample(feature_vector=validate_feature_vector(feature_vector),
                        targets=_clean_targets(targets),
                        captured_at=captured_at)
        key = self._key(captured_at)
        with self._lock:
            if key in self._samples:
                raise DuplicateTimestamp(captured_at)
            if self.files is not None:
                self.files.save(sample)
            self._samples[key] = sample
        logger.info("stored sample %s with targets %s", sample.capture_id,
                    sorted(k for k, v in sample.targets.items() if v is not None))
        return sample

    def get(self, timestamp) -> Sample:
        with self._lock:
            try:
                return self._samples[self._key(timestamp)]
            except KeyError:
                raise SampleNotFound(timestamp) from None

    def backfill_target(self, timestamp, target_name, value, force=None) -> Sample:
        """Fill in a target value that was missing when the sample was captured."""
        if force is None:
            force = self.allow_target_overwrite
        key = self._key(timestamp)
        with self._lock:
            sample = self._samples.get(key)
            if sample is None:
                raise SampleNotFound(timestamp)
            if sample.targets.get(target_name) is not None and not force:
                raise TargetAlreadySet(sample.captured_at, target_name)
            targets = dict(sample.targets)
            targets[target_name] = value
            updated = replace(sample, targets=_clean_targets(targets))
            if self.files is not None:
                self.files.save_health(updated)
            self._samples[key] = updated
        logger.info("backfilled '%s' for sample %s", target_name, updated.capture_id)
        return updated

    def samples(self):
        with self._lock:
            return sorted(self._samples.values(), key=lambda s: s.captured_at)

    def dataset_for(self, target_name) -> Dataset:
        rows = [s for s in self.samples() if s.targets.get(target_name) is not None]
        return Dataset(target_name=target_name,
                       timestamps=tuple(s.captured_at for s in rows),
                       features=tuple(s.feature_vector for s in rows),
                       targets=tuple(s.targets[target_name] for s in rows))

    def sample_count(self, target_name) -> int:
        with self._lock:
            return sum(1 for s in self._samples.values()
                       if s.targets.get(target_name) is not None)

    def missing_target_timestamps(self, target_name):
        """Captures still waiting for a value of `target_name`."""
        return [s.captured_at for s in self.samples() if s.targets.get(target_name) is None]

    def target_names(self):
        with self._lock:
            return sorted({name for s in self._samples.values()
                           for name, value in s.targets.items() if value is not None})

    def delete(self, timestamp):
        key = self._key(timestamp)
        with self._lock:
            sample = self._samples.get(key)
            if sample is None:
                raise SampleNotFound(timestamp)
            if self.files is not None:
                self.files.delete(sample.captured_at)
            del self._samples[key]
        logger.info("deleted sample %s", sample.capture_id)

    def purge_all(self):
        with self._lock:
            if self.files is not None:
                self.files.purge()
            count = len(self._samples)
            self._samples.clear()
        logger.info("purged %d samples", count)
