"""
JSON files on disk for samples, models and model snapshots.

Every write lands in a temporary sibling first and is committed with
os.replace, so a reader never observes a half-written record.
"""
import hashlib
import logging
import os
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .errors import PersistenceFailure
from .schemas import (FacialMetricsRecord, HealthSnapshotRecord, ModelRecord,
                      SnapshotRecord)

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r'[/\\:*?"<>|()\[\]{}#%&]')


def sanitize_name(name: str) -> str:
    """Make a target name usable as a file name."""
    return _UNSAFE.sub("_", name)


def model_file_stem(target_name: str) -> str:
    """Sanitized target name plus a digest of the raw name; distinct targets never share a file."""
    digest = hashlib.sha256(target_name.encode("utf-8")).hexdigest()[:10]
    return f"{sanitize_name(target_name)}-{digest}"


def to_utc(timestamp: datetime) -> datetime:
    """Aware timestamps are converted, naive ones are read as local time."""
    return timestamp.astimezone(timezone.utc)


def capture_id(timestamp) -> str:
    # one id per distinct instant; sub-second captures keep their microseconds
    timestamp = to_utc(timestamp)
    if timestamp.microsecond:
        return timestamp.strftime("Face-%Y-%m-%d_%H%M%S_%f")
    return timestamp.strftime("Face-%Y-%m-%d_%H%M%S")


def write_record(path: Path, record):
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(record.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        os.replace(tmp, path)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise PersistenceFailure(f"could not write {path}: {exc}") from exc


def read_record(path: Path, record_cls):
    try:
        return record_cls.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise PersistenceFailure(f"could not read {path}: {exc}") from exc
    except ValidationError as exc:
        raise PersistenceFailure(f"malformed record {path}: {exc}") from exc


def remove_file(path: Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        raise PersistenceFailure(f"could not delete {path}: {exc}") from exc


def remove_tree(path: Path):
    try:
        shutil.rmtree(path, ignore_errors=False)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise PersistenceFailure(f"could not delete {path}: {exc}") from exc


class SampleFiles:
    """faces/YYYY/MM/Face-<ts>.json plus the sibling Face-<ts>_health.json."""

    def __init__(self, root: Path):
        self.root = Path(root) / "faces"

    def paths(self, timestamp):
        timestamp = to_utc(timestamp)
        directory = self.root / timestamp.strftime("%Y") / timestamp.strftime("%m")
        base = capture_id(timestamp)
        return directory / f"{base}.json", directory / f"{base}_health.json"

    def save(self, sample):
        metrics_path, health_path = self.paths(sample.captured_at)
        for path in (metrics_path, health_path):
            if path.exists():
                raise PersistenceFailure(f"refusing to overwrite existing record {path}")
        write_record(metrics_path,
                     FacialMetricsRecord.from_vector(sample.captured_at, sample.feature_vector))
        try:
            self.save_health(sample)
        except PersistenceFailure:
            remove_file(metrics_path)
            raise

    def save_health(self, sample):
        _, health_path = self.paths(sample.captured_at)
        write_record(health_path, HealthSnapshotRecord(captured_at=sample.captured_at,
                                                       metrics=dict(sample.targets)))

    def delete(self, timestamp):
        for path in self.paths(timestamp):
            remove_file(path)

    def purge(self):
        remove_tree(self.root)

    def load_all(self):
        """Yield (FacialMetricsRecord, HealthSnapshotRecord or None) per capture."""
        if not self.root.exists():
            return
        for metrics_path in sorted(self.root.glob("*/*/Face-*.json")):
            if metrics_path.name.endswith("_health.json"):
                continue
            metrics = read_record(metrics_path, FacialMetricsRecord)
            health_path = metrics_path.with_name(metrics_path.stem + "_health.json")
            health = read_record(health_path, HealthSnapshotRecord) if health_path.exists() else None
            yield metrics, health


class ModelFiles:
    """models/<target>-<hash>_model.json and model_snapshots/<id>/."""

    def __init__(self, root: Path):
        self.models_dir = Path(root) / "models"
        self.snapshots_dir = Path(root) / "model_snapshots"

    def path(self, target_name):
        return self.models_dir / f"{model_file_stem(target_name)}_model.json"

    def save(self, record: ModelRecord):
        write_record(self.path(record.target_name), record)

    def delete(self, target_name):
        remove_file(self.path(target_name))

    def delete_all(self):
        remove_tree(self.models_dir)

    def load_all(self):
        if not self.models_dir.exists():
            return {}
        records = {}
        for path in sorted(self.models_dir.glob("*_model.json")):
            record = read_record(path, ModelRecord)
            records[record.target_name] = record
        return records

    def save_snapshot(self, snapshot: SnapshotRecord, records):
        directory = self.snapshots_dir / snapshot.snapshot_id
        for record in records:
            write_record(directory / f"{model_file_stem(record.target_name)}_model.json", record)
        write_record(directory / "snapshot_metadata.json", snapshot)

    def load_snapshot(self, snapshot_id):
        """Return (SnapshotRecord, [ModelRecord]) or None if the snapshot is absent."""
        directory = self.snapshots_dir / snapshot_id
        metadata_path = directory / "snapshot_metadata.json"
        if not metadata_path.exists():
            return None
        snapshot = read_record(metadata_path, SnapshotRecord)
        records = [read_record(directory / f"{model_file_stem(name)}_model.json", ModelRecord)
                   for name in snapshot.target_names]
        return snapshot, records

    def list_snapshots(self):
        if not self.snapshots_dir.exists():
            return []
        snapshots = []
        for metadata_path in self.snapshots_dir.glob("*/snapshot_metadata.json"):
            snapshots.append(read_record(metadata_path, SnapshotRecord))
        return snapshots

    def delete_snapshot(self, snapshot_id):
        remove_tree(self.snapshots_dir / snapshot_id)
