import logging
import threading
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .errors import FaceHealthError, ModelNotFound, PersistenceFailure, SnapshotNotFound
from .schemas import SnapshotRecord, model_to_record, record_to_model
from .storage import ModelFiles
from .trainer import Model, Trainer
from .validation import CrossValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelSummary:
    target_name: str
    r: float
    mae: float
    rmse: float
    lam: float
    trained_on: int
    trained_at: datetime
    available_samples: int

    @property
    def is_stale(self) -> bool:
        return self.available_samples != self.trained_on


@dataclass(frozen=True)
class TrainingOutcome:
    target_name: str
    model: Optional[Model] = None
    error: Optional[FaceHealthError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ModelSnapshot:
    snapshot_id: str
    name: str
    created_at: datetime
    target_names: Tuple[str, ...]


class ModelRegistry:
    """
    One trained Model per target name. A retrain replaces the previous model in
    a single reference swap; readers see either the old or the new model.
    """

    def __init__(self, store, trainer: Trainer, validator: CrossValidator, directory=None):
        self.store = store
        self.trainer = trainer
        self.validator = validator
        self.files = ModelFiles(directory) if directory is not None else None
        self._models: Dict[str, Model] = {}
        self._snapshots = {}
        self._lock = threading.Lock()
        self._train_locks: Dict[str, threading.Lock] = {}
        if self.files is not None:
            for name, record in self.files.load_all().items():
                self._models[name] = record_to_model(record)
            logger.info("loaded %d stored models", len(self._models))

    def _target_lock(self, target_name) -> threading.Lock:
        with self._lock:
            return self._train_locks.setdefault(target_name, threading.Lock())

    def _commit(self, model: Model):
        # disk first: a failed write leaves the previous model in place
        if self.files is not None:
            self.files.save(model_to_record(model))
        with self._lock:
            self._models[model.target_name] = model

    def train(self, target_name) -> Model:
        with self._target_lock(target_name):
            dataset = self.store.dataset_for(target_name)
            lam, cv = self.validator.select_lambda(dataset)
            model = self.trainer.train(dataset, lam, cv=cv)
            self._commit(model)
        logger.info("trained '%s' on %d samples (lambda=%g, LOO r=%.3f)",
                    target_name, model.trained_on, model.lam, cv.r)
        return model

    def train_all(self, target_names=None) -> Dict[str, TrainingOutcome]:
        """Train each target independently; failures are reported, not raised."""
        if target_names is None:
            target_names = self.store.target_names()
        outcomes = {}
        for name in target_names:
            try:
                outcomes[name] = TrainingOutcome(name, model=self.train(name))
            except FaceHealthError as exc:
                logger.warning("training '%s' failed: %s", name, exc)
                outcomes[name] = TrainingOutcome(name, error=exc)
        return outcomes

    def get(self, target_name) -> Model:
        with self._lock:
            model = self._models.get(target_name)
        if model is None:
            raise ModelNotFound(target_name)
        return model

    def __contains__(self, target_name):
        with self._lock:
            return target_name in self._models

    def list(self) -> List[ModelSummary]:
        with self._lock:
            models = sorted(self._models.values(), key=lambda m: m.target_name)
        return [self.summary(m) for m in models]

    def summary(self, model: Model) -> ModelSummary:
        cv = model.cv
        return ModelSummary(
            target_name=model.target_name,
            r=cv.r if cv else 0.0,
            mae=cv.mae if cv else 0.0,
            rmse=cv.rmse if cv else 0.0,
            lam=model.lam,
            trained_on=model.trained_on,
            trained_at=model.trained_at,
            available_samples=self.store.sample_count(model.target_name),
        )

    def delete(self, target_name):
        with self._target_lock(target_name):
            if target_name not in self:
                raise ModelNotFound(target_name)
            if self.files is not None:
                self.files.delete(target_name)
            with self._lock:
                self._models.pop(target_name, None)
        logger.info("deleted model '%s'", target_name)

    def delete_all(self):
        with self._lock:
            if self.files is not None:
                self.files.delete_all()
            self._models.clear()
        logger.info("deleted all models")

    # snapshots

    def _new_snapshot_id(self, now):
        base = now.strftime("%Y-%m-%d_%H%M%S")
        taken = {s.snapshot_id for s in self.list_snapshots()}
        snapshot_id, suffix = base, 2
        while snapshot_id in taken:
            snapshot_id = f"{base}-{suffix}"
            suffix += 1
        return snapshot_id

    def save_snapshot(self, name) -> ModelSnapshot:
        """Copy every current model under a new snapshot."""
        now = datetime.now(timezone.utc)
        with self._lock:
            models = sorted(self._models.values(), key=lambda m: m.target_name)
        record = SnapshotRecord(snapshot_id=self._new_snapshot_id(now), name=name,
                                created_at=now,
                                target_names=[m.target_name for m in models])
        model_records = [model_to_record(m) for m in models]
        if self.files is not None:
            self.files.save_snapshot(record, model_records)
        else:
            self._snapshots[record.snapshot_id] = (record, model_records)
        logger.info("saved snapshot '%s' (%s) with %d models",
                    name, record.snapshot_id, len(models))
        return _to_snapshot(record)

    def list_snapshots(self) -> List[ModelSnapshot]:
        """Newest first."""
        if self.files is not None:
            records = self.files.list_snapshots()
        else:
            records = [record for record, _ in self._snapshots.values()]
        records.sort(key=lambda r: (r.created_at, r.snapshot_id), reverse=True)
        return [_to_snapshot(r) for r in records]

    def restore_snapshot(self, snapshot_id) -> List[str]:
        """
        Replace the models of every target in the snapshot; returns their names.
        All model files are written before any model is swapped in. If a write
        fails the files already written are put back and nothing changes.
        """
        if self.files is not None:
            loaded = self.files.load_snapshot(snapshot_id)
        else:
            loaded = self._snapshots.get(snapshot_id)
        if loaded is None:
            raise SnapshotNotFound(snapshot_id)
        _, model_records = loaded
        models = [record_to_model(r) for r in model_records]
        names = [m.target_name for m in models]
        with ExitStack() as stack:
            for name in sorted(set(names)):
                stack.enter_context(self._target_lock(name))
            if self.files is not None:
                with self._lock:
                    previous = {name: self._models.get(name) for name in names}
                self._write_all(models, previous)
            with self._lock:
                for model in models:
                    self._models[model.target_name] = model
        logger.info("restored snapshot %s: %s", snapshot_id, ", ".join(names))
        return names

    def _write_all(self, models, previous):
        written = []
        try:
            for model in models:
                self.files.save(model_to_record(model))
                written.append(model.target_name)
        except PersistenceFailure:
            for name in reversed(written):
                try:
                    if previous[name] is None:
                        self.files.delete(name)
                    else:
                        self.files.save(model_to_record(previous[name]))
                except PersistenceFailure as exc:
                    logger.error("could not roll back model file for '%s': %s", name, exc)
            raise

    def delete_snapshot(self, snapshot_id):
        if self.files is not None:
            if self.files.load_snapshot(snapshot_id) is None:
                raise SnapshotNotFound(snapshot_id)
            self.files.delete_snapshot(snapshot_id)
        elif self._snapshots.pop(snapshot_id, None) is None:
            raise SnapshotNotFound(snapshot_id)
        logger.info("deleted snapshot %s", snapshot_id)


def _to_snapshot(record: SnapshotRecord) -> ModelSnapshot:
    return ModelSnapshot(snapshot_id=record.snapshot_id, name=record.name,
                         created_at=record.created_at,
                         target_names=tuple(record.target_names))
