from .config import FaceHealthConfig
from .context import FaceHealthContext
from .errors import (DuplicateTimestamp, FaceHealthError, InsufficientData,
                     InvalidFeatureVector, InvalidTargetValue, ModelNotFound,
                     NumericInstability, PersistenceFailure, SampleNotFound,
                     SnapshotNotFound, TargetAlreadySet)
from .features import FEATURE_COUNT, FEATURE_NAMES
from .predictor import Prediction, Predictor
from .registry import ModelRegistry, ModelSnapshot, ModelSummary, TrainingOutcome
from .store import Dataset, Sample, SampleStore
from .targets import targets_from_health_snapshot
from .trainer import Model, Trainer
from .validation import CrossValidator, CVResult
