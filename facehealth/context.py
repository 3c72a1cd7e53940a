import logging

from .config import FaceHealthConfig
from .predictor import Predictor
from .registry import ModelRegistry
from .store import SampleStore
from .trainer import Trainer
from .validation import CrossValidator

logger = logging.getLogger(__name__)


class FaceHealthContext:
    """
    Owns the sample store and model registry for one user.

    Build it once and pass it to whatever needs it; nothing in facehealth keeps
    module-level state.
    """

    def __init__(self, config=None):
        self.config = config or FaceHealthConfig()
        logging.getLogger("facehealth").setLevel(self.config.log_level)

        self.store = SampleStore.from_config(self.config)
        self.trainer = Trainer(min_samples=self.config.min_samples,
                               learning_algo=self.config.learning_algo)
        self.validator = CrossValidator(self.trainer,
                                        lambda_grid=self.config.lambda_grid,
                                        max_workers=self.config.max_workers)
        self.registry = ModelRegistry(self.store, self.trainer, self.validator,
                                      directory=self.config.storage_dir)
        self.predictor = Predictor(self.registry)
        logger.info("context ready: %d samples, %d models, storage=%s",
                    len(self.store), len(self.registry.list()),
                    self.config.storage_dir or "memory")

    def add_sample(self, feature_vector, targets, captured_at):
        return self.store.add_sample(feature_vector, targets, captured_at)

    def backfill_target(self, timestamp, target_name, value, force=None):
        return self.store.backfill_target(timestamp, target_name, value, force=force)

    def delete_sample(self, timestamp):
        self.store.delete(timestamp)

    def purge_all(self):
        """Remove every sample. Trained models are kept."""
        self.store.purge_all()

    def train(self, target_name):
        return self.registry.train(target_name)

    def train_all(self, target_names=None):
        return self.registry.train_all(target_names)

    def predict(self, target_name, feature_vector):
        return self.predictor.predict(target_name, feature_vector)

    def get(self, target_name):
        return self.registry.get(target_name)

    def list(self):
        return self.registry.list()

    def delete(self, target_name):
        self.registry.delete(target_name)
