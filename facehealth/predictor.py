from dataclasses import dataclass

from .features import validate_feature_vector


@dataclass(frozen=True)
class Prediction:
    target_name: str
    value: float
    trained_on: int
    available_samples: int

    @property
    def is_stale(self) -> bool:
        return self.available_samples != self.trained_on


class Predictor:
    """Read-only inference against models held by a ModelRegistry."""

    def __init__(self, registry):
        self.registry = registry

    def predict(self, target_name, feature_vector) -> float:
        model = self.registry.get(target_name)
        return model.predict(validate_feature_vector(feature_vector))

    def predict_detailed(self, target_name, feature_vector) -> Prediction:
        """Like predict(), plus how many samples the model saw versus how many exist now."""
        model = self.registry.get(target_name)
        return Prediction(
            target_name=target_name,
            value=model.predict(validate_feature_vector(feature_vector)),
            trained_on=model.trained_on,
            available_samples=self.registry.store.sample_count(target_name),
        )

    def predict_all(self, feature_vector):
        """Estimates for every trained target, keyed by target name."""
        vector = validate_feature_vector(feature_vector)
        return {summary.target_name: self.registry.get(summary.target_name).predict(vector)
                for summary in self.registry.list()}
