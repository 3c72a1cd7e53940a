class FaceHealthError(Exception):
    """Base class for every error raised by facehealth."""


class InvalidFeatureVector(FaceHealthError, ValueError):
    pass


class DuplicateTimestamp(FaceHealthError):
    def __init__(self, timestamp):
        self.timestamp = timestamp
        super().__init__(f"a sample already exists at {timestamp.isoformat()}")


class SampleNotFound(FaceHealthError, KeyError):
    def __init__(self, timestamp):
        self.timestamp = timestamp
        super().__init__(f"no sample at {timestamp.isoformat()}")

    def __str__(self):
        return self.args[0]


class TargetAlreadySet(FaceHealthError):
    def __init__(self, timestamp, target_name):
        self.timestamp = timestamp
        self.target_name = target_name
        super().__init__(
            f"target '{target_name}' is already set for sample at {timestamp.isoformat()}")


class InsufficientData(FaceHealthError):
    def __init__(self, target_name, required, actual):
        self.target_name = target_name
        self.required = required
        self.actual = actual
        super().__init__(
            f"need at least {required} samples for '{target_name}', have {actual}")


class NumericInstability(FaceHealthError, ArithmeticError):
    pass


class ModelNotFound(FaceHealthError, KeyError):
    def __init__(self, target_name):
        self.target_name = target_name
        super().__init__(f"no trained model for '{target_name}'")

    def __str__(self):
        return self.args[0]


class SnapshotNotFound(FaceHealthError, KeyError):
    def __init__(self, snapshot_id):
        self.snapshot_id = snapshot_id
        super().__init__(f"no model snapshot '{snapshot_id}'")

    def __str__(self):
        return self.args[0]


class PersistenceFailure(FaceHealthError):
    pass


class InvalidTargetValue(FaceHealthError, ValueError):
    pass
