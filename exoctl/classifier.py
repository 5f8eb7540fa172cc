"""
Boundary to the trained standing/walking classifier.

The controller only needs ``classify(FeatureVector) -> Label``. The trained
artifact is a joblib file holding a dict::

    {
        'model': <estimator with .predict(X) -> {0, 1}>,
        'metadata': {
            'sampling_rate_hz': 100,
            'window_size_samples': 100,
            'step_size_samples': 50,
            'feature_mean': [5 floats],
            'feature_std': [5 floats],
            'walking_labels': [...],       # raw dataset activity ids
            'non_walking_labels': [...],
        },
    }

The estimator was fit on standardized features; the same training-time
statistics are applied here before every prediction and are never re-fit.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Union

import joblib
import numpy as np

from .errors import ArtifactError, ClassifierError
from .features import FeatureVector, FEATURE_NAMES
from .fsm import Label

logger = logging.getLogger(__name__)

N_FEATURES = len(FEATURE_NAMES)


@dataclass
class ModelMetadata:
    """Framing and preprocessing the classifier was trained with."""
    sampling_rate_hz: float
    window_size_samples: int
    step_size_samples: int
    feature_mean: List[float]
    feature_std: List[float]
    walking_labels: List[int] = field(default_factory=list)
    non_walking_labels: List[int] = field(default_factory=list)

    def __post_init__(self):
        if self.sampling_rate_hz <= 0:
            raise ArtifactError(f"sampling_rate_hz must be positive, got {self.sampling_rate_hz}")
        if self.window_size_samples < 1 or self.step_size_samples < 1:
            raise ArtifactError("window_size_samples and step_size_samples must be positive")
        if self.step_size_samples > self.window_size_samples:
            raise ArtifactError(f"step_size_samples ({self.step_size_samples}) exceeds "
                                f"window_size_samples ({self.window_size_samples})")

        mean = np.asarray(self.feature_mean, dtype=float).ravel()
        std = np.asarray(self.feature_std, dtype=float).ravel()
        if mean.shape != (N_FEATURES,) or std.shape != (N_FEATURES,):
            raise ArtifactError(f"feature standardization needs {N_FEATURES} means and stds, "
                                f"got {mean.shape} and {std.shape}")
        if not (np.all(np.isfinite(mean)) and np.all(np.isfinite(std)) and np.all(std > 0)):
            raise ArtifactError("feature standardization stats must be finite with std > 0")
        self.feature_mean = mean.tolist()
        self.feature_std = std.tolist()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModelMetadata':
        if not isinstance(data, dict):
            raise ArtifactError(f"metadata must be a dict, got {type(data).__name__}")
        try:
            return cls(
                sampling_rate_hz=float(data['sampling_rate_hz']),
                window_size_samples=int(data['window_size_samples']),
                step_size_samples=int(data['step_size_samples']),
                feature_mean=data['feature_mean'],
                feature_std=data['feature_std'],
                walking_labels=list(data.get('walking_labels', [])),
                non_walking_labels=list(data.get('non_walking_labels', [])),
            )
        except KeyError as e:
            raise ArtifactError(f"metadata missing key {e}") from e
        except (TypeError, ValueError) as e:
            raise ArtifactError(f"malformed metadata: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Standardizer:
    """Z-score with fixed training-time statistics."""

    def __init__(self, mean, std):
        self.mean = np.asarray(mean, dtype=float)
        self.std = np.asarray(std, dtype=float)

    def apply(self, x: np.ndarray) -> np.ndarray:
        return (np.asarray(x, dtype=float) - self.mean) / self.std


class Classifier(ABC):
    """Deterministic decision function over one feature vector."""

    @abstractmethod
    def classify(self, vector: FeatureVector) -> Label:
        pass


def to_label(value) -> Label:
    """Map a raw 0/1 prediction onto Label, rejecting anything else."""
    try:
        as_int = int(value)
    except (TypeError, ValueError) as e:
        raise ClassifierError(f"Classifier returned non-numeric label {value!r}") from e
    if as_int != value:
        raise ClassifierError(f"Classifier returned non-integral label {value!r}")
    try:
        return Label(as_int)
    except ValueError as e:
        raise ClassifierError(f"Classifier returned unknown label {value!r}") from e


class SklearnClassifier(Classifier):
    """Wraps any estimator exposing ``predict`` (e.g. sklearn.svm.SVC)."""

    def __init__(self, model, metadata: ModelMetadata):
        if not hasattr(model, 'predict'):
            raise ArtifactError(f"{type(model).__name__} has no predict()")
        self.model = model
        self.metadata = metadata
        self.standardizer = Standardizer(metadata.feature_mean, metadata.feature_std)

    def classify(self, vector: FeatureVector) -> Label:
        x = self.standardizer.apply(vector.as_array()).reshape(1, -1)
        try:
            y = self.model.predict(x)
        except Exception as e:
            raise ClassifierError(f"{type(self.model).__name__}.predict failed: {e}") from e
        return to_label(np.ravel(y)[0])


class ThresholdClassifier(Classifier):
    """
    Rule-based stand-in for a trained model: WALKING when the window's
    acceleration-magnitude variance exceeds a threshold. Used for synthetic
    runs and tests; carries no metadata, so the configured framing applies.
    """

    def __init__(self, var_acc_threshold: float = 0.5):
        self.var_acc_threshold = var_acc_threshold

    def classify(self, vector: FeatureVector) -> Label:
        return Label.WALKING if vector.var_acc_mag > self.var_acc_threshold else Label.STANDING


def load_artifact(path: Union[str, Path]) -> SklearnClassifier:
    """Load the trained classifier and its metadata; any problem is fatal."""
    path = Path(path)
    if not path.is_file():
        raise ArtifactError(f"Trained classifier artifact not found: {path}")

    try:
        payload = joblib.load(path)
    except Exception as e:
        raise ArtifactError(f"Could not read classifier artifact {path}: {e}") from e

    if not isinstance(payload, dict) or 'model' not in payload or 'metadata' not in payload:
        raise ArtifactError(f"{path} is not a classifier artifact (expected 'model' and 'metadata')")

    metadata = payload['metadata']
    if not isinstance(metadata, ModelMetadata):
        metadata = ModelMetadata.from_dict(metadata)

    classifier = SklearnClassifier(payload['model'], metadata)
    logger.info(f"Loaded {type(classifier.model).__name__} from {path} "
                f"(fs={metadata.sampling_rate_hz} Hz, window={metadata.window_size_samples}, "
                f"step={metadata.step_size_samples})")
    return classifier


def save_artifact(model, metadata: Union[ModelMetadata, Dict[str, Any]], path: Union[str, Path]) -> Path:
    """Write a model and its metadata in the format load_artifact expects."""
    if not isinstance(metadata, ModelMetadata):
        metadata = ModelMetadata.from_dict(metadata)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump({'model': model, 'metadata': metadata.to_dict()}, path)
    logger.info(f"Classifier artifact saved: {path}")
    return path
