"""
Controller configuration.

One ControllerConfig is built at startup and passed into the controller and
everything it owns. Values come from dataclass defaults, then an optional YAML
file, then command-line overrides. The classifier artifact's framing
(sampling rate, window, step) always wins over configured values.
"""

import logging
from dataclasses import dataclass, fields, replace, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

FILTER_TYPES = ('kalman', 'madgwick')


@dataclass(frozen=True)
class ControllerConfig:
    """Recognized control-loop options."""

    fs: float = 100.0
    """Sampling rate in Hz."""

    window_size: int = 100
    """Samples per classification window (1.0 s at 100 Hz)."""

    step_size: int = 50
    """Samples between classification ticks (0.5 s at 100 Hz)."""

    accel_noise: float = 0.01
    """Accelerometer noise variance for the Kalman filter ((m/s²)²)."""

    gyro_noise: float = 0.005
    """Gyroscope noise variance for the Kalman filter ((rad/s)²)."""

    k_on: int = 3
    """Consecutive WALKING labels needed to enter WALKING."""

    k_off: int = 5
    """Consecutive STANDING labels needed to leave WALKING."""

    filter_type: str = 'kalman'
    """Orientation filter: 'kalman' or 'madgwick'."""

    madgwick_beta: float = 0.1
    """Madgwick gain, only used when filter_type == 'madgwick'."""

    latency_budget_s: Optional[float] = None
    """Classification deadline in seconds. None means one step interval."""

    def __post_init__(self):
        for name in ('fs', 'accel_noise', 'gyro_noise', 'madgwick_beta'):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{name} must be a positive number, got {value!r}")
        for name in ('window_size', 'step_size', 'k_on', 'k_off'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if self.step_size > self.window_size:
            raise ConfigError(f"step_size ({self.step_size}) must not exceed "
                              f"window_size ({self.window_size})")
        if self.filter_type not in FILTER_TYPES:
            raise ConfigError(f"filter_type must be one of {FILTER_TYPES}, got {self.filter_type!r}")
        if self.latency_budget_s is not None and self.latency_budget_s <= 0:
            raise ConfigError(f"latency_budget_s must be positive, got {self.latency_budget_s}")

    @property
    def step_interval_s(self) -> float:
        return self.step_size / self.fs

    @property
    def classification_budget_s(self) -> float:
        if self.latency_budget_s is not None:
            return self.latency_budget_s
        return self.step_interval_s

    def filter_params(self) -> Dict[str, Any]:
        if self.filter_type == 'madgwick':
            return {'beta': self.madgwick_beta}
        return {'accel_noise': self.accel_noise, 'gyro_noise': self.gyro_noise}

    def with_metadata(self, metadata) -> 'ControllerConfig':
        """Adopt the classifier's training-time framing."""
        framing = {
            'fs': float(metadata.sampling_rate_hz),
            'window_size': int(metadata.window_size_samples),
            'step_size': int(metadata.step_size_samples),
        }
        for key, value in framing.items():
            if getattr(self, key) != value:
                logger.warning(f"Classifier artifact overrides {key}: {getattr(self, key)} -> {value}")
        return replace(self, **framing)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ControllerConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {unknown}")
        return cls(**data)


def load_config(path: Optional[Union[str, Path]] = None,
                overrides: Optional[Dict[str, Any]] = None) -> ControllerConfig:
    """
    Build the configuration from an optional YAML file plus overrides.

    Overrides whose value is None are ignored so argparse namespaces can be
    passed through directly.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path} must contain a mapping, got {type(loaded).__name__}")
        data.update(loaded)

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    config = ControllerConfig.from_dict(data)
    logger.debug(f"Configuration: {config.to_dict()}")
    return config
