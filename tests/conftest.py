"""Pytest configuration and fixtures."""

import time

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from exoctl.classifier import Classifier, ModelMetadata, save_artifact
from exoctl.features import extract_features_from_arrays
from exoctl.fsm import Label
from exoctl.synthetic import synthetic_recording


@pytest.fixture
def sample_imu_data():
    """Stationary IMU, gravity on z, 10 seconds at 100Hz."""
    np.random.seed(42)
    n_samples = 1000

    acc = np.zeros((n_samples, 3))
    acc[:, 2] = 9.81
    acc += np.random.randn(n_samples, 3) * 0.05

    gyro = np.random.randn(n_samples, 3) * 0.005

    return {'acc': acc, 'gyro': gyro, 'fs': 100.0}


@pytest.fixture
def walking_imu_data():
    """Back IMU during walking: vertical oscillation at 1.5 Hz, 2 seconds at 100Hz."""
    np.random.seed(42)
    fs = 100.0
    t = np.arange(200) / fs

    acc = np.zeros((200, 3))
    acc[:, 2] = 9.81 + 2.0 * np.sin(2 * np.pi * 1.5 * t)
    acc += np.random.randn(200, 3) * 0.05
    gyro = np.random.randn(200, 3) * 0.2

    return {'acc': acc, 'gyro': gyro, 'fs': fs}


@pytest.fixture
def synthetic_session():
    """Standing 3 s, walking 6 s, standing 6 s at 100Hz with per-sample labels."""
    return synthetic_recording(segments=(('standing', 3.0), ('walking', 6.0), ('standing', 6.0)))


class ScriptedClassifier(Classifier):
    """Returns a fixed sequence of labels, repeating the last one when exhausted."""

    def __init__(self, labels, delay_s=0.0):
        self.labels = [Label(v) for v in labels]
        self.delay_s = delay_s
        self.calls = []

    def classify(self, vector):
        self.calls.append(vector)
        if self.delay_s:
            time.sleep(self.delay_s)
        i = min(len(self.calls), len(self.labels)) - 1
        return self.labels[i]


@pytest.fixture
def scripted_classifier():
    return ScriptedClassifier


@pytest.fixture
def trained_artifact(tmp_path):
    """SVC fit on standardized synthetic standing/walking windows, saved with joblib."""
    from sklearn.svm import SVC

    rec = synthetic_recording(segments=(('standing', 10.0), ('walking', 10.0)), seed=7)
    X, y = [], []
    for start in range(0, len(rec) - 100 + 1, 50):
        window = rec.window(start, 100)
        X.append(extract_features_from_arrays(window.acc, window.gyro, 100.0).as_array())
        y.append(int(np.round(rec.labels[start:start + 100].mean())))
    X = np.array(X)
    y = np.array(y)

    mean = X.mean(axis=0)
    std = X.std(axis=0)
    std[std == 0] = 1.0
    model = SVC(kernel='rbf').fit((X - mean) / std, y)

    metadata = ModelMetadata(
        sampling_rate_hz=100.0,
        window_size_samples=100,
        step_size_samples=50,
        feature_mean=mean.tolist(),
        feature_std=std.tolist(),
        walking_labels=[1, 2, 3, 4, 5, 6],
        non_walking_labels=[7, 8, 9, 10, 11, 12],
    )
    return save_artifact(model, metadata, tmp_path / 'binary_svm.joblib')
