"""
Window features for the standing/walking classifier.

Output (5 values, fixed order):
    [mean_acc_mag, var_acc_mag, mean_gyro_mag, var_gyro_mag, dom_freq]

The variance convention must match the one the deployed classifier was trained
with. Training used sample variance (ddof=1).
"""

from dataclasses import dataclass, astuple

import numpy as np

from .samples import SampleWindow

VARIANCE_DDOF = 1

# Non-DC amplitude below this fraction of max(DC, 1) is treated as round-off
FLAT_SIGNAL_RTOL = 1e-12

FEATURE_NAMES = ('mean_acc_mag', 'var_acc_mag', 'mean_gyro_mag', 'var_gyro_mag', 'dom_freq')


@dataclass(frozen=True)
class FeatureVector:
    mean_acc_mag: float
    var_acc_mag: float
    mean_gyro_mag: float
    var_gyro_mag: float
    dom_freq: float

    def as_array(self) -> np.ndarray:
        return np.array(astuple(self), dtype=float)


def _variance(x: np.ndarray) -> float:
    # Single-sample windows have no spread; avoid ddof=1 NaN.
    if len(x) <= VARIANCE_DDOF:
        return 0.0
    return float(np.var(x, ddof=VARIANCE_DDOF))


def dominant_frequency(x: np.ndarray, fs: float) -> float:
    """
    Frequency (Hz) of the largest single-sided amplitude bin, DC excluded.

    Interior bins are doubled to form the single-sided spectrum; DC and the
    Nyquist bin (even N) are not. Ties resolve to the lowest frequency.

    A signal counts as flat, and yields 0, when its largest non-DC amplitude
    is at most FLAT_SIGNAL_RTOL * max(DC amplitude, 1). This absorbs FFT
    round-off on a constant gravity reading (~1e-15 relative to DC); any
    oscillation above that floor, e.g. 1e-6 m/s² on 9.81, is reported.
    """
    n = len(x)
    if n < 2:
        return 0.0

    amplitude = np.abs(np.fft.rfft(x)) / n
    last = len(amplitude) - 1 if n % 2 == 0 else len(amplitude)
    amplitude[1:last] *= 2

    if np.max(amplitude[1:]) <= FLAT_SIGNAL_RTOL * max(amplitude[0], 1.0):
        return 0.0

    k = int(np.argmax(amplitude[1:])) + 1
    return float(k * fs / n)


def extract_features_from_arrays(acc: np.ndarray, gyro: np.ndarray, fs: float) -> FeatureVector:
    """Features for (N, 3) accelerometer and gyroscope arrays."""
    acc = np.asarray(acc, dtype=float)
    gyro = np.asarray(gyro, dtype=float)
    if len(acc) == 0:
        raise ValueError("Cannot extract features from an empty window")

    acc_mag = np.linalg.norm(acc, axis=1)
    gyro_mag = np.linalg.norm(gyro, axis=1)

    return FeatureVector(
        mean_acc_mag=float(np.mean(acc_mag)),
        var_acc_mag=_variance(acc_mag),
        mean_gyro_mag=float(np.mean(gyro_mag)),
        var_gyro_mag=_variance(gyro_mag),
        # z axis carries the clearest gait signature
        dom_freq=dominant_frequency(acc[:, 2], fs),
    )


def extract_features(window: SampleWindow, fs: float) -> FeatureVector:
    """Feature vector for one classification window sampled at fs Hz."""
    return extract_features_from_arrays(window.acc, window.gyro, fs)
