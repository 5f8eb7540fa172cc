"""
Synthetic standing/walking recordings for demos and tests.

Standing: gravity on +z with sensor noise. Walking: gravity plus a vertical
oscillation at the step frequency, a swinging hip (pitch oscillation about the
lateral axis) and trunk rotation noise.
"""

from typing import Sequence, Tuple

import numpy as np

from .fsm import Label
from .samples import Recording

GRAVITY = 9.81

DEFAULT_SEGMENTS = (('standing', 5.0), ('walking', 10.0), ('standing', 5.0))


def synthetic_recording(segments: Sequence[Tuple[str, float]] = DEFAULT_SEGMENTS,
                        fs: float = 100.0,
                        step_freq: float = 1.8,
                        hip_swing_deg: float = 20.0,
                        noise: float = 0.05,
                        seed: int = 42) -> Recording:
    """
    Args:
        segments: (activity, duration_s) pairs, activity 'standing' or 'walking'
        fs: Sampling rate in Hz
        step_freq: Vertical oscillation frequency while walking (Hz)
        hip_swing_deg: Peak hip pitch while walking
        noise: Standard deviation of additive sensor noise

    Returns:
        Recording with per-sample Label values in ``labels``.
    """
    rng = np.random.default_rng(seed)
    back_acc, back_gyro, hip_acc, hip_gyro, labels = [], [], [], [], []

    for activity, duration in segments:
        n = int(round(duration * fs))
        t = np.arange(n) / fs
        walking = activity == 'walking'
        if activity not in ('standing', 'walking'):
            raise ValueError(f"Unknown synthetic activity: {activity}")

        acc = np.zeros((n, 3))
        acc[:, 2] = GRAVITY
        gyro = np.zeros((n, 3))
        h_acc = acc.copy()
        h_gyro = np.zeros((n, 3))

        if walking:
            acc[:, 2] += 2.0 * np.sin(2 * np.pi * step_freq * t)
            acc[:, 0] += 0.8 * np.sin(np.pi * step_freq * t)
            gyro[:, 2] = 0.6 * np.sin(np.pi * step_freq * t)

            # hip pitch theta(t) swings at half the step frequency (one stride)
            amp = np.deg2rad(hip_swing_deg)
            w = np.pi * step_freq
            theta = amp * np.sin(w * t)
            h_gyro[:, 1] = amp * w * np.cos(w * t)
            h_acc[:, 0] = -GRAVITY * np.sin(theta)
            h_acc[:, 2] = GRAVITY * np.cos(theta)

        acc += rng.normal(0.0, noise, (n, 3))
        gyro += rng.normal(0.0, noise * 0.1, (n, 3))
        h_acc += rng.normal(0.0, noise, (n, 3))
        h_gyro += rng.normal(0.0, noise * 0.1, (n, 3))

        back_acc.append(acc)
        back_gyro.append(gyro)
        hip_acc.append(h_acc)
        hip_gyro.append(h_gyro)
        labels.append(np.full(n, int(Label.WALKING if walking else Label.STANDING)))

    return Recording.from_arrays(
        back_acc=np.vstack(back_acc),
        back_gyro=np.vstack(back_gyro),
        hip_acc=np.vstack(hip_acc),
        hip_gyro=np.vstack(hip_gyro),
        labels=np.concatenate(labels),
        activity='synthetic_' + '_'.join(a for a, _ in segments),
    )
