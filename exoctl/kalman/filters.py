"""
Per-location orientation filters for the control loop.

Every filter consumes one accelerometer/gyroscope pair per sample at a fixed
rate and returns its current orientation quaternion. The controller only relies
on the OrientationFilter interface, so any implementation below (or a new one)
can drive the joint-angle estimate.

The Kalman variant is a quaternion + gyro-bias extended Kalman filter: the gyro
propagates orientation, the accelerometer's gravity direction corrects tilt.

References:
    Sabatini, A.M. (2011). "Estimating Three-Dimensional Orientation of Human
        Body Parts by Inertial/Magnetic Sensing"
    Sola, J. (2017). "Quaternion kinematics for the error-state Kalman filter"
"""

import logging
from abc import ABC, abstractmethod

import numpy as np

from .quaternion import (
    IDENTITY, quat_multiply, quat_normalize, quat_to_euler, euler_to_quat,
    quat_from_gyro, gravity_in_body, acc_to_euler
)

logger = logging.getLogger(__name__)

# Body acceleration treated as noise on the gravity reference, (m/s²)²
DEFAULT_LINEAR_ACCEL_NOISE = 0.0096


class OrientationFilter(ABC):
    """
    Incremental orientation estimator for a single IMU location.

    update() must be called exactly once per sample, in sample order, at the
    rate the filter was built for.
    """

    def __init__(self, fs: float):
        if fs <= 0:
            raise ValueError(f"fs must be positive, got {fs}")
        self.fs = float(fs)
        self.dt = 1.0 / self.fs
        self.n_updates = 0
        self.n_skipped = 0

    def update(self, acc, gyro) -> np.ndarray:
        """
        Ingest one sample and return the orientation quaternion [w, x, y, z].

        Non-finite readings are not ingested; the held estimate is returned and
        the accumulated state is kept.
        """
        acc = np.asarray(acc, dtype=float)
        gyro = np.asarray(gyro, dtype=float)
        self.n_updates += 1

        if not (np.all(np.isfinite(acc)) and np.all(np.isfinite(gyro))):
            self.n_skipped += 1
            if self.n_skipped == 1:
                logger.warning(f"{type(self).__name__}: non-finite sample at update "
                               f"{self.n_updates}, holding previous orientation")
            else:
                logger.debug(f"{type(self).__name__}: skipped non-finite sample "
                             f"({self.n_skipped} so far)")
            return self.orientation

        self._step(acc, gyro)
        return self.orientation

    @abstractmethod
    def _step(self, acc: np.ndarray, gyro: np.ndarray) -> None:
        pass

    @property
    @abstractmethod
    def orientation(self) -> np.ndarray:
        """Copy of the current quaternion."""

    @property
    def euler(self) -> np.ndarray:
        """Current [roll, pitch, yaw] in radians."""
        return quat_to_euler(self.orientation)

    def reset(self) -> None:
        self.n_updates = 0
        self.n_skipped = 0


class KalmanOrientationFilter(OrientationFilter):
    """
    Extended Kalman filter with quaternion state and gyro bias estimation.

    State vector: [q0, q1, q2, q3, bias_gx, bias_gy, bias_gz] (7D)

    Noise parameters are variances:
        accel_noise: accelerometer variance ((m/s²)²)
        gyro_noise: gyroscope variance ((rad/s)²)
        bias_noise: gyro bias random-walk intensity ((rad/s)²/s)
        linear_accel_noise: variance of body acceleration treated as
            measurement noise on the gravity reference ((m/s²)²)
    """

    def __init__(self,
                 fs: float,
                 accel_noise: float = 0.01,
                 gyro_noise: float = 0.005,
                 bias_noise: float = 1e-6,
                 linear_accel_noise: float = DEFAULT_LINEAR_ACCEL_NOISE):
        super().__init__(fs)
        for name, value in (('accel_noise', accel_noise), ('gyro_noise', gyro_noise),
                            ('bias_noise', bias_noise),
                            ('linear_accel_noise', linear_accel_noise)):
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        self.accel_noise = accel_noise
        self.gyro_noise = gyro_noise
        self.bias_noise = bias_noise
        self.linear_accel_noise = linear_accel_noise
        self.state_dim = 7
        self.reset()

    def reset(self) -> None:
        super().reset()
        self.x = np.concatenate([IDENTITY, np.zeros(3)])
        self.P = np.eye(self.state_dim) * 0.01
        self.P[4:, 4:] = np.eye(3) * 1e-5
        self._initialized = False

    def _step(self, acc: np.ndarray, gyro: np.ndarray) -> None:
        if not self._initialized:
            self._initialized = True
            if np.linalg.norm(acc) > 1e-6:
                # Tilt from the first gravity reading, yaw is unobservable.
                self.x[:4] = euler_to_quat(*acc_to_euler(acc))
                return

        self._predict(gyro)
        self._correct(acc)

    def _predict(self, gyro: np.ndarray) -> None:
        q = self.x[:4]
        rate = gyro - self.x[4:]
        dt = self.dt

        self.x[:4] = quat_normalize(quat_multiply(q, quat_from_gyro(rate, dt)))

        wx, wy, wz = rate
        F = np.eye(self.state_dim)
        F[:4, :4] += 0.5 * dt * np.array([
            [0, -wx, -wy, -wz],
            [wx, 0, wz, -wy],
            [wy, -wz, 0, wx],
            [wz, wy, -wx, 0]
        ])
        # q ⊗ [0, v] written as Xi(q) @ v
        Xi = np.array([
            [-q[1], -q[2], -q[3]],
            [q[0], -q[3], q[2]],
            [q[3], q[0], -q[1]],
            [-q[2], q[1], q[0]]
        ])
        F[:4, 4:] = -0.5 * dt * Xi

        Q = np.zeros((self.state_dim, self.state_dim))
        Q[:4, :4] = self.gyro_noise * (0.5 * dt) ** 2 * (Xi @ Xi.T)
        Q[4:, 4:] = np.eye(3) * self.bias_noise * dt

        self.P = F @ self.P @ F.T + Q
        self.P = 0.5 * (self.P + self.P.T)

    def _correct(self, acc: np.ndarray) -> None:
        acc_norm = np.linalg.norm(acc)
        if acc_norm < 1e-6:
            return

        q = self.x[:4]
        y = acc / acc_norm - gravity_in_body(q)

        w, x, yq, z = q
        H = np.zeros((3, self.state_dim))
        H[:, 0] = 2 * np.array([-yq, x, w])
        H[:, 1] = 2 * np.array([z, w, -x])
        H[:, 2] = 2 * np.array([-w, z, -yq])
        H[:, 3] = 2 * np.array([x, yq, z])

        R = np.eye(3) * (self.accel_noise + self.linear_accel_noise) / acc_norm ** 2
        S = H @ self.P @ H.T + R
        try:
            K = self.P @ H.T @ np.linalg.inv(S)
        except np.linalg.LinAlgError:
            logger.debug("Singular innovation covariance, skipping correction")
            return

        self.x = self.x + K @ y
        self.x[:4] = quat_normalize(self.x[:4])

        # Joseph form
        I_KH = np.eye(self.state_dim) - K @ H
        self.P = I_KH @ self.P @ I_KH.T + K @ R @ K.T
        self.P = 0.5 * (self.P + self.P.T)

    @property
    def orientation(self) -> np.ndarray:
        return self.x[:4].copy()

    @property
    def gyro_bias(self) -> np.ndarray:
        return self.x[4:].copy()


def create_filter(filter_type: str, fs: float, **params) -> OrientationFilter:
    """
    Build an orientation filter by name.

    Args:
        filter_type: 'kalman' or 'madgwick'
        fs: Sampling rate in Hz
        **params: Filter-specific parameters (accel_noise, gyro_noise,
            bias_noise for 'kalman'; beta for 'madgwick')
    """
    if filter_type == 'kalman':
        return KalmanOrientationFilter(
            fs,
            accel_noise=params.get('accel_noise', 0.01),
            gyro_noise=params.get('gyro_noise', 0.005),
            bias_noise=params.get('bias_noise', 1e-6),
        )
    elif filter_type == 'madgwick':
        from .madgwick import MadgwickOrientationFilter
        return MadgwickOrientationFilter(fs, beta=params.get('beta', 0.1))
    else:
        raise ValueError(f"Unknown filter type: {filter_type}")
