"""
Madgwick gradient-descent orientation filter (6-DOF, no magnetometer).

Drop-in alternative to the Kalman filter behind the same OrientationFilter
interface. One tuning parameter: beta, the weight of the accelerometer
correction against gyro integration.

Reference:
    Madgwick, S.O.H. (2010). "An efficient orientation filter for inertial
    and inertial/magnetic sensor arrays"
"""

import numpy as np

from .filters import OrientationFilter
from .quaternion import IDENTITY, quat_normalize, euler_to_quat, acc_to_euler


class MadgwickOrientationFilter(OrientationFilter):
    """
    Attributes:
        beta (float): Filter gain.
            - Higher beta = more accelerometer trust (stable but laggy)
            - Lower beta = more gyroscope trust (responsive but drifty)
        q (np.ndarray): Current quaternion estimate [w, x, y, z].
    """

    def __init__(self, fs: float, beta: float = 0.1):
        super().__init__(fs)
        if beta <= 0:
            raise ValueError(f"beta must be positive, got {beta}")
        self.beta = beta
        self.reset()

    def reset(self) -> None:
        super().reset()
        self.q = IDENTITY.copy()
        self._initialized = False

    def _step(self, acc: np.ndarray, gyro: np.ndarray) -> None:
        acc_norm = np.linalg.norm(acc)

        if not self._initialized:
            self._initialized = True
            if acc_norm > 1e-10:
                self.q = euler_to_quat(*acc_to_euler(acc))
                return

        q0, q1, q2, q3 = self.q
        gx, gy, gz = gyro

        qDot = 0.5 * np.array([
            -q1 * gx - q2 * gy - q3 * gz,
            q0 * gx + q2 * gz - q3 * gy,
            q0 * gy - q1 * gz + q3 * gx,
            q0 * gz + q1 * gy - q2 * gx
        ])

        if acc_norm > 1e-10:
            qDot -= self.beta * self._gradient(acc / acc_norm)

        self.q = quat_normalize(self.q + qDot * self.dt)

    def _gradient(self, a: np.ndarray) -> np.ndarray:
        """Normalized gradient of |gravity_in_body(q) - a|² with respect to q."""
        ax, ay, az = a
        q0, q1, q2, q3 = self.q

        f = np.array([
            2 * (q1 * q3 - q0 * q2) - ax,
            2 * (q0 * q1 + q2 * q3) - ay,
            1 - 2 * (q1 * q1 + q2 * q2) - az
        ])
        J = np.array([
            [-2 * q2, 2 * q3, -2 * q0, 2 * q1],
            [2 * q1, 2 * q0, 2 * q3, 2 * q2],
            [0.0, -4 * q1, -4 * q2, 0.0]
        ])
        step = J.T @ f
        norm = np.linalg.norm(step)
        if norm > 1e-10:
            step = step / norm
        return step

    @property
    def orientation(self) -> np.ndarray:
        return self.q.copy()
