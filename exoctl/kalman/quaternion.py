"""
Quaternion helpers shared by the orientation filters and the joint angle.

Convention: q = [w, x, y, z], Hamilton product, q rotates body-frame vectors
into the world frame (ENU, z up). An accelerometer at rest therefore reads
+g along world z.

References:
    Sola, J. (2017). "Quaternion kinematics for the error-state Kalman filter"
    arXiv:1711.02508
"""

import numpy as np
from typing import Union

Array = Union[np.ndarray, list, tuple]

IDENTITY = np.array([1.0, 0.0, 0.0, 0.0])


def quat_multiply(q1: Array, q2: Array) -> np.ndarray:
    """Hamilton product q1 ⊗ q2."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2
    ])


def quat_normalize(q: Array) -> np.ndarray:
    """Normalize to unit length; a degenerate quaternion becomes identity."""
    q = np.asarray(q, dtype=float)
    norm = np.linalg.norm(q)
    if norm < 1e-10:
        return IDENTITY.copy()
    return q / norm


def quat_to_euler(q: Array) -> np.ndarray:
    """
    Decompose a quaternion into [roll, pitch, yaw] (radians), ZYX order.

    Pitch is the rotation about the body's lateral (y) axis and is clipped to
    [-pi/2, pi/2].
    """
    w, x, y, z = q

    roll = np.arctan2(2 * (w * x + y * z), 1 - 2 * (x * x + y * y))

    sinp = np.clip(2 * (w * y - z * x), -1.0, 1.0)
    pitch = np.arcsin(sinp)

    yaw = np.arctan2(2 * (w * z + x * y), 1 - 2 * (y * y + z * z))

    return np.array([roll, pitch, yaw])


def euler_to_quat(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """Inverse of quat_to_euler (ZYX order)."""
    cr, sr = np.cos(roll/2), np.sin(roll/2)
    cp, sp = np.cos(pitch/2), np.sin(pitch/2)
    cy, sy = np.cos(yaw/2), np.sin(yaw/2)

    return np.array([
        cr * cp * cy + sr * sp * sy,
        sr * cp * cy - cr * sp * sy,
        cr * sp * cy + sr * cp * sy,
        cr * cp * sy - sr * sp * cy
    ])


def quat_from_gyro(gyro: Array, dt: float) -> np.ndarray:
    """
    Body-frame rotation accumulated over dt at constant angular rate.

    Args:
        gyro: Angular velocity [wx, wy, wz] in rad/s
        dt: Time step in seconds
    """
    gyro = np.asarray(gyro, dtype=float)
    rate = np.linalg.norm(gyro)
    angle = rate * dt
    if angle < 1e-12:
        return IDENTITY.copy()
    axis = gyro / rate
    s = np.sin(angle / 2)
    return np.array([np.cos(angle / 2), axis[0]*s, axis[1]*s, axis[2]*s])


def gravity_in_body(q: Array) -> np.ndarray:
    """Unit world-up vector expressed in the body frame for orientation q."""
    w, x, y, z = q
    return np.array([
        2 * (x * z - w * y),
        2 * (y * z + w * x),
        w * w - x * x - y * y + z * z
    ])


def acc_to_euler(acc: Array) -> np.ndarray:
    """
    Roll and pitch implied by a gravity-dominated accelerometer reading.

    Yaw is unobservable without a magnetometer and is returned as 0.
    """
    ax, ay, az = acc
    roll = np.arctan2(ay, az)
    pitch = np.arctan2(-ax, np.sqrt(ay**2 + az**2))
    return np.array([roll, pitch, 0.0])
