"""
Orientation fusion for the back and hip IMUs.

Usage:
    from exoctl.kalman import create_filter

    back = create_filter('kalman', fs=100.0, accel_noise=0.01, gyro_noise=0.005)
    for acc, gyro in zip(acc_data, gyro_data):
        q = back.update(acc, gyro)
"""

from .filters import (
    OrientationFilter,
    KalmanOrientationFilter,
    create_filter
)
from .madgwick import MadgwickOrientationFilter
from .quaternion import (
    quat_multiply,
    quat_normalize,
    quat_to_euler,
    euler_to_quat,
    quat_from_gyro,
    gravity_in_body,
    acc_to_euler
)

__all__ = [
    # Filters
    'OrientationFilter',
    'KalmanOrientationFilter',
    'MadgwickOrientationFilter',
    'create_filter',

    # Quaternion utilities
    'quat_multiply',
    'quat_normalize',
    'quat_to_euler',
    'euler_to_quat',
    'quat_from_gyro',
    'gravity_in_body',
    'acc_to_euler',
]
