"""Hip flexion angle from the back and hip orientation estimates."""

import numpy as np

from .kalman.quaternion import quat_to_euler

RAD_TO_DEG = 180.0 / np.pi


def joint_angle(estimate_a, estimate_b) -> float:
    """
    Relative pitch (rotation about the lateral axis) between two segments.

    Args:
        estimate_a: Proximal segment quaternion [w, x, y, z] (back)
        estimate_b: Distal segment quaternion [w, x, y, z] (hip)

    Returns:
        (pitch_b - pitch_a) in degrees, or 0.0 when either estimate holds a
        non-finite value.
    """
    a = np.asarray(estimate_a, dtype=float)
    b = np.asarray(estimate_b, dtype=float)
    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        return 0.0

    pitch_a = quat_to_euler(a)[1]
    pitch_b = quat_to_euler(b)[1]
    return float((pitch_b - pitch_a) * RAD_TO_DEG)
