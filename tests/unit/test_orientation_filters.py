"""Unit tests for orientation filter implementations."""

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from exoctl.kalman.filters import KalmanOrientationFilter, OrientationFilter, create_filter
from exoctl.kalman.madgwick import MadgwickOrientationFilter
from exoctl.kalman.quaternion import quat_to_euler, euler_to_quat, gravity_in_body


def tilted_static(pitch, n=500, seed=42):
    np.random.seed(seed)
    acc = np.tile(gravity_in_body(euler_to_quat(0, pitch, 0)) * 9.81, (n, 1))
    acc += np.random.randn(n, 3) * 0.05
    gyro = np.random.randn(n, 3) * 0.005
    return acc, gyro


class TestKalmanOrientationFilter:
    """Tests for the quaternion EKF."""

    def test_initialization(self):
        kf = KalmanOrientationFilter(fs=100.0)
        assert kf.x.shape == (7,)
        assert kf.P.shape == (7, 7)
        assert np.allclose(kf.orientation, [1, 0, 0, 0])
        assert np.allclose(kf.gyro_bias, 0)

    def test_static_convergence(self, sample_imu_data):
        """Stationary with gravity on z: roll and pitch stay near 0."""
        kf = KalmanOrientationFilter(fs=sample_imu_data['fs'])
        for acc, gyro in zip(sample_imu_data['acc'], sample_imu_data['gyro']):
            q = kf.update(acc, gyro)

        euler = quat_to_euler(q)
        assert abs(euler[0]) < 0.05
        assert abs(euler[1]) < 0.05
        assert np.isclose(np.linalg.norm(q), 1.0)

    def test_first_sample_sets_tilt(self):
        kf = KalmanOrientationFilter(fs=100.0)
        acc, gyro = tilted_static(np.deg2rad(30), n=1)
        q = kf.update(acc[0], gyro[0])
        assert np.isclose(quat_to_euler(q)[1], np.deg2rad(30), atol=0.02)

    @pytest.mark.parametrize("pitch_deg", [-40, -10, 15, 45])
    def test_tracks_static_tilt(self, pitch_deg):
        kf = KalmanOrientationFilter(fs=100.0)
        acc, gyro = tilted_static(np.deg2rad(pitch_deg))
        for a, g in zip(acc, gyro):
            kf.update(a, g)
        assert np.isclose(np.rad2deg(kf.euler[1]), pitch_deg, atol=2.0)

    def test_follows_rotation(self):
        """Constant pitch rate with matching gravity: estimate follows the truth."""
        fs, rate = 100.0, 0.5
        kf = KalmanOrientationFilter(fs=fs)
        for i in range(100):
            pitch = rate * i / fs
            acc = gravity_in_body(euler_to_quat(0, pitch, 0)) * 9.81
            kf.update(acc, [0.0, rate, 0.0])
        assert np.isclose(kf.euler[1], rate * 99 / fs, atol=0.02)

    def test_bias_estimate_stays_finite(self, sample_imu_data):
        kf = KalmanOrientationFilter(fs=100.0)
        gyro = sample_imu_data['gyro'] + [0.01, -0.01, 0.0]
        for acc, g in zip(sample_imu_data['acc'], gyro):
            kf.update(acc, g)
        assert np.all(np.isfinite(kf.gyro_bias))
        assert np.all(np.isfinite(kf.P))
        assert np.allclose(kf.P, kf.P.T)

    def test_reset(self, sample_imu_data):
        kf = KalmanOrientationFilter(fs=100.0)
        acc, gyro = tilted_static(0.5, n=50)
        for a, g in zip(acc, gyro):
            kf.update(a, g)
        kf.reset()
        assert np.allclose(kf.orientation, [1, 0, 0, 0])
        assert kf.n_updates == 0

    def test_invalid_noise(self):
        with pytest.raises(ValueError):
            KalmanOrientationFilter(fs=100.0, accel_noise=0)
        with pytest.raises(ValueError):
            KalmanOrientationFilter(fs=0)


class TestNonFiniteInput:
    @pytest.mark.parametrize("filter_type", ['kalman', 'madgwick'])
    def test_skipped_sample_holds_orientation(self, filter_type):
        f = create_filter(filter_type, fs=100.0)
        acc, gyro = tilted_static(0.3, n=50)
        for a, g in zip(acc, gyro):
            f.update(a, g)

        held = f.orientation
        q = f.update([np.nan, 0, 9.81], [0, 0, 0])
        assert np.array_equal(q, held)
        q = f.update([0, 0, 9.81], [np.inf, 0, 0])
        assert np.array_equal(q, held)
        assert f.n_skipped == 2

        # filter keeps running afterwards
        q = f.update(acc[0], gyro[0])
        assert np.all(np.isfinite(q))


class TestMadgwickOrientationFilter:
    def test_static_convergence(self, sample_imu_data):
        mf = MadgwickOrientationFilter(fs=100.0, beta=0.1)
        for acc, gyro in zip(sample_imu_data['acc'], sample_imu_data['gyro']):
            mf.update(acc, gyro)
        assert abs(mf.euler[0]) < 0.05
        assert abs(mf.euler[1]) < 0.05

    def test_tracks_static_tilt(self):
        mf = MadgwickOrientationFilter(fs=100.0, beta=0.1)
        acc, gyro = tilted_static(np.deg2rad(25))
        for a, g in zip(acc, gyro):
            mf.update(a, g)
        assert np.isclose(np.rad2deg(mf.euler[1]), 25, atol=2.0)

    def test_invalid_beta(self):
        with pytest.raises(ValueError):
            MadgwickOrientationFilter(fs=100.0, beta=0)


class TestFilterFactory:
    def test_create_kalman(self):
        f = create_filter('kalman', fs=100.0, accel_noise=0.02, gyro_noise=0.001)
        assert isinstance(f, KalmanOrientationFilter)
        assert f.accel_noise == 0.02
        assert f.gyro_noise == 0.001

    def test_create_madgwick(self):
        f = create_filter('madgwick', fs=100.0, beta=0.05)
        assert isinstance(f, MadgwickOrientationFilter)
        assert isinstance(f, OrientationFilter)
        assert f.beta == 0.05

    def test_invalid_type(self):
        with pytest.raises(ValueError):
            create_filter('invalid', fs=100.0)
