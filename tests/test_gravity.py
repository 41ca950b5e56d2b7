import numpy as np
import pytest

from jumpiq.config import SessionConfig, STRATEGY_CALIBRATION_WINDOW, STRATEGY_MEAN_GRAVITY
from jumpiq.gravity import (
    FLAG_DEGENERATE_GRAVITY,
    FLAG_NO_CALIBRATION_WINDOW,
    CalibrationWindowResolver,
    MeanGravityResolver,
    build_rotation_from_gravity,
    circular_mean_degrees,
    detect_calibration_end,
    euler_rotation,
    make_resolver,
    rotate_to_world_frame,
)
from jumpiq.models import SensorReading
from jumpiq.synthetic import constant_readings, pulse_session


class TestBuildRotation:
    def test_upright_phone(self):
        rot, degenerate = build_rotation_from_gravity((0.0, 9.81, 0.0))
        assert not degenerate
        np.testing.assert_allclose(rot, [[0, 0, -1], [0, 1, 0], [1, 0, 0]], atol=1e-12)

    @pytest.mark.parametrize("gravity", [(1.0, 2.0, 3.0), (9.81, 0.0, 0.0), (-3.0, 0.5, -9.0)])
    def test_gravity_maps_to_world_up(self, gravity):
        rot, _ = build_rotation_from_gravity(gravity)
        np.testing.assert_allclose(rot @ rot.T, np.eye(3), atol=1e-12)
        assert np.linalg.det(rot) == pytest.approx(1.0)
        g = np.asarray(gravity) / np.linalg.norm(gravity)
        np.testing.assert_allclose(rot @ g, [0.0, 1.0, 0.0], atol=1e-12)

    def test_degenerate_gravity_gives_identity(self):
        rot, degenerate = build_rotation_from_gravity((0.0, 0.0, 0.001))
        assert degenerate
        np.testing.assert_array_equal(rot, np.eye(3))


class TestEulerRotation:
    def test_zero_angles_identity(self):
        np.testing.assert_allclose(euler_rotation(0.0, 0.0, 0.0), np.eye(3), atol=1e-12)

    def test_array_input_stacks(self):
        rots = euler_rotation(np.array([0.0, 10.0, 45.0]), np.array([5.0, 0.0, -30.0]),
                              np.array([170.0, -90.0, 0.0]))
        assert rots.shape == (3, 3, 3)
        for rot in rots:
            np.testing.assert_allclose(rot @ rot.T, np.eye(3), atol=1e-12)

    def test_yaw_about_vertical(self):
        rot = euler_rotation(0.0, 0.0, 90.0)
        np.testing.assert_allclose(rot @ [0.0, 1.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(rot @ [0.0, 0.0, 1.0], [1.0, 0.0, 0.0], atol=1e-12)


def test_rotate_static_and_stacked_agree():
    vectors = np.array([[1.0, 2.0, 3.0], [0.0, -1.0, 0.5]])
    rot = euler_rotation(20.0, -10.0, 35.0)
    stacked = np.stack([rot, rot])
    np.testing.assert_allclose(rotate_to_world_frame(vectors, rot),
                               rotate_to_world_frame(vectors, stacked), atol=1e-12)
    np.testing.assert_allclose(rotate_to_world_frame(vectors, rot)[0], rot @ vectors[0])


def test_circular_mean_across_wrap():
    assert abs(circular_mean_degrees([170.0, -170.0])) == pytest.approx(180.0)
    assert circular_mean_degrees([10.0, 20.0]) == pytest.approx(15.0)


class TestMeanGravityResolver:
    def test_at_rest_has_no_linear_acceleration(self):
        readings = constant_readings(20)
        frame = MeanGravityResolver().resolve(readings)
        assert frame.strategy == STRATEGY_MEAN_GRAVITY
        assert frame.quality_flags == []
        accel = np.tile([0.0, 9.81, 0.0], (20, 1))
        np.testing.assert_allclose(frame.linear_acceleration(accel, np.zeros((20, 3))), 0.0, atol=1e-12)

    def test_zero_gravity_is_flagged(self):
        frame = MeanGravityResolver().resolve(constant_readings(10, accel=(0.0, 0.0, 0.0)))
        assert FLAG_DEGENERATE_GRAVITY in frame.quality_flags
        np.testing.assert_array_equal(frame.rotation, np.eye(3))

    def test_ignores_non_finite_rows(self):
        readings = constant_readings(10)
        readings[3] = SensorReading(60, float("nan"), 9.81, 0.0, 0, 0, 0, 0, 0, 0)
        frame = MeanGravityResolver().resolve(readings)
        np.testing.assert_allclose(frame.gravity, [0.0, 9.81, 0.0])


class TestCalibrationWindow:
    def test_detects_movement_onset(self):
        readings = pulse_session(n=100, pulse=2.0, pulse_start=40, gravity=(0.0, 0.0, 0.0))
        assert detect_calibration_end(readings) == (40, True)

    def test_no_movement_uses_first_block(self):
        assert detect_calibration_end(constant_readings(100)) == (25, False)
        assert detect_calibration_end(constant_readings(10)) == (10, False)
        assert detect_calibration_end([]) == (0, False)

    def test_baseline_from_window(self):
        readings = constant_readings(60, accel=(0.0, 0.0, 0.0), angles=(5.0, -3.0, 170.0))
        frame = CalibrationWindowResolver().resolve(readings)
        assert frame.strategy == STRATEGY_CALIBRATION_WINDOW
        assert FLAG_NO_CALIBRATION_WINDOW in frame.quality_flags
        assert frame.calib_end_index == 25
        np.testing.assert_allclose(frame.baseline, [5.0, -3.0, 170.0], atol=1e-9)
        body = frame.body_angles(np.zeros((60, 3)), np.tile([5.0, -3.0, 170.0], (60, 1)), np.zeros(60))
        np.testing.assert_allclose(body, 0.0, atol=1e-9)

    def test_body_yaw_is_wrapped(self):
        readings = constant_readings(30, accel=(0.0, 0.0, 0.0), angles=(0.0, 0.0, 170.0))
        frame = CalibrationWindowResolver().resolve(readings)
        body = frame.body_angles(np.zeros((1, 3)), np.array([[0.0, 0.0, -170.0]]), np.zeros(1))
        assert body[0, 2] == pytest.approx(20.0)

    def test_rotates_each_sample_by_its_own_angles(self):
        frame = CalibrationWindowResolver().resolve(constant_readings(30, accel=(0.0, 0.0, 0.0)))
        accel = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, 1.0]])
        angles = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 90.0]])
        out = frame.linear_acceleration(accel, angles)
        np.testing.assert_allclose(out, [[0.0, 0.0, 1.0], [1.0, 0.0, 0.0]], atol=1e-12)


def test_make_resolver_follows_config():
    assert isinstance(make_resolver(SessionConfig()), MeanGravityResolver)
    resolver = make_resolver(SessionConfig(resolver_strategy=STRATEGY_CALIBRATION_WINDOW,
                                           calibration_block_size=10))
    assert isinstance(resolver, CalibrationWindowResolver)
    assert resolver.block_size == 10


def test_onset_inside_first_block():
    readings = pulse_session(n=100, pulse=2.0, pulse_start=20, gravity=(0.0, 0.0, 0.0))
    assert detect_calibration_end(readings) == (20, True)


def test_onset_uses_variance_not_std_dev():
    # |a| alternating 9.61/10.01 has std-dev 0.2 but variance 0.04
    readings = constant_readings(30) + [
        SensorReading((30 + i) * 20, 0.0, 9.61 if i % 2 else 10.01, 0.0, 0, 0, 0, 0, 0, 0)
        for i in range(40)
    ]
    assert detect_calibration_end(readings, threshold=0.15) == (25, False)
    assert detect_calibration_end(readings, threshold=0.02)[1]


def test_calibration_window_removes_gravity():
    readings = constant_readings(40)
    frame = CalibrationWindowResolver().resolve(readings)
    np.testing.assert_allclose(frame.gravity_world, [0.0, 9.81, 0.0], atol=1e-9)
    accel = np.array([[0.0, 9.81, 0.0], [0.0, 11.81, 0.0]])
    out = frame.linear_acceleration(accel, np.zeros((2, 3)))
    np.testing.assert_allclose(out, [[0.0, 0.0, 0.0], [0.0, 2.0, 0.0]], atol=1e-9)


def test_calibration_window_upright_filter_angles():
    # Sample filter reports roll 90 for an upright phone
    readings = constant_readings(40, angles=(0.0, 90.0, 0.0))
    frame = CalibrationWindowResolver().resolve(readings)
    accel = np.array([[0.0, 9.81, 0.0], [0.0, 11.81, 0.0]])
    out = frame.linear_acceleration(accel, np.tile([0.0, 90.0, 0.0], (2, 1)))
    np.testing.assert_allclose(out, [[0.0, 0.0, 0.0], [0.0, 2.0, 0.0]], atol=1e-9)
