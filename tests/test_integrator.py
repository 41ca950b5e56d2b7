import math

import numpy as np
import pytest

from jumpiq.gravity import MeanGravityResolver, PerSampleFrame
from jumpiq.integrator import FLAG_NON_FINITE_SAMPLES, KinematicIntegrator, safe_magnitudes, sample_intervals
from jumpiq.models import SensorReading
from jumpiq.synthetic import constant_readings


def _gravity_free_frame():
    return PerSampleFrame(np.zeros(3), calib_end_index=0)


def test_sample_intervals():
    readings = constant_readings(4, period_ms=20)
    np.testing.assert_allclose(sample_intervals(readings), [0.0, 0.02, 0.02, 0.02])


def test_safe_magnitudes_zero_for_nan():
    mags = safe_magnitudes(np.array([[3.0, 4.0, 0.0], [np.nan, 1.0, 1.0], [0.0, 0.0, 0.0]]))
    np.testing.assert_allclose(mags, [5.0, 0.0, 0.0])


def test_one_frame_per_reading():
    readings = constant_readings(37)
    frames = KinematicIntegrator(80.0).integrate(readings, MeanGravityResolver().resolve(readings))
    assert len(frames) == len(readings)
    assert [f.time_sec for f in frames] == [r.time_seconds for r in readings]


def test_empty_session():
    assert KinematicIntegrator(80.0).integrate([], _gravity_free_frame()) == []


def test_at_rest_stays_at_rest():
    readings = constant_readings(50)
    frames = KinematicIntegrator(80.0).integrate(readings, MeanGravityResolver().resolve(readings))
    for f in frames:
        assert f.speed == pytest.approx(0.0, abs=1e-12)
        assert f.height == pytest.approx(0.0, abs=1e-12)
        assert f.force_n == pytest.approx(0.0, abs=1e-9)


def test_constant_acceleration_euler_steps():
    readings = constant_readings(11, accel=(0.0, 2.0, 0.0))
    frames = KinematicIntegrator(80.0).integrate(readings, _gravity_free_frame())

    assert frames[0].vel_y == 0.0
    assert frames[0].pos_y == 0.0
    assert frames[10].vel_y == pytest.approx(0.4)
    assert frames[10].pos_y == pytest.approx(0.0008 * 55)
    assert frames[5].force_n == pytest.approx(160.0)
    assert frames[5].force_kg == pytest.approx(160.0 / 9.81)


def test_force_uses_configured_gravity():
    readings = constant_readings(3, accel=(0.0, 2.0, 0.0))
    frames = KinematicIntegrator(50.0, gravity=10.0).integrate(readings, _gravity_free_frame())
    assert frames[1].force_kg == pytest.approx(10.0)


def test_non_finite_rows_are_zeroed_and_flagged():
    readings = constant_readings(20)
    readings[5] = SensorReading(100, math.nan, math.inf, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    integrator = KinematicIntegrator(80.0)
    frames = integrator.integrate(readings, MeanGravityResolver().resolve(readings))

    assert FLAG_NON_FINITE_SAMPLES in integrator.quality_flags
    assert frames[5].accel_yw == 0.0
    assert frames[5].force_n == 0.0
    for f in frames:
        assert all(math.isfinite(v) for v in (f.vel_x, f.vel_y, f.vel_z, f.pos_x, f.pos_y, f.pos_z))


def test_static_frame_body_yaw_from_vertical_gyro():
    readings = constant_readings(10, gyro=(0.0, 1.0, 0.0))
    frames = KinematicIntegrator(80.0).integrate(readings, MeanGravityResolver().resolve(readings))
    assert frames[0].athlete_yaw == 0.0
    assert frames[9].athlete_yaw == pytest.approx(9 * 0.02 * 180.0 / math.pi)
    assert frames[9].athlete_pitch == pytest.approx(0.0, abs=1e-12)
