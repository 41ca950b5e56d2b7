"""Shared fixtures for the JumpIQ tests."""

from datetime import datetime

import pytest

from jumpiq.models import ProcessedFrame


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_date():
    return datetime(2024, 5, 1, 10, 30, 0)


@pytest.fixture
def make_frame():
    """Build a ProcessedFrame with everything zero except what is given."""

    def _make(time_sec=0.0, vel_y=0.0, force_kg=0.0, pos_y=0.0, vel_x=0.0, vel_z=0.0, **kw):
        values = dict(
            time_sec=time_sec,
            accel_xw=0.0, accel_yw=0.0, accel_zw=0.0,
            vel_x=vel_x, vel_y=vel_y, vel_z=vel_z,
            pos_x=0.0, pos_y=pos_y, pos_z=0.0,
            force_n=force_kg * 9.81, force_kg=force_kg,
            athlete_pitch=0.0, athlete_roll=0.0, athlete_yaw=0.0,
        )
        values.update(kw)
        return ProcessedFrame(**values)

    return _make
