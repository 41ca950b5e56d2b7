"""
Per-sample filtering for JumpIQ.

Smooths raw accelerometer/gyroscope axes with an exponential low-pass and
tracks pitch/roll/yaw with a complementary filter. One call to
``SampleFilter.update`` is made per fixed timer tick and produces one
``SensorReading``.

NaN/inf input is not rejected here: it propagates into the reading and is
absorbed later by the offline pipeline.
"""

import math
from typing import Optional, Tuple

from .config import GYRO_WEIGHT, SMOOTHING_ALPHA
from .models import SensorReading

RAD_TO_DEG = 180.0 / math.pi


def wrap_degrees(angle: float) -> float:
    """Wrap an angle into [-180, 180] by repeated ±360 adjustment."""
    if not math.isfinite(angle):
        return angle
    if abs(angle) > 540.0:
        angle = math.fmod(angle, 360.0)
    while angle > 180.0:
        angle -= 360.0
    while angle < -180.0:
        angle += 360.0
    return angle


def accel_pitch(ax: float, ay: float, az: float) -> float:
    """Accelerometer-only pitch estimate in degrees."""
    return math.atan2(-ax, math.sqrt(ay * ay + az * az)) * RAD_TO_DEG


def accel_roll(ay: float, az: float) -> float:
    """Accelerometer-only roll estimate in degrees."""
    return math.atan2(ay, az) * RAD_TO_DEG


class SampleFilter:
    """
    Low-pass + complementary filter over the raw sensor stream.

    The first update seeds every filtered axis from the raw values and
    takes pitch/roll from the accelerometer alone. Later updates blend
    gyro integration (weight ``gyro_weight``) with the accelerometer tilt
    (weight ``1 - gyro_weight``). Yaw has no accelerometer reference and
    is pure gyro integration, wrapped to [-180, 180].

    Usage:
        sf = SampleFilter(alpha=0.2, gyro_weight=0.98)
        reading = sf.update(ax, ay, az, gx, gy, gz, dt=0.02, timestamp_ms=20)
    """

    def __init__(self, alpha: float = SMOOTHING_ALPHA, gyro_weight: float = GYRO_WEIGHT):
        """
        Initialize the filter.

        Args:
            alpha: Low-pass smoothing factor (0, 1]
                   1.0 passes raw values straight through
            gyro_weight: Complementary filter weight for the gyro term
                         Higher = smoother but slower to correct tilt drift
        """
        self.alpha = alpha
        self.gyro_weight = gyro_weight
        self.accel_weight = 1.0 - gyro_weight
        self.reset()

    def reset(self):
        """Forget all filter state; the next update is treated as the first."""
        self.initialized = False
        self.ax = self.ay = self.az = 0.0
        self.gx = self.gy = self.gz = 0.0
        self.pitch = 0.0
        self.roll = 0.0
        self.yaw = 0.0

    def _smooth(self, filtered: float, raw: float) -> float:
        return (1.0 - self.alpha) * filtered + self.alpha * raw

    def update(
        self,
        ax: float, ay: float, az: float,
        gx: float, gy: float, gz: float,
        dt: float,
        timestamp_ms: int,
    ) -> SensorReading:
        """
        Filter one tick of raw sensor values.

        Args:
            ax, ay, az: Raw accelerometer (m/s²)
            gx, gy, gz: Raw gyroscope (rad/s)
            dt: Seconds since the previous tick; integration is skipped
                when dt <= 0
            timestamp_ms: Milliseconds since session start

        Returns:
            SensorReading with filtered axes and current orientation
        """
        if not self.initialized:
            self.ax, self.ay, self.az = ax, ay, az
            self.gx, self.gy, self.gz = gx, gy, gz
            self.pitch = accel_pitch(ax, ay, az)
            self.roll = accel_roll(ay, az)
            self.yaw = 0.0
            self.initialized = True
            return self._reading(timestamp_ms)

        self.ax = self._smooth(self.ax, ax)
        self.ay = self._smooth(self.ay, ay)
        self.az = self._smooth(self.az, az)
        self.gx = self._smooth(self.gx, gx)
        self.gy = self._smooth(self.gy, gy)
        self.gz = self._smooth(self.gz, gz)

        if dt > 0:
            acc_pitch = accel_pitch(self.ax, self.ay, self.az)
            acc_roll = accel_roll(self.ay, self.az)

            self.pitch = (self.gyro_weight * (self.pitch + self.gx * dt * RAD_TO_DEG)
                          + self.accel_weight * acc_pitch)
            self.roll = (self.gyro_weight * (self.roll + self.gz * dt * RAD_TO_DEG)
                         + self.accel_weight * acc_roll)
            self.yaw = wrap_degrees(self.yaw + self.gz * dt * RAD_TO_DEG)

        return self._reading(timestamp_ms)

    def _reading(self, timestamp_ms: int) -> SensorReading:
        return SensorReading(
            timestamp_ms=int(timestamp_ms),
            accel_x=self.ax, accel_y=self.ay, accel_z=self.az,
            gyro_x=self.gx, gyro_y=self.gy, gyro_z=self.gz,
            pitch=self.pitch, roll=self.roll, yaw=self.yaw,
        )

    def get_euler_angles(self) -> Tuple[float, float, float]:
        """Return current (pitch, roll, yaw) in degrees."""
        return (self.pitch, self.roll, self.yaw)


def filter_stream(samples, alpha: float = SMOOTHING_ALPHA, gyro_weight: float = GYRO_WEIGHT,
                  period_ms: Optional[int] = None):
    """
    Run a SampleFilter over an iterable of raw samples.

    Args:
        samples: Iterable of (timestamp_ms, ax, ay, az, gx, gy, gz)
        alpha: Smoothing factor
        gyro_weight: Complementary filter gyro weight
        period_ms: If given, ignore sample timestamps and space readings
                   evenly at this period

    Returns:
        List of SensorReading
    """
    sf = SampleFilter(alpha=alpha, gyro_weight=gyro_weight)
    readings = []
    prev_ts = None
    for i, (ts, ax, ay, az, gx, gy, gz) in enumerate(samples):
        if period_ms is not None:
            ts = i * period_ms
        dt = 0.0 if prev_ts is None else (ts - prev_ts) / 1000.0
        readings.append(sf.update(ax, ay, az, gx, gy, gz, dt=dt, timestamp_ms=ts))
        prev_ts = ts
    return readings


if __name__ == "__main__":
    print("Testing SampleFilter:")

    sf = SampleFilter(alpha=0.2, gyro_weight=0.98)

    print("\n1. Phone upright at rest (gravity along +Y):")
    for i in range(50):
        r = sf.update(0.0, 9.81, 0.0, 0.0, 0.0, 0.0, dt=0.02, timestamp_ms=i * 20)
    print(f"   Pitch: {r.pitch:.2f}°, Roll: {r.roll:.2f}°, Yaw: {r.yaw:.2f}°")
    print("   Expected: Pitch ≈ 0°, Roll ≈ 90°, Yaw ≈ 0°")

    print("\n2. Spinning about Z at 1 rad/s for 4 s (yaw wraps):")
    for i in range(200):
        r = sf.update(0.0, 9.81, 0.0, 0.0, 0.0, 1.0, dt=0.02, timestamp_ms=1000 + i * 20)
    print(f"   Yaw: {r.yaw:.2f}° (always within [-180, 180])")
