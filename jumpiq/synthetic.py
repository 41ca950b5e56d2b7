"""
Synthetic sessions for testing the pipeline without a phone.

Generates raw accelerometer/gyroscope streams (phone upright, gravity on
+Y) and ready-made reading sequences.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import GRAVITY, SAMPLE_PERIOD_MS
from .filtering import filter_stream
from .models import SensorReading


def constant_readings(
    n: int,
    accel: Sequence[float] = (0.0, GRAVITY, 0.0),
    gyro: Sequence[float] = (0.0, 0.0, 0.0),
    angles: Sequence[float] = (0.0, 0.0, 0.0),
    period_ms: int = SAMPLE_PERIOD_MS,
) -> List[SensorReading]:
    """``n`` identical readings spaced ``period_ms`` apart."""
    ax, ay, az = accel
    gx, gy, gz = gyro
    pitch, roll, yaw = angles
    return [
        SensorReading(i * period_ms, ax, ay, az, gx, gy, gz, pitch, roll, yaw)
        for i in range(n)
    ]


def pulse_session(
    n: int = 100,
    pulse: float = 2.0,
    pulse_start: int = 20,
    pulse_len: int = 10,
    gravity: Sequence[float] = (0.0, GRAVITY, 0.0),
    period_ms: int = SAMPLE_PERIOD_MS,
) -> List[SensorReading]:
    """
    Upright phone at rest with one upward acceleration pulse.

    Args:
        n: Number of readings
        pulse: Extra upward acceleration during the pulse (m/s²)
        pulse_start: Index of the first pulse sample
        pulse_len: Number of pulse samples
        gravity: Gravity as read by the phone (pass zeros for
                 gravity-free readings)
        period_ms: Reading spacing

    Returns:
        List of SensorReading
    """
    gx, gy, gz = gravity
    readings = []
    for i in range(n):
        extra = pulse if pulse_start <= i < pulse_start + pulse_len else 0.0
        readings.append(SensorReading(i * period_ms, gx, gy + extra, gz,
                                      0.0, 0.0, 0.0, 0.0, 0.0, 0.0))
    return readings


def jump_samples(
    stand_sec: float = 1.0,
    dip_sec: float = 0.3,
    push_sec: float = 0.25,
    flight_sec: float = 0.4,
    landing_sec: float = 0.15,
    push_accel: float = 12.0,
    noise: float = 0.0,
    period_ms: int = SAMPLE_PERIOD_MS,
    seed: Optional[int] = None,
) -> List[Tuple[int, float, float, float, float, float, float]]:
    """
    Raw samples of a countermovement jump, phone upright on the hip.

    Phases: stand, dip (unweighting), push-off, flight (free fall, the
    accelerometer reads ~0), landing impact, stand.

    Returns:
        List of (timestamp_ms, ax, ay, az, gx, gy, gz)
    """
    rng = np.random.default_rng(seed)
    dt = period_ms / 1000.0
    phases = [
        (stand_sec, GRAVITY),
        (dip_sec, GRAVITY - 4.0),
        (push_sec, GRAVITY + push_accel),
        (flight_sec, 0.0),
        (landing_sec, GRAVITY + 20.0),
        (stand_sec, GRAVITY),
    ]

    samples = []
    i = 0
    for duration, ay in phases:
        for _ in range(int(round(duration / dt))):
            n = rng.normal(0.0, noise, 6) if noise > 0 else np.zeros(6)
            samples.append((
                i * period_ms,
                float(n[0]), float(ay + n[1]), float(n[2]),
                float(n[3] * 0.1), float(n[4] * 0.1), float(n[5] * 0.1),
            ))
            i += 1
    return samples


def jump_session(alpha: float = 1.0, gyro_weight: float = 0.98, **kwargs) -> List[SensorReading]:
    """Filtered readings for ``jump_samples``; alpha=1.0 keeps raw values."""
    return filter_stream(jump_samples(**kwargs), alpha=alpha, gyro_weight=gyro_weight)
