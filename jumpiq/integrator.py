"""
Kinematic integration for JumpIQ.

Turns a session's readings into world-frame frames: linear acceleration
is rotated into the world frame, integrated once to velocity and again to
position, and combined with the athlete's mass to give force. Body angles
come from the resolver's world frame.

Integration starts from rest (v = 0, p = 0) and uses simple Euler steps
with the true per-sample dt taken from the reading timestamps.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from .config import GRAVITY
from .gravity import WorldFrame, readings_to_arrays
from .models import ProcessedFrame, SensorReading

logger = logging.getLogger(__name__)

FLAG_NON_FINITE_SAMPLES = "non_finite_samples"


def sample_intervals(readings: Sequence[SensorReading]) -> np.ndarray:
    """Seconds between consecutive readings; 0 for the first one."""
    ts = np.array([r.timestamp_ms for r in readings], dtype=float) / 1000.0
    dts = np.zeros(len(ts))
    if len(ts) > 1:
        dts[1:] = np.diff(ts)
    return dts


def safe_magnitudes(vectors: np.ndarray) -> np.ndarray:
    """Row magnitudes; 0 where the squared magnitude is NaN or <= 0."""
    sq = (vectors ** 2).sum(axis=1)
    bad = np.isnan(sq) | (sq <= 0)
    return np.sqrt(np.where(bad, 0.0, sq))


def zero_non_finite(arr: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Replace NaN/inf entries with 0; also return the mask of affected rows."""
    finite = np.isfinite(arr)
    bad_rows = (~finite).any(axis=1)
    if bad_rows.any():
        arr = np.where(finite, arr, 0.0)
    return arr, bad_rows


class KinematicIntegrator:
    """
    Double-integrate world-frame acceleration into velocity and position.

    Usage:
        integrator = KinematicIntegrator(mass_kg=80.0)
        frames = integrator.integrate(readings, world_frame)
    """

    def __init__(self, mass_kg: float, gravity: float = GRAVITY):
        """
        Args:
            mass_kg: Athlete mass used for force (kg)
            gravity: Conversion factor from N to kg-force
        """
        self.mass_kg = mass_kg
        self.gravity = gravity
        self.quality_flags: List[str] = []

    def integrate(self, readings: Sequence[SensorReading], world: WorldFrame) -> List[ProcessedFrame]:
        """
        Produce raw (not yet drift-corrected) frames.

        Args:
            readings: Session readings in timestamp order
            world: Resolver output for this session

        Returns:
            One ProcessedFrame per reading, propulsion flags unset
        """
        self.quality_flags = []
        n = len(readings)
        if n == 0:
            return []

        accel, gyro, angles = readings_to_arrays(readings)
        accel, bad_accel = zero_non_finite(accel)
        gyro, bad_gyro = zero_non_finite(gyro)
        angles, bad_angles = zero_non_finite(angles)
        dts = sample_intervals(readings)

        # Per-sample independent steps (vectorized)
        accel_world = world.linear_acceleration(accel, angles)
        accel_world, bad_world = zero_non_finite(accel_world)
        # A bad input row must not turn into a -g spike after gravity removal
        bad = bad_accel | bad_gyro | bad_angles | bad_world
        accel_world[bad_accel | bad_angles] = 0.0
        body = world.body_angles(gyro, angles, dts)
        force_n = self.mass_kg * safe_magnitudes(accel_world)

        if bad.any():
            logger.warning("Zeroed %d non-finite sample rows before integration", int(bad.sum()))
            self.quality_flags.append(FLAG_NON_FINITE_SAMPLES)

        # Sequential steps: each velocity/position depends on the previous
        frames = []
        vx = vy = vz = 0.0
        px = py = pz = 0.0
        for i, r in enumerate(readings):
            dt = float(dts[i]) if dts[i] > 0 else 0.0
            awx, awy, awz = (float(v) for v in accel_world[i])

            vx += awx * dt
            vy += awy * dt
            vz += awz * dt

            px += vx * dt
            py += vy * dt
            pz += vz * dt

            frames.append(ProcessedFrame(
                time_sec=r.time_seconds,
                accel_xw=awx,
                accel_yw=awy,
                accel_zw=awz,
                vel_x=vx,
                vel_y=vy,
                vel_z=vz,
                pos_x=px,
                pos_y=py,
                pos_z=pz,
                force_n=float(force_n[i]),
                force_kg=float(force_n[i]) / self.gravity,
                athlete_pitch=float(body[i, 0]),
                athlete_roll=float(body[i, 1]),
                athlete_yaw=float(body[i, 2]),
            ))

        logger.debug("Integrated %d frames over %.3f s", n, frames[-1].time_sec)
        return frames
