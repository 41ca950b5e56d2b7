"""
Gravity and orientation resolution for JumpIQ.

Establishes how phone-frame vectors map into the world frame (Y = up) for
a whole recording. Two interchangeable strategies are provided:

- MeanGravityResolver: the mean accelerometer vector over the session is
  taken as gravity ("up" in phone coordinates) and a single static
  rotation is built from it. Readings must still contain gravity.
- CalibrationWindowResolver: the stationary interval at the start of the
  session gives an orientation baseline; each sample is rotated by its
  own complementary-filter angles. When the readings still contain
  gravity, the window's mean world-frame vector is removed and taken as
  "up".

Both produce a ``WorldFrame`` that the integrator queries for world-frame
linear acceleration and athlete body angles.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import (
    CALIBRATION_BLOCK_SIZE,
    CALIBRATION_VARIANCE_THRESHOLD,
    GRAVITY,
    STRATEGY_CALIBRATION_WINDOW,
    STRATEGY_MEAN_GRAVITY,
    SessionConfig,
)
from .filtering import RAD_TO_DEG, wrap_degrees
from .models import SensorReading, mag3

logger = logging.getLogger(__name__)

# Below this |g| the gravity direction is meaningless
MIN_GRAVITY_MAGNITUDE = 0.01

# Calibration-window mean above this share of g means readings carry gravity
GRAVITY_PRESENT_FRACTION = 0.5

FLAG_DEGENERATE_GRAVITY = "degenerate_gravity"
FLAG_NO_CALIBRATION_WINDOW = "no_calibration_window"


# =============================================================================
# Rotation helpers
# =============================================================================

def build_rotation_from_gravity(gravity: Sequence[float]) -> Tuple[np.ndarray, bool]:
    """
    Build the phone→world rotation from a gravity vector in phone coords.

    The rows of the result are the world X (right), Y (up) and Z
    (forward) axes expressed in phone coordinates, so
    ``v_world = R @ v_phone``.

    Args:
        gravity: Mean accelerometer vector (points "up" when at rest)

    Returns:
        (R, degenerate) where degenerate is True when |gravity| was too
        small and the identity was returned instead
    """
    gx, gy, gz = (float(v) for v in gravity)
    g_mag = mag3(gx, gy, gz)
    if g_mag < MIN_GRAVITY_MAGNITUDE:
        return np.eye(3), True

    up = np.array([gx, gy, gz]) / g_mag

    # Reference axis not parallel to up
    if abs(up[0]) < 0.9:
        ref = np.array([1.0, 0.0, 0.0])
    else:
        ref = np.array([0.0, 0.0, 1.0])

    right = np.cross(up, ref)
    right /= np.linalg.norm(right)
    forward = np.cross(right, up)

    return np.vstack([right, up, forward]), False


def euler_rotation(pitch, roll, yaw) -> np.ndarray:
    """
    Rotation matrices R = Ry(yaw) @ Rx(pitch) @ Rz(roll).

    Args:
        pitch, roll, yaw: Angles in degrees (scalars or equal-length arrays)

    Returns:
        (3, 3) matrix for scalar input, (n, 3, 3) stack for array input
    """
    p = np.radians(np.asarray(pitch, dtype=float))
    r = np.radians(np.asarray(roll, dtype=float))
    y = np.radians(np.asarray(yaw, dtype=float))
    scalar = p.ndim == 0
    p, r, y = np.atleast_1d(p), np.atleast_1d(r), np.atleast_1d(y)
    n = p.shape[0]

    cp, sp = np.cos(p), np.sin(p)
    cr, sr = np.cos(r), np.sin(r)
    cy, sy = np.cos(y), np.sin(y)
    zeros, ones = np.zeros(n), np.ones(n)

    ry = np.stack([
        np.stack([cy, zeros, sy], axis=-1),
        np.stack([zeros, ones, zeros], axis=-1),
        np.stack([-sy, zeros, cy], axis=-1),
    ], axis=1)
    rx = np.stack([
        np.stack([ones, zeros, zeros], axis=-1),
        np.stack([zeros, cp, -sp], axis=-1),
        np.stack([zeros, sp, cp], axis=-1),
    ], axis=1)
    rz = np.stack([
        np.stack([cr, -sr, zeros], axis=-1),
        np.stack([sr, cr, zeros], axis=-1),
        np.stack([zeros, zeros, ones], axis=-1),
    ], axis=1)

    rot = ry @ rx @ rz
    return rot[0] if scalar else rot


def rotate_to_world_frame(vectors: np.ndarray, rotation: np.ndarray) -> np.ndarray:
    """
    Rotate phone-frame vectors into the world frame.

    Args:
        vectors: (n, 3) phone-frame vectors
        rotation: (3, 3) static matrix or (n, 3, 3) per-sample stack

    Returns:
        (n, 3) world-frame vectors
    """
    vectors = np.asarray(vectors, dtype=float)
    if rotation.ndim == 2:
        return vectors @ rotation.T
    return np.einsum("nij,nj->ni", rotation, vectors)


def readings_to_arrays(readings: Sequence[SensorReading]):
    """Split readings into (accel, gyro, angles) arrays of shape (n, 3)."""
    accel = np.array([[r.accel_x, r.accel_y, r.accel_z] for r in readings], dtype=float).reshape(-1, 3)
    gyro = np.array([[r.gyro_x, r.gyro_y, r.gyro_z] for r in readings], dtype=float).reshape(-1, 3)
    angles = np.array([[r.pitch, r.roll, r.yaw] for r in readings], dtype=float).reshape(-1, 3)
    return accel, gyro, angles


def circular_mean_degrees(angles) -> float:
    angles = np.radians(np.asarray(angles, dtype=float))
    return math.degrees(math.atan2(float(np.sin(angles).mean()), float(np.cos(angles).mean())))


# =============================================================================
# World frames (resolver output)
# =============================================================================

class WorldFrame:
    """Phone→world mapping for one session."""

    strategy = ""

    def __init__(self):
        self.quality_flags: List[str] = []
        self.calib_end_index: Optional[int] = None

    def linear_acceleration(self, accel: np.ndarray, angles: np.ndarray) -> np.ndarray:
        """World-frame linear acceleration, shape (n, 3)."""
        raise NotImplementedError

    def body_angles(self, gyro: np.ndarray, angles: np.ndarray, dts: np.ndarray) -> np.ndarray:
        """Athlete (pitch, roll, yaw) per sample in degrees, shape (n, 3)."""
        raise NotImplementedError


class StaticGravityFrame(WorldFrame):
    """Single rotation built from the session-mean gravity vector."""

    strategy = STRATEGY_MEAN_GRAVITY

    def __init__(self, gravity: np.ndarray, rotation: np.ndarray):
        super().__init__()
        self.gravity = gravity
        self.rotation = rotation

    def linear_acceleration(self, accel: np.ndarray, angles: np.ndarray) -> np.ndarray:
        return rotate_to_world_frame(accel - self.gravity, self.rotation)

    def body_angles(self, gyro: np.ndarray, angles: np.ndarray, dts: np.ndarray) -> np.ndarray:
        gyro_world = rotate_to_world_frame(gyro, self.rotation)
        out = np.zeros((len(gyro_world), 3))
        pitch = roll = yaw = 0.0
        for i in range(len(gyro_world)):
            dt = dts[i]
            if i > 0 and dt > 0:
                gwx, gwy, gwz = gyro_world[i]
                # Sequential: each angle depends on the previous one
                pitch += gwx * dt * RAD_TO_DEG
                roll += gwz * dt * RAD_TO_DEG
                yaw = wrap_degrees(yaw + gwy * dt * RAD_TO_DEG)
            out[i] = (pitch, roll, yaw)
        return out


class PerSampleFrame(WorldFrame):
    """Per-sample rotation from the sample's own orientation angles."""

    strategy = STRATEGY_CALIBRATION_WINDOW

    def __init__(
        self,
        baseline: np.ndarray,
        calib_end_index: int,
        gravity_world: Optional[np.ndarray] = None,
        alignment: Optional[np.ndarray] = None,
    ):
        """
        Args:
            baseline: Mean (pitch, roll, yaw) over the calibration window
            calib_end_index: First sample after the calibration window
            gravity_world: Gravity after per-sample rotation, subtracted
                           from every sample (zeros for gravity-free input)
            alignment: Static rotation taking ``gravity_world`` to +Y
        """
        super().__init__()
        self.baseline = baseline
        self.calib_end_index = calib_end_index
        self.gravity_world = np.zeros(3) if gravity_world is None else gravity_world
        self.alignment = np.eye(3) if alignment is None else alignment

    def rotations(self, angles: np.ndarray) -> np.ndarray:
        return euler_rotation(angles[:, 0], angles[:, 1], angles[:, 2])

    def linear_acceleration(self, accel: np.ndarray, angles: np.ndarray) -> np.ndarray:
        rotated = rotate_to_world_frame(accel, self.rotations(angles))
        return rotate_to_world_frame(rotated - self.gravity_world, self.alignment)

    def body_angles(self, gyro: np.ndarray, angles: np.ndarray, dts: np.ndarray) -> np.ndarray:
        out = angles - self.baseline
        out[:, 2] = [wrap_degrees(v) for v in out[:, 2]]
        return out


# =============================================================================
# Resolvers
# =============================================================================

class MeanGravityResolver:
    """
    Gravity from the mean of every accelerometer sample in the session.

    Works because the athlete stands upright for most of a recording, so
    the average specific force points "up" in phone coordinates.
    """

    strategy = STRATEGY_MEAN_GRAVITY

    def resolve(self, readings: Sequence[SensorReading]) -> StaticGravityFrame:
        accel, _, _ = readings_to_arrays(readings)
        finite = np.isfinite(accel).all(axis=1)
        if finite.any():
            gravity = accel[finite].mean(axis=0)
        else:
            gravity = np.zeros(3)

        rotation, degenerate = build_rotation_from_gravity(gravity)
        frame = StaticGravityFrame(gravity, rotation)
        if degenerate:
            logger.warning("Gravity magnitude %.4f below %.2f, using identity rotation",
                           mag3(*gravity), MIN_GRAVITY_MAGNITUDE)
            frame.quality_flags.append(FLAG_DEGENERATE_GRAVITY)
        else:
            logger.debug("Gravity (phone frame): (%.3f, %.3f, %.3f)", *gravity)
        return frame


def detect_calibration_end(
    readings: Sequence[SensorReading],
    block_size: int = CALIBRATION_BLOCK_SIZE,
    threshold: float = CALIBRATION_VARIANCE_THRESHOLD,
) -> Tuple[int, bool]:
    """
    Find where the initial stationary interval ends.

    Slides a trailing block over |a|; the first block whose population
    variance exceeds ``threshold`` marks movement onset at its newest
    sample. Blocks at the start of the session are shorter (from 2
    samples up to ``block_size``) so an onset inside the first block is
    found where it happens.

    Args:
        readings: Session readings
        block_size: Trailing block length in samples
        threshold: Variance of |a| ((m/s²)²) that counts as movement

    Returns:
        (calib_end_index, found). When no onset is found the first block
        (or the whole session if shorter) is used and found is False.
    """
    n = len(readings)
    if n == 0:
        return 0, False
    mags = np.array([r.accel_magnitude for r in readings], dtype=float)
    for end in range(2, n + 1):
        block = mags[max(0, end - block_size):end]
        if float(block.var()) > threshold:
            return max(end - 1, 1), True
    return min(block_size, n), False


class CalibrationWindowResolver:
    """
    Orientation baseline from the stationary interval at session start.

    Body angles are reported relative to the baseline; acceleration is
    rotated sample by sample using R = Ry(yaw) Rx(pitch) Rz(roll).

    Live readings from the sample filter still contain gravity. When the
    window's mean rotated vector is at least ``gravity_fraction`` of g, it
    is subtracted from every sample and a static rotation turns it to +Y.
    Gravity-free readings are used as they are.
    """

    strategy = STRATEGY_CALIBRATION_WINDOW

    def __init__(self, block_size: int = CALIBRATION_BLOCK_SIZE,
                 threshold: float = CALIBRATION_VARIANCE_THRESHOLD,
                 gravity: float = GRAVITY,
                 gravity_fraction: float = GRAVITY_PRESENT_FRACTION):
        self.block_size = block_size
        self.threshold = threshold
        self.gravity = gravity
        self.gravity_fraction = gravity_fraction

    def _window_gravity(self, accel: np.ndarray, angles: np.ndarray, calib_end: int):
        window_accel = accel[:calib_end]
        window_angles = angles[:calib_end]
        finite = np.isfinite(window_accel).all(axis=1) & np.isfinite(window_angles).all(axis=1)
        if not finite.any():
            return None, None
        rotations = euler_rotation(window_angles[finite, 0], window_angles[finite, 1],
                                   window_angles[finite, 2])
        gravity_world = rotate_to_world_frame(window_accel[finite], rotations).mean(axis=0)
        if mag3(*gravity_world) < self.gravity_fraction * self.gravity:
            return None, None
        alignment, _ = build_rotation_from_gravity(gravity_world)
        return gravity_world, alignment

    def resolve(self, readings: Sequence[SensorReading]) -> PerSampleFrame:
        calib_end, found = detect_calibration_end(readings, self.block_size, self.threshold)
        accel, _, angles = readings_to_arrays(readings)

        gravity_world = alignment = None
        if calib_end > 0:
            window = angles[:calib_end]
            baseline = np.array([
                float(window[:, 0].mean()),
                float(window[:, 1].mean()),
                circular_mean_degrees(window[:, 2]),
            ])
            gravity_world, alignment = self._window_gravity(accel, angles, calib_end)
        else:
            baseline = np.zeros(3)

        frame = PerSampleFrame(baseline, calib_end, gravity_world, alignment)
        if gravity_world is not None:
            logger.debug("Removing window gravity (%.3f, %.3f, %.3f)", *gravity_world)
        if not found:
            logger.warning("No movement onset found; baseline taken over first %d samples", calib_end)
            frame.quality_flags.append(FLAG_NO_CALIBRATION_WINDOW)
        logger.debug("Calibration window ends at %d, baseline=(%.2f, %.2f, %.2f)",
                     calib_end, *baseline)
        return frame


def make_resolver(config: Optional[SessionConfig] = None):
    """Return the resolver selected by ``config.resolver_strategy``."""
    config = config or SessionConfig()
    if config.resolver_strategy == STRATEGY_CALIBRATION_WINDOW:
        return CalibrationWindowResolver(config.calibration_block_size,
                                         config.calibration_variance_threshold,
                                         gravity=config.gravity)
    return MeanGravityResolver()
