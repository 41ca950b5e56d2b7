"""
Drift correction for JumpIQ.

Double integration of noisy acceleration drifts. Assuming the athlete is
at rest at both the start and the end of a recording (zero-velocity
update, ZUPT), any velocity left at the last frame is treated as drift
that accumulated linearly over the session and is subtracted out.
Position is then re-integrated from the corrected velocity.
"""

import logging
from typing import List, Sequence, Tuple

from .models import ProcessedFrame

logger = logging.getLogger(__name__)


def drift_rates(frames: Sequence[ProcessedFrame]) -> Tuple[float, float, float]:
    """Per-axis linear drift rate (m/s²): final velocity / session time."""
    if len(frames) < 2:
        return (0.0, 0.0, 0.0)
    end = frames[-1]
    total = end.time_sec
    if total <= 0:
        return (0.0, 0.0, 0.0)
    return (end.vel_x / total, end.vel_y / total, end.vel_z / total)


class DriftCorrector:
    """
    Single global linear ZUPT correction.

    Usage:
        corrected = DriftCorrector().correct(frames)
    """

    def correct(self, frames: Sequence[ProcessedFrame]) -> List[ProcessedFrame]:
        """
        Remove linear velocity drift and re-integrate position.

        No-op (returns a copy) for fewer than 2 frames or a non-positive
        session duration.

        Args:
            frames: Raw integrated frames

        Returns:
            New frames with corrected velocity and position
        """
        frames = list(frames)
        if len(frames) < 2 or frames[-1].time_sec <= 0:
            return frames

        rx, ry, rz = drift_rates(frames)
        logger.debug("Drift rates: (%.5f, %.5f, %.5f) m/s²", rx, ry, rz)

        corrected = []
        px = py = pz = 0.0
        prev_t = None
        for f in frames:
            t = f.time_sec
            cvx = f.vel_x - rx * t
            cvy = f.vel_y - ry * t
            cvz = f.vel_z - rz * t

            dt = 0.0 if prev_t is None else t - prev_t
            px += cvx * dt
            py += cvy * dt
            pz += cvz * dt
            prev_t = t

            corrected.append(f.with_changes(
                vel_x=cvx, vel_y=cvy, vel_z=cvz,
                pos_x=px, pos_y=py, pos_z=pz,
            ))
        return corrected
