"""
Event classification for JumpIQ.

Labels propulsion frames and locates the summary extrema (peak force,
max height, max speed) of a processed session.
"""

from dataclasses import dataclass
from typing import List, Sequence

from .models import ProcessedFrame

NO_INDEX = -1


@dataclass(frozen=True)
class SummaryIndices:
    peak_force_index: int = NO_INDEX
    max_height_index: int = NO_INDEX
    max_speed_index: int = NO_INDEX


def is_propulsion(prev_vy: float, cur_vy: float) -> bool:
    """Vertical velocity increasing and non-negative."""
    return bool(cur_vy > prev_vy and cur_vy >= 0)


def mark_propulsion(frames: Sequence[ProcessedFrame]) -> List[ProcessedFrame]:
    """
    Return frames with ``is_propulsion`` set.

    Frame 0 is never propulsion. Free fall (vy decreasing) and landing
    (vy negative, even if rising) are excluded.
    """
    out = []
    for i, f in enumerate(frames):
        flag = i > 0 and is_propulsion(frames[i - 1].vel_y, f.vel_y)
        out.append(f if flag == f.is_propulsion else f.with_changes(is_propulsion=flag))
    return out


def find_summary_indices(frames: Sequence[ProcessedFrame]) -> SummaryIndices:
    """
    Single scan for peak force, max height and max speed.

    Ties resolve to the first occurrence. All indices are -1 when
    ``frames`` is empty.
    """
    if not frames:
        return SummaryIndices()

    peak_force = max_height = max_speed = 0
    pf = frames[0].force_kg
    mh = frames[0].height
    ms = frames[0].speed
    for i in range(1, len(frames)):
        f = frames[i]
        if f.force_kg > pf:
            pf, peak_force = f.force_kg, i
        if f.height > mh:
            mh, max_height = f.height, i
        speed = f.speed
        if speed > ms:
            ms, max_speed = speed, i

    return SummaryIndices(peak_force, max_height, max_speed)


def propulsion_intervals(frames: Sequence[ProcessedFrame]) -> List[tuple]:
    """Contiguous propulsion runs as (start_index, end_index) inclusive."""
    runs = []
    start = None
    for i, f in enumerate(frames):
        if f.is_propulsion and start is None:
            start = i
        elif not f.is_propulsion and start is not None:
            runs.append((start, i - 1))
            start = None
    if start is not None:
        runs.append((start, len(frames) - 1))
    return runs
