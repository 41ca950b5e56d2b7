"""
Stillness detection for JumpIQ.

Decides whether the phone has been stationary over a recent window of
readings, using the spread of the acceleration magnitude. Gravity has a
constant magnitude, so the test works on readings with or without
gravity in them.
"""

from typing import Sequence

import numpy as np

from .config import STILLNESS_MIN_SAMPLES, STILLNESS_THRESHOLD, STILLNESS_WINDOW
from .models import SensorReading


def magnitude_stats(mags) -> tuple:
    """Return (mean, population variance) of a magnitude sequence."""
    arr = np.asarray(mags, dtype=float)
    mean = float(arr.mean())
    variance = float(((arr - mean) ** 2).mean())
    return mean, variance


class StillnessDetector:
    """
    Stationary check over a sliding window of readings.

    Usage:
        detector = StillnessDetector(window=50, min_samples=10, threshold=0.15)
        if detector.is_stationary(readings):
            ...
    """

    def __init__(
        self,
        window: int = STILLNESS_WINDOW,
        min_samples: int = STILLNESS_MIN_SAMPLES,
        threshold: float = STILLNESS_THRESHOLD,
    ):
        """
        Args:
            window: Number of most recent readings to examine
            min_samples: Below this many readings, never report stationary
            threshold: Max std-dev of |a| (m/s²) to count as stationary
        """
        self.window = window
        self.min_samples = min_samples
        self.threshold = threshold

    def std_dev(self, readings: Sequence[SensorReading]) -> float:
        recent = readings[-self.window:]
        if not recent:
            return 0.0
        _, variance = magnitude_stats([r.accel_magnitude for r in recent])
        return float(np.sqrt(variance))

    def is_stationary(self, readings: Sequence[SensorReading]) -> bool:
        """
        Check the last ``window`` readings for stillness.

        Args:
            readings: Readings in time order (only the tail is used)

        Returns:
            True iff at least ``min_samples`` readings are available and
            the std-dev of their acceleration magnitude is below threshold
        """
        recent = readings[-self.window:]
        if len(recent) < self.min_samples:
            return False
        return self.std_dev(recent) < self.threshold
