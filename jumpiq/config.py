"""
Configuration for the JumpIQ sensor fusion pipeline.

Reference values for the filters, the stillness gate and the controller.
Every default can be overridden from the environment with a ``JUMPIQ_``
prefix, e.g. ``JUMPIQ_SMOOTHING_ALPHA=0.3``.
"""

import os
from dataclasses import dataclass, fields

from .errors import ConfigError

# =============================================================================
# Defaults
# =============================================================================

# Fixed tick period of the live sampler (50 Hz)
SAMPLE_PERIOD_MS = 20

# Standard gravity, used for kg-force conversion
GRAVITY = 9.81

# Sample filter
SMOOTHING_ALPHA = 0.2       # low-pass: filtered = (1 - a) * filtered + a * raw
GYRO_WEIGHT = 0.98          # complementary filter, accel weight is 1 - this

# Stillness gate
STILLNESS_WINDOW = 50       # ~1 s at 50 Hz
STILLNESS_MIN_SAMPLES = 10
STILLNESS_THRESHOLD = 0.15  # m/s², std-dev of |a|

# Controller
CONTROLLER_MODE_CALIBRATE = "calibrate"
CONTROLLER_MODE_COUNTDOWN = "countdown"
CONTROLLER_MODE = CONTROLLER_MODE_CALIBRATE
CALIBRATION_SAMPLES = 50
CALIBRATION_TIMEOUT_SAMPLES = 500   # ~10 s at 50 Hz
STABILIZE_SECONDS = 3
UI_REFRESH_EVERY = 5                # ~10 Hz snapshots while recording

# Resolver
STRATEGY_MEAN_GRAVITY = "mean_gravity"
STRATEGY_CALIBRATION_WINDOW = "calibration_window"
RESOLVER_STRATEGY = STRATEGY_MEAN_GRAVITY
CALIBRATION_BLOCK_SIZE = 25
CALIBRATION_VARIANCE_THRESHOLD = 0.15

# Fallback calibration-end index for the countdown controller
DEFAULT_CALIB_END_INDEX = 25

CONTROLLER_MODES = (CONTROLLER_MODE_CALIBRATE, CONTROLLER_MODE_COUNTDOWN)
RESOLVER_STRATEGIES = (STRATEGY_MEAN_GRAVITY, STRATEGY_CALIBRATION_WINDOW)

ENV_PREFIX = "JUMPIQ_"


@dataclass
class SessionConfig:
    """User-configurable constants for one recording session."""
    sample_period_ms: int = SAMPLE_PERIOD_MS
    gravity: float = GRAVITY
    smoothing_alpha: float = SMOOTHING_ALPHA
    gyro_weight: float = GYRO_WEIGHT
    stillness_window: int = STILLNESS_WINDOW
    stillness_min_samples: int = STILLNESS_MIN_SAMPLES
    stillness_threshold: float = STILLNESS_THRESHOLD
    controller_mode: str = CONTROLLER_MODE
    calibration_samples: int = CALIBRATION_SAMPLES
    calibration_timeout_samples: int = CALIBRATION_TIMEOUT_SAMPLES
    stabilize_seconds: int = STABILIZE_SECONDS
    ui_refresh_every: int = UI_REFRESH_EVERY
    resolver_strategy: str = RESOLVER_STRATEGY
    calibration_block_size: int = CALIBRATION_BLOCK_SIZE
    calibration_variance_threshold: float = CALIBRATION_VARIANCE_THRESHOLD

    def __post_init__(self):
        if self.controller_mode not in CONTROLLER_MODES:
            raise ConfigError(f"unknown controller_mode: {self.controller_mode!r}")
        if self.resolver_strategy not in RESOLVER_STRATEGIES:
            raise ConfigError(f"unknown resolver_strategy: {self.resolver_strategy!r}")
        if not 0.0 < self.smoothing_alpha <= 1.0:
            raise ConfigError("smoothing_alpha must be in (0, 1]")
        if not 0.0 <= self.gyro_weight <= 1.0:
            raise ConfigError("gyro_weight must be in [0, 1]")
        for name in ("sample_period_ms", "stillness_window", "stillness_min_samples",
                     "calibration_samples", "calibration_timeout_samples",
                     "ui_refresh_every", "calibration_block_size"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.stabilize_seconds < 0:
            raise ConfigError("stabilize_seconds must be >= 0")
        if self.calibration_timeout_samples < self.calibration_samples:
            raise ConfigError("calibration_timeout_samples must be >= calibration_samples")

    @property
    def accel_weight(self) -> float:
        return 1.0 - self.gyro_weight

    @property
    def sample_period_sec(self) -> float:
        return self.sample_period_ms / 1000.0

    @classmethod
    def from_env(cls, environ=None) -> "SessionConfig":
        """
        Build a config from ``JUMPIQ_*`` environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            SessionConfig with overrides applied on top of the defaults
        """
        environ = os.environ if environ is None else environ
        kwargs = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper(), "").strip()
            if not raw:
                continue
            caster = type(f.default)
            try:
                kwargs[f.name] = caster(raw)
            except ValueError as e:
                raise ConfigError(f"invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e
        return cls(**kwargs)
