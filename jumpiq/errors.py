"""Error types raised by the JumpIQ core."""


class JumpIQError(Exception):
    """Base class for all JumpIQ errors."""

    reason = "error"


class ConfigError(JumpIQError, ValueError):
    """A configuration value is out of range or unknown."""

    reason = "config_error"


class EmptySessionError(JumpIQError):
    """Recording was stopped before any reading was buffered."""

    reason = "empty_session"

    def __init__(self, message: str = "No data recorded. Please try again."):
        super().__init__(message)


class CalibrationTimeoutError(JumpIQError):
    """The device never held still long enough to calibrate."""

    reason = "calibration_timeout"

    def __init__(self, collected: int):
        super().__init__(
            f"Calibration timed out after {collected} samples. "
            "Hold the phone still and try again."
        )
        self.collected = collected


class SensorStreamError(JumpIQError):
    """The host sensor stream reported a failure."""

    reason = "sensor_error"
