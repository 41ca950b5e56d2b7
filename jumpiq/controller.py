"""
Live calibration/recording controller for JumpIQ.

A state machine driven by one ordered stream of events (start, sensor
updates, timer ticks, stop, reset). States are plain value objects:

    Idle -> Calibrating -> Recording -> Processing -> Complete | Error
    Idle -> Stabilizing -> Recording -> Processing -> Complete | Error

The variance-gated path ("calibrate" mode) waits until the Stillness
Detector reports the phone stationary; it gives up with a
CalibrationTimeoutError after ``calibration_timeout_samples``. The
countdown path ("countdown" mode) waits a fixed number of seconds.

The controller does no I/O and owns no timers; ``jumpiq.live`` feeds it.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from .config import CONTROLLER_MODE_COUNTDOWN, SessionConfig
from .errors import CalibrationTimeoutError, EmptySessionError, JumpIQError, SensorStreamError
from .filtering import SampleFilter
from .models import SensorReading, SessionResult
from .stillness import StillnessDetector

logger = logging.getLogger(__name__)


# =============================================================================
# States
# =============================================================================

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Stabilizing:
    remaining_seconds: int


@dataclass(frozen=True)
class Calibrating:
    collected: int
    needed: int
    elapsed_ms: int


@dataclass(frozen=True)
class Recording:
    readings: Tuple[SensorReading, ...]
    latest: Optional[SensorReading]
    elapsed_ms: int
    calibrated: bool


@dataclass(frozen=True)
class Processing:
    pass


@dataclass(frozen=True)
class Complete:
    result: SessionResult


@dataclass(frozen=True)
class Error:
    message: str
    reason: str = "error"


SessionState = Union[Idle, Stabilizing, Calibrating, Recording, Processing, Complete, Error]

ACTIVE_STATES = (Stabilizing, Calibrating, Recording)
SAMPLING_STATES = (Calibrating, Recording)


def state_name(state: SessionState) -> str:
    return type(state).__name__.lower()


# =============================================================================
# Per-session state
# =============================================================================

@dataclass
class _Session:
    """Everything torn down and rebuilt on start/reset."""
    athlete_name: str = ""
    athlete_weight_kg: float = 70.0
    date: Optional[datetime] = None
    start_time: Optional[float] = None
    last_tick_time: Optional[float] = None
    last_timestamp_ms: int = -1
    has_data: bool = False
    raw_accel: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    raw_gyro: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    readings: List[SensorReading] = field(default_factory=list)
    calib_end_index: Optional[int] = None
    calibrated: bool = False


class SessionController:
    """
    Drive one recording session at a time.

    Usage:
        controller = SessionController(SessionConfig())
        controller.subscribe(lambda state: print(state))
        controller.start(weight_kg=80.0, name="Sam")
        controller.update_accelerometer(ax, ay, az)   # from sensor callbacks
        controller.update_gyroscope(gx, gy, gz)
        controller.tick()                              # every 20 ms
        controller.stop()                              # -> Complete / Error
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            config: Session settings (defaults if omitted)
            clock: Monotonic seconds, used for dt and timestamps
            wall_clock: Session start date for the result
        """
        self.config = config or SessionConfig()
        self.clock = clock
        self.wall_clock = wall_clock
        self.detector = StillnessDetector(
            window=self.config.stillness_window,
            min_samples=self.config.stillness_min_samples,
            threshold=self.config.stillness_threshold,
        )
        self.filter = SampleFilter(alpha=self.config.smoothing_alpha,
                                   gyro_weight=self.config.gyro_weight)
        self._session = _Session()
        self._state: SessionState = Idle()
        self._listeners: List[Callable[[SessionState], None]] = []

    # ── State & listeners ──

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def readings(self) -> List[SensorReading]:
        return list(self._session.readings)

    @property
    def is_active(self) -> bool:
        return isinstance(self._state, ACTIVE_STATES)

    @property
    def is_sampling(self) -> bool:
        return isinstance(self._state, SAMPLING_STATES)

    def subscribe(self, listener: Callable[[SessionState], None]) -> Callable[[], None]:
        """Register a state listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _emit(self, state: SessionState):
        previous = self._state
        self._state = state
        if type(previous) is not type(state):
            logger.info("State %s -> %s", state_name(previous), state_name(state))
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener %r failed", listener)

    # ── Events ──

    def start(self, weight_kg: float, name: str) -> SessionState:
        """Begin a new session, discarding any previous one."""
        now = self.clock()
        self._session = _Session(
            athlete_name=name,
            athlete_weight_kg=float(weight_kg),
            date=self.wall_clock(),
            start_time=now,
            last_tick_time=now,
        )
        self.filter.reset()

        if self.config.controller_mode == CONTROLLER_MODE_COUNTDOWN:
            if self.config.stabilize_seconds > 0:
                self._emit(Stabilizing(remaining_seconds=self.config.stabilize_seconds))
            else:
                self._begin_recording(calibrated=False)
        else:
            self._emit(Calibrating(collected=0, needed=self.config.calibration_samples, elapsed_ms=0))
        return self._state

    def update_accelerometer(self, x: float, y: float, z: float):
        """Latest raw accelerometer value (last value wins)."""
        self._session.raw_accel = (x, y, z)
        self._session.has_data = True

    def update_gyroscope(self, x: float, y: float, z: float):
        """Latest raw gyroscope value (last value wins)."""
        self._session.raw_gyro = (x, y, z)

    def stabilize_tick(self) -> SessionState:
        """One second of the countdown has elapsed."""
        if not isinstance(self._state, Stabilizing):
            return self._state
        remaining = self._state.remaining_seconds - 1
        if remaining > 0:
            self._emit(Stabilizing(remaining_seconds=remaining))
        else:
            self._begin_recording(calibrated=False)
        return self._state

    def tick(self, now: Optional[float] = None) -> Optional[SensorReading]:
        """
        Fixed-cadence sample tick.

        Args:
            now: Monotonic time of the tick (defaults to the clock)

        Returns:
            The reading taken, or None if the tick was ignored
        """
        if not self.is_sampling:
            return None
        s = self._session
        if not s.has_data:
            return None

        now = self.clock() if now is None else now
        dt = now - s.last_tick_time
        s.last_tick_time = now

        elapsed_ms = int(round((now - s.start_time) * 1000.0))
        # Timestamps must be strictly increasing
        if elapsed_ms <= s.last_timestamp_ms:
            elapsed_ms = s.last_timestamp_ms + 1
        s.last_timestamp_ms = elapsed_ms

        ax, ay, az = s.raw_accel
        gx, gy, gz = s.raw_gyro
        reading = self.filter.update(ax, ay, az, gx, gy, gz, dt=dt, timestamp_ms=elapsed_ms)
        s.readings.append(reading)

        if isinstance(self._state, Calibrating):
            self._check_calibration(reading)
        elif len(s.readings) % self.config.ui_refresh_every == 0:
            self._emit(Recording(
                readings=tuple(s.readings),
                latest=reading,
                elapsed_ms=reading.timestamp_ms,
                calibrated=s.calibrated,
            ))
        return reading

    def stop(self) -> SessionState:
        """Stop sampling and run the offline pipeline over the buffer."""
        if isinstance(self._state, (Processing, Complete, Error)):
            logger.debug("Stop ignored in state %s", state_name(self._state))
            return self._state

        s = self._session
        try:
            if not s.readings:
                raise EmptySessionError()
            self._emit(Processing())
            result = SessionResult.from_readings(
                readings=list(s.readings),
                athlete_weight_kg=s.athlete_weight_kg,
                athlete_name=s.athlete_name,
                date=s.date or self.wall_clock(),
                config=self.config,
                calib_end_index=s.calib_end_index,
            )
        except JumpIQError as e:
            self._fail(e)
            return self._state

        logger.info("Session complete: %d frames, peak force %.1f kgf, flags=%s",
                    len(result.frames), result.peak_force_kg, list(result.quality_flags))
        self._emit(Complete(result))
        return self._state

    def reset(self) -> SessionState:
        """Drop everything and return to Idle."""
        self._session = _Session()
        self.filter.reset()
        self._emit(Idle())
        return self._state

    def fail(self, message: str) -> SessionState:
        """Abort the session because the sensor stream failed."""
        self._fail(SensorStreamError(message))
        return self._state

    # ── Internals ──

    def _begin_recording(self, calibrated: bool):
        # Countdown mode restarts the session clock when sampling begins
        s = self._session
        if not calibrated:
            now = self.clock()
            s.start_time = now
            s.last_tick_time = now
            s.date = self.wall_clock()
        s.calibrated = calibrated
        self._emit(Recording(
            readings=tuple(s.readings),
            latest=s.readings[-1] if s.readings else None,
            elapsed_ms=max(s.last_timestamp_ms, 0),
            calibrated=calibrated,
        ))

    def _check_calibration(self, reading: SensorReading):
        s = self._session
        collected = len(s.readings)
        needed = self.config.calibration_samples

        if collected >= needed and self.detector.is_stationary(s.readings):
            s.calib_end_index = collected
            logger.info("Calibrated after %d samples", collected)
            self._begin_recording(calibrated=True)
            return

        if collected >= self.config.calibration_timeout_samples:
            self._fail(CalibrationTimeoutError(collected))
            return

        if collected % self.config.ui_refresh_every == 0:
            self._emit(Calibrating(collected=collected, needed=needed,
                                   elapsed_ms=reading.timestamp_ms))

    def _fail(self, error: JumpIQError):
        logger.warning("Session failed (%s): %s", error.reason, error)
        self._session.has_data = False
        self._emit(Error(message=str(error), reason=error.reason))
