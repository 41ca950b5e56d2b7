"""
JumpIQ Sensor Fusion Pipeline

Turns a phone's accelerometer/gyroscope stream into world-frame
kinematics for jump and sprint analysis:
- SampleFilter: low-pass + complementary filter, one reading per tick
- StillnessDetector: gates calibration on a quiet window
- SessionController: live idle/calibrate/record/process state machine
- PostProcessor: gravity/orientation -> integration -> drift -> events

Usage:
    from jumpiq import SessionController, SessionConfig

    controller = SessionController(SessionConfig())
    controller.start(weight_kg=80.0, name="Sam")

    # Every 20 ms, after feeding the latest sensor values:
    controller.update_accelerometer(ax, ay, az)
    controller.update_gyroscope(gx, gy, gz)
    controller.tick()

    state = controller.stop()   # Complete(result) or Error(message)
"""

from .config import SessionConfig
from .errors import (
    JumpIQError,
    ConfigError,
    EmptySessionError,
    CalibrationTimeoutError,
    SensorStreamError,
)
from .models import (
    SensorReading,
    ProcessedFrame,
    SessionResult,
    LeaderboardEntry,
    AthleteProfile,
    rank_entries,
)
from .filtering import SampleFilter, wrap_degrees
from .stillness import StillnessDetector
from .gravity import (
    MeanGravityResolver,
    CalibrationWindowResolver,
    build_rotation_from_gravity,
    euler_rotation,
    rotate_to_world_frame,
)
from .integrator import KinematicIntegrator
from .drift import DriftCorrector
from .events import mark_propulsion, find_summary_indices
from .pipeline import PostProcessor
from .controller import (
    SessionController,
    Idle,
    Stabilizing,
    Calibrating,
    Recording,
    Processing,
    Complete,
    Error,
)
from .live import LiveRecorder

__all__ = [
    # Config & errors
    'SessionConfig',
    'JumpIQError',
    'ConfigError',
    'EmptySessionError',
    'CalibrationTimeoutError',
    'SensorStreamError',

    # Models
    'SensorReading',
    'ProcessedFrame',
    'SessionResult',
    'LeaderboardEntry',
    'AthleteProfile',
    'rank_entries',

    # Live stages
    'SampleFilter',
    'wrap_degrees',
    'StillnessDetector',
    'SessionController',
    'LiveRecorder',
    'Idle',
    'Stabilizing',
    'Calibrating',
    'Recording',
    'Processing',
    'Complete',
    'Error',

    # Offline pipeline
    'MeanGravityResolver',
    'CalibrationWindowResolver',
    'build_rotation_from_gravity',
    'euler_rotation',
    'rotate_to_world_frame',
    'KinematicIntegrator',
    'DriftCorrector',
    'mark_propulsion',
    'find_summary_indices',
    'PostProcessor',
]

__version__ = '1.0.0'
