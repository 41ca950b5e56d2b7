"""
Data models for JumpIQ.

Immutable value types passed between the live sampler, the offline
pipeline and the excluded UI/storage layers. Each type round-trips
through a plain JSON-shaped dict with short, documented keys.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .config import DEFAULT_CALIB_END_INDEX, SessionConfig


def mag3(x: float, y: float, z: float) -> float:
    """Vector magnitude; 0.0 for NaN or non-positive squared magnitude."""
    sq = x * x + y * y + z * z
    if math.isnan(sq) or sq <= 0:
        return 0.0
    return math.sqrt(sq)


def _iso(dt: datetime) -> str:
    return dt.isoformat()


@dataclass(frozen=True)
class SensorReading:
    """One fixed-cadence filtered sample from the live sampler."""
    timestamp_ms: int      # ms since session start
    accel_x: float         # m/s²
    accel_y: float
    accel_z: float
    gyro_x: float          # rad/s
    gyro_y: float
    gyro_z: float
    pitch: float           # degrees, complementary filter
    roll: float
    yaw: float             # degrees, [-180, 180]

    @property
    def accel_magnitude(self) -> float:
        return mag3(self.accel_x, self.accel_y, self.accel_z)

    @property
    def gyro_magnitude(self) -> float:
        return mag3(self.gyro_x, self.gyro_y, self.gyro_z)

    @property
    def time_seconds(self) -> float:
        return self.timestamp_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ts": self.timestamp_ms,
            "ax": self.accel_x, "ay": self.accel_y, "az": self.accel_z,
            "gx": self.gyro_x, "gy": self.gyro_y, "gz": self.gyro_z,
            "pitch": self.pitch, "roll": self.roll, "yaw": self.yaw,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SensorReading":
        return cls(
            timestamp_ms=int(d["ts"]),
            accel_x=float(d["ax"]), accel_y=float(d["ay"]), accel_z=float(d["az"]),
            gyro_x=float(d["gx"]), gyro_y=float(d["gy"]), gyro_z=float(d["gz"]),
            pitch=float(d["pitch"]), roll=float(d["roll"]), yaw=float(d["yaw"]),
        )


@dataclass(frozen=True)
class ProcessedFrame:
    """
    One post-processed sample in the world frame (Y = up).

    Position Y is the athlete's height above the start point. Body angles
    are relative to standing upright at session start.
    """
    time_sec: float
    accel_xw: float        # horizontal-forward (m/s²)
    accel_yw: float        # vertical/up
    accel_zw: float        # horizontal-lateral
    vel_x: float           # m/s
    vel_y: float
    vel_z: float
    pos_x: float           # m
    pos_y: float           # m (height)
    pos_z: float
    force_n: float         # mass * |accel_world|
    force_kg: float        # force_n / g
    athlete_pitch: float   # degrees, forward/back lean
    athlete_roll: float    # side lean
    athlete_yaw: float     # rotation about vertical, [-180, 180]
    is_propulsion: bool = False

    @property
    def speed(self) -> float:
        return mag3(self.vel_x, self.vel_y, self.vel_z)

    @property
    def height(self) -> float:
        return self.pos_y

    @property
    def accel_mag_world(self) -> float:
        return mag3(self.accel_xw, self.accel_yw, self.accel_zw)

    @property
    def horizontal_speed(self) -> float:
        return mag3(self.vel_x, 0.0, self.vel_z)

    @property
    def vertical_speed(self) -> float:
        return self.vel_y

    def with_changes(self, **changes) -> "ProcessedFrame":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "t": self.time_sec,
            "axw": self.accel_xw, "ayw": self.accel_yw, "azw": self.accel_zw,
            "vx": self.vel_x, "vy": self.vel_y, "vz": self.vel_z,
            "px": self.pos_x, "py": self.pos_y, "pz": self.pos_z,
            "fN": self.force_n, "fKg": self.force_kg,
            "ap": self.athlete_pitch, "ar": self.athlete_roll, "ay": self.athlete_yaw,
            "prop": self.is_propulsion,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProcessedFrame":
        return cls(
            time_sec=float(d["t"]),
            accel_xw=float(d["axw"]), accel_yw=float(d["ayw"]), accel_zw=float(d["azw"]),
            vel_x=float(d["vx"]), vel_y=float(d["vy"]), vel_z=float(d["vz"]),
            pos_x=float(d["px"]), pos_y=float(d["py"]), pos_z=float(d["pz"]),
            force_n=float(d["fN"]), force_kg=float(d["fKg"]),
            athlete_pitch=float(d["ap"]), athlete_roll=float(d["ar"]),
            athlete_yaw=float(d["ay"]),
            is_propulsion=bool(d.get("prop", False)),
        )


@dataclass(frozen=True)
class SessionResult:
    """
    Aggregate of a completed recording.

    Owns the raw readings and the derived frames (1:1 by index). Summary
    indices point into ``frames`` and are -1 when ``frames`` is empty.
    """
    readings: Tuple[SensorReading, ...]
    frames: Tuple[ProcessedFrame, ...]
    athlete_weight_kg: float
    athlete_name: str
    date: datetime
    peak_force_index: int
    max_height_index: int
    max_speed_index: int
    calib_end_index: int
    strategy: str = ""
    quality_flags: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_readings(
        cls,
        readings: List[SensorReading],
        athlete_weight_kg: float,
        athlete_name: str,
        date: datetime,
        config: Optional[SessionConfig] = None,
        calib_end_index: Optional[int] = None,
    ) -> "SessionResult":
        """
        Run the offline pipeline over a finished recording.

        Args:
            readings: Buffered readings, in timestamp order
            athlete_weight_kg: Mass used for force computation
            athlete_name: Display name
            date: Session start time
            config: Pipeline settings (defaults if omitted)
            calib_end_index: Calibration-end index found by the live
                controller; when None the resolver's detected window is
                used, then the fixed window

        Returns:
            SessionResult with frames and summary indices filled in
        """
        # Imported here: the pipeline imports this module for its types
        from .pipeline import PostProcessor
        from .events import find_summary_indices

        processor = PostProcessor(readings, athlete_weight_kg, config=config)
        output = processor.process()
        indices = find_summary_indices(output.frames)

        n = len(output.frames)
        if calib_end_index is None:
            calib_end_index = output.calib_end_index
        if not n:
            calib_end_index = -1
        elif calib_end_index is None:
            calib_end_index = min(DEFAULT_CALIB_END_INDEX, n // 2)
        else:
            calib_end_index = max(0, min(calib_end_index, n - 1))

        return cls(
            readings=tuple(readings),
            frames=tuple(output.frames),
            athlete_weight_kg=float(athlete_weight_kg),
            athlete_name=athlete_name,
            date=date,
            peak_force_index=indices.peak_force_index,
            max_height_index=indices.max_height_index,
            max_speed_index=indices.max_speed_index,
            calib_end_index=calib_end_index,
            strategy=output.strategy,
            quality_flags=tuple(output.quality_flags),
        )

    # ── Convenience views ──

    def _frame_at(self, index: int) -> Optional[ProcessedFrame]:
        if not self.frames or index < 0:
            return None
        return self.frames[index]

    @property
    def peak_force_frame(self) -> Optional[ProcessedFrame]:
        return self._frame_at(self.peak_force_index)

    @property
    def max_height_frame(self) -> Optional[ProcessedFrame]:
        return self._frame_at(self.max_height_index)

    @property
    def max_speed_frame(self) -> Optional[ProcessedFrame]:
        return self._frame_at(self.max_speed_index)

    @property
    def peak_force_kg(self) -> float:
        f = self.peak_force_frame
        return f.force_kg if f else 0.0

    @property
    def peak_force_n(self) -> float:
        f = self.peak_force_frame
        return f.force_n if f else 0.0

    @property
    def max_height(self) -> float:
        f = self.max_height_frame
        return f.height if f else 0.0

    @property
    def max_speed(self) -> float:
        f = self.max_speed_frame
        return f.speed if f else 0.0

    @property
    def max_vertical_speed(self) -> float:
        if not self.frames:
            return 0.0
        return max(f.vertical_speed for f in self.frames)

    @property
    def peak_accel_magnitude(self) -> float:
        """World-frame |a| at the peak-force frame."""
        f = self.peak_force_frame
        return f.accel_mag_world if f else 0.0

    @property
    def duration_seconds(self) -> float:
        return self.frames[-1].time_sec if self.frames else 0.0

    @property
    def propulsion_phases(self) -> List[Tuple[int, int]]:
        """Contiguous propulsion runs as inclusive (start, end) frame indices."""
        from .events import propulsion_intervals
        return propulsion_intervals(self.frames)

    def summary(self) -> Dict[str, Any]:
        """Flat JSON-safe summary of the session metrics."""
        return {
            "athlete_name": self.athlete_name,
            "athlete_weight_kg": self.athlete_weight_kg,
            "date": _iso(self.date),
            "strategy": self.strategy,
            "num_frames": len(self.frames),
            "duration_sec": round(self.duration_seconds, 3),
            "peak_force_kg": round(self.peak_force_kg, 2),
            "peak_force_n": round(self.peak_force_n, 1),
            "peak_accel_ms2": round(self.peak_accel_magnitude, 3),
            "max_height_m": round(self.max_height, 4),
            "max_speed_ms": round(self.max_speed, 3),
            "max_vertical_speed_ms": round(self.max_vertical_speed, 3),
            "propulsion_phases": len(self.propulsion_phases),
            "quality_flags": list(self.quality_flags),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "athleteWeightKg": self.athlete_weight_kg,
            "athleteName": self.athlete_name,
            "date": _iso(self.date),
            "peakForceIndex": self.peak_force_index,
            "maxHeightIndex": self.max_height_index,
            "maxSpeedIndex": self.max_speed_index,
            "calibEndIndex": self.calib_end_index,
            "strategy": self.strategy,
            "qualityFlags": list(self.quality_flags),
            "readings": [r.to_dict() for r in self.readings],
            "frames": [f.to_dict() for f in self.frames],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SessionResult":
        readings = tuple(SensorReading.from_dict(r) for r in d["readings"])
        frames = tuple(ProcessedFrame.from_dict(f) for f in (d.get("frames") or []))
        return cls(
            readings=readings,
            frames=frames,
            athlete_weight_kg=float(d["athleteWeightKg"]),
            athlete_name=d["athleteName"],
            date=datetime.fromisoformat(d["date"]),
            peak_force_index=int(d.get("peakForceIndex", 0)),
            max_height_index=int(d.get("maxHeightIndex", 0)),
            max_speed_index=int(d.get("maxSpeedIndex", 0)),
            calib_end_index=int(d.get("calibEndIndex", 0)),
            strategy=d.get("strategy", ""),
            quality_flags=tuple(d.get("qualityFlags") or ()),
        )


@dataclass(frozen=True)
class LeaderboardEntry:
    """Record handed to the leaderboard store."""
    id: str
    athlete_name: str
    athlete_weight_kg: float
    peak_force_kg: float
    peak_accel_ms2: float
    date: datetime
    is_validated: bool = False
    notes: Optional[str] = None

    @classmethod
    def from_session(
        cls,
        result: SessionResult,
        validated: bool = False,
        notes: Optional[str] = None,
        entry_id: Optional[str] = None,
    ) -> "LeaderboardEntry":
        if entry_id is None:
            entry_id = str(int(datetime.now().timestamp() * 1000))
        notes = (notes or "").strip() or None
        return cls(
            id=entry_id,
            athlete_name=result.athlete_name,
            athlete_weight_kg=result.athlete_weight_kg,
            peak_force_kg=result.peak_force_kg,
            peak_accel_ms2=result.peak_accel_magnitude,
            date=result.date,
            is_validated=validated,
            notes=notes,
        )

    def with_validation(self, is_validated: bool, notes: Optional[str] = None) -> "LeaderboardEntry":
        return replace(self, is_validated=is_validated,
                       notes=notes if notes is not None else self.notes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "athleteName": self.athlete_name,
            "athleteWeightKg": self.athlete_weight_kg,
            "peakForceKg": self.peak_force_kg,
            "peakAccelMs2": self.peak_accel_ms2,
            "date": _iso(self.date),
            "isValidated": self.is_validated,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LeaderboardEntry":
        return cls(
            id=str(d["id"]),
            athlete_name=d["athleteName"],
            athlete_weight_kg=float(d["athleteWeightKg"]),
            peak_force_kg=float(d["peakForceKg"]),
            peak_accel_ms2=float(d["peakAccelMs2"]),
            date=datetime.fromisoformat(d["date"]),
            is_validated=bool(d.get("isValidated") or False),
            notes=d.get("notes"),
        )


def rank_entries(entries: List[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Validated entries first, then by peak force descending."""
    return sorted(entries, key=lambda e: (not e.is_validated, -e.peak_force_kg))


@dataclass(frozen=True)
class AthleteProfile:
    name: str
    weight_kg: float
    device_mode: Optional[str] = None  # 'phone' or a device address

    def copy_with(self, **changes) -> "AthleteProfile":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "weightKg": self.weight_kg, "deviceMode": self.device_mode}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AthleteProfile":
        return cls(name=d["name"], weight_kg=float(d["weightKg"]),
                   device_mode=d.get("deviceMode"))
