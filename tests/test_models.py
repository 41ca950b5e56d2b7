import json
from datetime import datetime

import pytest

from jumpiq.models import (
    AthleteProfile,
    LeaderboardEntry,
    SensorReading,
    SessionResult,
    mag3,
    rank_entries,
)
from jumpiq.synthetic import pulse_session


def test_mag3():
    assert mag3(3.0, 4.0, 0.0) == 5.0
    assert mag3(0.0, 0.0, 0.0) == 0.0
    assert mag3(float("nan"), 1.0, 1.0) == 0.0


def test_reading_views():
    r = SensorReading(1500, 3.0, 4.0, 0.0, 0.0, 0.0, 2.0, 1.0, 2.0, 3.0)
    assert r.accel_magnitude == 5.0
    assert r.gyro_magnitude == 2.0
    assert r.time_seconds == 1.5
    assert SensorReading.from_dict(r.to_dict()) == r


def test_frame_dict_keys(make_frame):
    d = make_frame(time_sec=0.1, vel_y=1.0, is_propulsion=True).to_dict()
    assert set(d) == {"t", "axw", "ayw", "azw", "vx", "vy", "vz", "px", "py", "pz",
                      "fN", "fKg", "ap", "ar", "ay", "prop"}
    assert d["prop"] is True


@pytest.fixture
def result(session_date):
    return SessionResult.from_readings(pulse_session(), 80.0, "Sam", session_date)


def test_session_result_json_round_trip(result):
    payload = json.loads(json.dumps(result.to_dict()))
    assert payload["calibEndIndex"] == result.calib_end_index
    restored = SessionResult.from_dict(payload)
    assert restored == result


def test_session_result_from_minimal_dict(result):
    d = result.to_dict()
    for key in ("frames", "peakForceIndex", "strategy", "qualityFlags"):
        d.pop(key)
    restored = SessionResult.from_dict(d)
    assert restored.frames == ()
    assert restored.peak_force_index == 0
    assert restored.readings == result.readings


def test_session_summary(result):
    summary = result.summary()
    assert summary["num_frames"] == 100
    assert summary["athlete_name"] == "Sam"
    assert summary["peak_force_kg"] == pytest.approx(round(80.0 * 1.8 / 9.81, 2))
    assert summary["propulsion_phases"] == 1
    assert summary["duration_sec"] == pytest.approx(1.98)


class TestLeaderboard:
    def test_from_session(self, result):
        entry = LeaderboardEntry.from_session(result, notes="  ", entry_id="42")
        assert entry.id == "42"
        assert entry.notes is None
        assert entry.peak_force_kg == result.peak_force_kg
        assert entry.peak_accel_ms2 == pytest.approx(1.8)
        assert not entry.is_validated

    def test_default_id_is_epoch_millis(self, result):
        entry = LeaderboardEntry.from_session(result)
        assert entry.id.isdigit()

    def test_with_validation_keeps_notes(self):
        entry = LeaderboardEntry("1", "A", 70.0, 100.0, 12.0, datetime(2024, 1, 1), notes="video")
        validated = entry.with_validation(True)
        assert validated.is_validated and validated.notes == "video"
        assert entry.with_validation(False, notes="redo").notes == "redo"

    def test_round_trip(self):
        entry = LeaderboardEntry("7", "B", 82.5, 140.0, 15.2, datetime(2024, 3, 2, 9, 0), True, None)
        assert LeaderboardEntry.from_dict(json.loads(json.dumps(entry.to_dict()))) == entry

    def test_ranking(self):
        date = datetime(2024, 1, 1)
        entries = [
            LeaderboardEntry("1", "A", 70.0, 150.0, 10.0, date),
            LeaderboardEntry("2", "B", 70.0, 120.0, 10.0, date, is_validated=True),
            LeaderboardEntry("3", "C", 70.0, 130.0, 10.0, date, is_validated=True),
            LeaderboardEntry("4", "D", 70.0, 90.0, 10.0, date),
        ]
        assert [e.id for e in rank_entries(entries)] == ["3", "2", "1", "4"]


def test_athlete_profile():
    profile = AthleteProfile("Sam", 80.0, device_mode="phone")
    heavier = profile.copy_with(weight_kg=82.0)
    assert heavier.weight_kg == 82.0 and heavier.name == "Sam"
    assert AthleteProfile.from_dict(profile.to_dict()) == profile
    assert AthleteProfile.from_dict({"name": "X", "weightKg": 60}).device_mode is None
