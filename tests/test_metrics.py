from __future__ import annotations

import math

import pandas as pd

from allball.metrics import (
    SESSION_COLUMNS,
    count_by,
    drill_usage_frame,
    roster_shooting_frame,
    sessions_to_dataframe,
    shooting_history_frame,
)
from allball.models import Drill, PerformanceRecord, Player, Session, ShotMetrics


def _sessions() -> list[Session]:
    spot = Drill(id="1", title="Spot Shooting", duration=10, skill="Shooting")
    shell = Drill(id="2", title="Shell", duration="abc", skill="Defense")  # type: ignore[arg-type]
    return [
        Session(id="a", date="2024-01-02", name="Tue", category="Skills", drills=[spot.snapshot(), shell.snapshot()]),
        Session(id="b", date="", name="Undated", category="Warm-up", drills=[spot.snapshot()]),
    ]


def test_sessions_to_dataframe_columns_and_durations():
    frame = sessions_to_dataframe(_sessions())

    assert list(frame.columns) == SESSION_COLUMNS
    assert list(frame["drill_count"]) == [2, 1]
    assert list(frame["duration_minutes"]) == [10.0, 10.0]
    assert frame.loc[0, "date"] == pd.Timestamp("2024-01-02")
    assert pd.isna(frame.loc[1, "date"])


def test_sessions_to_dataframe_accepts_stored_dicts():
    frame = sessions_to_dataframe([s.to_dict() for s in _sessions()])
    assert list(frame["id"]) == ["a", "b"]


def test_empty_frames_keep_columns():
    assert list(sessions_to_dataframe([]).columns) == SESSION_COLUMNS
    assert drill_usage_frame([]).empty
    assert count_by(drill_usage_frame([]), "skill") == {}


def test_drill_usage_and_count_by():
    usage = drill_usage_frame(_sessions())

    assert list(usage["position"]) == [1, 2, 1]
    assert count_by(usage, "skill") == {"Shooting": 2, "Defense": 1}
    assert count_by(usage, "missing") == {}


def test_shooting_history_skips_zero_attempts():
    player = Player(
        id="p1",
        name="Alex",
        performance_history=[
            PerformanceRecord("2024-01-01", "1", ShotMetrics(3, 4)),
            PerformanceRecord("2024-01-02", "1", ShotMetrics(0, 0)),
        ],
    )

    history = shooting_history_frame(player)

    assert len(history) == 1
    assert history.loc[0, "percentage"] == 75.0


def test_roster_shooting_frame():
    players = [
        Player(id="p1", name="Alex", performance_history=[PerformanceRecord("2024-01-01", "1", ShotMetrics(3, 4))]),
        Player(id="p2", name="Sam"),
    ]

    frame = roster_shooting_frame(players)

    assert list(frame["shots_made"]) == [3, 0]
    assert frame.loc[0, "percentage"] == 75.0
    assert math.isnan(frame.loc[1, "percentage"])
