from __future__ import annotations

import pytest

from allball.config import SuggestionPolicy
from allball.models import (
    Drill,
    PerformanceRecord,
    Player,
    Session,
    ShotMetrics,
    StationConfig,
    ValidationError,
)
from allball.state import default_drill_library
from allball.views import (
    dashboard_summary,
    filter_by_duration,
    filter_drills,
    generate_rotation,
    latest_performance,
    player_names,
    search_library,
    shooting_percentage,
    shooting_progress,
    sort_players,
    suggest_drills,
    total_duration,
)


def _player(pid: str, name: str, jersey: str = "", history=()) -> Player:
    return Player(id=pid, name=name, jersey=jersey, performance_history=list(history))


def _record(day: str, made: int, attempted: int, drill_id: str = "1") -> PerformanceRecord:
    return PerformanceRecord(date=day, drill_id=drill_id, metrics=ShotMetrics(made, attempted))


def _session(sid: str, category: str, drills: list[Drill]) -> Session:
    return Session(
        id=sid,
        date="2024-03-01",
        name=f"Practice {sid}",
        category=category,
        drills=[drill.snapshot() for drill in drills],
    )


def test_filter_drills_combines_search_skill_and_difficulty():
    library = default_drill_library()

    shooting = filter_drills(library, skill="Shooting")
    assert [d.title for d in shooting] == ["Spot Shooting", "Free Throw Routine"]

    assert [d.title for d in filter_drills(library, search="DEFENSE", difficulty="Advanced")] == [
        "Transition Defense"
    ]
    assert filter_drills(library) == library
    assert filter_drills(filter_drills(library, skill="Defense"), skill="Defense") == filter_drills(
        library, skill="Defense"
    )


def test_search_library_matches_notes():
    library = default_drill_library()
    assert [d.id for d in search_library(library, "both hands")] == ["4"]
    assert search_library(library, "  ") == library


def test_filter_by_duration_buckets():
    drills = [Drill(id=str(m), title=f"{m} min", duration=m) for m in (5, 10, 15, 20, 25)]

    assert [d.duration for d in filter_by_duration(drills, "0-10")] == [5, 10]
    assert [d.duration for d in filter_by_duration(drills, "10-20")] == [15, 20]
    assert [d.duration for d in filter_by_duration(drills, "20+")] == [25]
    assert len(filter_by_duration(drills, "All")) == 5
    with pytest.raises(ValidationError):
        filter_by_duration(drills, "5-15")


def test_sort_players_by_jersey_uses_leading_number():
    players = [
        _player("a", "Zed", "23"),
        _player("b", "amy", "4"),
        _player("c", "Bo", "none"),
        _player("d", "Cy", "11B"),
    ]

    assert [p.name for p in sort_players(players, "jersey")] == ["Bo", "amy", "Cy", "Zed"]
    assert [p.name for p in sort_players(players)] == ["amy", "Bo", "Cy", "Zed"]
    with pytest.raises(ValidationError):
        sort_players(players, "height")


def test_total_duration_ignores_invalid_values():
    drills = [Drill(id="1", title="a", duration=10), Drill(id="2", title="b", duration=0)]
    assert total_duration(drills) == 10


def test_player_names_skips_unknown_ids():
    players = [_player("a", "Amy"), _player("b", "Bo")]
    assert player_names(["b", "x", "a"], players) == ["Bo", "Amy"]


def test_dashboard_summary_counts_and_ties():
    library = {d.id: d for d in default_drill_library()}
    sessions = [
        _session("1", "Skills", [library["1"], library["2"]]),
        _session("2", "Warm-up", [library["4"]]),
        _session("3", "Skills", [library["6"], library["5"]]),
    ]

    summary = dashboard_summary(sessions)

    assert summary.total_sessions == 3
    assert summary.total_minutes == pytest.approx(10 + 8 + 15 + 7 + 10)
    assert summary.sessions_by_category == {"Skills": 2, "Warm-up": 1}
    assert list(summary.drill_usage_by_skill) == ["Shooting", "Defense", "Dribbling"]
    assert summary.drill_usage_by_skill == {"Shooting": 2, "Defense": 2, "Dribbling": 1}
    assert summary.to_dict()["totalSessions"] == 3


def test_dashboard_summary_empty():
    summary = dashboard_summary([])
    assert summary.total_sessions == 0
    assert summary.total_minutes == 0
    assert summary.sessions_by_category == {}


def test_rotation_groups_and_latin_square():
    ids = [f"p{i}" for i in range(7)]

    rotation = generate_rotation(ids, 3, rotation_minutes=5)

    assert [len(group) for group in rotation.groups] == [3, 2, 2]
    assert rotation.groups[0] == ["p0", "p3", "p6"]
    assert rotation.rounds == 3
    assert rotation.total_minutes == 15
    assert [s.name for s in rotation.stations] == ["Station 1", "Station 2", "Station 3"]
    for round_groups in rotation.schedule:
        assert sorted(round_groups) == [0, 1, 2]
    for station in range(3):
        assert sorted(row[station] for row in rotation.schedule) == [0, 1, 2]
    assert rotation.group_at(1, 0) == rotation.groups[1]


def test_rotation_uses_station_configs():
    rotation = generate_rotation(["a", "b"], 2, [StationConfig(name="Free throws", drill_id="6")])
    assert rotation.stations[0] == StationConfig(name="Free throws", drill_id="6")
    assert rotation.stations[1].name == "Station 2"


def test_rotation_errors():
    with pytest.raises(ValidationError, match="Add players first."):
        generate_rotation([], 3)
    with pytest.raises(ValidationError, match="at least 1"):
        generate_rotation(["a"], 0)
    with pytest.raises(ValidationError):
        generate_rotation(["a"], "three")


def test_more_stations_than_players_leaves_empty_groups():
    rotation = generate_rotation(["a", "b"], 4)
    assert rotation.groups == [["a"], ["b"], [], []]


def test_shooting_analytics():
    player = _player("a", "Amy", history=[_record("2024-03-01", 6, 10), _record("2024-03-03", 2, 3, "6")])

    assert shooting_percentage(player) == pytest.approx(8 / 13 * 100)
    assert shooting_progress(player) == [("2024-03-01", 60.0), ("2024-03-03", 66.7)]
    assert latest_performance(player, default_drill_library()) == (
        "Free Throw Routine on 2024-03-03: 2/3 (66.7%)"
    )
    assert latest_performance(_player("b", "Bo"), []) == "No data"
    assert shooting_percentage(_player("b", "Bo")) is None


def test_suggestions_for_player_without_attempts():
    library = default_drill_library() + [
        Drill(id="9", title="Corner Threes", duration=10, skill="Shooting"),
        Drill(id="10", title="Catch and Shoot", duration=10, skill="Shooting"),
    ]
    suggestions = suggest_drills(_player("b", "Bo"), library, SuggestionPolicy())
    assert [d.id for d in suggestions] == ["1", "6", "9"]


def test_no_suggestions_at_threshold():
    player = _player("a", "Amy", history=[_record("2024-03-01", 6, 10)])
    assert suggest_drills(player, default_drill_library(), SuggestionPolicy(threshold_pct=60.0)) == []
    assert suggest_drills(player, default_drill_library(), SuggestionPolicy(threshold_pct=61.0))
