"""Pure, derived views over the planner collections.

Nothing here mutates its inputs; the CLI and reports call these to render
filtered lists, the dashboard, station rotations and player analytics.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .config import SuggestionPolicy, get_config
from .metrics import count_by, drill_usage_frame, sessions_to_dataframe
from .models import (
    FILTER_ALL,
    Drill,
    Player,
    Session,
    StationConfig,
    ValidationError,
    coerce_duration,
    normalise_id,
)
from .timers import Debouncer

DURATION_BUCKETS: dict[str, tuple[float, Optional[float]]] = {
    "0-10": (0.0, 10.0),
    "10-20": (10.0, 20.0),
    "20+": (20.0, None),
}
PLAYER_SORT_KEYS = ("name", "jersey")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# ---------------------------------------------------------------------------
# drill and player lists


def filter_drills(
    drills: Iterable[Drill],
    search: str = "",
    skill: str = FILTER_ALL,
    difficulty: str = FILTER_ALL,
) -> list[Drill]:
    """Title contains `search` (case-insensitive) and skill/difficulty match unless "All"."""
    needle = (search or "").strip().lower()
    matches = []
    for drill in drills:
        if needle and needle not in drill.title.lower():
            continue
        if skill and skill != FILTER_ALL and drill.skill != skill:
            continue
        if difficulty and difficulty != FILTER_ALL and drill.difficulty != difficulty:
            continue
        matches.append(drill)
    return matches


def search_library(drills: Iterable[Drill], term: str) -> list[Drill]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(drills)
    return [d for d in drills if needle in d.title.lower() or needle in d.notes.lower()]


def filter_by_duration(drills: Iterable[Drill], bucket: str = FILTER_ALL) -> list[Drill]:
    """Keep drills in a duration bucket: "0-10" is up to 10 minutes, "10-20" above 10 up to 20, "20+" above 20."""
    if not bucket or bucket == FILTER_ALL:
        return list(drills)
    if bucket not in DURATION_BUCKETS:
        raise ValidationError(
            f"duration filter must be one of {FILTER_ALL}, {', '.join(DURATION_BUCKETS)}; received {bucket!r}."
        )
    low, high = DURATION_BUCKETS[bucket]
    selected = []
    for drill in drills:
        minutes = coerce_duration(drill.duration)
        above_low = minutes > low if low > 0 else True
        if above_low and (high is None or minutes <= high):
            selected.append(drill)
    return selected


def _jersey_number(jersey: str) -> int:
    match = _LEADING_INT.match(jersey or "")
    return int(match.group(1)) if match else 0


def sort_players(players: Iterable[Player], by: str = "name") -> list[Player]:
    if by == "name":
        return sorted(players, key=lambda p: p.name.casefold())
    if by == "jersey":
        return sorted(players, key=lambda p: _jersey_number(p.jersey))
    raise ValidationError(f"sort must be one of {', '.join(PLAYER_SORT_KEYS)}; received {by!r}.")


def total_duration(drills: Iterable[Drill]) -> float:
    """Total minutes; missing or invalid durations count as zero."""
    return sum(coerce_duration(drill.duration) for drill in drills)


def player_names(player_ids: Iterable[str], players: Sequence[Player]) -> list[str]:
    by_id = {player.id: player.name for player in players}
    return [by_id[pid] for pid in player_ids if pid in by_id]


# ---------------------------------------------------------------------------
# dashboard


@dataclass(frozen=True)
class DashboardSummary:
    total_sessions: int
    total_minutes: float
    sessions_by_category: Dict[str, int]
    drill_usage_by_skill: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSessions": self.total_sessions,
            "totalMinutes": self.total_minutes,
            "sessionsByCategory": dict(self.sessions_by_category),
            "drillUsageBySkill": dict(self.drill_usage_by_skill),
        }


def dashboard_summary(sessions: Sequence[Session]) -> DashboardSummary:
    frame = sessions_to_dataframe(sessions)
    usage = drill_usage_frame(sessions)
    total_minutes = float(frame["duration_minutes"].sum()) if not frame.empty else 0.0
    return DashboardSummary(
        total_sessions=len(frame),
        total_minutes=total_minutes,
        sessions_by_category=count_by(frame, "category"),
        drill_usage_by_skill=count_by(usage, "skill"),
    )


# ---------------------------------------------------------------------------
# station rotation


@dataclass
class StationRotation:
    """Players split into one group per station, rotating through every station once."""

    groups: List[List[str]]
    schedule: List[List[int]]
    stations: List[StationConfig]
    rotation_minutes: int

    @property
    def rounds(self) -> int:
        return len(self.schedule)

    @property
    def total_minutes(self) -> int:
        return self.rounds * self.rotation_minutes

    def group_at(self, round_index: int, station_index: int) -> list[str]:
        return self.groups[self.schedule[round_index][station_index]]


def generate_rotation(
    player_ids: Sequence[Any],
    num_stations: Any,
    station_configs: Sequence[StationConfig] | None = None,
    rotation_minutes: Any = None,
) -> StationRotation:
    """
    Round-robin the roster into `num_stations` groups (player i joins group i % S).

    Round r sends group (s + r) % S to station s, so over S rounds every group
    visits every station exactly once.
    """
    ids = [key for key in (normalise_id(pid) for pid in player_ids) if key]
    if not ids:
        raise ValidationError("Add players first.")

    defaults = get_config().stations
    try:
        stations = int(num_stations)
        minutes = int(rotation_minutes) if rotation_minutes is not None else defaults.rotation_minutes
    except (TypeError, ValueError) as exc:
        raise ValidationError("Stations and rotation minutes must be whole numbers.") from exc
    if stations < 1:
        raise ValidationError("Number of stations must be at least 1.")
    if minutes < 1:
        raise ValidationError("Rotation minutes must be at least 1.")

    groups: list[list[str]] = [[] for _ in range(stations)]
    for index, player_id in enumerate(ids):
        groups[index % stations].append(player_id)
    schedule = [[(s + r) % stations for s in range(stations)] for r in range(stations)]

    configs = list(station_configs or [])
    named: list[StationConfig] = []
    for index in range(stations):
        config = configs[index] if index < len(configs) else StationConfig(name="")
        named.append(StationConfig(name=config.name or f"Station {index + 1}", drill_id=config.drill_id))
    return StationRotation(groups=groups, schedule=schedule, stations=named, rotation_minutes=minutes)


# ---------------------------------------------------------------------------
# player analytics


def shooting_totals(player: Player) -> tuple[int, int]:
    made = sum(record.metrics.shots_made for record in player.performance_history)
    attempted = sum(record.metrics.shots_attempted for record in player.performance_history)
    return made, attempted


def shooting_percentage(player: Player) -> float | None:
    """Season shooting percentage, or None when the player has no attempts."""
    made, attempted = shooting_totals(player)
    if attempted <= 0:
        return None
    return made / attempted * 100.0


def shooting_progress(player: Player) -> list[tuple[str, float]]:
    """(date, percentage) per history record with attempts, in recorded order."""
    return [
        (record.date, round(record.metrics.shots_made / record.metrics.shots_attempted * 100.0, 1))
        for record in player.performance_history
        if record.metrics.shots_attempted > 0
    ]


def latest_performance(player: Player, drills: Sequence[Drill]) -> str:
    if not player.performance_history:
        return "No data"
    latest = player.performance_history[-1]
    title = next((d.title for d in drills if d.id == latest.drill_id), None) or "Drill"
    made, attempted = latest.metrics.shots_made, latest.metrics.shots_attempted
    pct = f"{made / attempted * 100.0:.1f}%" if attempted > 0 else "N/A"
    return f"{title} on {latest.date}: {made}/{attempted} ({pct})"


def suggest_drills(
    player: Player,
    drills: Sequence[Drill],
    policy: SuggestionPolicy | None = None,
) -> list[Drill]:
    """Library drills for a player shooting below the threshold; empty when at or above it."""
    policy = policy or get_config().suggestions
    pct = shooting_percentage(player) or 0.0
    if pct >= policy.threshold_pct:
        return []
    return [drill for drill in drills if drill.skill == policy.skill][: policy.limit]


# ---------------------------------------------------------------------------
# search input


@dataclass
class SearchDebouncer:
    """
    Debounced search box state.

    `update()` records what was typed; `on_change` receives the trimmed term
    once typing pauses. `filtering` is True while a term is waiting.
    """

    on_change: Callable[[str], Any]
    delay_ms: Optional[int] = None
    global_search: bool = False
    term: str = ""
    _debouncer: Debouncer = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.delay_ms is None:
            search = get_config().search
            self.delay_ms = search.global_debounce_ms if self.global_search else search.debounce_ms
        self._debouncer = Debouncer(self.delay_ms / 1000.0, self._deliver)

    def _deliver(self, value: str) -> None:
        self.term = value
        self.on_change(value)

    @property
    def filtering(self) -> bool:
        return self._debouncer.pending

    def update(self, raw: str) -> None:
        self._debouncer.push((raw or "").strip())

    def flush(self) -> bool:
        return self._debouncer.flush()

    def close(self) -> None:
        self._debouncer.close()

    def __enter__(self) -> "SearchDebouncer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
