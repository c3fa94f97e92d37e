from __future__ import annotations

from typing import Iterable, Mapping, Sequence

import pandas as pd

from .models import Player, Session, coerce_duration

SESSION_COLUMNS = ["id", "date", "name", "category", "drill_count", "duration_minutes", "notes"]
USAGE_COLUMNS = [
    "session_id",
    "session_date",
    "session_name",
    "position",
    "unique_id",
    "drill_id",
    "title",
    "skill",
    "difficulty",
    "duration_minutes",
]
SHOOTING_COLUMNS = ["date", "drill_id", "shots_made", "shots_attempted", "percentage"]


def _as_session(item: Session | Mapping[str, object]) -> Session:
    if isinstance(item, Session):
        return item
    if isinstance(item, Mapping):
        return Session.from_dict(item)
    raise TypeError(f"Unsupported session type: {type(item)!r}")


def sessions_to_dataframe(sessions: Sequence[Session | Mapping[str, object]]) -> pd.DataFrame:
    """One row per session, in stored order. Undated sessions get `NaT`."""
    records: list[dict[str, object]] = []
    for item in sessions:
        session = _as_session(item)
        records.append(
            {
                "id": session.id,
                "date": pd.to_datetime(session.date, errors="coerce"),
                "name": session.name,
                "category": session.category,
                "drill_count": len(session.drills),
                "duration_minutes": sum(coerce_duration(d.duration) for d in session.drills),
                "notes": session.notes,
            }
        )
    return pd.DataFrame(records, columns=SESSION_COLUMNS)


def drill_usage_frame(sessions: Sequence[Session | Mapping[str, object]]) -> pd.DataFrame:
    """One row per drill instance across all sessions."""
    records: list[dict[str, object]] = []
    for item in sessions:
        session = _as_session(item)
        for position, drill in enumerate(session.drills, start=1):
            records.append(
                {
                    "session_id": session.id,
                    "session_date": session.date,
                    "session_name": session.name,
                    "position": position,
                    "unique_id": drill.unique_id,
                    "drill_id": drill.id,
                    "title": drill.title,
                    "skill": drill.skill,
                    "difficulty": drill.difficulty,
                    "duration_minutes": coerce_duration(drill.duration),
                }
            )
    return pd.DataFrame(records, columns=USAGE_COLUMNS)


def count_by(frame: pd.DataFrame, column: str) -> dict[str, int]:
    """
    Count rows per value of `column`, most frequent first.

    Ties keep the order in which values first appear in the frame.
    """
    if frame.empty or column not in frame.columns:
        return {}
    counts = frame.groupby(column, sort=False).size()
    counts = counts.sort_values(ascending=False, kind="stable")
    return {str(key): int(value) for key, value in counts.items()}


def shooting_history_frame(player: Player) -> pd.DataFrame:
    """Performance history of `player` with a percentage column (attempted > 0 only)."""
    records = [
        {
            "date": pd.to_datetime(record.date, errors="coerce"),
            "drill_id": record.drill_id,
            "shots_made": record.metrics.shots_made,
            "shots_attempted": record.metrics.shots_attempted,
            "percentage": record.metrics.percentage,
        }
        for record in player.performance_history
        if record.metrics.shots_attempted > 0
    ]
    return pd.DataFrame(records, columns=SHOOTING_COLUMNS)


def roster_shooting_frame(players: Iterable[Player]) -> pd.DataFrame:
    """Season totals per player; `percentage` is NaN for players with no attempts."""
    rows = []
    for player in players:
        made = sum(record.metrics.shots_made for record in player.performance_history)
        attempted = sum(record.metrics.shots_attempted for record in player.performance_history)
        rows.append(
            {
                "player_id": player.id,
                "name": player.name,
                "jersey": player.jersey,
                "records": len(player.performance_history),
                "shots_made": made,
                "shots_attempted": attempted,
                "percentage": (made / attempted * 100.0) if attempted > 0 else float("nan"),
            }
        )
    columns = ["player_id", "name", "jersey", "records", "shots_made", "shots_attempted", "percentage"]
    return pd.DataFrame(rows, columns=columns)
