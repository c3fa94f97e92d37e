from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

SKILL_CATEGORIES: tuple[str, ...] = (
    "Shooting",
    "Defense",
    "Passing",
    "Dribbling",
    "Conditioning",
    "Strategy",
    "Other",
)
DIFFICULTY_LEVELS: tuple[str, ...] = ("Beginner", "Intermediate", "Advanced")
PRACTICE_CATEGORIES: tuple[str, ...] = (
    "Warm-up",
    "Skills",
    "Team Tactics",
    "Cool Down",
    "Game Simulation",
)
FILTER_ALL = "All"
VIDEO_URL_PATTERN = re.compile(r"^https?://.+")
SHOT_FIELDS = {"shotsMade": "shots_made", "shotsAttempted": "shots_attempted"}

__all__ = [
    "new_id",
    "normalise_id",
    "parse_iso_date",
    "coerce_number",
    "coerce_duration",
    "validate_duration",
    "validate_video_url",
    "validate_choice",
    "require_text",
    "parse_shot_count",
    "ShotMetrics",
    "PerformanceRecord",
    "Player",
    "Drill",
    "DrillInstance",
    "Session",
    "SessionTemplate",
    "SessionForm",
    "StationConfig",
    "PerformanceMetrics",
    "metrics_to_dict",
    "metrics_from_dict",
    "ValidationError",
]


class ValidationError(ValueError):
    """Raised when user-supplied data cannot be normalised safely."""


def new_id() -> str:
    """Return a short collision-resistant identifier."""
    return uuid.uuid4().hex[:16]


def normalise_id(value: Any) -> str | None:
    """
    Coerce stored identifiers to text.

    Older stores used millisecond timestamps (sometimes with a random
    fraction) as ids; those are kept verbatim but rendered as strings so they
    compare equal to the keys of JSON objects.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if value != value:  # NaN
            return None
        return str(int(value)) if value.is_integer() else repr(value)
    text = str(value).strip()
    return text or None


def parse_iso_date(value: Any, *, field: str = "date") -> date:
    """
    Parse user-supplied ISO-8601 dates.

    Accepts `datetime.date`, `datetime.datetime`, or strings. Raises `ValidationError`
    with a friendlier message if the payload cannot be parsed.
    """
    if isinstance(value, date):
        return value if not isinstance(value, datetime) else value.date()

    if not isinstance(value, str):
        raise ValidationError(
            f"{field} must be provided as YYYY-MM-DD text; received {value!r}."
        )

    candidate = value.strip()
    if not candidate:
        raise ValidationError(f"{field} cannot be empty.")

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be a valid ISO date (YYYY-MM-DD); received {candidate!r}."
        ) from exc

    return parsed.date()


def coerce_number(
    value: Any,
    *,
    field: str = "value",
    minimum: float | None = None,
    allow_empty: bool = False,
    allow_float: bool = True,
) -> float:
    """
    Convert arbitrary input into a float with guardrails.

    The `minimum` bound (inclusive) triggers a ValidationError when breached.
    When `allow_float` is False, the coerced number must be whole.
    """
    if value is None:
        if allow_empty:
            return float("nan")
        raise ValidationError(f"{field} is required.")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError as exc:
            raise ValidationError(f"{field} must be a finite number; received {value!r}.") from exc
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            if allow_empty:
                return float("nan")
            raise ValidationError(f"{field} is required.")
        try:
            number = float(stripped)
        except ValueError as exc:
            raise ValidationError(f"{field} must be a number; received {value!r}.") from exc
    else:
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if math.isnan(number):
        raise ValidationError(f"{field} must be a number; received {value!r}.")
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number; received {value!r}.")

    if not allow_float and number != round(number):
        raise ValidationError(f"{field} must be an integer; received {value!r}.")

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}; received {number}.")

    return number


def coerce_duration(value: Any) -> float:
    """Duration in minutes for aggregates: anything unusable counts as zero."""
    try:
        number = coerce_number(value, field="duration")
    except ValidationError:
        return 0.0
    return number if number > 0 else 0.0


def validate_duration(value: Any, *, field: str = "duration") -> float:
    """Drill durations must be strictly positive minutes."""
    number = coerce_number(value, field=field)
    if number <= 0:
        raise ValidationError(f"{field} must be a positive number of minutes.")
    return number


def validate_video_url(value: Any, *, field: str = "videoUrl") -> str:
    """Empty means no video; anything else must look like an http(s) URL."""
    if value is None:
        return ""
    text = str(value).strip()
    if text and not VIDEO_URL_PATTERN.match(text):
        raise ValidationError(
            f"{field} must be a valid video URL (e.g., https://youtube.com/...); received {text!r}."
        )
    return text


def validate_choice(value: Any, choices: tuple[str, ...], *, field: str) -> str:
    """Match `value` against `choices`, ignoring case and surrounding whitespace."""
    text = str(value or "").strip()
    for choice in choices:
        if choice.lower() == text.lower():
            return choice
    raise ValidationError(f"{field} must be one of {', '.join(choices)}; received {text!r}.")


def require_text(value: Any, *, field: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{field} cannot be empty.")
    return text


def parse_shot_count(value: Any, *, field: str) -> int:
    """Shot counts are whole, non-negative numbers; blank input means zero."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    return int(coerce_number(value, field=field, minimum=0, allow_float=False))


def _compact_number(value: float) -> float | int:
    return int(value) if float(value).is_integer() else value


def _id_list(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple)):
        return []
    ids = [normalise_id(value) for value in values]
    return [value for value in ids if value]


@dataclass
class ShotMetrics:
    """Shots made/attempted recorded for one player in one drill."""

    shots_made: int = 0
    shots_attempted: int = 0

    @property
    def percentage(self) -> float | None:
        if self.shots_attempted <= 0:
            return None
        return self.shots_made / self.shots_attempted * 100.0

    def to_dict(self) -> Dict[str, int]:
        return {"shotsMade": self.shots_made, "shotsAttempted": self.shots_attempted}

    @classmethod
    def from_dict(cls, payload: Any) -> "ShotMetrics":
        if not isinstance(payload, Mapping):
            return cls()
        values: dict[str, int] = {}
        for key, attr in SHOT_FIELDS.items():
            try:
                values[attr] = parse_shot_count(payload.get(key), field=key)
            except ValidationError:
                values[attr] = 0
        return cls(**values)


@dataclass
class PerformanceRecord:
    """One entry of a player's performance history."""

    date: str
    drill_id: Optional[str]
    metrics: ShotMetrics = field(default_factory=ShotMetrics)

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "drillId": self.drill_id, "metrics": self.metrics.to_dict()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PerformanceRecord":
        return cls(
            date=str(payload.get("date") or ""),
            drill_id=normalise_id(payload.get("drillId")),
            metrics=ShotMetrics.from_dict(payload.get("metrics")),
        )


@dataclass
class Player:
    id: str
    name: str
    jersey: str = ""
    performance_history: List[PerformanceRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "jersey": self.jersey,
            "performanceHistory": [record.to_dict() for record in self.performance_history],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Player":
        history = payload.get("performanceHistory") or []
        return cls(
            id=normalise_id(payload.get("id")) or new_id(),
            name=str(payload.get("name") or "").strip(),
            jersey=str(payload.get("jersey") or "").strip(),
            performance_history=[
                PerformanceRecord.from_dict(record) for record in history if isinstance(record, Mapping)
            ],
        )


@dataclass
class Drill:
    """A library drill: a named, timed exercise tagged with skill and difficulty."""

    id: str
    title: str
    duration: float
    skill: str = SKILL_CATEGORIES[0]
    difficulty: str = DIFFICULTY_LEVELS[0]
    notes: str = ""
    video_url: str = ""
    assigned_players: List[str] = field(default_factory=list)

    def snapshot(self, unique_id: str | None = None) -> "DrillInstance":
        """Copy the drill into a session-owned instance with its own uniqueId."""
        return DrillInstance(
            id=self.id,
            title=self.title,
            duration=self.duration,
            skill=self.skill,
            difficulty=self.difficulty,
            notes=self.notes,
            video_url=self.video_url,
            assigned_players=list(self.assigned_players),
            unique_id=unique_id or new_id(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "duration": _compact_number(coerce_duration(self.duration)),
            "skill": self.skill,
            "difficulty": self.difficulty,
            "notes": self.notes,
            "videoUrl": self.video_url,
            "assignedPlayers": list(self.assigned_players),
        }

    @classmethod
    def _fields_from_dict(cls, payload: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": normalise_id(payload.get("id")) or new_id(),
            "title": str(payload.get("title") or "").strip(),
            "duration": coerce_duration(payload.get("duration")),
            "skill": str(payload.get("skill") or SKILL_CATEGORIES[0]),
            "difficulty": str(payload.get("difficulty") or DIFFICULTY_LEVELS[0]),
            "notes": str(payload.get("notes") or ""),
            "video_url": str(payload.get("videoUrl") or ""),
            "assigned_players": _id_list(payload.get("assignedPlayers")),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Drill":
        return cls(**cls._fields_from_dict(payload))


@dataclass
class DrillInstance(Drill):
    """A drill snapshot embedded in a session, template or form."""

    unique_id: str = field(default_factory=new_id)

    def copy_with_new_unique_id(self) -> "DrillInstance":
        return self.snapshot()

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["uniqueId"] = self.unique_id
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DrillInstance":
        fields = cls._fields_from_dict(payload)
        return cls(**fields, unique_id=normalise_id(payload.get("uniqueId")) or new_id())


PerformanceMetrics = Dict[str, Dict[str, ShotMetrics]]


def metrics_to_dict(metrics: PerformanceMetrics) -> Dict[str, Dict[str, Dict[str, int]]]:
    return {
        unique_id: {player_id: entry.to_dict() for player_id, entry in per_player.items()}
        for unique_id, per_player in metrics.items()
    }


def metrics_from_dict(payload: Any) -> PerformanceMetrics:
    if not isinstance(payload, Mapping):
        return {}
    metrics: PerformanceMetrics = {}
    for unique_id, per_player in payload.items():
        key = normalise_id(unique_id)
        if not key or not isinstance(per_player, Mapping):
            continue
        entries: dict[str, ShotMetrics] = {}
        for player_id, entry in per_player.items():
            player_key = normalise_id(player_id)
            if player_key:
                entries[player_key] = ShotMetrics.from_dict(entry)
        metrics[key] = entries
    return metrics


def _instances_from(payload: Any) -> list[DrillInstance]:
    if not isinstance(payload, (list, tuple)):
        return []
    return [DrillInstance.from_dict(item) for item in payload if isinstance(item, Mapping)]


@dataclass
class Session:
    """A dated practice: ordered drill instances plus recorded shooting."""

    id: str
    date: str
    name: str
    category: str = PRACTICE_CATEGORIES[0]
    drills: List[DrillInstance] = field(default_factory=list)
    notes: str = ""
    performance_metrics: PerformanceMetrics = field(default_factory=dict)

    def find_instance(self, unique_id: str) -> DrillInstance | None:
        for drill in self.drills:
            if drill.unique_id == unique_id:
                return drill
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "category": self.category,
            "name": self.name,
            "drills": [drill.to_dict() for drill in self.drills],
            "notes": self.notes,
            "performanceMetrics": metrics_to_dict(self.performance_metrics),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Session":
        return cls(
            id=normalise_id(payload.get("id")) or new_id(),
            date=str(payload.get("date") or ""),
            name=str(payload.get("name") or ""),
            category=str(payload.get("category") or PRACTICE_CATEGORIES[0]),
            drills=_instances_from(payload.get("drills")),
            notes=str(payload.get("notes") or ""),
            performance_metrics=metrics_from_dict(payload.get("performanceMetrics")),
        )


@dataclass
class SessionTemplate:
    """Reusable seed for the session form."""

    id: str
    name: str
    category: str = PRACTICE_CATEGORIES[0]
    drills: List[DrillInstance] = field(default_factory=list)
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "drills": [drill.to_dict() for drill in self.drills],
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SessionTemplate":
        return cls(
            id=normalise_id(payload.get("id")) or new_id(),
            name=str(payload.get("name") or ""),
            category=str(payload.get("category") or PRACTICE_CATEGORIES[0]),
            drills=_instances_from(payload.get("drills")),
            notes=str(payload.get("notes") or ""),
        )


@dataclass
class SessionForm:
    """The session being edited (the Draft). `editing_id` is set when it mirrors a saved session."""

    date: str = ""
    category: str = PRACTICE_CATEGORIES[0]
    name: str = ""
    drills: List[DrillInstance] = field(default_factory=list)
    notes: str = ""
    performance_metrics: PerformanceMetrics = field(default_factory=dict)
    editing_id: Optional[str] = None

    @property
    def is_dirty(self) -> bool:
        return bool(self.editing_id or self.name or self.drills)

    def find_instance(self, unique_id: str) -> DrillInstance | None:
        for drill in self.drills:
            if drill.unique_id == unique_id:
                return drill
        return None

    def to_session(self, session_id: str) -> Session:
        """Freeze the form into a session, dropping metrics for instances no longer present."""
        present = {drill.unique_id for drill in self.drills}
        metrics = {
            unique_id: {
                player_id: ShotMetrics(entry.shots_made, entry.shots_attempted)
                for player_id, entry in per_player.items()
            }
            for unique_id, per_player in self.performance_metrics.items()
            if unique_id in present
        }
        return Session(
            id=session_id,
            date=self.date,
            name=self.name,
            category=self.category,
            drills=list(self.drills),
            notes=self.notes,
            performance_metrics=metrics,
        )


@dataclass
class StationConfig:
    name: str
    drill_id: Optional[str] = None
