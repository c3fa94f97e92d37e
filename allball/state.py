from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Iterable, Sequence

from .models import (
    DIFFICULTY_LEVELS,
    PRACTICE_CATEGORIES,
    SKILL_CATEGORIES,
    Drill,
    DrillInstance,
    PerformanceRecord,
    Player,
    Session,
    SessionForm,
    SessionTemplate,
    ShotMetrics,
    ValidationError,
    new_id,
    normalise_id,
    parse_iso_date,
    parse_shot_count,
    require_text,
    validate_choice,
    validate_duration,
    validate_video_url,
)
from .notifications import ConfirmCallback, Notifier, never_confirm
from .storage import (
    DRILLS_KEY,
    MODE_KEY,
    ONBOARDING_KEY,
    PLAYERS_KEY,
    SESSIONS_KEY,
    TEMPLATES_KEY,
    LocalStore,
    StorageError,
)

LOGGER = logging.getLogger(__name__)

MODES: tuple[str, ...] = ("simple", "pro")
DEFAULT_MODE = "simple"
METRIC_FIELDS = {
    "shotsMade": "shots_made",
    "shots_made": "shots_made",
    "made": "shots_made",
    "shotsAttempted": "shots_attempted",
    "shots_attempted": "shots_attempted",
    "attempted": "shots_attempted",
}

DEFAULT_DRILLS: tuple[dict[str, Any], ...] = (
    {"id": "1", "title": "Spot Shooting", "duration": 10, "skill": "Shooting", "difficulty": "Beginner",
     "notes": "Focus on form and follow-through."},
    {"id": "2", "title": "Closeout Defense", "duration": 8, "skill": "Defense", "difficulty": "Intermediate",
     "notes": "Stay low and quick, contest without fouling."},
    {"id": "3", "title": "Pick & Roll Passing", "duration": 12, "skill": "Passing", "difficulty": "Intermediate",
     "notes": "Timing is key, hit the roller or the pop man."},
    {"id": "4", "title": "Ball Handling Circuit", "duration": 15, "skill": "Dribbling", "difficulty": "Beginner",
     "notes": "Keep eyes up, work on both hands."},
    {"id": "5", "title": "Transition Defense", "duration": 10, "skill": "Defense", "difficulty": "Advanced",
     "notes": "Sprint back quickly, identify threats."},
    {"id": "6", "title": "Free Throw Routine", "duration": 7, "skill": "Shooting", "difficulty": "Beginner",
     "notes": "Simulate game pressure, consistent routine."},
    {"id": "7", "title": "Fast Break Drills", "duration": 10, "skill": "Strategy", "difficulty": "Intermediate",
     "notes": "Numbers advantage, outlet passes."},
    {"id": "8", "title": "Full Court Press Break", "duration": 10, "skill": "Strategy", "difficulty": "Advanced",
     "notes": "Stay composed, use sideline and middle."},
)

DRILL_PRESETS: dict[str, dict[str, Any]] = {
    "3-Point Shooting": {"duration": 10, "skill": "Shooting", "difficulty": "Intermediate",
                         "notes": "Focus on form and range."},
    "Full-Court Press": {"duration": 12, "skill": "Defense", "difficulty": "Advanced",
                         "notes": "High intensity, quick transitions."},
    "Dribble Drills": {"duration": 8, "skill": "Dribbling", "difficulty": "Beginner",
                       "notes": "Work on both hands."},
}


def default_drill_library() -> list[Drill]:
    return [Drill.from_dict(payload) for payload in DEFAULT_DRILLS]


class PlannerState:
    """
    In-memory players, drills, sessions, templates and the session form.

    Collections are hydrated from the local store when the state is created and
    the affected key is flushed after every mutation. Validation problems are
    reported through the notifier rather than raised, and destructive actions
    only go ahead when `confirm` returns True.
    """

    def __init__(
        self,
        store: LocalStore | None = None,
        *,
        notifier: Notifier | None = None,
        confirm: ConfirmCallback = never_confirm,
    ) -> None:
        self.store = store if store is not None else LocalStore()
        self.notifier = notifier if notifier is not None else Notifier()
        self.confirm = confirm
        self.form = SessionForm()

        self.players: list[Player] = [Player.from_dict(r) for r in self.store.load(PLAYERS_KEY, [])]
        stored_drills = self.store.load(DRILLS_KEY, None)
        if isinstance(stored_drills, list):
            self.drills: list[Drill] = [Drill.from_dict(r) for r in stored_drills]
        else:
            self.drills = default_drill_library()
        self.sessions: list[Session] = [Session.from_dict(r) for r in self.store.load(SESSIONS_KEY, [])]
        self.templates: list[SessionTemplate] = [
            SessionTemplate.from_dict(r) for r in self.store.load(TEMPLATES_KEY, [])
        ]

        mode = self.store.load(MODE_KEY, DEFAULT_MODE)
        self.mode = mode if mode in MODES else DEFAULT_MODE
        self.onboarding_seen = self.store.load(ONBOARDING_KEY, False) in (True, "true")

    # ------------------------------------------------------------------
    # persistence / notification helpers

    def _notify(self, message: str, kind: str = "success") -> None:
        self.notifier.notify(message, kind)  # type: ignore[arg-type]

    def _flush(self, key: str) -> bool:
        collections = {
            PLAYERS_KEY: self.players,
            DRILLS_KEY: self.drills,
            SESSIONS_KEY: self.sessions,
            TEMPLATES_KEY: self.templates,
        }
        payload: Any
        if key in collections:
            payload = [record.to_dict() for record in collections[key]]
        elif key == MODE_KEY:
            payload = self.mode
        elif key == ONBOARDING_KEY:
            payload = self.onboarding_seen
        else:  # pragma: no cover - programming error
            raise KeyError(key)
        try:
            self.store.save(key, payload)
        except StorageError as exc:
            self._notify(f"Changes kept in memory but could not be saved: {exc}", "error")
            return False
        return True

    def _confirmed(self, message: str) -> bool:
        if self.confirm(message):
            return True
        LOGGER.debug("Cancelled: %s", message)
        return False

    # ------------------------------------------------------------------
    # lookups

    def get_player(self, player_id: Any) -> Player | None:
        key = normalise_id(player_id)
        return next((player for player in self.players if player.id == key), None)

    def get_drill(self, drill_id: Any) -> Drill | None:
        key = normalise_id(drill_id)
        return next((drill for drill in self.drills if drill.id == key), None)

    def get_session(self, session_id: Any) -> Session | None:
        key = normalise_id(session_id)
        return next((session for session in self.sessions if session.id == key), None)

    def get_template(self, template_id: Any) -> SessionTemplate | None:
        key = normalise_id(template_id)
        return next((template for template in self.templates if template.id == key), None)

    # ------------------------------------------------------------------
    # players

    def add_player(self, name: Any, jersey: Any = "") -> Player | None:
        try:
            clean_name = require_text(name, field="Player name")
        except ValidationError:
            self._notify("Player name cannot be empty.", "error")
            return None
        player = Player(id=new_id(), name=clean_name, jersey=str(jersey or "").strip())
        self.players.append(player)
        self._flush(PLAYERS_KEY)
        self._notify(f'Player "{clean_name}" added!')
        return player

    def remove_player(self, player_id: Any) -> bool:
        """Delete a player and strip their id from every drill and the session form."""
        player = self.get_player(player_id)
        if player is None:
            self._notify("Player not found.", "error")
            return False
        if not self._confirmed(
            "Are you sure you want to delete this player? This will also remove them "
            "from all assigned drills and current session form."
        ):
            return False

        self.players = [p for p in self.players if p.id != player.id]
        for drill in self.drills:
            drill.assigned_players = [pid for pid in drill.assigned_players if pid != player.id]
        for instance in self.form.drills:
            instance.assigned_players = [pid for pid in instance.assigned_players if pid != player.id]
        self.form.performance_metrics = {}

        self._flush(PLAYERS_KEY)
        self._flush(DRILLS_KEY)
        self._notify("Player deleted successfully.")
        return True

    def add_performance_record(
        self,
        player_id: Any,
        record_date: Any,
        drill_id: Any,
        shots_made: Any,
        shots_attempted: Any,
    ) -> PerformanceRecord | None:
        player = self.get_player(player_id)
        drill_key = normalise_id(drill_id)
        try:
            if player is None or not drill_key:
                raise ValidationError("player and drill are required")
            day = parse_iso_date(record_date, field="date")
            metrics = ShotMetrics(
                shots_made=parse_shot_count(shots_made, field="shotsMade"),
                shots_attempted=parse_shot_count(shots_attempted, field="shotsAttempted"),
            )
            if metrics.shots_attempted <= 0:
                raise ValidationError("shotsAttempted must be positive")
        except ValidationError:
            self._notify(
                "Please select a player, date, drill, and enter valid performance metrics.", "error"
            )
            return None

        record = PerformanceRecord(date=day.isoformat(), drill_id=drill_key, metrics=metrics)
        player.performance_history.append(record)
        self._flush(PLAYERS_KEY)
        self._notify("Performance record added!")
        return record

    # ------------------------------------------------------------------
    # drill library

    def _validated_drill_fields(
        self,
        *,
        title: Any,
        duration: Any,
        skill: Any,
        difficulty: Any,
        notes: Any,
        video_url: Any,
        assigned_players: Iterable[Any],
    ) -> dict[str, Any]:
        try:
            clean_title = require_text(title, field="title")
            clean_duration = validate_duration(duration, field="duration")
        except ValidationError as exc:
            raise ValidationError("Please enter a valid drill title and positive duration.") from exc
        try:
            clean_video = validate_video_url(video_url)
        except ValidationError as exc:
            raise ValidationError("Please enter a valid video URL (e.g., https://youtube.com/...).") from exc

        assigned: list[str] = []
        for raw in assigned_players:
            key = normalise_id(raw)
            if key and key not in assigned:
                assigned.append(key)
        known = {player.id for player in self.players}
        unknown = [key for key in assigned if key not in known]
        if unknown:
            raise ValidationError(f"Unknown player id(s): {', '.join(unknown)}.")

        return {
            "title": clean_title,
            "duration": clean_duration,
            "skill": validate_choice(skill, SKILL_CATEGORIES, field="skill"),
            "difficulty": validate_choice(difficulty, DIFFICULTY_LEVELS, field="difficulty"),
            "notes": str(notes or "").strip(),
            "video_url": clean_video,
            "assigned_players": assigned,
        }

    def add_drill(
        self,
        title: Any,
        duration: Any,
        skill: Any = SKILL_CATEGORIES[0],
        difficulty: Any = DIFFICULTY_LEVELS[0],
        notes: Any = "",
        video_url: Any = "",
        assigned_players: Iterable[Any] = (),
    ) -> Drill | None:
        try:
            fields = self._validated_drill_fields(
                title=title,
                duration=duration,
                skill=skill,
                difficulty=difficulty,
                notes=notes,
                video_url=video_url,
                assigned_players=assigned_players,
            )
        except ValidationError as exc:
            self._notify(str(exc), "error")
            return None
        drill = Drill(id=new_id(), **fields)
        self.drills.append(drill)
        self._flush(DRILLS_KEY)
        self._notify(f'Drill "{drill.title}" added!')
        return drill

    def update_drill(self, drill_id: Any, **changes: Any) -> Drill | None:
        """Replace a library drill; fields not passed keep their current value."""
        current = self.get_drill(drill_id)
        if current is None:
            self._notify("Drill not found.", "error")
            return None
        merged = {
            "title": current.title,
            "duration": current.duration,
            "skill": current.skill,
            "difficulty": current.difficulty,
            "notes": current.notes,
            "video_url": current.video_url,
            "assigned_players": current.assigned_players,
        }
        unexpected = set(changes) - set(merged)
        if unexpected:
            raise TypeError(f"Unexpected drill field(s): {', '.join(sorted(unexpected))}")
        merged.update({key: value for key, value in changes.items() if value is not None})
        try:
            fields = self._validated_drill_fields(**merged)
        except ValidationError as exc:
            self._notify(str(exc), "error")
            return None

        updated = Drill(id=current.id, **fields)
        self.drills = [updated if drill.id == current.id else drill for drill in self.drills]
        self._flush(DRILLS_KEY)
        self._notify(f'Drill "{updated.title}" updated!')
        return updated

    def delete_drill(self, drill_id: Any) -> bool:
        drill = self.get_drill(drill_id)
        if drill is None:
            self._notify("Drill not found.", "error")
            return False
        if not self._confirmed(
            "Are you sure you want to delete this drill from the library? "
            "This will not affect existing sessions that use this drill."
        ):
            return False
        self.drills = [d for d in self.drills if d.id != drill.id]
        self._flush(DRILLS_KEY)
        self._notify("Drill deleted from library.")
        return True

    def drill_from_preset(self, preset: str) -> dict[str, Any] | None:
        """Prefill values for a new drill from one of the built-in presets."""
        for title, values in DRILL_PRESETS.items():
            if title.lower() == preset.strip().lower():
                return {"title": title, **values}
        self._notify(f'Unknown drill preset "{preset}".', "error")
        return None

    def show_video(self, drill: Drill) -> str | None:
        """Return the URL to open for `drill`, or notify when it has none."""
        if drill.video_url:
            return drill.video_url
        self._notify("No video available for this drill.", "error")
        return None

    # ------------------------------------------------------------------
    # session form (the Draft)

    def update_form(
        self,
        *,
        date: Any = None,
        category: Any = None,
        name: Any = None,
        notes: Any = None,
    ) -> bool:
        try:
            if date is not None:
                text = str(date).strip()
                clean_date = parse_iso_date(text, field="date").isoformat() if text else ""
            if category is not None:
                clean_category = validate_choice(category, PRACTICE_CATEGORIES, field="category")
        except ValidationError as exc:
            self._notify(str(exc), "error")
            return False

        if date is not None:
            self.form.date = clean_date
        if category is not None:
            self.form.category = clean_category
        if name is not None:
            self.form.name = str(name).strip()
        if notes is not None:
            self.form.notes = str(notes).strip()
        return True

    def _fresh_instance(self, drill: Drill) -> DrillInstance:
        taken = {instance.unique_id for instance in self.form.drills}
        instance = drill.snapshot()
        while instance.unique_id in taken:
            instance = drill.snapshot()
        return instance

    def add_drill_to_form(self, drill: Drill | Any) -> DrillInstance | None:
        source = drill if isinstance(drill, Drill) else self.get_drill(drill)
        if source is None:
            self._notify("Drill not found.", "error")
            return None
        instance = self._fresh_instance(source)
        self.form.drills.append(instance)
        self._notify(f'Added "{instance.title}" to session!', "info")
        return instance

    def remove_drill_from_form(self, unique_id: Any) -> bool:
        key = normalise_id(unique_id)
        if self.form.find_instance(key or "") is None:
            return False
        self.form.drills = [d for d in self.form.drills if d.unique_id != key]
        self.form.performance_metrics.pop(key, None)
        self._notify("Drill removed from session.", "info")
        return True

    def move_form_drill(self, drag_unique_id: Any, drop_unique_id: Any) -> bool:
        """Drag-and-drop reorder: the dragged drill takes the drop target's position."""
        drills = list(self.form.drills)
        ids = [d.unique_id for d in drills]
        drag_key, drop_key = normalise_id(drag_unique_id), normalise_id(drop_unique_id)
        if drag_key not in ids or drop_key not in ids:
            return False
        drag_index, drop_index = ids.index(drag_key), ids.index(drop_key)
        dragged = drills.pop(drag_index)
        drills.insert(drop_index, dragged)
        self.form.drills = drills
        self._notify("Drill reordered!", "info")
        return True

    def set_performance(self, unique_id: Any, player_id: Any, field: str, value: Any) -> bool:
        """Record shots made/attempted for one player in one drill of the form."""
        key, player_key = normalise_id(unique_id), normalise_id(player_id)
        attr = METRIC_FIELDS.get(field)
        if attr is None:
            raise ValueError(f"Unknown performance field: {field!r}")
        if not key or self.form.find_instance(key) is None or not player_key:
            self._notify("Performance can only be recorded for drills in this session.", "error")
            return False
        try:
            count = parse_shot_count(value, field=field)
        except ValidationError as exc:
            self._notify(str(exc), "error")
            return False
        entry = self.form.performance_metrics.setdefault(key, {}).setdefault(player_key, ShotMetrics())
        setattr(entry, attr, count)
        return True

    def reset_form(self) -> bool:
        if not self.form.is_dirty:
            return False
        if not self._confirmed(
            "Are you sure you want to clear the current session form? Any unsaved changes will be lost."
        ):
            return False
        self.form = SessionForm()
        self._notify("Session form cleared.", "info")
        return True

    def cancel_edit(self) -> None:
        self.form = SessionForm()

    # ------------------------------------------------------------------
    # sessions

    def save_session(self) -> Session | None:
        """
        Persist the form.

        A new session also appends one performance-history entry per player per
        drill instance with shotsAttempted > 0. Updating an existing session
        replaces it in place and leaves player histories alone.
        """
        form = self.form
        if not form.date or not form.name:
            self._notify("Please fill in Date and Practice Name.", "error")
            return None

        if form.editing_id is not None and self.get_session(form.editing_id) is not None:
            session = form.to_session(form.editing_id)
            self.sessions = [session if s.id == session.id else s for s in self.sessions]
            self._flush(SESSIONS_KEY)
            self._notify(f'Session "{session.name}" updated!')
        else:
            session = form.to_session(new_id())
            self.sessions.append(session)
            self._flush(SESSIONS_KEY)
            if self._append_history(session):
                self._flush(PLAYERS_KEY)
            self._notify(f'Session "{session.name}" saved!')

        self.form = SessionForm()
        return session

    def _append_history(self, session: Session) -> bool:
        appended = False
        for player in self.players:
            for unique_id, per_player in session.performance_metrics.items():
                entry = per_player.get(player.id)
                if entry is None or entry.shots_attempted <= 0:
                    continue
                instance = session.find_instance(unique_id)
                player.performance_history.append(
                    PerformanceRecord(
                        date=session.date,
                        drill_id=instance.id if instance else None,
                        metrics=ShotMetrics(entry.shots_made, entry.shots_attempted),
                    )
                )
                appended = True
        return appended

    def edit_session(self, session_id: Any) -> SessionForm | None:
        session = self.get_session(session_id)
        if session is None:
            self._notify("Session not found.", "error")
            return None
        self.form = SessionForm(
            date=session.date,
            category=session.category,
            name=session.name,
            drills=[replace(d, assigned_players=list(d.assigned_players)) for d in session.drills],
            notes=session.notes,
            editing_id=session.id,
        )
        self._notify(f'Editing session "{session.name}"', "info")
        return self.form

    def duplicate_session(self, session_id: Any) -> Session | None:
        session = self.get_session(session_id)
        if session is None:
            self._notify("Session not found.", "error")
            return None
        copy = Session(
            id=new_id(),
            date="",
            name=f"Copy of {session.name}",
            category=session.category,
            drills=[d.copy_with_new_unique_id() for d in session.drills],
            notes=session.notes,
            performance_metrics={},
        )
        self.sessions.append(copy)
        self._flush(SESSIONS_KEY)
        self._notify(f'Session "{session.name}" duplicated!')
        return copy

    def delete_session(self, session_id: Any) -> bool:
        session = self.get_session(session_id)
        if session is None:
            self._notify("Session not found.", "error")
            return False
        if not self._confirmed("Are you sure you want to delete this session?"):
            return False
        self.sessions = [s for s in self.sessions if s.id != session.id]
        self._flush(SESSIONS_KEY)
        self._notify("Session deleted.")
        return True

    # ------------------------------------------------------------------
    # templates

    def save_form_as_template(self, name: Any) -> SessionTemplate | None:
        try:
            clean_name = require_text(name, field="Template name")
        except ValidationError:
            self._notify("Template name cannot be empty.", "error")
            return None
        template = SessionTemplate(
            id=new_id(),
            name=clean_name,
            category=self.form.category,
            drills=[replace(d, assigned_players=list(d.assigned_players)) for d in self.form.drills],
            notes=self.form.notes,
        )
        self.templates.append(template)
        self._flush(TEMPLATES_KEY)
        self._notify(f'Template "{clean_name}" saved!')
        return template

    def load_template(self, template_id: Any) -> SessionForm | None:
        template = self.get_template(template_id)
        if template is None:
            self._notify("Template not found.", "error")
            return None
        if not self._confirmed(
            f'Are you sure you want to load template "{template.name}"? This will overwrite the current form.'
        ):
            return None
        self.form = SessionForm(
            date=self.form.date,
            category=template.category,
            name=template.name,
            drills=[d.copy_with_new_unique_id() for d in template.drills],
            notes=template.notes,
        )
        self._notify(f'Template "{template.name}" loaded successfully!')
        return self.form

    def delete_template(self, template_id: Any) -> bool:
        template = self.get_template(template_id)
        if template is None:
            self._notify("Template not found.", "error")
            return False
        if not self._confirmed("Are you sure you want to delete this template?"):
            return False
        self.templates = [t for t in self.templates if t.id != template.id]
        self._flush(TEMPLATES_KEY)
        self._notify("Template deleted.")
        return True

    # ------------------------------------------------------------------
    # suggestions, flags

    def add_suggested_drills_to_form(
        self,
        player_id: Any,
        drills: Sequence[Drill],
        *,
        today: date | None = None,
    ) -> bool:
        if not drills:
            return False
        player = self.get_player(player_id)
        self.form.date = (today or date.today()).isoformat()
        self.form.name = f"Practice for {player.name if player else 'player'}"
        self.form.drills.extend(self._fresh_instance(drill) for drill in drills)
        self.form.performance_metrics = {}
        self._notify("Suggested drills added to a new session!")
        return True

    def set_mode(self, mode: str) -> bool:
        candidate = (mode or "").strip().lower()
        if candidate not in MODES:
            self._notify(f"Mode must be one of {', '.join(MODES)}.", "error")
            return False
        self.mode = candidate
        return self._flush(MODE_KEY)

    def mark_onboarding_seen(self) -> bool:
        self.onboarding_seen = True
        return self._flush(ONBOARDING_KEY)
