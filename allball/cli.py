from __future__ import annotations

import json
import logging
import math
import os
import re
import threading
from datetime import date
from pathlib import Path
from typing import Any, List, NoReturn, Optional

import typer
from rich.progress import Progress

from .config import as_dict as config_as_dict, get_config
from .entitlements import (
    PLAN_ENTITLEMENTS,
    PlanStore,
    UpgradeRequired,
    require_capability,
    resolve_active_plan,
    resolve_entitlements,
)
from .metrics import roster_shooting_frame
from .models import (
    DIFFICULTY_LEVELS,
    FILTER_ALL,
    PRACTICE_CATEGORIES,
    SKILL_CATEGORIES,
    Drill,
    Player,
    Session,
    StationConfig,
    ValidationError,
)
from .notifications import Notifier
from .reports import build_session_plan_pdf, export_sessions_csv, plot_shooting_progress, slugify
from .runner import OnCourtRunner, PracticeTimer, drill_seconds, format_clock
from .state import DRILL_PRESETS, MODES, PlannerState
from .storage import LocalStore, StorageError
from .timers import Ticker
from .views import (
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

app = typer.Typer(help="Plan basketball practices, run them on court and track shooting.")
player_app = typer.Typer(help="Manage the roster and shooting records.")
drill_app = typer.Typer(help="Manage the drill library.")
session_app = typer.Typer(help="Plan, edit and print practice sessions.")
template_app = typer.Typer(help="Reusable session templates (Pro).")

_KIND_COLORS = {
    "success": typer.colors.GREEN,
    "info": None,
    "warning": typer.colors.YELLOW,
    "error": typer.colors.RED,
}
_METRIC_PATTERN = re.compile(r"^\s*(\d+)\s*:\s*(.+?)\s*=\s*(\d*)\s*/\s*(\d*)\s*$")


def _fail(message: str, *, code: int = 1) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


@app.callback()
def main_callback(
    ctx: typer.Context,
    plan: Optional[str] = typer.Option(
        None,
        "--plan",
        help="Plan to evaluate features against (free, pro, org). Defaults to ALLBALL_PLAN "
        "or the latest billing record.",
    ),
) -> None:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "WARNING"))
    ctx.obj = {"plan": plan}


def _active_plan(ctx: typer.Context) -> str:
    explicit = (ctx.obj or {}).get("plan")
    return resolve_active_plan(explicit, PlanStore(LocalStore()))


def _gate(ctx: typer.Context, capability: str, current: Optional[int] = None) -> None:
    try:
        require_capability(capability, _active_plan(ctx), current)
    except UpgradeRequired as exc:
        _fail(exc.message, code=2)


def _state(yes: bool = False) -> PlannerState:
    def confirm(message: str) -> bool:
        return yes or typer.confirm(message, default=False)

    return PlannerState(LocalStore(), notifier=Notifier(), confirm=confirm)


def _emit(state: PlannerState) -> None:
    for notification in state.notifier.drain():
        typer.secho(
            notification.message,
            fg=_KIND_COLORS.get(notification.kind),
            err=notification.is_error,
        )


def _finish(state: PlannerState, result: Any) -> Any:
    """Print pending notifications; exit 1 when the operation did not go through."""
    errors = any(n.is_error for n in state.notifier.history)
    _emit(state)
    if result is None or result is False:
        if not errors:
            typer.echo("Cancelled.")
        raise typer.Exit(code=1)
    return result


def _resolve_player(state: PlannerState, ref: str) -> Player:
    player = state.get_player(ref)
    if player is not None:
        return player
    matches = [p for p in state.players if p.name.casefold() == ref.strip().casefold()]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        _fail(f"More than one player is named '{ref}'; use the player id.")
    _fail(f"Player not found: {ref}")


def _resolve_drill(state: PlannerState, ref: str) -> Drill:
    drill = state.get_drill(ref)
    if drill is not None:
        return drill
    matches = [d for d in state.drills if d.title.casefold() == ref.strip().casefold()]
    if matches:
        return matches[0]
    _fail(f"Drill not found: {ref}")


def _resolve_session(state: PlannerState, ref: str) -> Session:
    session = state.get_session(ref)
    if session is None:
        _fail(f"Session not found: {ref}")
    return session


def _parse_date_option(value: Optional[str]) -> str:
    return value.strip() if value and value.strip() else date.today().isoformat()


def _apply_metrics(state: PlannerState, metrics: List[str]) -> None:
    for raw in metrics:
        match = _METRIC_PATTERN.match(raw)
        if not match:
            raise typer.BadParameter(
                f"Expected POSITION:PLAYER=MADE/ATTEMPTED, received {raw!r}.", param_name="metric"
            )
        position, player_ref, made, attempted = match.groups()
        index = int(position) - 1
        if not 0 <= index < len(state.form.drills):
            raise typer.BadParameter(f"No drill at position {position}.", param_name="metric")
        unique_id = state.form.drills[index].unique_id
        player = _resolve_player(state, player_ref)
        if not (
            state.set_performance(unique_id, player.id, "shotsMade", made)
            and state.set_performance(unique_id, player.id, "shotsAttempted", attempted)
        ):
            _finish(state, None)


def _add_form_drills(state: PlannerState, drill_refs: List[str]) -> None:
    for ref in drill_refs:
        state.add_drill_to_form(_resolve_drill(state, ref))


def _describe_drill(drill: Drill, players: List[Player]) -> str:
    names = ", ".join(player_names(drill.assigned_players, players))
    extras = f" players: {names}" if names else ""
    video = " [video]" if drill.video_url else ""
    return (
        f"{drill.id}  {drill.title} ({drill.duration:g} min, {drill.skill}, {drill.difficulty})"
        f"{video}{extras}"
    )


# ---------------------------------------------------------------------------
# players


@player_app.command("add")
def player_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Player name."),
    jersey: str = typer.Option("", "--jersey", "-j", help="Jersey number."),
) -> None:
    """Add a player to the roster."""
    state = _state()
    _gate(ctx, "players", current=len(state.players))
    player = _finish(state, state.add_player(name, jersey))
    typer.echo(f"id: {player.id}")


@player_app.command("list")
def player_list(
    sort: str = typer.Option("name", "--sort", "-s", help="Sort by 'name' or 'jersey'."),
    as_json: bool = typer.Option(False, "--json", help="Print the roster as JSON."),
) -> None:
    """List the roster with season shooting."""
    state = _state()
    try:
        players = sort_players(state.players, by=sort.lower())
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_name="sort") from exc
    if as_json:
        typer.echo(json.dumps([p.to_dict() for p in players], indent=2))
        return
    if not players:
        typer.echo("No players yet. Add one with `allball player add NAME`.")
        return
    for row in roster_shooting_frame(players).itertuples(index=False):
        jersey = f"#{row.jersey} " if row.jersey else ""
        shooting = "N/A" if math.isnan(row.percentage) else f"{row.percentage:.1f}%"
        typer.echo(f"{row.player_id}  {jersey}{row.name}  shooting: {shooting}")


@player_app.command("remove")
def player_remove(
    player_ref: str = typer.Argument(..., help="Player id or name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete a player and unassign them from every drill."""
    state = _state(yes)
    player = _resolve_player(state, player_ref)
    _finish(state, state.remove_player(player.id))


@player_app.command("record")
def player_record(
    player_ref: str = typer.Argument(..., help="Player id or name."),
    drill_ref: str = typer.Option(..., "--drill", "-d", help="Drill id or title."),
    made: int = typer.Option(..., "--made", help="Shots made."),
    attempted: int = typer.Option(..., "--attempted", help="Shots attempted."),
    on: Optional[str] = typer.Option(None, "--date", help="Record date (YYYY-MM-DD, defaults to today)."),
) -> None:
    """Add a shooting record outside of a session."""
    state = _state()
    player = _resolve_player(state, player_ref)
    drill = _resolve_drill(state, drill_ref)
    _finish(state, state.add_performance_record(player.id, _parse_date_option(on), drill.id, made, attempted))


# ---------------------------------------------------------------------------
# drills


@drill_app.command("add")
def drill_add(
    title: Optional[str] = typer.Argument(None, help="Drill title (optional with --preset)."),
    duration: Optional[float] = typer.Option(None, "--duration", "-m", help="Duration in minutes."),
    skill: Optional[str] = typer.Option(None, "--skill", help=f"One of: {', '.join(SKILL_CATEGORIES)}."),
    difficulty: Optional[str] = typer.Option(
        None, "--difficulty", help=f"One of: {', '.join(DIFFICULTY_LEVELS)}."
    ),
    notes: Optional[str] = typer.Option(None, "--notes", help="Coaching notes."),
    video: Optional[str] = typer.Option(None, "--video", help="http(s) link to a demo video."),
    assign: List[str] = typer.Option([], "--assign", "-a", help="Assign a player (repeatable)."),
    preset: Optional[str] = typer.Option(None, "--preset", help="Prefill from a preset (see `drill presets`)."),
) -> None:
    """Add a drill to the library."""
    state = _state()
    fields: dict[str, Any] = {}
    if preset:
        prefilled = state.drill_from_preset(preset)
        if prefilled is None:
            _finish(state, None)
        fields.update(prefilled)
    overrides = {
        "title": title,
        "duration": duration,
        "skill": skill,
        "difficulty": difficulty,
        "notes": notes,
        "video_url": video,
    }
    fields.update({key: value for key, value in overrides.items() if value is not None})
    fields["assigned_players"] = [_resolve_player(state, ref).id for ref in assign]
    fields.setdefault("title", "")
    fields.setdefault("duration", 0)
    drill = _finish(state, state.add_drill(**fields))
    typer.echo(f"id: {drill.id}")


@drill_app.command("update")
def drill_update(
    ctx: typer.Context,
    drill_ref: str = typer.Argument(..., help="Drill id or title."),
    title: Optional[str] = typer.Option(None, "--title"),
    duration: Optional[float] = typer.Option(None, "--duration", "-m"),
    skill: Optional[str] = typer.Option(None, "--skill"),
    difficulty: Optional[str] = typer.Option(None, "--difficulty"),
    notes: Optional[str] = typer.Option(None, "--notes"),
    video: Optional[str] = typer.Option(None, "--video", help="New video link; pass '' to clear."),
    assign: Optional[List[str]] = typer.Option(None, "--assign", "-a", help="Replace assigned players."),
) -> None:
    """Edit a library drill (sessions keep their own copy)."""
    _gate(ctx, "manage_drills")
    state = _state()
    drill = _resolve_drill(state, drill_ref)
    assigned = [_resolve_player(state, ref).id for ref in assign] if assign else None
    _finish(
        state,
        state.update_drill(
            drill.id,
            title=title,
            duration=duration,
            skill=skill,
            difficulty=difficulty,
            notes=notes,
            video_url=video,
            assigned_players=assigned,
        ),
    )


@drill_app.command("list")
def drill_list(
    search: str = typer.Option("", "--search", "-s", help="Title contains (case-insensitive)."),
    skill: str = typer.Option(FILTER_ALL, "--skill", help="Filter by skill."),
    difficulty: str = typer.Option(FILTER_ALL, "--difficulty", help="Filter by difficulty."),
    duration: str = typer.Option(FILTER_ALL, "--duration", help="Duration bucket: 0-10, 10-20 or 20+."),
    text: str = typer.Option("", "--text", help="Title or notes contain (library management search)."),
    as_json: bool = typer.Option(False, "--json", help="Print drills as JSON."),
) -> None:
    """List library drills."""
    state = _state()
    drills = filter_drills(state.drills, search, skill, difficulty)
    drills = search_library(drills, text)
    try:
        drills = filter_by_duration(drills, duration)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_name="duration") from exc
    if as_json:
        typer.echo(json.dumps([d.to_dict() for d in drills], indent=2))
        return
    if not drills:
        typer.echo("No drills matched the provided filters.")
        return
    for drill in drills:
        typer.echo(_describe_drill(drill, state.players))


@drill_app.command("delete")
def drill_delete(
    ctx: typer.Context,
    drill_ref: str = typer.Argument(..., help="Drill id or title."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Remove a drill from the library."""
    _gate(ctx, "manage_drills")
    state = _state(yes)
    drill = _resolve_drill(state, drill_ref)
    _finish(state, state.delete_drill(drill.id))


@drill_app.command("video")
def drill_video(
    drill_ref: str = typer.Argument(..., help="Drill id or title."),
    open_browser: bool = typer.Option(False, "--open", help="Open the video in the browser."),
) -> None:
    """Show (or open) a drill's demo video."""
    state = _state()
    url = _finish(state, state.show_video(_resolve_drill(state, drill_ref)))
    typer.echo(url)
    if open_browser:
        typer.launch(url)


@drill_app.command("presets")
def drill_presets() -> None:
    """List drill presets usable with `drill add --preset`."""
    for title, values in DRILL_PRESETS.items():
        typer.echo(
            f"{title}: {values['duration']} min, {values['skill']}, {values['difficulty']}. {values['notes']}"
        )


# ---------------------------------------------------------------------------
# sessions


@session_app.command("add")
def session_add(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Practice name."),
    on: Optional[str] = typer.Option(None, "--date", help="Practice date (YYYY-MM-DD)."),
    category: Optional[str] = typer.Option(
        None, "--category", "-c", help=f"One of: {', '.join(PRACTICE_CATEGORIES)}."
    ),
    notes: Optional[str] = typer.Option(None, "--notes"),
    drill: List[str] = typer.Option([], "--drill", "-d", help="Drill id or title to add (repeatable, in order)."),
    template: Optional[str] = typer.Option(None, "--template", "-t", help="Start from a template (Pro)."),
    metric: List[str] = typer.Option(
        [], "--metric", help="Shooting as POSITION:PLAYER=MADE/ATTEMPTED, e.g. 1:Alex=6/10 (repeatable)."
    ),
) -> None:
    """
    Plan a practice and save it.

    Examples:
        allball session add --date 2024-03-01 --name "Tuesday" -d "Spot Shooting" -d 4 --metric 1:Alex=6/10
    """
    state = _state(yes=True)
    if template:
        _gate(ctx, "templates")
        if state.load_template(template) is None:
            _finish(state, None)
    if not state.update_form(date=on, category=category, name=name, notes=notes):
        _finish(state, None)
    _add_form_drills(state, drill)
    _apply_metrics(state, metric)
    session = _finish(state, state.save_session())
    typer.echo(f"id: {session.id}")


@session_app.command("edit")
def session_edit(
    session_id: str = typer.Argument(..., help="Session id."),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    on: Optional[str] = typer.Option(None, "--date"),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    notes: Optional[str] = typer.Option(None, "--notes"),
    add_drill: List[str] = typer.Option([], "--add-drill", "-d", help="Append a drill (repeatable)."),
    remove: List[int] = typer.Option([], "--remove", help="Remove the drill at POSITION (repeatable)."),
    move: Optional[str] = typer.Option(None, "--move", help="Move FROM:TO positions."),
    metric: List[str] = typer.Option([], "--metric", help="Shooting as POSITION:PLAYER=MADE/ATTEMPTED."),
) -> None:
    """Edit a saved session. Recorded shooting is cleared unless re-entered with --metric."""
    state = _state()
    if state.edit_session(session_id) is None:
        _finish(state, None)
    if not state.update_form(date=on, category=category, name=name, notes=notes):
        _finish(state, None)
    doomed = []
    for position in remove:
        if not 1 <= position <= len(state.form.drills):
            raise typer.BadParameter(f"No drill at position {position}.", param_name="remove")
        doomed.append(state.form.drills[position - 1].unique_id)
    for unique_id in doomed:
        state.remove_drill_from_form(unique_id)
    if move:
        try:
            source, target = (int(part) for part in move.split(":", 1))
            drag = state.form.drills[source - 1].unique_id
            drop = state.form.drills[target - 1].unique_id
        except (ValueError, IndexError) as exc:
            raise typer.BadParameter("Expected FROM:TO drill positions.", param_name="move") from exc
        state.move_form_drill(drag, drop)
    _add_form_drills(state, add_drill)
    _apply_metrics(state, metric)
    _finish(state, state.save_session())


@session_app.command("list")
def session_list(
    as_json: bool = typer.Option(False, "--json", help="Print sessions as JSON."),
) -> None:
    """List saved sessions."""
    state = _state()
    if as_json:
        typer.echo(json.dumps([s.to_dict() for s in state.sessions], indent=2))
        return
    if not state.sessions:
        typer.echo("No sessions yet. Plan one with `allball session add`.")
        return
    for session in state.sessions:
        titles = ", ".join(d.title for d in session.drills) or "no drills"
        typer.echo(
            f"{session.id}  {session.date or 'unscheduled'}  {session.name} [{session.category}] "
            f"{total_duration(session.drills):g} min: {titles}"
        )


@session_app.command("duplicate")
def session_duplicate(session_id: str = typer.Argument(..., help="Session id.")) -> None:
    """Copy a session (new id, blank date, no shooting records)."""
    state = _state()
    copy = _finish(state, state.duplicate_session(session_id))
    typer.echo(f"id: {copy.id}")


@session_app.command("delete")
def session_delete(
    session_id: str = typer.Argument(..., help="Session id."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete a saved session."""
    state = _state(yes)
    _finish(state, state.delete_session(session_id))


@session_app.command("print")
def session_print(
    session_id: str = typer.Argument(..., help="Session id."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="PDF destination."),
) -> None:
    """Write a printable practice plan as PDF."""
    state = _state()
    session = _resolve_session(state, session_id)
    destination = output or Path("reports") / f"practice_{slugify(session.name)}_{session.date or 'undated'}.pdf"
    path = build_session_plan_pdf(session, state.players, destination)
    typer.echo(f"Practice plan written to {path}")


# ---------------------------------------------------------------------------
# templates


@template_app.command("save")
def template_save(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Template name."),
    from_session: Optional[str] = typer.Option(None, "--session", "-s", help="Copy drills from a session."),
    drill: List[str] = typer.Option([], "--drill", "-d", help="Drill id or title (repeatable)."),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    notes: Optional[str] = typer.Option(None, "--notes"),
) -> None:
    """Save a reusable template."""
    _gate(ctx, "templates")
    state = _state()
    if from_session:
        if state.edit_session(from_session) is None:
            _finish(state, None)
    if not state.update_form(category=category, notes=notes):
        _finish(state, None)
    _add_form_drills(state, drill)
    template = _finish(state, state.save_form_as_template(name))
    typer.echo(f"id: {template.id}")


@template_app.command("list")
def template_list() -> None:
    """List saved templates."""
    state = _state()
    if not state.templates:
        typer.echo("No templates saved.")
        return
    for template in state.templates:
        titles = ", ".join(d.title for d in template.drills) or "no drills"
        typer.echo(f"{template.id}  {template.name} [{template.category}]: {titles}")


@template_app.command("delete")
def template_delete(
    template_id: str = typer.Argument(..., help="Template id."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete a template."""
    state = _state(yes)
    _finish(state, state.delete_template(template_id))


@template_app.command("apply")
def template_apply(
    ctx: typer.Context,
    template_id: str = typer.Argument(..., help="Template id."),
    on: Optional[str] = typer.Option(None, "--date", help="Practice date (defaults to today)."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Override the practice name."),
) -> None:
    """Create a new session from a template."""
    _gate(ctx, "templates")
    state = _state(yes=True)
    if state.load_template(template_id) is None:
        _finish(state, None)
    if not state.update_form(date=_parse_date_option(on), name=name):
        _finish(state, None)
    session = _finish(state, state.save_session())
    typer.echo(f"id: {session.id}")


# ---------------------------------------------------------------------------
# overview commands


@app.command()
def dashboard(as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON.")) -> None:
    """Totals across all saved sessions."""
    state = _state()
    summary = dashboard_summary(state.sessions)
    if as_json:
        typer.echo(json.dumps(summary.to_dict(), indent=2))
        return
    typer.echo(f"Total sessions: {summary.total_sessions}")
    typer.echo(f"Total practice time: {summary.total_minutes:g} min")
    typer.echo("Sessions by category:")
    for category, count in summary.sessions_by_category.items():
        typer.echo(f"  {category}: {count}")
    typer.echo("Drill usage by skill:")
    for skill, count in summary.drill_usage_by_skill.items():
        typer.echo(f"  {skill}: {count}")


@app.command()
def rotation(
    stations: Optional[int] = typer.Option(None, "--stations", "-s", help="Number of stations."),
    minutes: Optional[int] = typer.Option(None, "--minutes", "-m", help="Minutes per station."),
    station: List[str] = typer.Option(
        [], "--station", help="Station as NAME or NAME=DRILL, in order (repeatable)."
    ),
) -> None:
    """Split the roster into station groups and print the rotation."""
    state = _state()
    defaults = get_config().stations
    configs = []
    for raw in station:
        label, _, drill_ref = raw.partition("=")
        drill_id = _resolve_drill(state, drill_ref).id if drill_ref.strip() else None
        configs.append(StationConfig(name=label.strip(), drill_id=drill_id))
    try:
        plan = generate_rotation(
            [p.id for p in state.players],
            stations if stations is not None else defaults.default_stations,
            configs,
            minutes if minutes is not None else defaults.rotation_minutes,
        )
    except ValidationError as exc:
        _fail(str(exc))
    typer.secho("Station schedule generated.", fg=typer.colors.GREEN)
    typer.echo(f"Rotation Schedule ({plan.rotation_minutes} min per station, {plan.total_minutes} min total)")
    for round_index in range(plan.rounds):
        typer.echo(f"Round {round_index + 1}:")
        for station_index, config in enumerate(plan.stations):
            drill = state.get_drill(config.drill_id) if config.drill_id else None
            names = ", ".join(player_names(plan.group_at(round_index, station_index), state.players))
            typer.echo(f"  {config.name} ({drill.title if drill else '-'}): {names or '-'}")


@app.command()
def analytics(
    ctx: typer.Context,
    player_ref: str = typer.Argument(..., help="Player id or name."),
    plot: Optional[Path] = typer.Option(None, "--plot", help="Write the shooting chart (PNG) here."),
    create_session: bool = typer.Option(
        False, "--create-session", help="Save a practice for today built from the suggested drills."
    ),
) -> None:
    """Shooting analytics and drill suggestions for one player (Pro)."""
    _gate(ctx, "analytics")
    state = _state()
    player = _resolve_player(state, player_ref)
    pct = shooting_percentage(player)
    typer.echo(f"Player: {player.name}")
    typer.echo(f"Average Shooting: {f'{pct:.1f}%' if pct is not None else 'N/A'}")
    typer.echo(f"Latest Performance: {latest_performance(player, state.drills)}")
    progress = shooting_progress(player)
    if progress:
        typer.echo("Progress: " + ", ".join(f"{day} {value:.1f}%" for day, value in progress))

    suggestions = suggest_drills(player, state.drills)
    if suggestions:
        typer.echo("Suggested drills:")
        for drill in suggestions:
            typer.echo(f"  {drill.title} ({drill.duration:g} min)")
    else:
        typer.echo("No suggestions: shooting is on target.")

    if plot is not None:
        try:
            path = plot_shooting_progress(player, plot)
        except ValueError as exc:
            _fail(str(exc))
        typer.echo(f"Chart written to {path}")

    if create_session and suggestions:
        state.add_suggested_drills_to_form(player.id, suggestions)
        session = _finish(state, state.save_session())
        typer.echo(f"id: {session.id}")


@app.command()
def run(
    session_id: str = typer.Argument(..., help="Session id to run on court."),
    interval: float = typer.Option(1.0, "--interval", help="Seconds per countdown tick."),
) -> None:
    """Run a session drill by drill with a live countdown (Ctrl+C to stop)."""
    state = _state()
    session = _resolve_session(state, session_id)
    runner = OnCourtRunner(session.drills, notifier=state.notifier)
    timer = PracticeTimer()
    total = PracticeTimer.total_seconds(session.drills)
    if not runner.start():
        _fail("This session has no drills to run.")
    timer.start()
    finished = threading.Event()

    def step() -> None:
        if finished.is_set():
            return
        timer.tick()
        runner.tick()
        if runner.state == "complete":
            timer.pause()
            finished.set()

    with Progress() as progress:
        overall = progress.add_task("Practice", total=max(total, 1))
        tasks = []
        for position, drill in enumerate(session.drills, start=1):
            seconds = max(drill_seconds(drill), 1)
            tasks.append((progress.add_task(f"{position}. {drill.title}", total=seconds), seconds))
        try:
            with Ticker(interval, step):
                while not finished.wait(min(interval, 0.2)):
                    _refresh_progress(progress, tasks, runner, overall, timer)
        except KeyboardInterrupt:
            runner.pause()
            timer.pause()
        _refresh_progress(progress, tasks, runner, overall, timer)

    _emit(state)
    typer.echo(f"Elapsed {format_clock(timer.elapsed)} ({timer.progress(total):.0f}% of plan)")


def _refresh_progress(
    progress: Progress,
    tasks: List[tuple[Any, int]],
    runner: OnCourtRunner,
    overall: Any,
    timer: PracticeTimer,
) -> None:
    for index, (task, total) in enumerate(tasks):
        if runner.completed or index < runner.index:
            progress.update(task, completed=total)
        elif index == runner.index:
            progress.update(task, completed=max(0, total - runner.remaining))
    progress.update(overall, completed=timer.elapsed, description=_practice_label(runner.notifier))


def _practice_label(notifier: Notifier, now: Optional[float] = None) -> str:
    toast = notifier.current(now)
    return f"Practice: {toast.message}" if toast else "Practice"


@app.command()
def mode(value: Optional[str] = typer.Argument(None, help=f"Switch to: {', '.join(MODES)}.")) -> None:
    """Show or switch the interface mode."""
    state = _state()
    if value is None:
        typer.echo(f"Mode: {state.mode}")
        return
    _finish(state, state.set_mode(value))
    typer.echo(f"Mode: {state.mode}")


@app.command()
def welcome() -> None:
    """Getting-started tips (shown once on a fresh install)."""
    state = _state()
    if state.onboarding_seen:
        typer.echo("Welcome back!")
    typer.echo("1. Start by adding your players to track their progress: allball player add NAME")
    typer.echo("2. Browse the drill library: allball drill list")
    typer.echo("3. Plan a practice: allball session add --date YYYY-MM-DD --name NAME -d DRILL")
    typer.echo("4. Run it on court: allball run SESSION_ID")
    state.mark_onboarding_seen()
    _emit(state)


@app.command("config")
def config_show() -> None:
    """Show the effective configuration."""
    config = config_as_dict()
    typer.echo(f"Config source: {config.get('source')}")
    suggestions = config["suggestions"]
    typer.echo(
        f"Suggestions: below {suggestions['threshold_pct']}% suggest up to "
        f"{suggestions['limit']} {suggestions['skill']} drills"
    )
    search = config["search"]
    typer.echo(f"Search debounce: {search['debounce_ms']} ms (global {search['global_debounce_ms']} ms)")
    stations = config["stations"]
    typer.echo(f"Stations: {stations['default_stations']} x {stations['rotation_minutes']} min")
    typer.echo(f"Notifications: {config['toast_seconds']} s; +time button: {config['add_time_seconds']} s")


@app.command()
def entitlements(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print as JSON."),
) -> None:
    """Show what the active plan includes."""
    plan = _active_plan(ctx)
    current = resolve_entitlements(plan)
    if as_json:
        typer.echo(json.dumps({"plan": plan, "entitlements": current.to_dict()}, indent=2))
        return
    typer.echo(f"Plan: {plan}")
    for key, value in current.to_dict().items():
        shown = ("yes" if value else "no") if isinstance(value, bool) else value
        typer.echo(f"  {key}: {shown}")
    if plan == "free":
        pro = PLAN_ENTITLEMENTS["pro"]
        typer.echo(f"Upgrade to Pro for up to {pro.players} players, templates and analytics.")


@app.command()
def export(
    destination: Path = typer.Argument(..., help="Backup file (.json) or sessions table (.csv)."),
) -> None:
    """Back up all planner data as JSON, or export sessions as CSV."""
    store = LocalStore()
    if destination.suffix.lower() == ".csv":
        state = _state()
        path = export_sessions_csv(state.sessions, destination)
    else:
        path = store.export_snapshot(destination)
    typer.echo(f"Exported to {path}")


@app.command("import")
def import_cli(
    source: Path = typer.Argument(..., help="Backup JSON (from `allball export` or a browser export)."),
) -> None:
    """Restore planner data from a backup."""
    if not source.exists():
        _fail(f"File not found: {source}")
    try:
        restored = LocalStore().import_snapshot(source)
    except (ValueError, StorageError) as exc:
        _fail(f"Could not import {source}: {exc}")
    if not restored:
        _fail("No planner data found in the file.")
    typer.echo("Restored: " + ", ".join(restored))


@app.command("serve-billing")
def serve_billing(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: Optional[int] = typer.Option(None, "--port", help="Defaults to PORT or 3001."),
) -> None:
    """Run the Stripe billing server."""
    from .config import BillingSettings
    from .webapp import create_app

    settings = BillingSettings.from_env()
    create_app(settings).run(host=host, port=port or settings.port)


app.add_typer(player_app, name="player")
app.add_typer(drill_app, name="drill")
app.add_typer(session_app, name="session")
app.add_typer(template_app, name="template")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
