from __future__ import annotations

from datetime import date

import pytest

from allball.models import ShotMetrics
from allball.notifications import Notifier, always_confirm, never_confirm
from allball.state import DEFAULT_DRILLS, PlannerState
from allball.storage import DRILLS_KEY, PLAYERS_KEY, SESSIONS_KEY, LocalStore, StorageError


def make_state(root, confirm=always_confirm) -> PlannerState:
    return PlannerState(LocalStore(root), notifier=Notifier(duration_seconds=0), confirm=confirm)


@pytest.fixture
def state(tmp_path):
    return make_state(tmp_path)


def last_message(state: PlannerState) -> str:
    assert state.notifier.last is not None
    return state.notifier.last.message


def test_fresh_store_seeds_default_drill_library(state):
    assert [drill.id for drill in state.drills] == [d["id"] for d in DEFAULT_DRILLS]
    assert state.mode == "simple"
    assert state.onboarding_seen is False


def test_emptied_drill_library_is_not_reseeded(tmp_path):
    store = LocalStore(tmp_path)
    store.save(DRILLS_KEY, [])
    assert make_state(tmp_path).drills == []


def test_add_player_requires_name(state):
    assert state.add_player("   ") is None
    assert state.notifier.last.is_error
    assert last_message(state) == "Player name cannot be empty."
    assert state.players == []


def test_state_survives_reload(tmp_path):
    first = make_state(tmp_path)
    player = first.add_player("Alex", "7")
    first.set_mode("pro")
    first.mark_onboarding_seen()

    second = make_state(tmp_path)

    assert [p.id for p in second.players] == [player.id]
    assert second.mode == "pro"
    assert second.onboarding_seen is True


def test_remove_player_cascades_to_drills_and_form(state):
    alex = state.add_player("Alex")
    sam = state.add_player("Sam")
    drill = state.add_drill("Shell", 10, "Defense", "Beginner", assigned_players=[alex.id, sam.id])
    instance = state.add_drill_to_form(drill)
    state.set_performance(instance.unique_id, alex.id, "shotsMade", 3)

    assert state.remove_player(alex.id) is True

    assert [p.id for p in state.players] == [sam.id]
    assert state.get_drill(drill.id).assigned_players == [sam.id]
    assert state.form.drills[0].assigned_players == [sam.id]
    assert state.form.performance_metrics == {}
    assert last_message(state) == "Player deleted successfully."
    stored = state.store.load(DRILLS_KEY, [])
    assert all(alex.id not in d["assignedPlayers"] for d in stored)


def test_remove_player_needs_confirmation(tmp_path):
    state = make_state(tmp_path, confirm=never_confirm)
    player = state.add_player("Alex")
    assert state.remove_player(player.id) is False
    assert len(state.players) == 1


def test_add_drill_validation_messages(state):
    assert state.add_drill("", 10) is None
    assert last_message(state) == "Please enter a valid drill title and positive duration."

    assert state.add_drill("Shell", 0) is None
    assert last_message(state) == "Please enter a valid drill title and positive duration."

    assert state.add_drill("Forever", "inf") is None
    assert last_message(state) == "Please enter a valid drill title and positive duration."
    assert [d.title for d in state.drills if d.title == "Forever"] == []

    assert state.add_drill("Shell", 10, video_url="youtube.com/x") is None
    assert last_message(state) == "Please enter a valid video URL (e.g., https://youtube.com/...)."

    assert state.add_drill("Shell", 10, assigned_players=["nobody"]) is None
    assert state.notifier.last.is_error


def test_update_drill_keeps_untouched_fields(state):
    drill = state.add_drill("Shell", 10, "Defense", "Advanced", notes="low stance")

    updated = state.update_drill(drill.id, duration=12, notes=None)

    assert updated.duration == 12
    assert updated.notes == "low stance"
    assert updated.skill == "Defense"
    with pytest.raises(TypeError):
        state.update_drill(drill.id, colour="red")


def test_drill_presets(state):
    preset = state.drill_from_preset("dribble drills")
    assert preset["title"] == "Dribble Drills"
    assert preset["duration"] == 8
    assert state.drill_from_preset("Moonball") is None
    assert state.notifier.last.is_error


def test_show_video_without_url_notifies(state):
    drill = state.add_drill("Shell", 10)
    assert state.show_video(drill) is None
    assert last_message(state) == "No video available for this drill."

    with_video = state.add_drill("Film", 5, video_url="https://youtube.com/watch?v=1")
    assert state.show_video(with_video) == "https://youtube.com/watch?v=1"


def test_form_reorder_and_remove(state):
    a = state.add_drill_to_form("1")
    b = state.add_drill_to_form("2")
    c = state.add_drill_to_form("1")

    assert len({a.unique_id, b.unique_id, c.unique_id}) == 3
    assert state.move_form_drill(c.unique_id, a.unique_id) is True
    assert [d.unique_id for d in state.form.drills] == [c.unique_id, a.unique_id, b.unique_id]

    assert state.remove_drill_from_form(a.unique_id) is True
    assert state.remove_drill_from_form("missing") is False
    assert [d.unique_id for d in state.form.drills] == [c.unique_id, b.unique_id]


def test_set_performance_validation(state):
    instance = state.add_drill_to_form("1")
    with pytest.raises(ValueError):
        state.set_performance(instance.unique_id, "p1", "rebounds", 3)
    assert state.set_performance("missing", "p1", "made", 3) is False
    assert state.set_performance(instance.unique_id, "p1", "made", "-2") is False
    assert state.set_performance(instance.unique_id, "p1", "made", "4") is True
    assert state.form.performance_metrics[instance.unique_id]["p1"] == ShotMetrics(4, 0)


def test_save_session_requires_date_and_name(state):
    state.update_form(name="Tuesday")
    assert state.save_session() is None
    assert last_message(state) == "Please fill in Date and Practice Name."


def test_update_form_rejects_bad_dates(state):
    assert state.update_form(date="next week") is False
    assert state.form.date == ""
    assert state.update_form(date="2024-03-05") is True
    assert state.form.date == "2024-03-05"


def test_new_session_appends_history_only_for_attempts(state):
    alex = state.add_player("Alex")
    sam = state.add_player("Sam")
    jo = state.add_player("Jo")
    state.update_form(date="2024-03-05", name="Tuesday")
    instance = state.add_drill_to_form("1")
    state.set_performance(instance.unique_id, alex.id, "shotsMade", 6)
    state.set_performance(instance.unique_id, alex.id, "shotsAttempted", 10)
    state.set_performance(instance.unique_id, sam.id, "shotsMade", 0)

    session = state.save_session()

    assert session is not None
    assert state.form.name == ""
    assert len(alex.performance_history) == 1
    record = alex.performance_history[0]
    assert (record.date, record.drill_id) == ("2024-03-05", "1")
    assert record.metrics == ShotMetrics(6, 10)
    assert sam.performance_history == []
    assert jo.performance_history == []
    stored = state.store.load(PLAYERS_KEY, [])
    assert stored[0]["performanceHistory"][0]["metrics"] == {"shotsMade": 6, "shotsAttempted": 10}


def test_updating_a_session_replaces_it_without_history(state):
    alex = state.add_player("Alex")
    state.update_form(date="2024-03-05", name="Tuesday")
    instance = state.add_drill_to_form("1")
    state.set_performance(instance.unique_id, alex.id, "made", 6)
    state.set_performance(instance.unique_id, alex.id, "attempted", 10)
    session = state.save_session()

    form = state.edit_session(session.id)
    assert form.editing_id == session.id
    assert form.performance_metrics == {}
    state.update_form(name="Tuesday (moved)")
    edited = form.drills[0]
    state.set_performance(edited.unique_id, alex.id, "made", 8)
    state.set_performance(edited.unique_id, alex.id, "attempted", 10)
    updated = state.save_session()

    assert updated.id == session.id
    assert [s.name for s in state.sessions] == ["Tuesday (moved)"]
    assert len(alex.performance_history) == 1
    assert last_message(state) == 'Session "Tuesday (moved)" updated!'


def test_stale_editing_id_creates_a_new_session(state):
    state.update_form(date="2024-03-05", name="Tuesday")
    state.form.editing_id = "gone"
    session = state.save_session()
    assert session.id != "gone"
    assert len(state.sessions) == 1


def test_duplicate_session(state):
    state.update_form(date="2024-03-05", name="Tuesday", notes="bring cones")
    state.add_drill_to_form("1")
    original = state.save_session()

    copy = state.duplicate_session(original.id)

    assert copy.name == "Copy of Tuesday"
    assert copy.date == ""
    assert copy.notes == "bring cones"
    assert copy.performance_metrics == {}
    assert copy.drills[0].id == original.drills[0].id
    assert copy.drills[0].unique_id != original.drills[0].unique_id
    assert len(state.store.load(SESSIONS_KEY, [])) == 2


def test_delete_session(state):
    state.update_form(date="2024-03-05", name="Tuesday")
    session = state.save_session()
    assert state.delete_session(session.id) is True
    assert state.sessions == []
    assert state.delete_session(session.id) is False


def test_templates_round_trip_through_form(state):
    assert state.save_form_as_template("  ") is None
    assert last_message(state) == "Template name cannot be empty."

    state.update_form(category="Cool Down", notes="sprints")
    first = state.add_drill_to_form("4")
    template = state.save_form_as_template("Monday Legs")
    state.cancel_edit()
    state.update_form(date="2024-03-04")

    form = state.load_template(template.id)

    assert form.date == "2024-03-04"
    assert form.name == "Monday Legs"
    assert form.category == "Cool Down"
    assert form.notes == "sprints"
    assert form.drills[0].id == "4"
    assert form.drills[0].unique_id != first.unique_id
    assert state.delete_template(template.id) is True
    assert state.templates == []


def test_reset_form_only_confirms_when_dirty(tmp_path):
    prompts: list[str] = []

    def confirm(message: str) -> bool:
        prompts.append(message)
        return True

    state = make_state(tmp_path, confirm=confirm)
    assert state.reset_form() is False
    assert prompts == []

    state.update_form(name="Tuesday")
    assert state.reset_form() is True
    assert len(prompts) == 1
    assert state.form.name == ""


def test_suggested_drills_start_a_new_form(state):
    player = state.add_player("Alex")
    shooting = [d for d in state.drills if d.skill == "Shooting"]

    assert state.add_suggested_drills_to_form(player.id, shooting, today=date(2024, 3, 6)) is True

    assert state.form.date == "2024-03-06"
    assert state.form.name == "Practice for Alex"
    assert [d.id for d in state.form.drills] == [d.id for d in shooting]
    assert state.add_suggested_drills_to_form(player.id, []) is False


def test_add_performance_record(state):
    player = state.add_player("Alex")
    assert state.add_performance_record(player.id, "2024-03-01", "1", 4, 0) is None
    assert state.notifier.last.is_error
    record = state.add_performance_record(player.id, "2024-03-01", "1", 4, 9)
    assert record.metrics == ShotMetrics(4, 9)
    assert player.performance_history == [record]


def test_set_mode_validates(state):
    assert state.set_mode("expert") is False
    assert state.mode == "simple"
    assert state.set_mode("PRO") is True
    assert state.mode == "pro"


def test_storage_failure_keeps_change_in_memory(state, monkeypatch):
    def broken_save(key, value):
        raise StorageError("disk full")

    monkeypatch.setattr(state.store, "save", broken_save)

    player = state.add_player("Alex")

    assert player in state.players
    errors = [n for n in state.notifier.history if n.is_error]
    assert errors and "could not be saved" in errors[0].message
