from __future__ import annotations

import json
import re

import pytest
from typer.testing import CliRunner

from allball.cli import app

ID_PATTERN = re.compile(r"^id: (\S+)$", re.MULTILINE)


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    target = tmp_path / "data"
    monkeypatch.setenv("ALLBALL_DATA_DIR", str(target))
    monkeypatch.delenv("ALLBALL_PLAN", raising=False)
    monkeypatch.delenv("FLOWTRACK_PLAN", raising=False)
    monkeypatch.delenv("ALLBALL_CONFIG", raising=False)
    return target


def _invoke(runner: CliRunner, args: list[str]):
    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    return result


def _created_id(result) -> str:
    match = ID_PATTERN.search(result.output)
    assert match, result.output
    return match.group(1)


def test_cli_smoke(tmp_path, data_dir):
    runner = CliRunner()

    added = _invoke(runner, ["player", "add", "Alex", "--jersey", "7"])
    assert 'Player "Alex" added!' in added.output
    _invoke(runner, ["player", "add", "Sam", "--jersey", "12"])

    session = _invoke(
        runner,
        [
            "session",
            "add",
            "--date",
            "2024-05-01",
            "--name",
            "Tuesday",
            "--category",
            "Skills",
            "-d",
            "Spot Shooting",
            "-d",
            "4",
            "--metric",
            "1:Alex=6/10",
        ],
    )
    session_id = _created_id(session)

    listing = _invoke(runner, ["session", "list"])
    assert "Tuesday [Skills] 25 min: Spot Shooting, Ball Handling Circuit" in listing.output

    players = json.loads(_invoke(runner, ["player", "list", "--json"]).output)
    alex = next(p for p in players if p["name"] == "Alex")
    assert alex["performanceHistory"][0]["metrics"] == {"shotsMade": 6, "shotsAttempted": 10}

    roster = _invoke(runner, ["player", "list"]).output
    assert "#7 Alex  shooting: 60.0%" in roster
    assert "#12 Sam  shooting: N/A" in roster

    dashboard = json.loads(_invoke(runner, ["dashboard", "--json"]).output)
    assert dashboard["totalSessions"] == 1
    assert dashboard["totalMinutes"] == 25
    assert dashboard["sessionsByCategory"] == {"Skills": 1}

    rotation = _invoke(runner, ["rotation", "--stations", "2", "--minutes", "5"])
    assert "Round 2:" in rotation.output
    assert "10 min total" in rotation.output

    pdf = tmp_path / "plan.pdf"
    _invoke(runner, ["session", "print", session_id, "--output", str(pdf)])
    assert pdf.exists()

    backup = tmp_path / "backup.json"
    _invoke(runner, ["export", str(backup)])
    snapshot = json.loads(backup.read_text(encoding="utf-8"))
    assert len(snapshot["flowtrackSessions"]) == 1

    _invoke(runner, ["session", "delete", session_id, "--yes"])
    assert "No sessions yet" in _invoke(runner, ["session", "list"]).output

    restored = _invoke(runner, ["import", str(backup)])
    assert "flowtrackSessions" in restored.output
    assert "Tuesday" in _invoke(runner, ["session", "list"]).output


def test_pro_features_are_gated(data_dir):
    runner = CliRunner()

    blocked = runner.invoke(app, ["template", "save", "Warmup", "-d", "4"])
    assert blocked.exit_code == 2
    assert "Unlock Pro" in blocked.output

    saved = _invoke(runner, ["--plan", "pro", "template", "save", "Warmup", "-d", "4", "-c", "Warm-up"])
    template_id = _created_id(saved)

    applied = _invoke(runner, ["--plan", "pro", "template", "apply", template_id, "--date", "2024-05-02"])
    _created_id(applied)
    assert "Warmup" in _invoke(runner, ["session", "list"]).output

    assert runner.invoke(app, ["analytics", "Alex"]).exit_code == 2


def test_analytics_suggests_shooting_drills(tmp_path, data_dir):
    runner = CliRunner()
    _invoke(runner, ["player", "add", "Alex"])
    _invoke(runner, ["player", "record", "Alex", "--drill", "1", "--made", "2", "--attempted", "10", "--date", "2024-05-01"])

    chart = tmp_path / "alex.png"
    result = _invoke(runner, ["--plan", "pro", "analytics", "Alex", "--plot", str(chart), "--create-session"])

    assert "Average Shooting: 20.0%" in result.output
    assert "Spot Shooting" in result.output
    assert chart.exists()
    _created_id(result)


def test_validation_errors_exit_non_zero(data_dir):
    runner = CliRunner()

    missing_name = runner.invoke(app, ["session", "add", "--date", "2024-05-01"])
    assert missing_name.exit_code == 1
    assert "Please fill in Date and Practice Name." in missing_name.output

    bad_drill = runner.invoke(app, ["drill", "add", "Shell", "--duration", "0"])
    assert bad_drill.exit_code == 1

    no_players = runner.invoke(app, ["rotation"])
    assert no_players.exit_code == 1
    assert "Add players first." in no_players.output


def test_run_completes_short_session(data_dir):
    runner = CliRunner()
    _invoke(runner, ["drill", "add", "Quick Layups", "--duration", "0.05"])
    session = _invoke(runner, ["session", "add", "--date", "2024-05-01", "--name", "Quick", "-d", "Quick Layups"])

    result = _invoke(runner, ["run", _created_id(session), "--interval", "0.001"])

    assert "Session complete!" in result.output
    assert "Elapsed 00:03" in result.output


def test_practice_label_shows_toast_until_it_expires():
    from allball.cli import _practice_label
    from allball.notifications import Notifier

    notifier = Notifier(duration_seconds=3)
    assert _practice_label(notifier) == "Practice"

    toast = notifier.notify("Session complete!")
    assert _practice_label(notifier, now=toast.created_at + 1) == "Practice: Session complete!"
    assert _practice_label(notifier, now=toast.created_at + 3) == "Practice"


def test_mode_and_welcome(data_dir):
    runner = CliRunner()
    assert "Mode: pro" in _invoke(runner, ["mode", "pro"]).output
    assert "Mode: pro" in _invoke(runner, ["mode"]).output
    assert runner.invoke(app, ["mode", "expert"]).exit_code == 1

    first = _invoke(runner, ["welcome"])
    assert "Welcome back!" not in first.output
    assert "Welcome back!" in _invoke(runner, ["welcome"]).output
