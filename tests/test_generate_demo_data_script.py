from __future__ import annotations

from datetime import date
from pathlib import Path

from allball.state import PlannerState
from allball.storage import LocalStore


def test_demo_store_has_players_sessions_and_history(tmp_path: Path) -> None:
    import scripts.generate_demo_data as demo

    state = demo.build_demo_store(
        tmp_path, days=6, start=date(2024, 1, 1), seed=7, players=["Avery", "Blake"]
    )

    assert [p.name for p in state.players] == ["Avery", "Blake"]
    assert [s.date for s in state.sessions] == ["2024-01-01", "2024-01-03", "2024-01-05"]
    assert all(len(s.drills) == 4 for s in state.sessions)
    assert state.notifier.history == []

    reloaded = PlannerState(LocalStore(tmp_path))
    assert len(reloaded.sessions) == 3
    assert all(len(p.performance_history) == 3 for p in reloaded.players)


def test_demo_store_is_reproducible(tmp_path: Path) -> None:
    import scripts.generate_demo_data as demo

    first = demo.build_demo_store(tmp_path / "a", days=4, start=date(2024, 1, 1), seed=3, players=["A"])
    second = demo.build_demo_store(tmp_path / "b", days=4, start=date(2024, 1, 1), seed=3, players=["A"])

    def shots(state):
        return [r.metrics for r in state.players[0].performance_history]

    assert shots(first) == shots(second)
    assert [[d.title for d in s.drills] for s in first.sessions] == [
        [d.title for d in s.drills] for s in second.sessions
    ]
