from __future__ import annotations

import argparse
import random
from datetime import date, timedelta
from pathlib import Path
from typing import Sequence

from allball.models import PRACTICE_CATEGORIES
from allball.notifications import Notifier, always_confirm
from allball.state import PlannerState
from allball.storage import LocalStore

ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DIR = ROOT / "demo" / "data"
DEFAULT_EXPORT = ROOT / "demo" / "allball_backup.json"
DEFAULT_PLAYERS = ["Avery", "Blake", "Casey", "Devin", "Emery", "Finley", "Harper"]


def build_demo_store(
    root: Path,
    *,
    days: int,
    start: date,
    seed: int,
    players: Sequence[str],
) -> PlannerState:
    """Fill `root` with a roster and one practice every other day, with shooting records."""
    rng = random.Random(seed)
    state = PlannerState(LocalStore(root), notifier=Notifier(duration_seconds=0), confirm=always_confirm)

    roster = []
    for number, name in enumerate(players, start=1):
        player = state.add_player(name, str(number * 3))
        if player is not None:
            roster.append(player)

    shooting = [drill for drill in state.drills if drill.skill == "Shooting"]
    others = [drill for drill in state.drills if drill.skill != "Shooting"]
    for offset in range(0, days, 2):
        day = start + timedelta(days=offset)
        state.update_form(
            date=day.isoformat(),
            name=f"Practice {offset // 2 + 1}",
            category=rng.choice(PRACTICE_CATEGORIES),
            notes=rng.choice(["Film review after.", "Short bench.", "Game week.", ""]),
        )
        shooting_instance = state.add_drill_to_form(rng.choice(shooting))
        for drill in rng.sample(others, k=min(3, len(others))):
            state.add_drill_to_form(drill)
        if shooting_instance is not None:
            # Shooting improves slowly over the block.
            skill = 0.35 + 0.01 * offset
            for player in roster:
                attempted = rng.randint(8, 20)
                made = sum(1 for _ in range(attempted) if rng.random() < skill)
                state.set_performance(shooting_instance.unique_id, player.id, "shotsMade", made)
                state.set_performance(shooting_instance.unique_id, player.id, "shotsAttempted", attempted)
        state.save_session()

    state.notifier.drain()
    return state


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a demo roster with practices and shooting history.")
    parser.add_argument("--days", type=int, default=28, help="Number of days the practice block spans.")
    parser.add_argument(
        "--start-date",
        type=date.fromisoformat,
        default=(date.today() - timedelta(days=27)).isoformat(),
        help="Start date (YYYY-MM-DD). Defaults to 27 days before today.",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducibility.")
    parser.add_argument("--data-dir", type=Path, default=DEFAULT_DIR, help="Destination data directory.")
    parser.add_argument("--export", type=Path, default=DEFAULT_EXPORT, help="Backup JSON to write as well.")
    parser.add_argument(
        "--players",
        nargs="+",
        default=DEFAULT_PLAYERS,
        help="Space-separated player names (default: %(default)s).",
    )
    args = parser.parse_args()

    if isinstance(args.start_date, str):
        start = date.fromisoformat(args.start_date)
    else:
        start = args.start_date

    state = build_demo_store(args.data_dir, days=args.days, start=start, seed=args.seed, players=args.players)
    state.store.export_snapshot(args.export)
    print(
        f"Wrote {len(state.players)} players and {len(state.sessions)} sessions to {args.data_dir} "
        f"(backup: {args.export})"
    )


if __name__ == "__main__":
    main()
