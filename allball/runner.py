from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Literal

from .config import get_config
from .models import Drill, coerce_duration
from .notifications import Notifier
from .views import total_duration

LOGGER = logging.getLogger(__name__)

RunnerState = Literal["idle", "running", "paused", "complete"]


def format_clock(seconds: int | float) -> str:
    """Render seconds as MM:SS (minutes are not wrapped at 60)."""
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


def drill_seconds(drill: Drill | None) -> int:
    if drill is None:
        return 0
    return int(round(coerce_duration(drill.duration) * 60))


class PracticeTimer:
    """Elapsed-time stopwatch for the whole practice plan."""

    def __init__(self) -> None:
        self.elapsed = 0
        self.running = False
        self._lock = threading.Lock()

    @property
    def state(self) -> RunnerState:
        if self.running:
            return "running"
        return "paused" if self.elapsed else "idle"

    def start(self) -> None:
        with self._lock:
            self.running = True

    def pause(self) -> None:
        with self._lock:
            self.running = False

    def reset(self) -> None:
        with self._lock:
            self.running = False
            self.elapsed = 0

    def tick(self) -> None:
        with self._lock:
            if self.running:
                self.elapsed += 1

    @staticmethod
    def total_seconds(drills: Iterable[Drill]) -> int:
        return int(round(total_duration(drills) * 60))

    def progress(self, total_seconds: int | float) -> float:
        """Percentage of `total_seconds` elapsed; 0 when the plan has no duration."""
        if total_seconds <= 0:
            return 0.0
        return self.elapsed / total_seconds * 100.0


class OnCourtRunner:
    """
    Drill-by-drill countdown used while running a practice on court.

    `tick()` is meant to be driven once a second by a `timers.Ticker`; every
    other method may be called from the main thread meanwhile.
    """

    def __init__(
        self,
        drills: Iterable[Drill],
        *,
        notifier: Notifier | None = None,
        add_time_seconds: int | None = None,
    ) -> None:
        self.drills: List[Drill] = list(drills)
        self.notifier = notifier if notifier is not None else Notifier()
        self.add_time_seconds = (
            add_time_seconds if add_time_seconds is not None else get_config().add_time_seconds
        )
        self.index = 0
        self.remaining = 0
        self.running = False
        self.completed = False
        self._lock = threading.RLock()

    @property
    def current(self) -> Drill | None:
        if 0 <= self.index < len(self.drills):
            return self.drills[self.index]
        return None

    @property
    def state(self) -> RunnerState:
        if self.completed:
            return "complete"
        if self.running:
            return "running"
        return "paused" if self.remaining else "idle"

    @property
    def clock(self) -> str:
        return format_clock(self.remaining)

    def up_next(self, count: int = 3) -> list[Drill]:
        return self.drills[self.index + 1 : self.index + 1 + count]

    def start(self) -> bool:
        with self._lock:
            if not self.drills:
                return False
            if self.remaining <= 0:
                self.remaining = drill_seconds(self.current)
            self.running = True
            self.completed = False
            return True

    def pause(self) -> None:
        with self._lock:
            self.running = False

    def reset(self) -> None:
        """Zero the countdown. A running clock moves on at the next tick; a paused one restarts the drill on `start()`."""
        with self._lock:
            self.remaining = 0

    def add_time(self, seconds: int | None = None) -> None:
        with self._lock:
            self.remaining += self.add_time_seconds if seconds is None else int(seconds)

    def previous(self) -> None:
        with self._lock:
            self.index = max(0, self.index - 1)

    def next(self) -> bool:
        with self._lock:
            if self.index + 1 >= len(self.drills):
                return False
            self.index += 1
            self.remaining = drill_seconds(self.current)
            return True

    def _complete(self) -> None:
        self.running = False
        self.remaining = 0
        if self.drills:
            self.completed = True
            self.notifier.notify("Session complete!", "success")

    def mark_done(self) -> None:
        with self._lock:
            if self.index + 1 < len(self.drills):
                self.index += 1
                self.remaining = drill_seconds(self.current)
                self.running = True
                self.notifier.notify(f"Started: {self.current.title}", "info")
            else:
                self._complete()

    def tick(self) -> None:
        with self._lock:
            if not self.running:
                return
            self.remaining = max(0, self.remaining - 1)
            if self.remaining > 0:
                return
            if self.index + 1 < len(self.drills):
                self.index += 1
                self.remaining = drill_seconds(self.current)
                LOGGER.debug("Advanced to drill %s", self.index)
            else:
                self._complete()
