from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Literal

from .config import get_config

LOGGER = logging.getLogger(__name__)

NotificationKind = Literal["success", "info", "warning", "error"]
ConfirmCallback = Callable[[str], bool]

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.WARNING,
}


@dataclass(frozen=True)
class Notification:
    """A transient, user-facing message (the toast of the planner UI)."""

    message: str
    kind: NotificationKind = "success"
    created_at: float = field(default_factory=time.monotonic)

    @property
    def is_error(self) -> bool:
        return self.kind == "error"


class Notifier:
    """
    Collect notifications emitted by the state containers.

    Only the most recent message is "showing"; it expires after the configured
    toast duration. The full list is kept so callers can render everything
    produced by one command.
    """

    def __init__(self, duration_seconds: float | None = None) -> None:
        self.duration_seconds = (
            duration_seconds if duration_seconds is not None else get_config().toast_seconds
        )
        self.history: list[Notification] = []

    def notify(self, message: str, kind: NotificationKind = "success") -> Notification:
        notification = Notification(message=message, kind=kind)
        self.history.append(notification)
        LOGGER.log(_LOG_LEVELS.get(kind, logging.INFO), "[%s] %s", kind, message)
        return notification

    def current(self, now: float | None = None) -> Notification | None:
        if not self.history:
            return None
        latest = self.history[-1]
        moment = time.monotonic() if now is None else now
        if moment - latest.created_at >= self.duration_seconds:
            return None
        return latest

    @property
    def last(self) -> Notification | None:
        return self.history[-1] if self.history else None

    def drain(self) -> list[Notification]:
        pending, self.history = self.history, []
        return pending


def always_confirm(_message: str) -> bool:
    return True


def never_confirm(_message: str) -> bool:
    return False
