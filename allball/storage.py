from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Callable, Iterable, Mapping, Tuple

from .env import get_env
from .models import Drill, Player, Session, SessionTemplate

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
LOGGER = logging.getLogger(__name__)

PLAYERS_KEY = "flowtrackPlayers"
DRILLS_KEY = "flowtrackDrills"
SESSIONS_KEY = "flowtrackSessions"
TEMPLATES_KEY = "flowtrackSessionTemplates"
MODE_KEY = "flowtrackMode"
ONBOARDING_KEY = "flowtrackOnboardingSeen"
PLANS_KEY = "allballPlans"

DOMAIN_KEYS: tuple[str, ...] = (
    PLAYERS_KEY,
    DRILLS_KEY,
    SESSIONS_KEY,
    TEMPLATES_KEY,
    MODE_KEY,
    ONBOARDING_KEY,
)

_RECORD_TYPES: dict[str, Callable[[Mapping[str, Any]], Any]] = {
    PLAYERS_KEY: Player.from_dict,
    DRILLS_KEY: Drill.from_dict,
    SESSIONS_KEY: Session.from_dict,
    TEMPLATES_KEY: SessionTemplate.from_dict,
}
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(RuntimeError):
    """Raised when a snapshot cannot be written to the local store."""


def data_dir() -> Path:
    override = get_env("DATA_DIR")
    base = Path(override).expanduser() if override else DEFAULT_DATA_DIR
    base.mkdir(parents=True, exist_ok=True)
    return base


class LocalStore:
    """
    Named JSON blobs on disk, one file per key.

    This is the desktop counterpart of browser local storage: there are no
    transactions and the last write wins. Reads never raise; a missing or
    unreadable key yields the caller's default.
    """

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root).expanduser() if root is not None else data_dir()

    def path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def load(self, key: str, default: Any = None) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return default

        try:
            raw = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            LOGGER.warning("Could not read %s (%s); using default.", path, exc)
            return default
        if not raw:
            return default

        try:
            value = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Could not parse %s (%s); using default.", path, exc)
            return default

        if isinstance(default, list) and not isinstance(value, list):
            LOGGER.warning("%s must contain a JSON list; using default.", path)
            return default
        if isinstance(default, dict) and not isinstance(value, dict):
            LOGGER.warning("%s must contain a JSON object; using default.", path)
            return default

        if key in _RECORD_TYPES and isinstance(value, list):
            upgraded, changed = migrate_records(key, value)
            if changed:
                try:
                    self.save(key, upgraded)
                except StorageError as exc:
                    LOGGER.warning("Could not rewrite migrated %s: %s", key, exc)
            return upgraded
        return value

    def save(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        try:
            payload = json.dumps(value, indent=2) + "\n"
        except (TypeError, ValueError) as exc:
            raise StorageError(f"{key} is not JSON serialisable: {exc}") from exc

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile("w", dir=path.parent, delete=False, encoding="utf-8") as tmp:
                tmp.write(payload)
                temp_path = Path(tmp.name)
            temp_path.replace(path)
        except OSError as exc:
            raise StorageError(f"Could not write {path}: {exc}") from exc

    def keys(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(path.stem for path in self.root.glob("*.json"))

    def export_snapshot(self, destination: Path | str, keys: Iterable[str] = DOMAIN_KEYS) -> Path:
        """Write every stored key into one JSON document."""
        snapshot = {}
        for key in keys:
            value = self.load(key)
            if value is not None:
                snapshot[key] = value
        target = Path(destination).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(snapshot, indent=2) + "\n", encoding="utf-8")
        return target

    def import_snapshot(self, source: Path | str) -> list[str]:
        """
        Restore keys from an export.

        Values may be decoded JSON or the raw strings a browser keeps in local
        storage (e.g. `"[{...}]"` or `"true"`); both are accepted.
        """
        path = Path(source).expanduser()
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Could not parse {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"{path} must contain a JSON object keyed by storage key.")

        restored: list[str] = []
        for key in DOMAIN_KEYS:
            if key not in payload:
                continue
            value = _decode_browser_value(key, payload[key])
            if key in _RECORD_TYPES:
                if not isinstance(value, list):
                    raise ValueError(f"{key} must be a list of records.")
                value, _ = migrate_records(key, value)
            self.save(key, value)
            restored.append(key)
        return restored


def _decode_browser_value(key: str, value: Any) -> Any:
    if not isinstance(value, str) or key == MODE_KEY:
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def migrate_records(key: str, records: list[Any]) -> Tuple[list[Any], bool]:
    """Upgrade legacy records (numeric ids, loose durations, missing fields) for `key`."""
    factory = _RECORD_TYPES.get(key)
    if factory is None:
        return records, False

    upgraded: list[Any] = []
    changed = False
    for record in records:
        if not isinstance(record, dict):
            LOGGER.warning("Dropping malformed %s entry: %r", key, record)
            changed = True
            continue
        migrated = factory(record).to_dict()
        if migrated != record:
            changed = True
        upgraded.append(migrated)
    return upgraded, changed
