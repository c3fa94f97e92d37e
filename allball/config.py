from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from .env import get_env, get_service_env

DEFAULT_BILLING_PORT = 3001


@dataclass(frozen=True)
class SuggestionPolicy:
    threshold_pct: float = 60.0
    skill: str = "Shooting"
    limit: int = 3


@dataclass(frozen=True)
class SearchSettings:
    debounce_ms: int = 250
    global_debounce_ms: int = 300


@dataclass(frozen=True)
class StationDefaults:
    default_stations: int = 3
    rotation_minutes: int = 8


@dataclass(frozen=True)
class AppConfig:
    suggestions: SuggestionPolicy = field(default_factory=SuggestionPolicy)
    search: SearchSettings = field(default_factory=SearchSettings)
    stations: StationDefaults = field(default_factory=StationDefaults)
    toast_seconds: float = 3.0
    add_time_seconds: int = 60


@dataclass(frozen=True)
class BillingSettings:
    """Stripe credentials and URLs for the billing server."""

    secret_key: str | None = None
    price_pro_month: str | None = None
    price_org_month: str | None = None
    client_url: str | None = None
    webhook_secret: str | None = None
    port: int = DEFAULT_BILLING_PORT

    @classmethod
    def from_env(cls) -> "BillingSettings":
        port_raw = get_service_env("PORT")
        try:
            port = int(port_raw) if port_raw else DEFAULT_BILLING_PORT
        except ValueError:
            port = DEFAULT_BILLING_PORT
        return cls(
            secret_key=get_service_env("STRIPE_SECRET_KEY"),
            price_pro_month=get_service_env("STRIPE_PRICE_PRO_MONTH"),
            price_org_month=get_service_env("STRIPE_PRICE_ORG_MONTH"),
            client_url=_strip_slash(get_service_env("CLIENT_URL")),
            webhook_secret=get_service_env("STRIPE_WEBHOOK_SECRET"),
            port=port,
        )

    @property
    def price_plans(self) -> dict[str, str]:
        """Map configured price identifiers to the plan they unlock."""
        mapping: dict[str, str] = {}
        if self.price_pro_month:
            mapping[self.price_pro_month] = "pro"
        if self.price_org_month:
            mapping[self.price_org_month] = "org"
        return mapping

    def price_for_plan(self, plan: str) -> str | None:
        for price_id, plan_name in self.price_plans.items():
            if plan_name == plan:
                return price_id
        return None


def _strip_slash(value: str | None) -> str | None:
    if value is None:
        return None
    return value.rstrip("/") or None


def _config_path() -> Path | None:
    """Resolve the TOML configuration file, if present."""
    env_override = get_env("CONFIG")
    if env_override:
        path = Path(env_override).expanduser()
        return path if path.exists() else None

    default_path = Path("config/allball.toml")
    if default_path.exists():
        return default_path
    return None


def _load_toml(path: Path) -> Mapping[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else {}


def _coerce_suggestions(raw: Mapping[str, Any]) -> SuggestionPolicy:
    base = SuggestionPolicy()
    try:
        threshold = float(raw.get("threshold_pct", base.threshold_pct))
        limit = int(raw.get("limit", base.limit))
    except (TypeError, ValueError):
        return base
    skill = str(raw.get("skill") or base.skill).strip() or base.skill
    return SuggestionPolicy(threshold_pct=threshold, skill=skill, limit=max(0, limit))


def _coerce_search(raw: Mapping[str, Any]) -> SearchSettings:
    base = SearchSettings()
    try:
        debounce = int(raw.get("debounce_ms", base.debounce_ms))
        global_debounce = int(raw.get("global_debounce_ms", base.global_debounce_ms))
    except (TypeError, ValueError):
        return base
    return SearchSettings(debounce_ms=max(0, debounce), global_debounce_ms=max(0, global_debounce))


def _coerce_stations(raw: Mapping[str, Any]) -> StationDefaults:
    base = StationDefaults()
    try:
        stations = int(raw.get("default_stations", base.default_stations))
        minutes = int(raw.get("rotation_minutes", base.rotation_minutes))
    except (TypeError, ValueError):
        return base
    return StationDefaults(default_stations=max(1, stations), rotation_minutes=max(1, minutes))


def _build_config(raw: Mapping[str, Any]) -> AppConfig:
    notifications = _section(raw, "notifications")
    runner = _section(raw, "runner")
    try:
        toast_seconds = float(notifications.get("toast_seconds", AppConfig.toast_seconds))
    except (TypeError, ValueError):
        toast_seconds = AppConfig.toast_seconds
    try:
        add_time = int(runner.get("add_time_seconds", AppConfig.add_time_seconds))
    except (TypeError, ValueError):
        add_time = AppConfig.add_time_seconds
    return AppConfig(
        suggestions=_coerce_suggestions(_section(raw, "suggestions")),
        search=_coerce_search(_section(raw, "search")),
        stations=_coerce_stations(_section(raw, "stations")),
        toast_seconds=toast_seconds,
        add_time_seconds=add_time,
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load configuration once, falling back to built-in defaults."""
    path = _config_path()
    if not path:
        return AppConfig()
    data = _load_toml(path)
    return _build_config(data)


def as_dict() -> dict[str, Any]:
    """Return the effective configuration for debug/CLI display."""
    config = get_config()
    return {
        "suggestions": {
            "threshold_pct": config.suggestions.threshold_pct,
            "skill": config.suggestions.skill,
            "limit": config.suggestions.limit,
        },
        "search": {
            "debounce_ms": config.search.debounce_ms,
            "global_debounce_ms": config.search.global_debounce_ms,
        },
        "stations": {
            "default_stations": config.stations.default_stations,
            "rotation_minutes": config.stations.rotation_minutes,
        },
        "toast_seconds": config.toast_seconds,
        "add_time_seconds": config.add_time_seconds,
        "source": str(_config_path() or "defaults"),
    }
