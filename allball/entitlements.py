from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .env import get_env
from .storage import PLANS_KEY, LocalStore

LOGGER = logging.getLogger(__name__)

DEFAULT_PLAN = "free"
PLANS: tuple[str, ...] = ("free", "pro", "org")
LIMIT_CAPABILITIES = ("teams", "players")
FLAG_CAPABILITIES = ("templates", "analytics", "ai")
CAPABILITIES = LIMIT_CAPABILITIES + FLAG_CAPABILITIES + ("manage_drills",)

_LABELS = {
    "teams": "Multiple teams",
    "players": "More players",
    "templates": "Session templates",
    "analytics": "Player analytics",
    "ai": "AI practice planning",
    "manage_drills": "Drill library management",
}


@dataclass(frozen=True)
class Entitlements:
    teams: int
    players: int
    templates: bool
    analytics: bool
    ai: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


PLAN_ENTITLEMENTS: dict[str, Entitlements] = {
    "free": Entitlements(teams=1, players=20, templates=False, analytics=False, ai=False),
    "pro": Entitlements(teams=5, players=200, templates=True, analytics=True, ai=False),
    "org": Entitlements(teams=50, players=2000, templates=True, analytics=True, ai=True),
}


class UpgradeRequired(Exception):
    """Raised when the active plan does not include a capability."""

    def __init__(self, capability: str, plan: str, message: str) -> None:
        super().__init__(message)
        self.capability = capability
        self.plan = plan
        self.message = message


def normalise_plan(plan: Optional[str]) -> str:
    candidate = (plan or "").strip().lower()
    return candidate if candidate in PLAN_ENTITLEMENTS else DEFAULT_PLAN


def resolve_entitlements(plan: Optional[str]) -> Entitlements:
    """Entitlements for `plan`; unknown or missing plans get the free tier."""
    return PLAN_ENTITLEMENTS[normalise_plan(plan)]


def check_capability(capability: str, plan: Optional[str], current: Optional[int] = None) -> bool:
    """
    Whether `plan` allows `capability`.

    Flags are plain booleans. Limits (teams, players) allow another item while
    `current` is below the limit; without `current` only the limit's existence
    is checked. `manage_drills` needs any paid plan.
    """
    if capability not in CAPABILITIES:
        raise ValueError(f"Unknown capability: {capability!r}")
    if capability == "manage_drills":
        return normalise_plan(plan) != DEFAULT_PLAN
    entitlements = resolve_entitlements(plan)
    value = getattr(entitlements, capability)
    if capability in LIMIT_CAPABILITIES:
        return current is None or current < value
    return bool(value)


def upgrade_prompt(capability: str, plan: Optional[str]) -> str:
    plan_name = normalise_plan(plan)
    if capability in LIMIT_CAPABILITIES:
        limit = getattr(resolve_entitlements(plan_name), capability)
        return (
            f"Your {plan_name} plan allows up to {limit} {capability}. "
            "Upgrade to Pro to add more."
        )
    label = _LABELS.get(capability, capability)
    return f"Unlock Pro: {label} is not included in the {plan_name} plan. Upgrade to Pro to continue."


def require_capability(capability: str, plan: Optional[str], current: Optional[int] = None) -> None:
    if not check_capability(capability, plan, current):
        raise UpgradeRequired(capability, normalise_plan(plan), upgrade_prompt(capability, plan))


@dataclass(frozen=True)
class SubscriptionChange:
    """A plan change derived from a billing event. `plan` None means back to free."""

    customer_id: str
    plan: Optional[str]
    user_id: Optional[str] = None
    event_type: str = ""


class PlanStore:
    """Customer → plan records kept in the local store under `allballPlans`."""

    def __init__(self, store: LocalStore | None = None) -> None:
        self.store = store if store is not None else LocalStore()
        self._lock = threading.Lock()

    def records(self) -> dict[str, dict[str, Any]]:
        raw = self.store.load(PLANS_KEY, {})
        return {str(key): value for key, value in raw.items() if isinstance(value, dict)}

    def apply(self, change: SubscriptionChange) -> dict[str, Any]:
        record = {
            "plan": normalise_plan(change.plan),
            "userId": change.user_id,
            "event": change.event_type,
            "updatedAt": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }
        with self._lock:
            records = self.records()
            previous = records.get(change.customer_id, {})
            if record["userId"] is None and previous.get("userId"):
                record["userId"] = previous["userId"]
            records[change.customer_id] = record
            self.store.save(PLANS_KEY, records)
        LOGGER.info("Customer %s is now on the %s plan (%s)", change.customer_id, record["plan"], change.event_type)
        return record

    def plan_for(self, customer_id: str) -> str:
        record = self.records().get(customer_id) or {}
        return normalise_plan(record.get("plan"))

    def latest_plan(self) -> Optional[str]:
        records = self.records()
        if not records:
            return None
        latest = max(records.values(), key=lambda r: str(r.get("updatedAt") or ""))
        return normalise_plan(latest.get("plan"))


def resolve_active_plan(explicit: Optional[str] = None, plan_store: PlanStore | None = None) -> str:
    """Active plan: explicit value, then `ALLBALL_PLAN`, then the latest billing record, then free."""
    if explicit:
        return normalise_plan(explicit)
    from_env = get_env("PLAN")
    if from_env:
        return normalise_plan(from_env)
    if plan_store is not None:
        latest = plan_store.latest_plan()
        if latest:
            return latest
    return DEFAULT_PLAN
