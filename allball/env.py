from __future__ import annotations

import os

PRIMARY_PREFIX = "ALLBALL_"
LEGACY_PREFIX = "FLOWTRACK_"


def get_env(name: str, default: str | None = None) -> str | None:
    """
    Resolve configuration environment variables.

    Prefers the AllBall prefix while still honouring the FlowTrack names that
    earlier deployments used.
    """
    for prefix in (PRIMARY_PREFIX, LEGACY_PREFIX):
        value = os.getenv(f"{prefix}{name}")
        if value is not None:
            return value
    return default


def get_service_env(name: str, default: str | None = None) -> str | None:
    """
    Resolve provider settings such as STRIPE_SECRET_KEY.

    The bare name wins so the billing server reads the same variables as any
    other Stripe deployment; the prefixed form is accepted as a fallback.
    """
    value = os.getenv(name)
    if value is not None and value.strip():
        return value
    return get_env(name, default)

