"""Stripe checkout, customer portal and webhook handling for paid plans."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import stripe

from .config import BillingSettings
from .entitlements import SubscriptionChange, normalise_plan

LOGGER = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"active", "trialing", "past_due"})
CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class BillingError(ValueError):
    """Bad input or missing configuration for a billing request."""


def _require_secret_key(settings: BillingSettings) -> str:
    if not settings.secret_key:
        raise BillingError("Billing is not configured: STRIPE_SECRET_KEY is missing.")
    return settings.secret_key


def _client_url(settings: BillingSettings) -> str:
    if not settings.client_url:
        raise BillingError("Billing is not configured: CLIENT_URL is missing.")
    return settings.client_url


def create_checkout_session(
    settings: BillingSettings,
    *,
    price_id: Optional[str] = None,
    plan: Optional[str] = None,
    customer_email: Optional[str] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> str:
    """Start a monthly subscription checkout and return the hosted checkout URL."""
    api_key = _require_secret_key(settings)
    client_url = _client_url(settings)
    if not price_id and plan:
        price_id = settings.price_for_plan(normalise_plan(plan))
    if not price_id:
        raise BillingError("priceId or a plan with a configured price is required.")

    checkout_metadata = {str(key): str(value) for key, value in (metadata or {}).items()}
    known_plan = settings.price_plans.get(price_id)
    if known_plan:
        checkout_metadata.setdefault("plan", known_plan)

    params: dict[str, Any] = {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": f"{client_url}/?checkout=success",
        "cancel_url": f"{client_url}/?checkout=cancel",
        "metadata": checkout_metadata,
    }
    if customer_email:
        params["customer_email"] = customer_email
    session = stripe.checkout.Session.create(api_key=api_key, **params)
    LOGGER.info("Created checkout session for price %s", price_id)
    return session.url


def create_portal_link(settings: BillingSettings, customer_id: Optional[str]) -> str:
    """Return a billing-portal URL where `customer_id` can manage their subscription."""
    api_key = _require_secret_key(settings)
    if not customer_id:
        raise BillingError("customerId is required.")
    portal = stripe.billing_portal.Session.create(
        api_key=api_key,
        customer=customer_id,
        return_url=_client_url(settings),
    )
    return portal.url


def parse_event(payload: bytes, signature: Optional[str], settings: BillingSettings) -> dict[str, Any]:
    """
    Decode a webhook body.

    With a webhook secret configured the `Stripe-Signature` header must verify
    (`stripe.SignatureVerificationError` otherwise). Malformed JSON raises
    ValueError.
    """
    text = payload.decode("utf-8")
    if settings.webhook_secret:
        stripe.WebhookSignature.verify_header(
            text, signature or "", settings.webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
        )
    event = json.loads(text)
    if not isinstance(event, dict):
        raise ValueError("Webhook payload must be a JSON object.")
    return event


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _first_price_id(subscription: Mapping[str, Any]) -> Optional[str]:
    data = _mapping(subscription.get("items")).get("data")
    if not isinstance(data, (list, tuple)) or not data or not isinstance(data[0], Mapping):
        return None
    price = data[0].get("price") or {}
    return price.get("id") if isinstance(price, Mapping) else str(price)


def map_subscription_event(event: Mapping[str, Any], settings: BillingSettings) -> SubscriptionChange | None:
    """Translate a Stripe event into a plan change, or None when it does not affect plans."""
    event_type = str(event.get("type") or "")
    obj = _mapping(_mapping(event.get("data")).get("object"))
    customer_id = obj.get("customer")
    if isinstance(customer_id, Mapping):
        customer_id = customer_id.get("id")
    if not customer_id:
        return None
    metadata = _mapping(obj.get("metadata"))
    user_id = metadata.get("userId") or obj.get("client_reference_id")

    if event_type == CHECKOUT_COMPLETED:
        plan = metadata.get("plan")
        if not plan:
            return None
        return SubscriptionChange(customer_id, normalise_plan(plan), user_id, event_type)

    if event_type in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED):
        if obj.get("status") not in ACTIVE_STATUSES:
            return SubscriptionChange(customer_id, None, user_id, event_type)
        price_id = _first_price_id(obj)
        plan = settings.price_plans.get(price_id or "")
        if plan is None:
            LOGGER.warning("Ignoring %s for unknown price %s", event_type, price_id)
            return None
        return SubscriptionChange(customer_id, plan, user_id, event_type)

    if event_type == SUBSCRIPTION_DELETED:
        return SubscriptionChange(customer_id, None, user_id, event_type)

    return None
