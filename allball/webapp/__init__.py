from __future__ import annotations

import logging
import os
from typing import Callable, Optional

import stripe
from flask import Flask, jsonify, request
from flask_cors import CORS

from .. import billing
from ..config import BillingSettings
from ..entitlements import PlanStore, SubscriptionChange
from ..storage import StorageError

LOGGER = logging.getLogger(__name__)

SubscriptionSink = Callable[[SubscriptionChange], object]


def create_app(
    settings: BillingSettings | None = None,
    on_subscription_change: Optional[SubscriptionSink] = None,
) -> Flask:
    """Billing server: checkout, portal links and the subscription webhook."""
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    app = Flask(__name__)
    settings = settings or BillingSettings.from_env()
    app.config["BILLING_SETTINGS"] = settings
    if on_subscription_change is None:
        on_subscription_change = PlanStore().apply
    app.config["SUBSCRIPTION_SINK"] = on_subscription_change

    CORS(
        app,
        origins=settings.client_url or "*",
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Stripe-Signature"],
    )

    register_routes(app)
    return app


def _settings(app: Flask) -> BillingSettings:
    return app.config["BILLING_SETTINGS"]


def register_routes(app: Flask) -> None:
    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.post("/create-checkout-session")
    def create_checkout_session():
        payload = request.get_json(silent=True) or {}
        metadata = payload.get("metadata") or {}
        if not isinstance(metadata, dict):
            return jsonify({"error": "metadata must be an object."}), 400
        try:
            url = billing.create_checkout_session(
                _settings(app),
                price_id=payload.get("priceId"),
                plan=payload.get("plan"),
                customer_email=payload.get("customerEmail"),
                metadata=metadata,
            )
        except (billing.BillingError, stripe.StripeError) as exc:
            LOGGER.warning("Checkout session failed: %s", exc)
            return jsonify({"error": str(exc)}), 400
        return jsonify({"url": url})

    @app.post("/create-portal-link")
    def create_portal_link():
        payload = request.get_json(silent=True) or {}
        try:
            url = billing.create_portal_link(_settings(app), payload.get("customerId"))
        except (billing.BillingError, stripe.StripeError) as exc:
            LOGGER.warning("Portal link failed: %s", exc)
            return jsonify({"error": str(exc)}), 400
        return jsonify({"url": url})

    @app.post("/webhook")
    def webhook():
        settings = _settings(app)
        try:
            event = billing.parse_event(
                request.get_data(),
                request.headers.get("Stripe-Signature"),
                settings,
            )
        except stripe.SignatureVerificationError as exc:
            LOGGER.error("Webhook signature verification failed: %s", exc)
            return jsonify({"error": "Webhook signature verification failed."}), 400
        except ValueError as exc:
            LOGGER.error("Webhook payload rejected: %s", exc)
            return jsonify({"error": "Invalid webhook payload."}), 400

        change = billing.map_subscription_event(event, settings)
        if change is not None:
            try:
                app.config["SUBSCRIPTION_SINK"](change)
            except StorageError as exc:
                LOGGER.error("Could not record plan change for %s: %s", change.customer_id, exc)
                return jsonify({"error": "Could not record subscription change."}), 500
        return jsonify({"received": True})
