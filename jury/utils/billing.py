"""
Stripe Billing
==============

Checkout and billing-portal sessions, and the Stripe webhook handler that
keeps ``profiles.subscription_*`` in sync with Stripe.

Handled events:
- checkout.session.completed (subscription mode): tier, status, period end
- customer.subscription.updated: tier, status, period end
- customer.subscription.deleted: back to free
- invoice.payment_failed: status past_due

The user behind an event is resolved from (1) the checkout session's
``userId`` metadata, (2) ``profiles.stripe_customer_id``, (3) the Stripe
customer's ``userId`` metadata. Events for unknown users are logged and
acknowledged so Stripe stops retrying them.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import stripe
from supabase import Client

from jury import config
from jury.utils.tiers import get_tier_by_price_id

logger = logging.getLogger(__name__)


class BillingError(Exception):
    """Stripe is not configured or rejected a request."""


def _stripe() -> Any:
    if not config.STRIPE_SECRET_KEY:
        raise BillingError("Stripe is not configured")
    stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe


def _field(obj: Any, *path: Any) -> Any:
    """Nested lookup that returns None for any missing step."""
    for key in path:
        if obj is None:
            return None
        try:
            obj = obj[key]
        except (KeyError, IndexError, TypeError):
            return None
    return obj


def _customer_id(obj: Any) -> Optional[str]:
    customer = _field(obj, "customer")
    if customer is None or isinstance(customer, str):
        return customer
    return _field(customer, "id")


def _iso_from_timestamp(ts: Optional[int]) -> Optional[str]:
    if not ts:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()


# ============================================================
# Checkout / portal
# ============================================================

def get_or_create_customer(db: Client, user_id: str, email: Optional[str]) -> str:
    """Stored Stripe customer for the user, creating and persisting one if needed."""
    result = db.table("profiles").select("stripe_customer_id").eq("id", user_id).limit(1).execute()
    if result.data and result.data[0].get("stripe_customer_id"):
        return result.data[0]["stripe_customer_id"]

    customer = _stripe().Customer.create(email=email, metadata={"userId": user_id})
    customer_id = customer["id"]
    db.table("profiles").update({"stripe_customer_id": customer_id}).eq("id", user_id).execute()
    logger.info(f"✅ Created Stripe customer {customer_id} for user {user_id}")
    return customer_id


def create_checkout_session(customer_id: str, price_id: str, user_id: str) -> str:
    session = _stripe().checkout.Session.create(
        mode="subscription",
        customer=customer_id,
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=f"{config.APP_URL}/dashboard?checkout=success",
        cancel_url=f"{config.APP_URL}/pricing",
        metadata={"userId": user_id},
    )
    return session["url"]


def create_portal_session(customer_id: str, return_base: str) -> str:
    session = _stripe().billing_portal.Session.create(
        customer=customer_id,
        return_url=f"{return_base.rstrip('/')}/profile",
    )
    return session["url"]


# ============================================================
# Webhook
# ============================================================

def construct_event(payload: bytes, signature: str) -> Any:
    """
    Verify the ``Stripe-Signature`` header and parse the event.

    Raises:
        ValueError: Bad payload
        stripe.SignatureVerificationError: Bad signature
    """
    return stripe.Webhook.construct_event(payload, signature, config.STRIPE_WEBHOOK_SECRET)


def resolve_user_id(db: Client, customer_id: Optional[str], metadata_user_id: Optional[str] = None) -> Optional[str]:
    if metadata_user_id:
        return metadata_user_id
    if not customer_id:
        return None

    result = db.table("profiles").select("id").eq("stripe_customer_id", customer_id).limit(1).execute()
    if result.data:
        return result.data[0]["id"]

    try:
        customer = _stripe().Customer.retrieve(customer_id)
    except Exception as e:
        logger.warning(f"⚠️ Could not retrieve Stripe customer {customer_id}: {e}")
        return None

    if _field(customer, "deleted"):
        return None
    return _field(customer, "metadata", "userId")


def _subscription_fields(subscription: Any) -> dict:
    item = _field(subscription, "items", "data", 0)
    price_id = _field(item, "price", "id")
    period_end = _field(item, "current_period_end") or _field(subscription, "current_period_end")
    return {
        "subscription_tier": get_tier_by_price_id(price_id),
        "subscription_status": _field(subscription, "status"),
        "current_period_end": _iso_from_timestamp(period_end),
    }


def _update_profile(db: Client, user_id: str, updates: dict):
    try:
        db.table("profiles").update(updates).eq("id", user_id).execute()
    except Exception as e:
        logger.error(f"❌ Failed to update billing fields for user {user_id}: {e}")


def handle_checkout_completed(db: Client, session: Any):
    if _field(session, "mode") != "subscription" or not _field(session, "subscription"):
        return

    subscription = _stripe().Subscription.retrieve(_field(session, "subscription"))
    customer_id = _customer_id(session)
    user_id = resolve_user_id(db, customer_id, _field(session, "metadata", "userId"))
    if not user_id:
        logger.error(f"❌ Could not resolve user for checkout session {_field(session, 'id')} (customer {customer_id})")
        return

    updates = _subscription_fields(subscription)
    updates["stripe_customer_id"] = customer_id
    updates["subscription_id"] = _field(subscription, "id")
    _update_profile(db, user_id, updates)
    logger.info(f"✅ Checkout complete: user {user_id} -> {updates['subscription_tier']}")


def handle_subscription_updated(db: Client, subscription: Any):
    user_id = resolve_user_id(db, _customer_id(subscription))
    if not user_id:
        logger.error(f"❌ Could not resolve user for subscription {_field(subscription, 'id')}")
        return
    _update_profile(db, user_id, _subscription_fields(subscription))


def handle_subscription_deleted(db: Client, subscription: Any):
    user_id = resolve_user_id(db, _customer_id(subscription))
    if not user_id:
        logger.error(f"❌ Could not resolve user for deleted subscription {_field(subscription, 'id')}")
        return
    _update_profile(db, user_id, {
        "subscription_tier": "free",
        "subscription_status": None,
        "subscription_id": None,
        "current_period_end": None,
    })


def handle_payment_failed(db: Client, invoice: Any):
    customer_id = _customer_id(invoice)
    if not customer_id:
        return
    user_id = resolve_user_id(db, customer_id)
    if user_id:
        _update_profile(db, user_id, {"subscription_status": "past_due"})
        logger.warning(f"⚠️ Payment failed for user {user_id}")


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_failed": handle_payment_failed,
}


def handle_stripe_event(db: Client, event: Any) -> bool:
    """
    Dispatch a verified Stripe event.

    Returns:
        bool: True if the event type is one we act on
    """
    handler = EVENT_HANDLERS.get(_field(event, "type"))
    if handler is None:
        logger.debug(f"Ignoring Stripe event {_field(event, 'type')}")
        return False
    handler(db, _field(event, "data", "object"))
    return True
