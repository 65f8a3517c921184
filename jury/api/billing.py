"""
Billing Endpoints (Stripe)
==========================

GET  /api/pricing               Public tier table
POST /api/stripe/checkout       Start a subscription checkout (10/min/IP)
POST /api/stripe/portal         Open the Stripe billing portal (10/min/IP)
POST /api/stripe/webhook        Stripe event receiver (signature verified)
"""

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from supabase import Client

from jury import config
from jury.config import RATE_LIMITS
from jury.db.client import get_db
from jury.db.profiles import get_profile
from jury.models.requests import CheckoutRequest
from jury.models.responses import UrlResponse
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.billing import (
    BillingError,
    construct_event,
    create_checkout_session,
    create_portal_session,
    get_or_create_customer,
    handle_stripe_event,
)
from jury.utils.rate_limiter import rate_limited
from jury.utils.tiers import TIER_ORDER, tier_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Billing"])


@router.get("/api/pricing")
async def pricing():
    return {"tiers": [tier_to_dict(tier) for tier in TIER_ORDER]}


@router.post(
    "/api/stripe/checkout",
    response_model=UrlResponse,
    dependencies=[Depends(rate_limited("stripe-checkout", RATE_LIMITS.BILLING, message="Too many requests"))],
)
async def checkout(body: CheckoutRequest, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    try:
        customer_id = get_or_create_customer(db, user.id, user.email)
        url = create_checkout_session(customer_id, body.price_id, user.id)
    except BillingError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except stripe.StripeError as e:
        logger.error(f"❌ Stripe checkout error for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create checkout session")
    return UrlResponse(url=url)


@router.post(
    "/api/stripe/portal",
    response_model=UrlResponse,
    dependencies=[Depends(rate_limited("stripe-portal", RATE_LIMITS.BILLING, message="Too many requests"))],
)
async def billing_portal(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    profile = get_profile(db, user.id)
    if not profile or not profile.get("stripe_customer_id"):
        raise HTTPException(status_code=400, detail="No billing account found")

    origin = request.headers.get("origin") or config.APP_URL
    try:
        url = create_portal_session(profile["stripe_customer_id"], origin)
    except BillingError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except stripe.StripeError as e:
        logger.error(f"❌ Stripe portal error for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create portal session")
    return UrlResponse(url=url)


@router.post("/api/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: Client = Depends(get_db),
):
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")

    payload = await request.body()
    try:
        event = construct_event(payload, stripe_signature)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"⚠️ Stripe webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        handle_stripe_event(db, event)
    except Exception as e:
        logger.exception(f"❌ Stripe webhook handler failed: {e}")
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    return {"received": True}
