"""
Profile and subscription queries.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from supabase import Client

from jury.utils.tiers import normalize_tier
from jury.utils.usernames import generate_unique_fantasy_username, validate_username

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "id, username, avatar_url, subscription_tier, subscription_status, "
    "current_period_end, stripe_customer_id, created_at, updated_at"
)


@dataclass
class UserSubscription:
    tier: str
    status: Optional[str]
    current_period_end: Optional[str]


class ProfileError(Exception):
    """Profile update rejected (bad or taken username)."""


def get_profile(db: Client, user_id: str) -> Optional[Dict[str, Any]]:
    result = db.table("profiles").select(PROFILE_FIELDS).eq("id", user_id).limit(1).execute()
    return result.data[0] if result.data else None


def get_user_subscription(db: Client, user_id: str) -> UserSubscription:
    """
    Current subscription for a user.

    Missing profiles and lookup failures both resolve to the free tier so a
    storage hiccup can never grant paid features.
    """
    try:
        profile = get_profile(db, user_id)
    except Exception as e:
        logger.warning(f"⚠️ Subscription lookup failed for {user_id}: {e}")
        profile = None

    if not profile:
        return UserSubscription(tier="free", status=None, current_period_end=None)

    return UserSubscription(
        tier=normalize_tier(profile.get("subscription_tier")),
        status=profile.get("subscription_status"),
        current_period_end=profile.get("current_period_end"),
    )


def get_user_tier(db: Client, user_id: str) -> str:
    return get_user_subscription(db, user_id).tier


def check_username_available(db: Client, username: str, exclude_user_id: Optional[str] = None) -> bool:
    query = db.table("profiles").select("id").eq("username", username)
    if exclude_user_id:
        query = query.neq("id", exclude_user_id)
    result = query.execute()
    return len(result.data or []) == 0


def update_profile(db: Client, user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply user-editable profile fields.

    Raises:
        ProfileError: If the username is invalid or already taken
    """
    allowed = {k: v for k, v in updates.items() if k in ("username", "avatar_url") and v is not None}

    if "username" in allowed:
        try:
            validate_username(allowed["username"])
        except ValueError as e:
            raise ProfileError(str(e))
        if not check_username_available(db, allowed["username"], exclude_user_id=user_id):
            raise ProfileError("Username is already taken")

    if not allowed:
        return get_profile(db, user_id) or {}

    result = db.table("profiles").update(allowed).eq("id", user_id).execute()
    return result.data[0] if result.data else {}


def ensure_profile(db: Client, user_id: str, avatar_url: Optional[str] = None) -> Dict[str, Any]:
    """
    Return the user's profile, creating one with a fantasy username if missing.
    """
    existing = get_profile(db, user_id)
    if existing:
        return existing

    username = generate_unique_fantasy_username(lambda name: check_username_available(db, name))
    result = db.table("profiles").insert({
        "id": user_id,
        "username": username,
        "avatar_url": avatar_url,
        "subscription_tier": "free",
    }).execute()

    logger.info(f"✅ Created profile {username} for user {user_id}")
    return result.data[0]
