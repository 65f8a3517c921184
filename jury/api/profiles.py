"""
Profile & Subscription Endpoints

GET   /api/profile                       My profile (created on first call)
PATCH /api/profile                       Update username / avatar
GET   /api/profile/username-available    {"available": bool}
GET   /api/features                      My tier and what it unlocks
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from jury.db.client import get_db
from jury.db.profiles import ProfileError, check_username_available, ensure_profile, get_user_subscription, update_profile
from jury.models.requests import ProfileUpdateRequest
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.feature_gate import FEATURE_DESCRIPTIONS, FEATURE_LABELS, can_use_feature, get_upgrade_target
from jury.utils.tiers import FEATURES, get_tier_config
from jury.utils.usernames import validate_username

router = APIRouter(prefix="/api", tags=["Profile"])


@router.get("/profile")
async def my_profile(user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    profile = ensure_profile(db, user.id, avatar_url=user.user_metadata.get("avatar_url"))
    return {
        **profile,
        "email": user.email,
        "subscription": asdict(get_user_subscription(db, user.id)),
    }


@router.patch("/profile")
async def edit_profile(
    body: ProfileUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    ensure_profile(db, user.id)
    try:
        return update_profile(db, user.id, body.model_dump(exclude_unset=True))
    except ProfileError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/profile/username-available")
async def username_available(
    username: str = Query(..., min_length=1, max_length=64),
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    try:
        validate_username(username)
    except ValueError as e:
        return {"available": False, "reason": str(e)}
    return {"available": check_username_available(db, username, exclude_user_id=user.id)}


@router.get("/features")
async def my_features(user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    tier = get_user_subscription(db, user.id).tier
    cfg = get_tier_config(tier)
    return {
        "tier": tier,
        "features": {
            feature: {
                "enabled": can_use_feature(tier, feature),
                "value": getattr(cfg, feature),
                "label": FEATURE_LABELS[feature],
                "description": FEATURE_DESCRIPTIONS.get(feature, ""),
                "upgrade_to": get_upgrade_target(tier, feature),
            }
            for feature in FEATURES
        },
    }
