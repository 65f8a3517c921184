"""
Templates & Poll Generation
===========================

GET  /api/templates                 Built-in templates, locked ones flagged
GET  /api/templates/{template_id}   One template
POST /api/ai/generate-poll          Draft a poll from a short description
                                    (20/min/IP; free tier: monthly quota)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from jury import config
from jury.api.common import user_tier
from jury.config import RATE_LIMITS
from jury.db.ai_usage import get_monthly_usage, record_generation
from jury.db.client import get_db
from jury.models.requests import GeneratePollRequest
from jury.utils.auth import CurrentUser, get_current_user, get_optional_user
from jury.utils.poll_generator import generate_poll_from_prompt
from jury.utils.rate_limiter import rate_limited
from jury.utils.templates import TEMPLATE_CATEGORIES, get_template_by_id, is_template_locked, list_templates_for_tier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Templates"])


@router.get("/api/templates")
async def list_templates(
    category: Optional[str] = Query(None),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Client = Depends(get_db),
):
    if category is not None and category not in TEMPLATE_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category}")

    return {
        "categories": TEMPLATE_CATEGORIES,
        "templates": list_templates_for_tier(user_tier(db, user), category),
    }


@router.get("/api/templates/{template_id}")
async def get_template(
    template_id: str,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Client = Depends(get_db),
):
    template = get_template_by_id(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return {**template, "locked": is_template_locked(template, user_tier(db, user))}


@router.post(
    "/api/ai/generate-poll",
    dependencies=[Depends(rate_limited("ai-generate", RATE_LIMITS.AI_GENERATE))],
)
async def generate_poll(
    body: GeneratePollRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    limit = config.AI_FREE_MONTHLY_LIMIT
    if user_tier(db, user) == "free" and get_monthly_usage(db, user.id) >= limit:
        raise HTTPException(
            status_code=403,
            detail={
                "error": f"You've used all {limit} free AI generations this month. Upgrade to Pro for unlimited.",
                "limit_reached": True,
            },
        )

    generated = generate_poll_from_prompt(body.prompt)

    try:
        used = record_generation(db, user.id)
        logger.info(f"✨ Generated poll draft for user {user.id} ({used} this month)")
    except Exception as e:
        # The draft is still returned if usage tracking fails
        logger.error(f"❌ Failed to record generation for user {user.id}: {e}")

    return generated
