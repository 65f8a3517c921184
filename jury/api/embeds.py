"""
Embed Endpoints
===============

GET /api/polls/{poll_id}/embed-code   iframe snippet for my poll
GET /api/embed/{code}                 Public payload rendered inside the iframe
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from jury.api.common import owned_poll, poll_by_code_or_404, user_tier
from jury.db.client import get_db
from jury.db.polls import public_poll
from jury.db.profiles import get_user_tier
from jury.db.votes import get_poll_results
from jury.models.responses import EmbedCodeResponse
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.embeds import (
    BUILTIN_THEMES,
    EmbedSettingsError,
    build_iframe,
    embed_url,
    resolve_theme,
    show_branding,
    validate_dimension,
)
from jury.utils.feature_gate import require_feature

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Embeds"])

# Owner-only fields kept out of the public payload
PRIVATE_FIELDS = ("user_id", "embed_settings")


@router.get("/api/polls/{poll_id}/embed-code", response_model=EmbedCodeResponse)
async def embed_code(
    poll_id: str,
    width: str = Query("100%", max_length=8),
    height: str = Query("400", max_length=8),
    theme: str = Query("dark", max_length=20),
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = owned_poll(db, poll_id, user, with_structure=False)
    tier = user_tier(db, user)

    if theme not in BUILTIN_THEMES:
        if theme != "custom":
            raise HTTPException(status_code=400, detail=f"Unknown theme: {theme}")
        require_feature(tier, "custom_embed_themes")

    try:
        width = validate_dimension(width, "width")
        height = validate_dimension(height, "height")
    except EmbedSettingsError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not poll.get("embed_enabled", True):
        logger.info(f"ℹ️ Embed code requested for poll {poll_id} with embedding disabled")

    src = embed_url(poll["code"], theme)
    return EmbedCodeResponse(
        embed_url=src,
        iframe=build_iframe(src, width, height),
        branding=show_branding(tier),
        theme=resolve_theme(tier, poll.get("embed_settings")),
    )


@router.get("/api/embed/{code}")
async def embed_payload(code: str, db: Client = Depends(get_db)):
    poll = poll_by_code_or_404(db, code)
    if not poll.get("embed_enabled", True):
        raise HTTPException(status_code=404, detail="Poll not found")

    owner_tier = get_user_tier(db, poll["user_id"])
    visible = {k: v for k, v in public_poll(poll).items() if k not in PRIVATE_FIELDS}
    payload = {
        "poll": visible,
        "theme": resolve_theme(owner_tier, poll.get("embed_settings")),
        "branding": show_branding(owner_tier),
        "results": None,
    }
    if poll.get("show_results_to_voters"):
        payload["results"] = get_poll_results(db, poll)
    return payload
