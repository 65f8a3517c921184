"""
Public REST API (v1)
====================

Authenticated with API keys (``Authorization: Bearer jury_...``).

GET  /api/v1/polls            polls:read   (30/min/IP)
POST /api/v1/polls            polls:write  (10/min/IP)
GET  /api/v1/polls/{poll_id}  polls:read   (30/min/IP), owner only

Responses are wrapped as ``{"data": ...}``.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from supabase import Client

from jury.api.common import queue_webhook
from jury.config import RATE_LIMITS
from jury.db.client import get_db
from jury.db.polls import create_poll, get_poll_by_id, list_user_polls
from jury.db.votes import get_poll_results
from jury.models.requests import ApiPollCreateRequest, ApiScope, WebhookEvent
from jury.utils.api_keys import ApiKeyPrincipal, require_api_scope
from jury.utils.poll_codes import PollCodeError
from jury.utils.question_types import MULTIPLE_CHOICE
from jury.utils.rate_limiter import rate_limited

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Public API v1"])

SUMMARY_FIELDS = ("id", "code", "question", "description", "is_active", "allow_multiple", "created_at")
DETAIL_FIELDS = SUMMARY_FIELDS + ("has_time_limit", "start_date", "end_date", "updated_at")


def _pick(poll: dict, fields) -> dict:
    return {field: poll.get(field) for field in fields}


@router.get(
    "/polls",
    dependencies=[Depends(rate_limited("api-v1-polls", RATE_LIMITS.API_READ, message="Too many requests"))],
)
async def api_list_polls(
    principal: ApiKeyPrincipal = Depends(require_api_scope(ApiScope.POLLS_READ.value)),
    db: Client = Depends(get_db),
):
    polls = list_user_polls(db, principal.user_id)
    return {"data": [{**_pick(p, SUMMARY_FIELDS), "total_votes": p["total_votes"]} for p in polls]}


@router.post(
    "/polls",
    status_code=201,
    dependencies=[Depends(rate_limited("api-v1-polls-create", RATE_LIMITS.API_WRITE, message="Too many requests"))],
)
async def api_create_poll(
    body: ApiPollCreateRequest,
    background_tasks: BackgroundTasks,
    principal: ApiKeyPrincipal = Depends(require_api_scope(ApiScope.POLLS_WRITE.value)),
    db: Client = Depends(get_db),
):
    question = body.question.strip()
    fields = {
        "question": question,
        "description": (body.description or "").strip() or None,
        "allow_multiple": body.allow_multiple,
        "is_active": True,
        "has_time_limit": False,
        "start_date": None,
        "end_date": None,
    }
    questions = [{
        "question_text": question,
        "question_type": MULTIPLE_CHOICE,
        "allow_multiple": body.allow_multiple,
        "settings": {},
        "options": [{"text": text} for text in body.options],
    }]

    try:
        poll = create_poll(db, principal.user_id, fields, questions)
    except PollCodeError as e:
        logger.error(f"❌ [API v1] {e}")
        raise HTTPException(status_code=500, detail="Failed to create poll")

    queue_webhook(background_tasks, db, principal.user_id, WebhookEvent.POLL_CREATED.value, {
        "poll_id": poll["id"],
        "code": poll["code"],
        "question": poll["question"],
    })

    return {
        "data": {
            **_pick(poll, SUMMARY_FIELDS),
            "options": [
                {"id": o["id"], "text": o["text"], "option_order": o["option_order"]}
                for o in poll["options"]
            ],
            "total_votes": 0,
        }
    }


@router.get(
    "/polls/{poll_id}",
    dependencies=[Depends(rate_limited("api-v1-poll-detail", RATE_LIMITS.API_READ, message="Too many requests"))],
)
async def api_get_poll(
    poll_id: str,
    principal: ApiKeyPrincipal = Depends(require_api_scope(ApiScope.POLLS_READ.value)),
    db: Client = Depends(get_db),
):
    poll = get_poll_by_id(db, poll_id)
    # Other users' polls are indistinguishable from missing ones
    if poll is None or poll.get("user_id") != principal.user_id:
        raise HTTPException(status_code=404, detail="Poll not found")

    results = get_poll_results(db, poll)
    return {
        "data": {
            **_pick(poll, DETAIL_FIELDS),
            "total_votes": results["total_voters"],
            "results": results["options"],
        }
    }
