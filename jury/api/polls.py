"""
Poll Management Endpoints
=========================

POST   /api/polls                         Create a poll (tier gated)
GET    /api/polls                         List my polls with vote totals
GET    /api/polls/code/{code}             Public poll by share code
POST   /api/polls/code/{code}/check-password
GET    /api/polls/{poll_id}               Owner view
PATCH  /api/polls/{poll_id}               Update fields / options
DELETE /api/polls/{poll_id}
POST   /api/polls/{poll_id}/toggle        Activate / deactivate
POST   /api/polls/{poll_id}/duplicate

Gates applied on create: active-poll limit, questions-per-poll limit,
question-type features, password protection and scheduling.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from supabase import Client

from jury.api.common import limit_reached, owned_poll, poll_by_code_or_404, queue_webhook, user_tier
from jury.db.client import get_db
from jury.db.polls import (
    PollValidationError,
    count_active_polls,
    create_poll,
    delete_poll,
    duplicate_poll,
    list_user_polls,
    normalize_questions,
    public_poll,
    set_poll_fields,
    update_poll,
)
from jury.models.requests import PasswordCheckRequest, PollCreateRequest, PollUpdateRequest, WebhookEvent
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.embeds import EmbedSettingsError, check_embed_settings_allowed, validate_embed_settings
from jury.utils.feature_gate import get_feature_limit, limit_exceeded, require_feature
from jury.utils.passwords import check_poll_password
from jury.utils.poll_codes import PollCodeError
from jury.utils.question_types import get_question_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/polls", tags=["Polls"])


def _check_active_limit(db: Client, tier: str, user_id: str):
    limit = get_feature_limit(tier, "max_active_polls")
    if limit_exceeded(limit, count_active_polls(db, user_id)):
        limit_reached(
            tier,
            "max_active_polls",
            f"You have reached the limit of {limit} active polls. Upgrade for more.",
        )


def _check_question_gates(tier: str, questions: List[dict]):
    limit = get_feature_limit(tier, "max_questions_per_poll")
    if limit != -1 and len(questions) > limit:
        limit_reached(
            tier,
            "max_questions_per_poll",
            f"Your plan allows up to {limit} questions per poll. Upgrade for more.",
        )

    for q in questions:
        feature = get_question_type(q["question_type"]).feature_key
        if feature:
            require_feature(tier, feature)


@router.post("", status_code=201)
async def create_poll_endpoint(
    body: PollCreateRequest,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    data = body.model_dump(mode="json")

    try:
        questions = normalize_questions(data["question"], data["allow_multiple"], data["options"], data["questions"])
    except PollValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    tier = user_tier(db, user)
    if body.is_active:
        _check_active_limit(db, tier, user.id)
    _check_question_gates(tier, questions)
    if body.password:
        require_feature(tier, "password_protect")
    if body.has_time_limit:
        require_feature(tier, "scheduling")

    try:
        poll = create_poll(db, user.id, data, questions, password=body.password)
    except PollCodeError as e:
        logger.error(f"❌ {e}")
        raise HTTPException(status_code=500, detail="Failed to create poll")

    queue_webhook(background_tasks, db, user.id, WebhookEvent.POLL_CREATED.value, {
        "poll_id": poll["id"],
        "code": poll["code"],
        "question": poll["question"],
    })
    return public_poll(poll)


@router.get("")
async def list_polls(user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    return {"polls": [public_poll(p) for p in list_user_polls(db, user.id)]}


@router.get("/code/{code}")
async def get_poll_by_share_code(code: str, db: Client = Depends(get_db)):
    return public_poll(poll_by_code_or_404(db, code))


@router.post("/code/{code}/check-password")
async def check_password(code: str, body: PasswordCheckRequest, db: Client = Depends(get_db)):
    poll = poll_by_code_or_404(db, code, with_structure=False)
    return {"valid": check_poll_password(body.password, poll.get("password_hash"))}


@router.get("/{poll_id}")
async def get_my_poll(poll_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    return public_poll(owned_poll(db, poll_id, user))


@router.patch("/{poll_id}")
async def update_poll_endpoint(
    poll_id: str,
    body: PollUpdateRequest,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = owned_poll(db, poll_id, user)
    updates = body.model_dump(mode="json", exclude_unset=True)
    options: Optional[List[dict]] = updates.pop("options", None)

    tier = user_tier(db, user)
    if updates.get("has_time_limit"):
        require_feature(tier, "scheduling")
    if updates.get("is_active") and not poll.get("is_active"):
        _check_active_limit(db, tier, user.id)
    if options is not None and len(options) < 2:
        raise HTTPException(status_code=400, detail="A poll needs at least 2 options")
    if updates.get("embed_settings"):
        try:
            updates["embed_settings"] = validate_embed_settings(updates["embed_settings"])
        except EmbedSettingsError as e:
            raise HTTPException(status_code=400, detail=str(e))
        check_embed_settings_allowed(tier, updates["embed_settings"])

    updated = update_poll(db, poll, updates, options)

    queue_webhook(background_tasks, db, user.id, WebhookEvent.POLL_UPDATED.value, {
        "poll_id": poll_id,
        "code": updated["code"],
        "changes": sorted(updates) + (["options"] if options is not None else []),
    })
    return public_poll(updated)


@router.delete("/{poll_id}")
async def delete_poll_endpoint(
    poll_id: str,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = owned_poll(db, poll_id, user, with_structure=False)
    delete_poll(db, poll_id)
    queue_webhook(background_tasks, db, user.id, WebhookEvent.POLL_DELETED.value, {
        "poll_id": poll_id,
        "code": poll["code"],
    })
    return {"success": True}


@router.post("/{poll_id}/toggle")
async def toggle_poll(poll_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    poll = owned_poll(db, poll_id, user, with_structure=False)
    activating = not poll.get("is_active")
    if activating:
        _check_active_limit(db, user_tier(db, user), user.id)
    updated = set_poll_fields(db, poll_id, {"is_active": activating})
    return {"id": poll_id, "is_active": bool(updated.get("is_active", activating))}


@router.post("/{poll_id}/duplicate", status_code=201)
async def duplicate_poll_endpoint(poll_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    poll = owned_poll(db, poll_id, user)
    try:
        copy = duplicate_poll(db, poll, user.id)
    except PollCodeError as e:
        logger.error(f"❌ {e}")
        raise HTTPException(status_code=500, detail="Failed to duplicate poll")
    return public_poll(copy)
