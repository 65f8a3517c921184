"""
Voting & Results Endpoints
==========================

POST /api/polls/code/{code}/vote        Submit a vote (10/min/IP)
PUT  /api/polls/code/{code}/vote        Edit my vote (allow_vote_editing polls)
GET  /api/polls/code/{code}/has-voted   {"hasVoted": bool} (30/min/IP)
GET  /api/polls/code/{code}/my-vote     Option ids I selected
GET  /api/polls/code/{code}/results     Results (owner, or voters when shown)
GET  /api/polls/{poll_id}/export        CSV download (csv_export feature)

Voters are identified by their user id when signed in, otherwise by the
client fingerprint. Duplicate votes are rejected by storage (409).
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from supabase import Client

from jury.api.common import broadcast_results, owned_poll, poll_by_code_or_404, queue_webhook, user_tier
from jury.config import MAX_FINGERPRINT_LENGTH, RATE_LIMITS
from jury.db.client import get_db
from jury.db.experiments import mark_variant_voted
from jury.db.votes import VoteError, edit_vote, get_poll_results, get_user_votes, has_voted, submit_vote
from jury.models.requests import VoteRequest, WebhookEvent
from jury.utils.auth import CurrentUser, get_current_user, get_optional_user
from jury.utils.export import export_filename, results_to_csv
from jury.utils.feature_gate import require_feature
from jury.utils.passwords import check_poll_password
from jury.utils.rate_limiter import enforce_rate_limit, get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/polls", tags=["Votes"])


def _check_password(poll: dict, password: Optional[str]):
    if not check_poll_password(password, poll.get("password_hash")):
        raise HTTPException(status_code=403, detail="Incorrect password")


def _fingerprint(value: Optional[str]) -> Optional[str]:
    if not value or len(value) > MAX_FINGERPRINT_LENGTH:
        return None
    return value


@router.post("/code/{code}/vote", status_code=201)
async def vote(
    code: str,
    body: VoteRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Client = Depends(get_db),
):
    enforce_rate_limit(request, "vote", max_tokens=RATE_LIMITS.VOTE)

    poll = poll_by_code_or_404(db, code)
    _check_password(poll, body.password)

    user_id = user.id if user else None
    try:
        record = submit_vote(
            db,
            poll,
            body.option_ids,
            body.responses,
            user_id=user_id,
            voter_fingerprint=body.voter_fingerprint,
            voter_ip=get_client_ip(request),
        )
    except VoteError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    try:
        mark_variant_voted(db, poll["id"], user_id, body.voter_fingerprint)
    except Exception as e:
        logger.warning(f"⚠️ Could not mark A/B assignment as voted on poll {poll['id']}: {e}")

    queue_webhook(background_tasks, db, poll["user_id"], WebhookEvent.VOTE_CREATED.value, {
        "poll_id": poll["id"],
        "code": poll["code"],
        "vote_id": record.get("id"),
        "option_ids": record.get("options", []),
    })
    background_tasks.add_task(broadcast_results, db, poll)

    return {"success": True, "vote_id": record.get("id")}


@router.put("/code/{code}/vote")
async def change_vote(
    code: str,
    body: VoteRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Client = Depends(get_db),
):
    enforce_rate_limit(request, "vote", max_tokens=RATE_LIMITS.VOTE)

    poll = poll_by_code_or_404(db, code)
    _check_password(poll, body.password)

    try:
        record = edit_vote(
            db,
            poll,
            body.option_ids,
            body.responses,
            user_id=user.id if user else None,
            voter_fingerprint=body.voter_fingerprint,
        )
    except VoteError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    background_tasks.add_task(broadcast_results, db, poll)
    return {"success": True, "vote_id": record.get("id")}


@router.get("/code/{code}/has-voted")
async def has_voted_endpoint(
    code: str,
    request: Request,
    fingerprint: Optional[str] = Query(None),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Client = Depends(get_db),
):
    enforce_rate_limit(request, "has-voted", max_tokens=RATE_LIMITS.HAS_VOTED)

    poll = poll_by_code_or_404(db, code, with_structure=False)
    voted = has_voted(db, poll["id"], user.id if user else None, _fingerprint(fingerprint))
    return {"hasVoted": voted}


@router.get("/code/{code}/my-vote")
async def my_vote(
    code: str,
    fingerprint: Optional[str] = Query(None),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Client = Depends(get_db),
):
    poll = poll_by_code_or_404(db, code, with_structure=False)
    return {"option_ids": get_user_votes(db, poll["id"], user.id if user else None, _fingerprint(fingerprint))}


@router.get("/code/{code}/results")
async def poll_results(
    code: str,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Client = Depends(get_db),
):
    poll = poll_by_code_or_404(db, code)
    is_owner = user is not None and user.id == poll.get("user_id")
    if not is_owner and not poll.get("show_results_to_voters"):
        raise HTTPException(status_code=403, detail="Results are hidden for this poll")
    return get_poll_results(db, poll)


@router.get("/{poll_id}/export")
async def export_results(poll_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    poll = owned_poll(db, poll_id, user)
    require_feature(user_tier(db, user), "csv_export")

    results = get_poll_results(db, poll)
    body = results_to_csv(poll, results["options"], results["total_voters"])
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(poll["code"])}"'},
    )
