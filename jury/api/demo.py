"""
Demo Poll Endpoints
===================

Public demo polls for the landing page. Mounted under both
``/api/live-polls`` and ``/api/demo-polls``.

GET  /random                    One random active demo poll
POST /vote                      Vote (10/min/IP)
GET  /{poll_id}/has-voted       {"hasVoted": bool} (30/min/IP, never errors)
GET  /{poll_id}/results         Per-option counts
GET  /seed, POST /seed          List / insert built-in polls (SEED_SECRET)
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from supabase import Client

from jury import config
from jury.config import MAX_FINGERPRINT_LENGTH, RATE_LIMITS
from jury.db.client import get_db, get_read_db
from jury.db.demo import (
    DemoPollError,
    get_demo_results,
    get_random_demo_poll,
    has_voted_demo,
    list_all_demo_polls,
    seed_demo_polls,
    submit_demo_vote,
)
from jury.db.votes import VoteError
from jury.models.requests import DemoVoteRequest
from jury.utils.rate_limiter import enforce_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Demo Polls"])


def _require_seed_secret(authorization: Optional[str], secret: Optional[str]):
    expected = config.SEED_SECRET
    if not expected:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if authorization == f"Bearer {expected}" or secret == expected:
        return
    raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/random")
async def random_demo_poll(db: Client = Depends(get_read_db)):
    poll = get_random_demo_poll(db)
    if poll is None:
        raise HTTPException(status_code=404, detail="No demo polls available")
    return poll


@router.post("/vote")
async def vote_demo_poll(body: DemoVoteRequest, request: Request, db: Client = Depends(get_db)):
    enforce_rate_limit(request, "vote", max_tokens=RATE_LIMITS.VOTE)

    try:
        submit_demo_vote(db, str(body.demo_poll_id), body.selected_options, body.voter_fingerprint)
    except (VoteError, DemoPollError) as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return {"success": True}


@router.get("/{poll_id}/has-voted")
async def has_voted_demo_poll(
    poll_id: str,
    request: Request,
    fingerprint: Optional[str] = Query(None),
    db: Client = Depends(get_db),
):
    enforce_rate_limit(request, "has-voted", max_tokens=RATE_LIMITS.HAS_VOTED)

    try:
        UUID(poll_id)
    except ValueError:
        return {"hasVoted": False}

    if not fingerprint or len(fingerprint) > MAX_FINGERPRINT_LENGTH:
        return {"hasVoted": False}

    try:
        return {"hasVoted": has_voted_demo(db, poll_id, fingerprint)}
    except Exception as e:
        logger.error(f"❌ Error checking demo vote status: {e}")
        return {"hasVoted": False}


@router.get("/{poll_id}/results")
async def demo_poll_results(poll_id: str, db: Client = Depends(get_read_db)):
    try:
        UUID(poll_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Poll not found")

    try:
        return get_demo_results(db, poll_id)
    except DemoPollError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/seed")
async def list_seeded_polls(
    authorization: Optional[str] = Header(None),
    secret: Optional[str] = Query(None),
    db: Client = Depends(get_db),
):
    _require_seed_secret(authorization, secret)
    polls = list_all_demo_polls(db)
    return {"polls": polls, "count": len(polls)}


@router.post("/seed")
async def seed_polls(
    authorization: Optional[str] = Header(None),
    secret: Optional[str] = Query(None),
    db: Client = Depends(get_db),
):
    _require_seed_secret(authorization, secret)
    return seed_demo_polls(db)
