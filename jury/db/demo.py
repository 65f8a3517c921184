"""
Demo polls shown on the public landing page.

Demo polls keep their options inline as JSON (``[{"id", "text"}]``) and
record votes in ``demo_votes``, deduplicated per fingerprint by a unique
constraint on (demo_poll_id, voter_fingerprint).
"""

import logging
import random
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import Client

from jury.db.votes import VoteError, is_unique_violation
from jury.utils.dates import utcnow
from jury.utils.json_utils import parse_db_json_field, safe_json_dumps
from jury.utils.results import count_option_votes

logger = logging.getLogger(__name__)

DEMO_POLL_FIELDS = "id, question, description, options, category, display_order, is_active"

SEED_POLLS: List[Dict[str, Any]] = [
    {
        "question": "What's your preferred programming language?",
        "description": "For building web applications",
        "options": [
            {"id": "1", "text": "JavaScript/TypeScript"},
            {"id": "2", "text": "Python"},
            {"id": "3", "text": "Java"},
            {"id": "4", "text": "Go"},
        ],
        "category": "tech",
        "display_order": 6,
    },
    {
        "question": "How do you stay motivated?",
        "description": "What keeps you going when things get tough?",
        "options": [
            {"id": "1", "text": "Setting small goals"},
            {"id": "2", "text": "Rewards and treats"},
            {"id": "3", "text": "Support from others"},
            {"id": "4", "text": "Thinking about the outcome"},
        ],
        "category": "motivation",
        "display_order": 7,
    },
    {
        "question": "What's your ideal weekend?",
        "description": "How do you like to spend your free time?",
        "options": [
            {"id": "1", "text": "Outdoors and active"},
            {"id": "2", "text": "Reading or learning"},
            {"id": "3", "text": "Socializing with friends"},
            {"id": "4", "text": "Relaxing at home"},
        ],
        "category": "lifestyle",
        "display_order": 8,
    },
]


INVALID_TEXT_REPRESENTATION = "22P02"


class DemoPollError(Exception):
    """Demo poll missing or malformed; carries the HTTP status."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _with_parsed_options(poll: Dict[str, Any]) -> Dict[str, Any]:
    options = parse_db_json_field(poll.get("options"), [])
    return {**poll, "options": options if isinstance(options, list) else []}


def get_demo_poll(db: Client, demo_poll_id: str) -> Optional[Dict[str, Any]]:
    try:
        result = db.table("demo_polls").select(DEMO_POLL_FIELDS).eq("id", demo_poll_id).limit(1).execute()
    except APIError as e:
        # Postgres rejects a malformed uuid before the lookup; treat it as missing
        if str(getattr(e, "code", "")) == INVALID_TEXT_REPRESENTATION:
            return None
        raise
    return _with_parsed_options(result.data[0]) if result.data else None


def list_active_demo_polls(db: Client) -> List[Dict[str, Any]]:
    result = db.table("demo_polls").select(DEMO_POLL_FIELDS).eq("is_active", True).order("display_order").execute()
    return [_with_parsed_options(p) for p in result.data or []]


def get_random_demo_poll(db: Client) -> Optional[Dict[str, Any]]:
    polls = list_active_demo_polls(db)
    return random.choice(polls) if polls else None


def has_voted_demo(db: Client, demo_poll_id: str, voter_fingerprint: str) -> bool:
    result = (
        db.table("demo_votes")
        .select("id")
        .eq("demo_poll_id", demo_poll_id)
        .eq("voter_fingerprint", voter_fingerprint)
        .limit(1)
        .execute()
    )
    return bool(result.data)


def submit_demo_vote(db: Client, demo_poll_id: str, selected_options: List[str], voter_fingerprint: str) -> None:
    """
    Raises:
        VoteError: 409 already voted
        DemoPollError: 404 missing poll, 400 inactive poll
    """
    if has_voted_demo(db, demo_poll_id, voter_fingerprint):
        raise VoteError("You have already voted on this poll", 409)

    poll = get_demo_poll(db, demo_poll_id)
    if poll is None:
        raise DemoPollError("Demo poll not found", 404)
    if not poll.get("is_active"):
        raise DemoPollError("This demo poll is not active", 400)

    try:
        db.table("demo_votes").insert({
            "demo_poll_id": demo_poll_id,
            "selected_options": safe_json_dumps(selected_options),
            "voter_fingerprint": voter_fingerprint,
            "voted_at": utcnow().isoformat(),
        }).execute()
    except APIError as e:
        if is_unique_violation(e):
            raise VoteError("You have already voted on this poll", 409)
        raise


def get_demo_results(db: Client, demo_poll_id: str) -> List[Dict[str, Any]]:
    """
    Raises:
        DemoPollError: 404 missing poll, 500 options unreadable
    """
    poll = get_demo_poll(db, demo_poll_id)
    if poll is None:
        raise DemoPollError("Poll not found", 404)
    if not poll["options"]:
        logger.error(f"❌ No valid options found for demo poll {demo_poll_id}")
        raise DemoPollError("Invalid poll options format", 500)

    votes = db.table("demo_votes").select("selected_options").eq("demo_poll_id", demo_poll_id).execute().data or []
    counted = count_option_votes(poll["options"], votes, votes_key="selected_options")
    return [
        {"option_id": row["option_id"], "option_text": row["option_text"], "vote_count": row["vote_count"]}
        for row in counted
    ]


def seed_demo_polls(db: Client) -> Dict[str, Any]:
    """Insert the built-in demo polls, skipping any whose question already exists."""
    inserted, skipped = 0, 0
    details = []

    for poll in SEED_POLLS:
        try:
            existing = db.table("demo_polls").select("id").eq("question", poll["question"]).limit(1).execute()
            if existing.data:
                skipped += 1
                details.append({"question": poll["question"], "status": "skipped", "reason": "already exists"})
                continue

            row = db.table("demo_polls").insert({
                **poll,
                "options": safe_json_dumps(poll["options"]),
                "is_active": True,
            }).execute().data[0]
            inserted += 1
            details.append({"question": poll["question"], "status": "inserted", "id": row["id"]})
        except APIError as e:
            if is_unique_violation(e):
                skipped += 1
                details.append({"question": poll["question"], "status": "skipped", "reason": "duplicate detected during insert"})
            else:
                logger.error(f"❌ Failed to seed demo poll {poll['question']!r}: {e}")
                details.append({"question": poll["question"], "status": "error", "error": str(e)})

    logger.info(f"🌱 Demo seeding completed: {inserted} inserted, {skipped} skipped")
    return {
        "success": True,
        "message": f"Seeding completed: {inserted} inserted, {skipped} skipped",
        "details": details,
    }


def list_all_demo_polls(db: Client) -> List[Dict[str, Any]]:
    result = db.table("demo_polls").select("id, question, category, is_active, created_at").order("display_order").execute()
    return result.data or []
