"""
Vote Storage
============

Vote validation, submission, lookup and results.

Deduplication is owned by storage: the votes table carries unique
constraints on (poll_id, user_id) and (poll_id, voter_fingerprint). A
unique-violation on insert is reported as "already voted"; nothing here
pre-checks and races.

A vote row stores:
- options:   selected option ids across all choice questions
- responses: question_id -> rating (int), ranking (list of option ids) or
             free text, for the non-choice question types
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import Client

from jury.db.polls import attach_structure
from jury.utils.dates import parse_datetime, utcnow
from jury.utils.json_utils import parse_db_json_field
from jury.utils.question_types import CHOICE_TYPES, OPEN_ENDED, RANKED_CHOICE, RATING_SCALE
from jury.utils.results import count_option_votes, question_results

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
MAX_TEXT_RESPONSE_LENGTH = 5000


class VoteError(Exception):
    """Vote rejected; ``status_code`` is the HTTP status to report."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def is_unique_violation(error: Exception) -> bool:
    return isinstance(error, APIError) and str(getattr(error, "code", "")) == UNIQUE_VIOLATION


# ============================================================
# Validation
# ============================================================

def check_voting_window(poll: Dict[str, Any], now: Optional[datetime] = None):
    """
    Raises:
        VoteError: Poll closed, or outside its scheduled window
    """
    if not poll.get("is_active"):
        raise VoteError("This poll is not currently active", 400)

    if not poll.get("has_time_limit"):
        return

    now = now or utcnow()
    start = parse_datetime(poll.get("start_date"))
    end = parse_datetime(poll.get("end_date"))

    if start and now < start:
        raise VoteError("Voting has not started yet", 400)
    if end and now > end:
        raise VoteError("Voting has ended", 400)


def _legacy_question(poll: Dict[str, Any]) -> Dict[str, Any]:
    """Polls created before multi-question support: one implicit question."""
    return {
        "id": None,
        "question_type": "multiple_choice",
        "allow_multiple": bool(poll.get("allow_multiple")),
        "settings": {},
    }


def validate_ballot(
    poll: Dict[str, Any],
    option_ids: List[str],
    responses: Dict[str, Any],
) -> Tuple[List[str], Dict[str, Any]]:
    """
    Check a ballot against the poll's structure.

    ``poll`` must carry ``questions`` and ``options`` (see attach_structure).

    Returns:
        (option_ids, responses) cleaned for storage

    Raises:
        VoteError: Unknown option, too many selections, bad answer
    """
    questions = poll.get("questions") or [_legacy_question(poll)]
    options = poll.get("options") or []
    option_question = {str(o["id"]): o.get("question_id") for o in options}

    questions_by_id = {str(q["id"]): q for q in questions if q.get("id") is not None}

    option_ids = [str(option_id) for option_id in dict.fromkeys(option_ids)]
    for option_id in option_ids:
        if option_id not in option_question:
            raise VoteError("Invalid option selected", 400)
        owner = questions_by_id.get(str(option_question[option_id]))
        if owner is not None and owner.get("question_type") not in CHOICE_TYPES:
            raise VoteError("Invalid option selected", 400)

    for q in questions:
        if q.get("question_type") not in CHOICE_TYPES or q.get("allow_multiple"):
            continue
        if q.get("id") is None:
            selected = option_ids
        else:
            selected = [o for o in option_ids if option_question[o] == q["id"]]
        if len(selected) > 1:
            raise VoteError("This poll only allows one selection", 400)

    cleaned: Dict[str, Any] = {}
    for question_id, answer in (responses or {}).items():
        q = questions_by_id.get(str(question_id))
        if q is None:
            raise VoteError("Response for unknown question", 400)
        cleaned[str(question_id)] = _validate_answer(q, answer, option_question)

    if not option_ids and not cleaned:
        raise VoteError("Please select at least one option", 400)

    return option_ids, cleaned


def _validate_answer(question: Dict[str, Any], answer: Any, option_question: Dict[str, Any]) -> Any:
    question_type = question.get("question_type")

    if question_type == RATING_SCALE:
        settings = question.get("settings") or {}
        low, high = int(settings.get("min", 1)), int(settings.get("max", 5))
        if isinstance(answer, bool) or not isinstance(answer, int) or not low <= answer <= high:
            raise VoteError(f"Rating must be between {low} and {high}", 400)
        return answer

    if question_type == RANKED_CHOICE:
        if not isinstance(answer, list) or not answer:
            raise VoteError("Ranking must be a list of options", 400)
        ranking = [str(option_id) for option_id in answer]
        if len(set(ranking)) != len(ranking):
            raise VoteError("Ranking contains duplicate options", 400)
        if any(option_question.get(option_id) != question["id"] for option_id in ranking):
            raise VoteError("Invalid option selected", 400)
        return ranking

    if question_type == OPEN_ENDED:
        if not isinstance(answer, str) or not answer.strip():
            raise VoteError("Response cannot be empty", 400)
        if len(answer) > MAX_TEXT_RESPONSE_LENGTH:
            raise VoteError(f"Response is too long (max {MAX_TEXT_RESPONSE_LENGTH} characters)", 400)
        return answer.strip()

    raise VoteError("Choice questions are answered with option_ids", 400)


# ============================================================
# Writes
# ============================================================

def submit_vote(
    db: Client,
    poll: Dict[str, Any],
    option_ids: List[str],
    responses: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    voter_fingerprint: Optional[str] = None,
    voter_ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Record a vote.

    Identity is the user id when authenticated, otherwise the fingerprint.

    Raises:
        VoteError: 400 invalid ballot / closed poll, 409 already voted
    """
    check_voting_window(poll, now)

    if not user_id and not voter_fingerprint:
        raise VoteError("Voter fingerprint is required for anonymous voting", 400)

    if "questions" not in poll:
        poll = attach_structure(db, dict(poll))

    option_ids, cleaned = validate_ballot(poll, option_ids, responses or {})

    row = {
        "poll_id": poll["id"],
        "options": option_ids,
        "responses": cleaned,
        "user_id": user_id,
        "voter_fingerprint": None if user_id else voter_fingerprint,
        "voter_ip": voter_ip,
    }

    try:
        result = db.table("votes").insert(row).execute()
    except APIError as e:
        if is_unique_violation(e):
            raise VoteError("You have already voted in this poll", 409)
        logger.error(f"❌ Vote insert failed for poll {poll['id']}: {e}")
        raise

    vote = result.data[0]
    logger.info(f"🗳️ Vote {vote.get('id')} recorded on poll {poll.get('code', poll['id'])}")
    return vote


def _identity_query(db: Client, columns: str, poll_id: str, user_id: Optional[str], voter_fingerprint: Optional[str]):
    query = db.table("votes").select(columns).eq("poll_id", poll_id)
    if user_id:
        return query.eq("user_id", user_id)
    return query.eq("voter_fingerprint", voter_fingerprint)


def find_vote(
    db: Client,
    poll_id: str,
    user_id: Optional[str] = None,
    voter_fingerprint: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    if not user_id and not voter_fingerprint:
        return None
    result = _identity_query(db, "id, options, responses, created_at", poll_id, user_id, voter_fingerprint).limit(1).execute()
    return result.data[0] if result.data else None


def edit_vote(
    db: Client,
    poll: Dict[str, Any],
    option_ids: List[str],
    responses: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    voter_fingerprint: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Replace the caller's existing ballot (polls with ``allow_vote_editing``).

    Raises:
        VoteError: 403 editing disabled, 404 no existing vote, 400 bad ballot
    """
    if not poll.get("allow_vote_editing"):
        raise VoteError("Vote editing is not enabled for this poll", 403)

    check_voting_window(poll, now)

    existing = find_vote(db, poll["id"], user_id, voter_fingerprint)
    if existing is None:
        raise VoteError("No vote found to edit", 404)

    if "questions" not in poll:
        poll = attach_structure(db, dict(poll))
    option_ids, cleaned = validate_ballot(poll, option_ids, responses or {})

    result = db.table("votes").update({"options": option_ids, "responses": cleaned}).eq("id", existing["id"]).execute()
    logger.info(f"✏️ Vote {existing['id']} edited on poll {poll['id']}")
    return result.data[0] if result.data else {**existing, "options": option_ids, "responses": cleaned}


# ============================================================
# Reads
# ============================================================

def has_voted(
    db: Client,
    poll_id: str,
    user_id: Optional[str] = None,
    voter_fingerprint: Optional[str] = None,
) -> bool:
    """False when neither identity is given."""
    return find_vote(db, poll_id, user_id, voter_fingerprint) is not None


def get_user_votes(
    db: Client,
    poll_id: str,
    user_id: Optional[str] = None,
    voter_fingerprint: Optional[str] = None,
) -> List[str]:
    """Option ids the caller selected, empty if they have not voted."""
    vote = find_vote(db, poll_id, user_id, voter_fingerprint)
    if vote is None:
        return []
    selected = parse_db_json_field(vote.get("options"), [])
    return [str(option_id) for option_id in selected] if isinstance(selected, list) else []


def get_poll_votes(db: Client, poll_id: str) -> List[Dict[str, Any]]:
    result = db.table("votes").select("id, options, responses, created_at").eq("poll_id", poll_id).execute()
    return result.data or []


def get_poll_results(db: Client, poll: Dict[str, Any]) -> Dict[str, Any]:
    """
    Aggregate results for a poll.

    Returns:
        {"poll_id", "total_voters", "options": [...], "questions": [...]}
        where ``options`` is the flat per-option tally across all questions.
    """
    if "questions" not in poll:
        poll = attach_structure(db, dict(poll))

    votes = get_poll_votes(db, poll["id"])
    return {
        "poll_id": poll["id"],
        "total_voters": len(votes),
        "options": count_option_votes(poll["options"], votes),
        "questions": [question_results(q, poll["options"], votes) for q in poll["questions"]],
    }
