"""
Poll Storage
============

Poll, question and option queries.

Table layout:
- polls:          one row per poll (owner, flags, schedule, live state)
- poll_questions: ordered questions of a poll (question_order 1..n)
- poll_options:   ordered options of a question (option_order 1..n)

Ownership is NOT checked here. Routes use the service-role client and must
verify ``poll["user_id"]`` themselves before mutating.
"""

import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from jury.utils.dates import utcnow
from jury.utils.passwords import hash_poll_password
from jury.utils.poll_codes import generate_unique_poll_code
from jury.utils.question_types import MULTIPLE_CHOICE, get_default_settings, question_type_has_options

logger = logging.getLogger(__name__)

POLL_FIELDS = (
    "id, code, user_id, question, description, allow_multiple, is_active, "
    "has_time_limit, start_date, end_date, show_results_to_voters, "
    "allow_vote_editing, password_hash, embed_enabled, embed_settings, "
    "live_mode, live_state, live_current_question, created_at, updated_at"
)

# Columns a poll update may touch
UPDATABLE_FIELDS = (
    "question", "description", "allow_multiple", "is_active", "has_time_limit",
    "start_date", "end_date", "show_results_to_voters", "allow_vote_editing",
    "embed_enabled", "embed_settings",
)


class PollValidationError(Exception):
    """Poll structure rejected before anything is written."""


# ============================================================
# Structure helpers
# ============================================================

def normalize_questions(
    question: str,
    allow_multiple: bool,
    options: List[Dict[str, Any]],
    questions: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Resolve a create request to a list of question dicts.

    A request with only ``options`` becomes a single multiple-choice question
    titled ``question``. Default settings for the type are merged under any
    settings the caller supplied.

    Raises:
        PollValidationError: No questions, or an option-bearing question with
            fewer than two options
    """
    if not questions and options:
        questions = [{
            "question_text": question,
            "question_type": MULTIPLE_CHOICE,
            "allow_multiple": allow_multiple,
            "settings": {},
            "options": options,
        }]

    if not questions:
        raise PollValidationError("At least one question is required")

    normalized = []
    for index, q in enumerate(questions, start=1):
        question_type = q.get("question_type") or MULTIPLE_CHOICE
        q_options = [o for o in (q.get("options") or []) if (o.get("text") or "").strip()]

        if question_type_has_options(question_type):
            if len(q_options) < 2:
                raise PollValidationError(f"Question {index} needs at least 2 options")
        else:
            q_options = []

        normalized.append({
            "question_text": q["question_text"].strip(),
            "question_type": question_type,
            "allow_multiple": bool(q.get("allow_multiple", False)),
            "settings": {**get_default_settings(question_type), **(q.get("settings") or {})},
            "options": [{"text": o["text"].strip(), "image_url": o.get("image_url")} for o in q_options],
        })

    return normalized


def public_poll(poll: Dict[str, Any]) -> Dict[str, Any]:
    """Strip the password hash, exposing only whether one is set."""
    visible = {k: v for k, v in poll.items() if k != "password_hash"}
    visible["has_password"] = bool(poll.get("password_hash"))
    return visible


# ============================================================
# Reads
# ============================================================

def poll_code_exists(db: Client, code: str) -> bool:
    result = db.table("polls").select("id").eq("code", code).limit(1).execute()
    return bool(result.data)


def get_poll_questions(db: Client, poll_id: str) -> List[Dict[str, Any]]:
    result = (
        db.table("poll_questions")
        .select("id, poll_id, question_text, question_type, question_order, allow_multiple, settings")
        .eq("poll_id", poll_id)
        .order("question_order")
        .execute()
    )
    return result.data or []


def get_poll_options(db: Client, poll_id: str) -> List[Dict[str, Any]]:
    result = (
        db.table("poll_options")
        .select("id, poll_id, question_id, text, option_order, image_url")
        .eq("poll_id", poll_id)
        .order("option_order")
        .execute()
    )
    return result.data or []


def attach_structure(db: Client, poll: Dict[str, Any]) -> Dict[str, Any]:
    """Add ``questions`` (each with its ``options``) and a flat ``options`` list."""
    questions = get_poll_questions(db, poll["id"])
    options = get_poll_options(db, poll["id"])

    for q in questions:
        q["options"] = [o for o in options if o.get("question_id") == q["id"]]

    poll["questions"] = questions
    poll["options"] = options
    return poll


def _get_poll(db: Client, column: str, value: str, with_structure: bool) -> Optional[Dict[str, Any]]:
    result = db.table("polls").select(POLL_FIELDS).eq(column, value).limit(1).execute()
    if not result.data:
        return None
    poll = result.data[0]
    return attach_structure(db, poll) if with_structure else poll


def get_poll_by_code(db: Client, code: str, with_structure: bool = True) -> Optional[Dict[str, Any]]:
    return _get_poll(db, "code", code, with_structure)


def get_poll_by_id(db: Client, poll_id: str, with_structure: bool = True) -> Optional[Dict[str, Any]]:
    return _get_poll(db, "id", poll_id, with_structure)


def count_votes_by_poll(db: Client, poll_ids: List[str]) -> Dict[str, int]:
    if not poll_ids:
        return {}
    result = db.table("votes").select("poll_id").in_("poll_id", poll_ids).execute()
    counts = {poll_id: 0 for poll_id in poll_ids}
    for row in result.data or []:
        counts[row["poll_id"]] = counts.get(row["poll_id"], 0) + 1
    return counts


def list_user_polls(db: Client, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """The user's polls, newest first, each with ``total_votes``."""
    query = db.table("polls").select(POLL_FIELDS).eq("user_id", user_id).order("created_at", desc=True)
    if limit:
        query = query.limit(limit)
    polls = query.execute().data or []

    counts = count_votes_by_poll(db, [p["id"] for p in polls])
    for poll in polls:
        poll["total_votes"] = counts.get(poll["id"], 0)
    return polls


def count_active_polls(db: Client, user_id: str) -> int:
    result = (
        db.table("polls")
        .select("id", count="exact")
        .eq("user_id", user_id)
        .eq("is_active", True)
        .execute()
    )
    if result.count is not None:
        return result.count
    return len(result.data or [])


# ============================================================
# Writes
# ============================================================

def _insert_questions(db: Client, poll_id: str, questions: List[Dict[str, Any]]):
    for order, q in enumerate(questions, start=1):
        inserted = db.table("poll_questions").insert({
            "poll_id": poll_id,
            "question_text": q["question_text"],
            "question_type": q["question_type"],
            "question_order": order,
            "allow_multiple": q["allow_multiple"],
            "settings": q["settings"],
        }).execute()
        question_id = inserted.data[0]["id"]

        if q["options"]:
            db.table("poll_options").insert([
                {
                    "poll_id": poll_id,
                    "question_id": question_id,
                    "text": o["text"],
                    "image_url": o.get("image_url"),
                    "option_order": option_order,
                }
                for option_order, o in enumerate(q["options"], start=1)
            ]).execute()


def create_poll(
    db: Client,
    user_id: str,
    fields: Dict[str, Any],
    questions: List[Dict[str, Any]],
    password: Optional[str] = None,
    password_hash: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Insert a poll with its questions and options.

    Args:
        fields: Poll columns (question, description, flags, schedule, ...)
        questions: Output of ``normalize_questions``
        password: Plain password, stored as a SHA-256 hex hash
        password_hash: Already-hashed password (used when copying a poll)

    Raises:
        PollCodeError: If no unique code could be generated
    """
    code = generate_unique_poll_code(lambda c: poll_code_exists(db, c))

    row = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    row.update({
        "code": code,
        "user_id": user_id,
        "password_hash": hash_poll_password(password) if password else password_hash,
    })

    poll = db.table("polls").insert(row).execute().data[0]
    _insert_questions(db, poll["id"], questions)

    logger.info(f"✅ Created poll {code} ({len(questions)} questions) for user {user_id}")
    return attach_structure(db, poll)


def replace_options_positionally(db: Client, poll: Dict[str, Any], new_options: List[Dict[str, Any]]):
    """
    Sync the first question's options with ``new_options`` by position.

    Existing rows keep their ids (so votes stay attached), extra options are
    inserted and surplus rows deleted.
    """
    questions = poll.get("questions")
    if questions is None:
        questions = get_poll_questions(db, poll["id"])
    question_id = questions[0]["id"] if questions else None

    existing = [
        o for o in (poll.get("options") or get_poll_options(db, poll["id"]))
        if question_id is None or o.get("question_id") == question_id
    ]
    existing.sort(key=lambda o: o.get("option_order") or 0)

    for position, option in enumerate(new_options, start=1):
        values = {"text": option["text"], "image_url": option.get("image_url"), "option_order": position}
        if position <= len(existing):
            db.table("poll_options").update(values).eq("id", existing[position - 1]["id"]).execute()
        else:
            db.table("poll_options").insert({**values, "poll_id": poll["id"], "question_id": question_id}).execute()

    surplus = [o["id"] for o in existing[len(new_options):]]
    if surplus:
        db.table("poll_options").delete().in_("id", surplus).execute()


def update_poll(
    db: Client,
    poll: Dict[str, Any],
    updates: Dict[str, Any],
    options: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    row = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    row["updated_at"] = utcnow().isoformat()
    db.table("polls").update(row).eq("id", poll["id"]).execute()

    if options is not None:
        replace_options_positionally(db, poll, options)

    return get_poll_by_id(db, poll["id"])


def delete_poll(db: Client, poll_id: str):
    # Children first; a schema without ON DELETE CASCADE still ends up clean
    db.table("votes").delete().eq("poll_id", poll_id).execute()
    db.table("poll_options").delete().eq("poll_id", poll_id).execute()
    db.table("poll_questions").delete().eq("poll_id", poll_id).execute()
    db.table("polls").delete().eq("id", poll_id).execute()
    logger.info(f"🗑️ Deleted poll {poll_id}")


def set_poll_fields(db: Client, poll_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Raw column update (active flag, live state) returning the new row."""
    values = {**fields, "updated_at": utcnow().isoformat()}
    result = db.table("polls").update(values).eq("id", poll_id).execute()
    return result.data[0] if result.data else {}


def duplicate_poll(db: Client, poll: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """
    Copy a poll as "<question> (Copy)": inactive, unscheduled, new code,
    same questions and options, no votes.
    """
    if "questions" not in poll:
        poll = attach_structure(db, dict(poll))

    fields = {k: poll.get(k) for k in UPDATABLE_FIELDS}
    fields.update({
        "question": f"{poll['question']} (Copy)",
        "is_active": False,
        "has_time_limit": False,
        "start_date": None,
        "end_date": None,
    })

    questions = [
        {
            "question_text": q["question_text"],
            "question_type": q["question_type"],
            "allow_multiple": q.get("allow_multiple", False),
            "settings": q.get("settings") or {},
            "options": [{"text": o["text"], "image_url": o.get("image_url")} for o in q.get("options", [])],
        }
        for q in poll["questions"]
    ]

    return create_poll(db, user_id, fields, questions, password_hash=poll.get("password_hash"))
