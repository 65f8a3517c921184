"""
Helpers shared by the routers: ownership checks, tier lookup, webhook
scheduling and live broadcasts.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, HTTPException
from supabase import Client

from jury.db.polls import get_poll_by_code, get_poll_by_id
from jury.db.profiles import get_user_tier
from jury.db.votes import get_poll_results
from jury.utils.auth import CurrentUser
from jury.utils.feature_gate import FEATURE_LABELS, get_upgrade_target
from jury.utils.live import PollEvent, live_publisher
from jury.utils.webhooks import dispatch_webhook_event

logger = logging.getLogger(__name__)


def poll_or_404(db: Client, poll_id: str, with_structure: bool = True) -> Dict[str, Any]:
    poll = get_poll_by_id(db, poll_id, with_structure=with_structure)
    if poll is None:
        raise HTTPException(status_code=404, detail="Poll not found")
    return poll


def poll_by_code_or_404(db: Client, code: str, with_structure: bool = True) -> Dict[str, Any]:
    poll = get_poll_by_code(db, code, with_structure=with_structure)
    if poll is None:
        raise HTTPException(status_code=404, detail="Poll not found")
    return poll


def owned_poll(db: Client, poll_id: str, user: CurrentUser, with_structure: bool = True) -> Dict[str, Any]:
    """The poll if ``user`` owns it; 404 if missing, 403 if someone else's."""
    poll = poll_or_404(db, poll_id, with_structure=with_structure)
    if poll.get("user_id") != user.id:
        raise HTTPException(status_code=403, detail="You do not have permission to modify this poll")
    return poll


def user_tier(db: Client, user: Optional[CurrentUser]) -> str:
    return get_user_tier(db, user.id) if user else "free"


def limit_reached(tier: str, feature: str, message: str):
    """403 for a numeric limit, shaped like a feature-gate denial."""
    raise HTTPException(
        status_code=403,
        detail={
            "error": message,
            "feature": feature,
            "label": FEATURE_LABELS[feature],
            "upgrade_to": get_upgrade_target(tier, feature),
        },
    )


def queue_webhook(background_tasks: BackgroundTasks, db: Client, user_id: str, event: str, payload: Dict[str, Any]):
    """Deliver ``event`` to the user's webhooks after the response is sent."""
    background_tasks.add_task(dispatch_webhook_event, db, user_id, event, payload)


async def broadcast_results(db: Client, poll: Dict[str, Any]):
    """Push fresh tallies to live subscribers of the poll (if any)."""
    if live_publisher.subscriber_count(poll["id"]) == 0:
        return
    try:
        results = get_poll_results(db, poll)
    except Exception as e:
        logger.warning(f"⚠️ Could not compute live results for poll {poll['id']}: {e}")
        return
    await live_publisher.publish(PollEvent(poll["id"], "vote", results))


async def broadcast_state(poll: Dict[str, Any]):
    await live_publisher.publish(PollEvent(poll["id"], "state", live_state_payload(poll)))


def live_state_payload(poll: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "live_mode": bool(poll.get("live_mode")),
        "live_state": poll.get("live_state"),
        "live_current_question": poll.get("live_current_question"),
        "is_active": bool(poll.get("is_active")),
    }
