"""
Presenter Mode Endpoints
========================

Owner-only controls for presenting a poll live (presenter_mode feature),
the poll's QR code, and the audience WebSocket.

POST /api/polls/{poll_id}/live/start            live_mode on, accepting votes, question 1
POST /api/polls/{poll_id}/live/toggle-results   results_revealed <-> results_hidden
POST /api/polls/{poll_id}/live/next             next question (bounded)
POST /api/polls/{poll_id}/live/previous         previous question (bounded)
POST /api/polls/{poll_id}/live/close            closed, poll deactivated
POST /api/polls/{poll_id}/live/stop             live_mode off
GET  /api/polls/{poll_id}/qr                    PNG of the answer link (qr_codes feature)
WS   /ws/polls/{poll_id}                        state + vote events for one poll

Every state change is pushed to the poll's WebSocket subscribers.
"""

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from supabase import Client

from jury.api.common import broadcast_state, live_state_payload, owned_poll, user_tier
from jury.db.client import get_db
from jury.db.polls import get_poll_by_id, set_poll_fields
from jury.models.requests import LiveState
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.feature_gate import require_feature
from jury.utils.live import PollEvent, QueueListener, live_publisher
from jury.utils.qr import make_qr_png, poll_answer_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Presenter"])


def _presentable_poll(db: Client, poll_id: str, user: CurrentUser) -> Dict[str, Any]:
    poll = owned_poll(db, poll_id, user)
    require_feature(user_tier(db, user), "presenter_mode")
    return poll


def _require_live(poll: Dict[str, Any]):
    if not poll.get("live_mode"):
        raise HTTPException(status_code=400, detail="Poll is not in live mode")


def _question_count(poll: Dict[str, Any]) -> int:
    return len(poll.get("questions") or []) or 1


def _apply(db: Client, poll: Dict[str, Any], fields: Dict[str, Any], background_tasks: BackgroundTasks):
    updated = {**poll, **set_poll_fields(db, poll["id"], fields)}
    background_tasks.add_task(broadcast_state, updated)
    return live_state_payload(updated)


@router.post("/api/polls/{poll_id}/live/start")
async def start_presenting(
    poll_id: str,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = _presentable_poll(db, poll_id, user)
    logger.info(f"🎤 Presenter mode started for poll {poll_id}")
    return _apply(db, poll, {
        "live_mode": True,
        "live_state": LiveState.ACCEPTING_VOTES.value,
        "live_current_question": 1,
    }, background_tasks)


@router.post("/api/polls/{poll_id}/live/toggle-results")
async def toggle_results(
    poll_id: str,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = _presentable_poll(db, poll_id, user)
    _require_live(poll)

    visible = poll.get("live_state") in (LiveState.ACCEPTING_VOTES.value, LiveState.RESULTS_REVEALED.value)
    new_state = LiveState.RESULTS_HIDDEN if visible else LiveState.RESULTS_REVEALED
    return _apply(db, poll, {"live_state": new_state.value}, background_tasks)


@router.post("/api/polls/{poll_id}/live/next")
async def next_question(
    poll_id: str,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = _presentable_poll(db, poll_id, user)
    _require_live(poll)

    current = poll.get("live_current_question") or 1
    target = min(current + 1, _question_count(poll))
    return _apply(db, poll, {"live_current_question": target}, background_tasks)


@router.post("/api/polls/{poll_id}/live/previous")
async def previous_question(
    poll_id: str,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = _presentable_poll(db, poll_id, user)
    _require_live(poll)

    current = poll.get("live_current_question") or 1
    return _apply(db, poll, {"live_current_question": max(current - 1, 1)}, background_tasks)


@router.post("/api/polls/{poll_id}/live/close")
async def close_poll(
    poll_id: str,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = _presentable_poll(db, poll_id, user)
    _require_live(poll)
    logger.info(f"🔒 Poll {poll_id} closed from presenter mode")
    return _apply(db, poll, {"live_state": LiveState.CLOSED.value, "is_active": False}, background_tasks)


@router.post("/api/polls/{poll_id}/live/stop")
async def stop_presenting(
    poll_id: str,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    # Allowed on any tier
    poll = owned_poll(db, poll_id, user)
    return _apply(db, poll, {"live_mode": False}, background_tasks)


@router.get("/api/polls/{poll_id}/qr")
async def poll_qr_code(
    poll_id: str,
    size: int = Query(8, ge=2, le=20, description="Pixels per QR module"),
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    poll = owned_poll(db, poll_id, user, with_structure=False)
    require_feature(user_tier(db, user), "qr_codes")

    png = make_qr_png(poll_answer_url(poll["code"]), box_size=size)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="poll-{poll["code"]}-qr.png"'},
    )


async def _forward_events(websocket: WebSocket, listener: QueueListener):
    while True:
        event = await listener.next_event()
        await websocket.send_json(event.to_dict())


@router.websocket("/ws/polls/{poll_id}")
async def poll_feed(websocket: WebSocket, poll_id: str, db: Client = Depends(get_db)):
    """
    Audience feed for one poll.

    Sends the current presenter state on connect, then every ``state`` and
    ``vote`` event published for the poll until the client disconnects.
    Messages from the client are ignored.
    """
    poll = get_poll_by_id(db, poll_id, with_structure=False)
    if poll is None:
        await websocket.close(code=4404)
        return

    await websocket.accept()
    listener = QueueListener()
    live_publisher.add_subscriber(poll_id, listener)
    sender = asyncio.create_task(_forward_events(websocket, listener))
    try:
        await websocket.send_json(PollEvent(poll_id, "state", live_state_payload(poll)).to_dict())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"🔌 Live client left poll {poll_id}")
    finally:
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        live_publisher.remove_subscriber(poll_id, listener)
