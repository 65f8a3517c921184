"""
Webhook Management Endpoints (webhooks feature)

GET    /api/webhooks                      List my webhooks (secrets hidden)
POST   /api/webhooks                      Register; the secret is returned once
DELETE /api/webhooks/{webhook_id}
POST   /api/webhooks/{webhook_id}/toggle  Enable / disable delivery
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from jury.api.common import user_tier
from jury.db.client import get_db
from jury.models.requests import WebhookCreateRequest
from jury.models.responses import WebhookCreatedResponse
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.feature_gate import require_feature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])

LIST_FIELDS = "id, url, events, is_active, last_triggered_at, created_at"


def _owned_webhook(db: Client, webhook_id: str, user_id: str) -> dict:
    result = db.table("webhooks").select(LIST_FIELDS).eq("id", webhook_id).eq("user_id", user_id).limit(1).execute()
    if not result.data:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return result.data[0]


@router.get("")
async def list_webhooks(user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    require_feature(user_tier(db, user), "webhooks")
    result = db.table("webhooks").select(LIST_FIELDS).eq("user_id", user.id).order("created_at", desc=True).execute()
    return {"webhooks": result.data or []}


@router.post("", status_code=201, response_model=WebhookCreatedResponse)
async def create_webhook(
    body: WebhookCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    require_feature(user_tier(db, user), "webhooks")

    events = [event.value for event in dict.fromkeys(body.events)]
    secret = str(uuid.uuid4())
    row = db.table("webhooks").insert({
        "user_id": user.id,
        "url": body.url,
        "secret": secret,
        "events": events,
        "is_active": True,
    }).execute().data[0]

    logger.info(f"✅ Registered webhook {row['id']} ({', '.join(events)}) for user {user.id}")
    return WebhookCreatedResponse(id=row["id"], url=body.url, events=events, secret=secret, is_active=True)


@router.delete("/{webhook_id}")
async def delete_webhook(webhook_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    _owned_webhook(db, webhook_id, user.id)
    db.table("webhooks").delete().eq("id", webhook_id).eq("user_id", user.id).execute()
    return {"success": True}


@router.post("/{webhook_id}/toggle")
async def toggle_webhook(webhook_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    hook = _owned_webhook(db, webhook_id, user.id)
    is_active = not hook.get("is_active")
    db.table("webhooks").update({"is_active": is_active}).eq("id", webhook_id).execute()
    return {"id": webhook_id, "is_active": is_active}
