"""
API Key Management Endpoints (api_access feature)

GET    /api/api-keys            List my keys (never the hash or raw key)
POST   /api/api-keys            Create a key; the raw key is returned once
DELETE /api/api-keys/{key_id}   Revoke
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from jury.api.common import user_tier
from jury.db.client import get_db
from jury.models.requests import ApiKeyCreateRequest
from jury.models.responses import ApiKeyCreatedResponse
from jury.utils.api_keys import generate_api_key
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.feature_gate import require_feature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/api-keys", tags=["API Keys"])

LIST_FIELDS = "id, name, key_prefix, scopes, last_used_at, expires_at, created_at"


@router.get("")
async def list_api_keys(user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    require_feature(user_tier(db, user), "api_access")
    result = db.table("api_keys").select(LIST_FIELDS).eq("user_id", user.id).order("created_at", desc=True).execute()
    return {"keys": result.data or []}


@router.post("", status_code=201, response_model=ApiKeyCreatedResponse)
async def create_api_key(
    body: ApiKeyCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    require_feature(user_tier(db, user), "api_access")

    key, prefix, key_hash = generate_api_key()
    scopes = [scope.value for scope in dict.fromkeys(body.scopes)]
    expires_at = body.expires_at.isoformat() if body.expires_at else None

    row = db.table("api_keys").insert({
        "user_id": user.id,
        "name": body.name.strip(),
        "key_prefix": prefix,
        "key_hash": key_hash,
        "scopes": scopes,
        "expires_at": expires_at,
    }).execute().data[0]

    logger.info(f"🔑 Created API key {prefix}... for user {user.id}")
    return ApiKeyCreatedResponse(
        id=row["id"],
        name=row["name"],
        key=key,
        key_prefix=prefix,
        scopes=scopes,
        expires_at=expires_at,
    )


@router.delete("/{key_id}")
async def revoke_api_key(key_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    existing = db.table("api_keys").select("id").eq("id", key_id).eq("user_id", user.id).limit(1).execute()
    if not existing.data:
        raise HTTPException(status_code=404, detail="API key not found")

    db.table("api_keys").delete().eq("id", key_id).eq("user_id", user.id).execute()
    logger.info(f"🗑️ Revoked API key {key_id} for user {user.id}")
    return {"success": True}
