"""
API Key Authentication
======================

Keys look like ``jury_<32 hex>``. Only the SHA-256 hash and a 12 character
display prefix are stored; the raw key is shown to its owner once.

``require_api_scope`` is a FastAPI dependency factory used by the public
``/api/v1`` routes.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException
from supabase import Client

from jury.db.client import get_db
from jury.utils.dates import parse_datetime

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "jury_"
KEY_PREFIX_LENGTH = 12


@dataclass
class ApiKeyPrincipal:
    """Identity behind a validated API key."""
    key_id: str
    user_id: str
    scopes: List[str] = field(default_factory=list)


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def generate_api_key():
    """
    Create a new key.

    Returns:
        Tuple[str, str, str]: (raw key, display prefix, sha256 hash)
    """
    key = API_KEY_PREFIX + secrets.token_hex(16)
    return key, key[:KEY_PREFIX_LENGTH], hash_api_key(key)


def _is_expired(expires_at: Optional[str], now: datetime) -> bool:
    if not expires_at:
        return False
    expiry = parse_datetime(expires_at)
    # Unreadable expiry: treat as expired rather than valid forever
    return expiry is None or expiry <= now


def touch_last_used(db: Client, key_id: str):
    """Record key usage. Failures are logged, never raised."""
    try:
        db.table("api_keys").update(
            {"last_used_at": datetime.now(timezone.utc).isoformat()}
        ).eq("id", key_id).execute()
    except Exception as e:
        logger.warning(f"⚠️ Failed to update last_used_at for key {key_id}: {e}")


def validate_api_key(
    db: Client,
    authorization: Optional[str],
    background_tasks: Optional[BackgroundTasks] = None,
) -> Optional[ApiKeyPrincipal]:
    """
    Resolve an ``Authorization: Bearer jury_...`` header to its key.

    Returns None for a missing, malformed, unknown or expired key, and for
    any lookup error.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None

    key = authorization[7:].strip()
    if not key.startswith(API_KEY_PREFIX):
        return None

    try:
        result = (
            db.table("api_keys")
            .select("id, user_id, scopes, expires_at")
            .eq("key_hash", hash_api_key(key))
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(f"❌ API key lookup failed for {key[:KEY_PREFIX_LENGTH]}...: {e}")
        return None

    if not result.data:
        return None

    row = result.data[0]
    if _is_expired(row.get("expires_at"), datetime.now(timezone.utc)):
        logger.info(f"Rejected expired API key {key[:KEY_PREFIX_LENGTH]}...")
        return None

    if background_tasks is not None:
        background_tasks.add_task(touch_last_used, db, row["id"])
    else:
        touch_last_used(db, row["id"])

    return ApiKeyPrincipal(key_id=row["id"], user_id=row["user_id"], scopes=list(row.get("scopes") or []))


def require_api_scope(scope: str) -> Callable:
    """
    Dependency factory: a valid API key carrying ``scope``.

    401 when the key is missing or invalid, 403 when the scope is absent.
    """

    async def dependency(
        background_tasks: BackgroundTasks,
        authorization: Optional[str] = Header(None),
        db: Client = Depends(get_db),
    ) -> ApiKeyPrincipal:
        principal = validate_api_key(db, authorization, background_tasks)
        if principal is None:
            raise HTTPException(status_code=401, detail="Invalid or missing API key")
        if scope not in principal.scopes:
            raise HTTPException(status_code=403, detail=f"Insufficient scope. Required: {scope}")
        return principal

    return dependency
