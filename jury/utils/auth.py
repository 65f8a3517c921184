"""
User Authentication
===================

Resolves the calling user from a Supabase access token sent as
``Authorization: Bearer <jwt>``.

When SUPABASE_JWT_SECRET is configured the token is verified locally
(HS256, audience "authenticated"). Otherwise the token is checked against
Supabase Auth with ``auth.get_user``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt as pyjwt
from fastapi import Depends, Header, HTTPException
from supabase import Client

from jury import config
from jury.db.client import get_db

logger = logging.getLogger(__name__)

JWT_AUDIENCE = "authenticated"


@dataclass
class CurrentUser:
    """The authenticated caller."""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


def decode_access_token(token: str) -> CurrentUser:
    """
    Verify a Supabase access token locally.

    Raises:
        pyjwt.InvalidTokenError: If the signature, expiry or audience is wrong
    """
    claims = pyjwt.decode(
        token,
        config.SUPABASE_JWT_SECRET,
        algorithms=["HS256"],
        audience=JWT_AUDIENCE,
    )
    subject = claims.get("sub")
    if not subject:
        raise pyjwt.InvalidTokenError("Token has no subject")

    return CurrentUser(
        id=subject,
        email=claims.get("email"),
        user_metadata=claims.get("user_metadata") or {},
    )


def resolve_user(db: Client, token: str) -> CurrentUser:
    """
    Resolve a token to a user, raising HTTP 401 when it is not valid.
    """
    if config.SUPABASE_JWT_SECRET:
        try:
            return decode_access_token(token)
        except pyjwt.InvalidTokenError as e:
            logger.info(f"Rejected access token: {e}")
            raise HTTPException(status_code=401, detail="Invalid or expired session")

    # No local secret: ask Supabase Auth
    try:
        response = db.auth.get_user(token)
    except Exception as e:
        logger.info(f"Supabase rejected access token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    user = getattr(response, "user", None)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    return CurrentUser(
        id=user.id,
        email=getattr(user, "email", None),
        user_metadata=getattr(user, "user_metadata", None) or {},
    )


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Client = Depends(get_db),
) -> CurrentUser:
    """FastAPI dependency: the signed-in user, or 401."""
    token = extract_bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return resolve_user(db, token)


async def get_optional_user(
    authorization: Optional[str] = Header(None),
    db: Client = Depends(get_db),
) -> Optional[CurrentUser]:
    """
    FastAPI dependency for routes that also serve anonymous callers.

    No token means anonymous. A token that is present but invalid is still 401.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        return None
    return resolve_user(db, token)
