"""
Custom Domain Endpoints (custom_domains feature)

GET    /api/domains               List my domains
POST   /api/domains               Add a domain; returns its TXT verification token
DELETE /api/domains/{domain_id}
POST   /api/domains/verify        Check the TXT record (5/min/IP)
"""

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from postgrest.exceptions import APIError
from supabase import Client

from jury.api.common import user_tier
from jury.config import RATE_LIMITS
from jury.db.client import get_db
from jury.db.votes import is_unique_violation
from jury.models.requests import DomainCreateRequest, DomainVerifyRequest
from jury.models.responses import DomainVerifyResponse
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.dates import utcnow
from jury.utils.dns_verify import check_domain_verification, verification_host
from jury.utils.feature_gate import require_feature
from jury.utils.rate_limiter import rate_limited

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/domains", tags=["Custom Domains"])

DOMAIN_FIELDS = "id, domain, verification_token, verified, verified_at, created_at"


def _with_instructions(row: dict) -> dict:
    return {**row, "txt_host": verification_host(row["domain"]), "txt_value": row["verification_token"]}


@router.get("")
async def list_domains(user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    require_feature(user_tier(db, user), "custom_domains")
    result = db.table("custom_domains").select(DOMAIN_FIELDS).eq("user_id", user.id).order("created_at", desc=True).execute()
    return {"domains": [_with_instructions(row) for row in result.data or []]}


@router.post("", status_code=201)
async def add_domain(body: DomainCreateRequest, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    require_feature(user_tier(db, user), "custom_domains")

    try:
        row = db.table("custom_domains").insert({
            "user_id": user.id,
            "domain": body.domain,
            "verification_token": str(uuid.uuid4()),
            "verified": False,
        }).execute().data[0]
    except APIError as e:
        if is_unique_violation(e):
            raise HTTPException(status_code=409, detail="This domain has already been added")
        raise

    logger.info(f"🌐 Added custom domain {body.domain} for user {user.id}")
    return _with_instructions(row)


@router.delete("/{domain_id}")
async def delete_domain(domain_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    existing = db.table("custom_domains").select("id").eq("id", domain_id).eq("user_id", user.id).limit(1).execute()
    if not existing.data:
        raise HTTPException(status_code=404, detail="Domain not found")
    db.table("custom_domains").delete().eq("id", domain_id).eq("user_id", user.id).execute()
    return {"success": True}


@router.post(
    "/verify",
    response_model=DomainVerifyResponse,
    dependencies=[Depends(rate_limited("domain-verify", RATE_LIMITS.DOMAIN_VERIFY, message="Too many requests"))],
)
async def verify_domain(body: DomainVerifyRequest, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    result = (
        db.table("custom_domains")
        .select("id, domain, verification_token, verified")
        .eq("id", body.domain_id)
        .eq("user_id", user.id)
        .limit(1)
        .execute()
    )
    if not result.data:
        raise HTTPException(status_code=404, detail="Domain not found")

    domain = result.data[0]
    if domain.get("verified"):
        return DomainVerifyResponse(verified=True, message="Domain is already verified")

    # dnspython resolves synchronously; keep it off the event loop
    loop = asyncio.get_running_loop()
    outcome = await loop.run_in_executor(
        None, check_domain_verification, domain["domain"], domain["verification_token"]
    )

    if outcome.verified:
        db.table("custom_domains").update({
            "verified": True,
            "verified_at": utcnow().isoformat(),
        }).eq("id", domain["id"]).execute()
        logger.info(f"✅ Verified custom domain {domain['domain']}")

    return DomainVerifyResponse(verified=outcome.verified, message=outcome.message)
