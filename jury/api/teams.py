"""
Team Workspace Endpoints (team_workspace feature)

POST   /api/teams                                   Create a team (caller becomes owner)
GET    /api/teams                                   Teams I belong to
GET    /api/teams/{team_id}/members                 Members, owners first
POST   /api/teams/{team_id}/invite                  Invite by email (owner only)
POST   /api/teams/invites/{member_id}/accept        Accept an invite sent to my email
DELETE /api/teams/{team_id}/members/{member_id}     Remove a member (owner only)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from jury.api.common import user_tier
from jury.db.client import get_db
from jury.models.requests import TeamCreateRequest, TeamInviteRequest
from jury.utils.auth import CurrentUser, get_current_user
from jury.utils.dates import utcnow
from jury.utils.feature_gate import require_feature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teams", tags=["Teams"])

MEMBER_FIELDS = "id, team_id, user_id, role, invite_status, invited_email, invited_at, joined_at"


def _team_or_404(db: Client, team_id: str) -> dict:
    result = db.table("teams").select("id, name, owner_id, created_at").eq("id", team_id).limit(1).execute()
    if not result.data:
        raise HTTPException(status_code=404, detail="Team not found")
    return result.data[0]


def _members(db: Client, team_id: str) -> list:
    # "owner" sorts after "member", so descending puts owners first
    result = db.table("team_members").select(MEMBER_FIELDS).eq("team_id", team_id).order("role", desc=True).execute()
    return result.data or []


@router.post("", status_code=201)
async def create_team(body: TeamCreateRequest, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    require_feature(user_tier(db, user), "team_workspace")

    team = db.table("teams").insert({"name": body.name.strip(), "owner_id": user.id}).execute().data[0]
    db.table("team_members").insert({
        "team_id": team["id"],
        "user_id": user.id,
        "role": "owner",
        "invite_status": "accepted",
        "joined_at": utcnow().isoformat(),
    }).execute()

    logger.info(f"👥 Created team {team['id']} for user {user.id}")
    return team


@router.get("")
async def my_teams(user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    memberships = (
        db.table("team_members")
        .select("team_id, role")
        .eq("user_id", user.id)
        .eq("invite_status", "accepted")
        .execute()
        .data
        or []
    )
    if not memberships:
        return {"teams": []}

    roles = {m["team_id"]: m["role"] for m in memberships}
    teams = db.table("teams").select("id, name, owner_id, created_at").in_("id", list(roles)).execute().data or []
    return {"teams": [{**team, "role": roles.get(team["id"])} for team in teams]}


@router.get("/{team_id}/members")
async def list_members(team_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    _team_or_404(db, team_id)
    members = _members(db, team_id)
    if not any(m.get("user_id") == user.id and m.get("invite_status") == "accepted" for m in members):
        raise HTTPException(status_code=403, detail="You are not a member of this team")

    return {"members": members}


@router.post("/{team_id}/invite", status_code=201)
async def invite_member(
    team_id: str,
    body: TeamInviteRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    team = _team_or_404(db, team_id)
    if team["owner_id"] != user.id:
        raise HTTPException(status_code=403, detail="Only the team owner can invite members")
    require_feature(user_tier(db, user), "team_workspace")

    if body.email == (user.email or "").lower():
        raise HTTPException(status_code=400, detail="You are already a member of this team")
    if any(m.get("invited_email") == body.email for m in _members(db, team_id)):
        raise HTTPException(status_code=409, detail="This person is already a member or has a pending invite.")

    member = db.table("team_members").insert({
        "team_id": team_id,
        "user_id": None,
        "role": "member",
        "invited_email": body.email,
        "invite_status": "pending",
        "invited_at": utcnow().isoformat(),
    }).execute().data[0]

    logger.info(f"📨 Invited {body.email} to team {team_id}")
    return member


@router.post("/invites/{member_id}/accept")
async def accept_invite(member_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    result = db.table("team_members").select(MEMBER_FIELDS).eq("id", member_id).limit(1).execute()
    invite = result.data[0] if result.data else None
    if invite is None or invite.get("invite_status") != "pending":
        raise HTTPException(status_code=404, detail="Invite not found")
    if (invite.get("invited_email") or "") != (user.email or "").lower():
        raise HTTPException(status_code=403, detail="This invite was sent to a different email address")

    updated = db.table("team_members").update({
        "user_id": user.id,
        "invite_status": "accepted",
        "joined_at": utcnow().isoformat(),
    }).eq("id", member_id).execute()
    return updated.data[0] if updated.data else {**invite, "user_id": user.id, "invite_status": "accepted"}


@router.delete("/{team_id}/members/{member_id}")
async def remove_member(
    team_id: str,
    member_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_db),
):
    team = _team_or_404(db, team_id)
    if team["owner_id"] != user.id:
        raise HTTPException(status_code=403, detail="Only the team owner can remove members")

    member = next((m for m in _members(db, team_id) if m["id"] == member_id), None)
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")
    if member.get("role") == "owner" or member.get("user_id") == user.id:
        raise HTTPException(status_code=400, detail="You cannot remove yourself from the team.")

    db.table("team_members").delete().eq("id", member_id).execute()
    return {"success": True}
