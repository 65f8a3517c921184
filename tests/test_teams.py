"""
Team workspaces and invitations.
"""

import pytest


@pytest.fixture
def owner(make_user, auth_headers):
    user_id, _ = make_user("team")
    return user_id, auth_headers(user_id, "owner@example.com")


@pytest.fixture
def team(client, owner):
    _, headers = owner
    response = client.post("/api/teams", json={"name": " Product "}, headers=headers)
    assert response.status_code == 201
    return response.json()


def _invitee(make_user, auth_headers, email="Invitee@Example.com"):
    user_id, _ = make_user("free")
    return user_id, auth_headers(user_id, email.lower())


class TestTeams:

    def test_create_makes_owner_member(self, client, owner, team):
        user_id, headers = owner
        assert team["name"] == "Product"

        teams = client.get("/api/teams", headers=headers).json()["teams"]
        assert [(t["id"], t["role"]) for t in teams] == [(team["id"], "owner")]

        members = client.get(f"/api/teams/{team['id']}/members", headers=headers).json()["members"]
        assert members[0]["user_id"] == user_id
        assert members[0]["role"] == "owner"

    def test_requires_team_tier(self, client, make_user):
        _, headers = make_user("pro")
        assert client.post("/api/teams", json={"name": "x"}, headers=headers).status_code == 403

    def test_no_teams(self, client, make_user):
        _, headers = make_user()
        assert client.get("/api/teams", headers=headers).json() == {"teams": []}

    def test_non_member_cannot_list_members(self, client, make_user, team):
        _, headers = make_user()
        assert client.get(f"/api/teams/{team['id']}/members", headers=headers).status_code == 403

    def test_unknown_team(self, client, owner):
        _, headers = owner
        assert client.get("/api/teams/missing/members", headers=headers).status_code == 404


class TestInvites:

    def test_invite_accept_and_remove(self, client, owner, team, make_user, auth_headers):
        _, headers = owner
        invitee_id, invitee_headers = _invitee(make_user, auth_headers)

        response = client.post(f"/api/teams/{team['id']}/invite", json={"email": " Invitee@Example.com "}, headers=headers)
        assert response.status_code == 201
        invite = response.json()
        assert invite["invited_email"] == "invitee@example.com"
        assert invite["invite_status"] == "pending"

        # Pending invitees are not members yet
        assert client.get(f"/api/teams/{team['id']}/members", headers=invitee_headers).status_code == 403

        accepted = client.post(f"/api/teams/invites/{invite['id']}/accept", headers=invitee_headers).json()
        assert accepted["user_id"] == invitee_id
        assert accepted["invite_status"] == "accepted"

        members = client.get(f"/api/teams/{team['id']}/members", headers=invitee_headers).json()["members"]
        assert [m["role"] for m in members] == ["owner", "member"]

        removed = client.delete(f"/api/teams/{team['id']}/members/{invite['id']}", headers=headers)
        assert removed.json() == {"success": True}
        assert client.get("/api/teams", headers=invitee_headers).json() == {"teams": []}

    def test_duplicate_invite(self, client, owner, team):
        _, headers = owner
        client.post(f"/api/teams/{team['id']}/invite", json={"email": "a@example.com"}, headers=headers)
        response = client.post(f"/api/teams/{team['id']}/invite", json={"email": "A@example.com"}, headers=headers)
        assert response.status_code == 409

    def test_cannot_invite_self(self, client, owner, team):
        _, headers = owner
        response = client.post(f"/api/teams/{team['id']}/invite", json={"email": "owner@example.com"}, headers=headers)
        assert response.status_code == 400

    def test_only_owner_invites(self, client, team, make_user):
        _, headers = make_user("team")
        response = client.post(f"/api/teams/{team['id']}/invite", json={"email": "x@example.com"}, headers=headers)
        assert response.status_code == 403

    def test_invalid_email(self, client, owner, team):
        _, headers = owner
        response = client.post(f"/api/teams/{team['id']}/invite", json={"email": "not-an-email"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid email address"

    def test_invite_for_someone_else(self, client, owner, team, make_user, auth_headers):
        _, headers = owner
        invite = client.post(f"/api/teams/{team['id']}/invite", json={"email": "a@example.com"}, headers=headers).json()
        _, wrong_headers = _invitee(make_user, auth_headers, email="b@example.com")
        assert client.post(f"/api/teams/invites/{invite['id']}/accept", headers=wrong_headers).status_code == 403

    def test_owner_cannot_be_removed(self, client, owner, team):
        user_id, headers = owner
        members = client.get(f"/api/teams/{team['id']}/members", headers=headers).json()["members"]
        response = client.delete(f"/api/teams/{team['id']}/members/{members[0]['id']}", headers=headers)
        assert response.status_code == 400
