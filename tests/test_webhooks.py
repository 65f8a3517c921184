"""
Outgoing webhooks: signing, delivery and the management routes.
"""

import hashlib
import hmac
import json

import httpx
import pytest

from jury.utils import webhooks
from jury.utils.webhooks import build_webhook_body, dispatch_webhook_event, sign_payload


@pytest.fixture
def transport(monkeypatch):
    """Route every AsyncClient the dispatcher opens through a MockTransport."""
    sent = []
    statuses = {}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        status = statuses.get(str(request.url), 200)
        if status == "timeout":
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(status)

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(webhooks.httpx, "AsyncClient", client_factory)
    return sent, statuses


def _hook(fake_db, user_id="user-1", url="https://hooks.example.com/a", events=("vote.created",), active=True):
    return fake_db.seed(
        "webhooks",
        user_id=user_id,
        url=url,
        secret="s3cret",
        events=list(events),
        is_active=active,
    )


class TestSigning:

    def test_signature_is_hmac_sha256_hex(self):
        body = '{"event": "vote.created"}'
        expected = hmac.new(b"key", body.encode(), hashlib.sha256).hexdigest()
        assert sign_payload(body, "key") == expected

    def test_body_shape(self):
        body = json.loads(build_webhook_body("poll.created", {"poll_id": "p1"}, timestamp="2026-01-01T00:00:00+00:00"))
        assert body == {"event": "poll.created", "payload": {"poll_id": "p1"}, "timestamp": "2026-01-01T00:00:00+00:00"}


class TestDispatch:

    @pytest.mark.asyncio
    async def test_delivers_to_subscribed_active_hooks_only(self, fake_db, transport):
        sent, _ = transport
        hook = _hook(fake_db)
        _hook(fake_db, url="https://hooks.example.com/other-event", events=("poll.deleted",))
        _hook(fake_db, url="https://hooks.example.com/disabled", active=False)
        _hook(fake_db, user_id="user-2", url="https://hooks.example.com/other-user")

        delivered = await dispatch_webhook_event(fake_db, "user-1", "vote.created", {"poll_id": "p1"})

        assert delivered == 1
        assert [str(r.url) for r in sent] == ["https://hooks.example.com/a"]
        request = sent[0]
        assert request.headers["X-Webhook-Event"] == "vote.created"
        assert request.headers["X-Webhook-Signature"] == sign_payload(request.content.decode(), "s3cret")
        assert json.loads(request.content)["payload"] == {"poll_id": "p1"}

        stored = next(h for h in fake_db.rows("webhooks") if h["id"] == hook["id"])
        assert stored["last_triggered_at"] is not None

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, fake_db, transport):
        sent, statuses = transport
        _hook(fake_db, url="https://hooks.example.com/ok")
        _hook(fake_db, url="https://hooks.example.com/broken")
        _hook(fake_db, url="https://hooks.example.com/slow")
        statuses["https://hooks.example.com/broken"] = 500
        statuses["https://hooks.example.com/slow"] = "timeout"

        delivered = await dispatch_webhook_event(fake_db, "user-1", "vote.created", {})

        assert delivered == 1
        assert len(sent) == 3
        # Attempted hooks are stamped whatever the outcome
        assert all(h.get("last_triggered_at") for h in fake_db.rows("webhooks"))

    @pytest.mark.asyncio
    async def test_no_hooks_makes_no_requests(self, fake_db, transport):
        sent, _ = transport
        assert await dispatch_webhook_event(fake_db, "user-1", "vote.created", {}) == 0
        assert sent == []

    @pytest.mark.asyncio
    async def test_lookup_failure_is_swallowed(self, fake_db, transport):
        fake_db.fail_tables["webhooks"] = True
        assert await dispatch_webhook_event(fake_db, "user-1", "vote.created", {}) == 0


class TestWebhookRoutes:

    def test_requires_team_tier(self, client, make_user):
        _, headers = make_user("pro")
        response = client.get("/api/webhooks", headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"]["feature"] == "webhooks"

    def test_register_list_toggle_delete(self, client, make_user):
        _, headers = make_user("team")

        response = client.post(
            "/api/webhooks",
            json={"url": "https://hooks.example.com/in", "events": ["vote.created", "vote.created", "poll.created"]},
            headers=headers,
        )
        assert response.status_code == 201
        created = response.json()
        assert created["events"] == ["vote.created", "poll.created"]
        assert created["secret"]

        listed = client.get("/api/webhooks", headers=headers).json()["webhooks"]
        assert len(listed) == 1
        assert "secret" not in listed[0]

        toggled = client.post(f"/api/webhooks/{created['id']}/toggle", headers=headers).json()
        assert toggled == {"id": created["id"], "is_active": False}

        assert client.delete(f"/api/webhooks/{created['id']}", headers=headers).json() == {"success": True}
        assert client.get("/api/webhooks", headers=headers).json()["webhooks"] == []

    def test_url_scheme_validated(self, client, make_user):
        _, headers = make_user("team")
        response = client.post("/api/webhooks", json={"url": "ftp://x", "events": ["poll.created"]}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "URL must start with http:// or https://"

    def test_unknown_webhook(self, client, make_user):
        _, headers = make_user("team")
        assert client.post("/api/webhooks/missing/toggle", headers=headers).status_code == 404
