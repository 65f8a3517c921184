"""
Landing page demo polls.
"""

import uuid

import pytest
from postgrest.exceptions import APIError

from jury import config
from jury.db.demo import SEED_POLLS, get_demo_poll

OPTIONS = '[{"id": "1", "text": "Yes"}, {"id": "2", "text": "No"}]'


@pytest.fixture
def demo_poll(fake_db):
    return fake_db.seed(
        "demo_polls",
        question="Is this a demo?",
        description=None,
        options=OPTIONS,
        category="fun",
        display_order=1,
        is_active=True,
    )


@pytest.fixture(params=["/api/live-polls", "/api/demo-polls"])
def base(request):
    return request.param


class TestDemoPolls:

    def test_random_parses_options(self, client, base, demo_poll):
        body = client.get(f"{base}/random").json()
        assert body["id"] == demo_poll["id"]
        assert body["options"] == [{"id": "1", "text": "Yes"}, {"id": "2", "text": "No"}]

    def test_random_without_polls(self, client, base):
        response = client.get(f"{base}/random")
        assert response.status_code == 404
        assert response.json()["detail"] == "No demo polls available"

    def test_vote_and_results(self, client, base, demo_poll):
        vote = {"demo_poll_id": demo_poll["id"], "selected_options": ["2"], "voter_fingerprint": "fp"}
        assert client.post(f"{base}/vote", json=vote).json() == {"success": True}

        duplicate = client.post(f"{base}/vote", json=vote)
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "You have already voted on this poll"

        results = client.get(f"{base}/{demo_poll['id']}/results").json()
        assert results == [
            {"option_id": "1", "option_text": "Yes", "vote_count": 0},
            {"option_id": "2", "option_text": "No", "vote_count": 1},
        ]

    def test_vote_on_missing_poll(self, client, base):
        vote = {"demo_poll_id": str(uuid.uuid4()), "selected_options": ["1"], "voter_fingerprint": "fp"}
        assert client.post(f"{base}/vote", json=vote).status_code == 404

    def test_vote_on_inactive_poll(self, client, base, fake_db):
        inactive = fake_db.seed("demo_polls", question="Old", options=OPTIONS, display_order=2, is_active=False)
        vote = {"demo_poll_id": inactive["id"], "selected_options": ["1"], "voter_fingerprint": "fp"}
        response = client.post(f"{base}/vote", json=vote)
        assert response.status_code == 400
        assert response.json()["detail"] == "This demo poll is not active"

    def test_vote_validation(self, client, base):
        vote = {"demo_poll_id": "not-a-uuid", "selected_options": ["1"], "voter_fingerprint": "fp"}
        assert client.post(f"{base}/vote", json=vote).status_code == 400

    def test_has_voted_never_errors(self, client, base, demo_poll, fake_db):
        poll_id = demo_poll["id"]
        assert client.get(f"{base}/not-a-uuid/has-voted?fingerprint=fp").json() == {"hasVoted": False}
        assert client.get(f"{base}/{poll_id}/has-voted").json() == {"hasVoted": False}

        client.post(f"{base}/vote", json={"demo_poll_id": poll_id, "selected_options": ["1"], "voter_fingerprint": "fp"})
        assert client.get(f"{base}/{poll_id}/has-voted?fingerprint=fp").json() == {"hasVoted": True}

        fake_db.fail_tables["demo_votes"] = True
        assert client.get(f"{base}/{poll_id}/has-voted?fingerprint=fp").json() == {"hasVoted": False}

    def test_results_for_malformed_id(self, client, base):
        response = client.get(f"{base}/not-a-uuid/results")
        assert response.status_code == 404
        assert response.json()["detail"] == "Poll not found"

    def test_results_for_unknown_poll(self, client, base):
        response = client.get(f"{base}/{uuid.uuid4()}/results")
        assert response.status_code == 404
        assert response.json()["detail"] == "Poll not found"

    def test_results_for_unreadable_options(self, client, base, fake_db):
        broken = fake_db.seed("demo_polls", question="Broken", options="{oops", display_order=3, is_active=True)
        response = client.get(f"{base}/{broken['id']}/results")
        assert response.status_code == 500
        assert response.json()["detail"] == "Invalid poll options format"


class TestSeeding:

    @pytest.fixture(autouse=True)
    def seed_secret(self, monkeypatch):
        monkeypatch.setattr(config, "SEED_SECRET", "let-me-in")

    def test_requires_secret(self, client):
        assert client.post("/api/demo-polls/seed").status_code == 401
        assert client.post("/api/demo-polls/seed?secret=wrong").status_code == 401

    def test_unset_secret_locks_seeding(self, client, monkeypatch):
        monkeypatch.setattr(config, "SEED_SECRET", None)
        assert client.post("/api/demo-polls/seed", headers={"Authorization": "Bearer None"}).status_code == 401

    def test_seed_is_idempotent(self, client, fake_db):
        first = client.post("/api/demo-polls/seed", headers={"Authorization": "Bearer let-me-in"}).json()
        assert first["message"] == f"Seeding completed: {len(SEED_POLLS)} inserted, 0 skipped"

        second = client.post("/api/demo-polls/seed?secret=let-me-in").json()
        assert second["message"] == f"Seeding completed: 0 inserted, {len(SEED_POLLS)} skipped"
        assert len(fake_db.rows("demo_polls")) == len(SEED_POLLS)

        listed = client.get("/api/demo-polls/seed?secret=let-me-in").json()
        assert listed["count"] == len(SEED_POLLS)


class TestDemoPollLookup:

    def _db_raising(self, mocker, code):
        db = mocker.MagicMock()
        query = db.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.side_effect = APIError({"message": "bad input", "code": code})
        return db

    def test_invalid_uuid_from_postgres_is_missing(self, mocker):
        assert get_demo_poll(self._db_raising(mocker, "22P02"), "not-a-uuid") is None

    def test_other_storage_errors_propagate(self, mocker):
        with pytest.raises(APIError):
            get_demo_poll(self._db_raising(mocker, "XX000"), str(uuid.uuid4()))
