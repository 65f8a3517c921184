"""
Shared fixtures.

``FakeSupabase`` is an in-memory stand-in for the supabase-py client that
supports the subset of the PostgREST query builder the service uses. It is
injected into routes through FastAPI dependency overrides.
"""

import copy
import time
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import jwt as pyjwt
import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from jury import config
from jury.db.client import get_db, get_read_db
from jury.utils.rate_limiter import reset_rate_limits

JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"

# table -> column groups that must be unique (NULLs never conflict)
UNIQUE_CONSTRAINTS = {
    "polls": [("code",)],
    "profiles": [("username",)],
    "votes": [("poll_id", "user_id"), ("poll_id", "voter_fingerprint")],
    "demo_votes": [("demo_poll_id", "voter_fingerprint")],
    "custom_domains": [("domain",)],
    "ai_poll_usage": [("user_id", "month_year")],
}


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.action = "select"
        self.columns = "*"
        self.count_mode = None
        self.payload: Any = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.orders: List[tuple] = []
        self.row_limit: Optional[int] = None

    # -- actions --------------------------------------------------------

    def select(self, columns: str = "*", count: Optional[str] = None):
        self.action = "select"
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    # -- filters --------------------------------------------------------

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def limit(self, size: int):
        self.row_limit = size
        return self

    # -- execution ------------------------------------------------------

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def _project(self, row):
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        names = [c.strip() for c in self.columns.split(",") if c.strip()]
        return {name: copy.deepcopy(row.get(name)) for name in names}

    def execute(self):
        self.db.calls.append((self.table_name, self.action))
        if self.db.fail_tables.get(self.table_name):
            raise APIError({"message": "simulated failure", "code": "XX000"})

        handler = getattr(self, f"_execute_{self.action}")
        return handler()

    def _execute_select(self):
        rows = [r for r in self.db.rows(self.table_name) if self._matches(r)]
        for column, desc in reversed(self.orders):
            rows.sort(key=lambda r: (r.get(column) is not None, r.get(column)), reverse=desc)
        count = len(rows) if self.count_mode else None
        if self.row_limit is not None:
            rows = rows[: self.row_limit]
        return SimpleNamespace(data=[self._project(r) for r in rows], count=count)

    def _execute_insert(self):
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = []
        for values in payload:
            row = copy.deepcopy(values)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", self.db.next_timestamp())
            self.db.check_unique(self.table_name, row)
            self.db.rows(self.table_name).append(row)
            inserted.append(copy.deepcopy(row))
        return SimpleNamespace(data=inserted, count=None)

    def _execute_update(self):
        updated = []
        for row in self.db.rows(self.table_name):
            if self._matches(row):
                row.update(copy.deepcopy(self.payload))
                updated.append(copy.deepcopy(row))
        return SimpleNamespace(data=updated, count=None)

    def _execute_delete(self):
        rows = self.db.rows(self.table_name)
        deleted = [r for r in rows if self._matches(r)]
        self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
        return SimpleNamespace(data=deleted, count=None)


class FakeRpc:
    def __init__(self, result):
        self.result = result

    def execute(self):
        return SimpleNamespace(data=self.result, count=None)


class FakeSupabase:
    """In-memory tables plus an RPC registry."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.rpcs: Dict[str, Callable[[Dict[str, Any]], Any]] = {"assign_variant": self._assign_variant}
        self.fail_tables: Dict[str, bool] = {}
        self.calls: List[tuple] = []
        self.auth = SimpleNamespace(get_user=self._get_user)
        self._clock = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self.rpcs[name](params))

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def next_timestamp(self) -> str:
        # Strictly increasing so "newest first" ordering is deterministic
        self._clock += 1
        return datetime.fromtimestamp(1_767_225_600 + self._clock, tz=timezone.utc).isoformat()

    def check_unique(self, table: str, row: Dict[str, Any]):
        for columns in UNIQUE_CONSTRAINTS.get(table, []):
            values = tuple(row.get(c) for c in columns)
            if any(v is None for v in values):
                continue
            for existing in self.rows(table):
                if tuple(existing.get(c) for c in columns) == values:
                    raise APIError({
                        "message": f'duplicate key value violates unique constraint on {table}{columns}',
                        "code": "23505",
                        "hint": None,
                        "details": None,
                    })

    def seed(self, table: str, **values) -> Dict[str, Any]:
        return self.table(table).insert(values).execute().data[0]

    def _get_user(self, token: str):
        raise RuntimeError("auth.get_user is not available in tests")

    def _assign_variant(self, params: Dict[str, Any]) -> Optional[str]:
        """Sticky round-robin stand-in for the bucketing RPC."""
        experiment_id = params["experiment_uuid"]
        user_id = params.get("user_uuid")
        fingerprint = params.get("fingerprint")
        assignments = [a for a in self.rows("user_variant_assignments") if a["experiment_id"] == experiment_id]
        for a in assignments:
            if (user_id and a.get("user_id") == user_id) or (not user_id and fingerprint and a.get("voter_fingerprint") == fingerprint):
                return a["variant_id"]

        variants = [v for v in self.rows("poll_variants") if v["experiment_id"] == experiment_id]
        if not variants:
            return None
        variant = variants[len(assignments) % len(variants)]
        self.seed(
            "user_variant_assignments",
            experiment_id=experiment_id,
            variant_id=variant["id"],
            user_id=user_id,
            voter_fingerprint=None if user_id else fingerprint,
            voted=False,
        )
        return variant["id"]


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setattr(config, "SUPABASE_JWT_SECRET", JWT_SECRET)
    return JWT_SECRET


def make_token(user_id: str, email: Optional[str] = None, secret: str = JWT_SECRET, expires_in: int = 3600) -> str:
    claims = {
        "sub": user_id,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
        "email": email,
        "user_metadata": {},
    }
    return pyjwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def token_factory(jwt_secret):
    """``make_token`` with the test secret already installed in config."""
    return make_token


@pytest.fixture
def auth_headers(jwt_secret):
    """Build ``Authorization`` headers for a user id."""

    def _headers(user_id: str, email: Optional[str] = None) -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, email)}"}

    return _headers


@pytest.fixture
def make_user(fake_db, auth_headers):
    """Create a profile on ``tier`` and return (user_id, headers)."""

    def _make(tier: str = "free", email: Optional[str] = None):
        user_id = str(uuid.uuid4())
        fake_db.seed(
            "profiles",
            id=user_id,
            username=f"user_{user_id[:8]}",
            subscription_tier=tier,
            subscription_status="active" if tier != "free" else None,
        )
        return user_id, auth_headers(user_id, email)

    return _make


@pytest.fixture
def app(fake_db, jwt_secret):
    from jury.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_db] = lambda: fake_db
    fastapi_app.dependency_overrides[get_read_db] = lambda: fake_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # No context manager: the lifespan (cleanup task, banner) is not needed here
    return TestClient(app)


@pytest.fixture
def create_poll(client):
    """POST a poll as ``headers`` and return the response JSON."""

    def _create(headers, **overrides):
        body = {"question": "Best pizza topping?", "options": [{"text": "Cheese"}, {"text": "Pepperoni"}]}
        body.update(overrides)
        response = client.post("/api/polls", json=body, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
