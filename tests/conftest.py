import itertools
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from farminvest.db import get_db
from farminvest.exceptions import DuplicateKeyError, PersistenceError
from farminvest.main import app

TEST_SECRET = "test-secret"


def _columns(query: str) -> List[str]:
    selected = query.split("SELECT ", 1)[1].split(" FROM", 1)[0]
    return [c.strip() for c in selected.split(",")]


def _project(row: Dict[str, Any], columns: List[str]) -> Dict[str, Any]:
    return {c: row[c] for c in columns}


class FakeDatabase:
    """In-memory stand-in for farminvest.db.Database covering the app's statements."""

    def __init__(self):
        self.users: List[Dict[str, Any]] = []
        self.investments: List[Dict[str, Any]] = []
        self.statements: List[str] = []
        self.down = False
        self.race_on_user_insert = False
        self._user_ids = itertools.count(1)
        self._investment_ids = itertools.count(1)
        self._clock = datetime(2026, 1, 1, 12, 0, 0)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _record(self, query: str) -> None:
        self.statements.append(query)
        if self.down:
            raise PersistenceError("connection refused", query=query)

    def add_user(self, name: str, email: str, password_hash: str) -> Dict[str, Any]:
        row = {
            "id": next(self._user_ids),
            "name": name,
            "email": email,
            "password": password_hash,
            "created_at": self._tick(),
        }
        self.users.append(row)
        return row

    def add_investment(self, farmer_name: str, amount: Any, crop: str, created_at: Optional[datetime] = None):
        row = {
            "id": next(self._investment_ids),
            "farmer_name": farmer_name,
            "amount": amount,
            "crop": crop,
            "created_at": created_at or self._tick(),
        }
        self.investments.append(row)
        return row

    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        self._record(query)
        params = list(params or [])
        if query == "SELECT 1":
            return {"?column?": 1}
        if "FROM users WHERE email=%s" in query:
            rows = [u for u in self.users if u["email"] == params[0]]
        elif "FROM users WHERE id=%s" in query:
            rows = [u for u in self.users if u["id"] == params[0]]
        elif "FROM investments WHERE id=%s" in query:
            rows = [i for i in self.investments if i["id"] == params[0]]
        else:
            raise AssertionError(f"unexpected query: {query}")
        return _project(rows[0], _columns(query)) if rows else None

    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        self._record(query)
        assert "FROM investments ORDER BY created_at DESC, id DESC" in query
        ordered = sorted(self.investments, key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return [_project(r, _columns(query)) for r in ordered]

    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        self._record(query)
        params = list(params or [])
        if query.startswith("INSERT INTO users"):
            name, email, password_hash = params
            if self.race_on_user_insert or any(u["email"] == email for u in self.users):
                raise DuplicateKeyError("duplicate key value violates unique constraint", query=query)
            row = self.add_user(name, email, password_hash)
            return {"id": row["id"], "name": row["name"], "email": row["email"]}
        if query.startswith("INSERT INTO investments"):
            farmer_name, amount, crop = params
            row = self.add_investment(farmer_name, amount, crop)
            return {"id": row["id"]}
        raise AssertionError(f"unexpected statement: {query}")

    def ping(self) -> None:
        self.fetch_one("SELECT 1")


@pytest.fixture(autouse=True)
def jwt_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("JWT_EXPIRES_MINUTES", raising=False)
    monkeypatch.delenv("JWT_ALGORITHM", raising=False)


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def client(fake_db):
    app.dependency_overrides[get_db] = lambda: fake_db
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
