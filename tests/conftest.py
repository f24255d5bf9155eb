from __future__ import annotations

import os
import tempfile
from pathlib import Path
from uuid import uuid4

import pytest


_TEST_ROOT = Path(tempfile.mkdtemp(prefix="questforge_test_"))
_DB_PATH = _TEST_ROOT / "questforge_test.db"

os.environ["QUESTFORGE_DB_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["QUESTFORGE_AUTH_JWT_SECRET"] = "test-secret"

BASE_DAY = 20_000


@pytest.fixture(scope="session")
def db_schema() -> None:
    from questforge_api import models  # noqa: F401
    from questforge_api.db import Base, engine

    Base.metadata.create_all(engine)


@pytest.fixture()
def session(db_schema):
    from questforge_api.db import SessionLocal

    with SessionLocal() as s:
        yield s


@pytest.fixture()
def clock():
    from questforge_api.clock import FixedClock

    return FixedClock.at_day(BASE_DAY)


@pytest.fixture()
def new_user():
    def _make(prefix: str = "u") -> str:
        return f"{prefix}_{uuid4().hex[:12]}"

    return _make


@pytest.fixture()
def api_client(db_schema, clock):
    from fastapi.testclient import TestClient

    from questforge_api.deps import get_clock
    from questforge_api.main import app

    app.dependency_overrides[get_clock] = lambda: clock
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_clock, None)


@pytest.fixture()
def login(api_client):
    def _login(username: str) -> dict[str, str]:
        r = api_client.post("/api/auth/login", json={"username": username})
        assert r.status_code == 200
        token = r.json()["access_token"]
        assert token
        return {"Authorization": f"Bearer {token}"}

    return _login
