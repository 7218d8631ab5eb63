from __future__ import annotations

from collections.abc import Generator
from datetime import datetime

import fakeredis
import pytest


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def fixed_clock():
    """A clock that ticks one second per call, starting at 12:00:00."""

    state = {"n": 0}

    def _clock() -> datetime:
        n = state["n"]
        state["n"] += 1
        return datetime(2024, 1, 1, 12, 0, 0).replace(second=n % 60, minute=n // 60)

    return _clock


@pytest.fixture()
def client_and_redis():
    """FastAPI TestClient whose Redis dependency is a shared fakeredis instance."""

    from fastapi.testclient import TestClient

    from lifecounter.api.deps import get_redis
    from lifecounter.main import app

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
