"""Shared fixtures: an in-memory Redis double and an API test client."""
import fnmatch
import json
from typing import Dict, List

import bcrypt
import pytest
from fastapi.testclient import TestClient

from chore_cycle.main import app
from chore_cycle.services.redis_service import redis_service


class FakeRedis:
    """The subset of redis.Redis the server uses, kept in a dict."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.published: List[tuple] = []

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    def keys(self, pattern="*"):
        return [key for key in self.data if fnmatch.fnmatchcase(key, pattern)]

    def publish(self, channel, message):
        self.published.append((channel, message))
        return 0

    def events(self) -> List[dict]:
        return [json.loads(message) for _, message in self.published]

    def last_event(self) -> dict:
        return self.events()[-1]


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    gensalt = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, "gensalt", lambda: gensalt(rounds=4))


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(redis_service, "redis_client", fake)
    return fake


@pytest.fixture
def api(fake_redis):
    # No context manager: the Redis pub/sub subscriber in the lifespan stays off.
    return TestClient(app)


@pytest.fixture
def register(api):
    def _register(email: str, full_name: str = None, password: str = "correct-horse"):
        response = api.post("/api/auth/register", json={
            "email": email,
            "full_name": full_name or email.split("@")[0].title(),
            "password": password,
        })
        assert response.status_code == 200, response.text
        body = response.json()
        return {
            "token": body["access_token"],
            "user": body["user"],
            "id": body["user"]["id"],
            "headers": {"Authorization": f"Bearer {body['access_token']}"},
        }

    return _register
