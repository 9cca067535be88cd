"""Fixtures shared by the Archiflow API tests."""

import json
from typing import Any, Dict

import httpx
import pytest
from fastapi.testclient import TestClient

from archiflow import create_app
from archiflow.auth import IdentityVerifier, Principal
from archiflow.config import Settings
from archiflow.errors import InvalidCredential
from archiflow.services.database import InMemoryDatabase
from archiflow.services.openrouter import OpenRouterClient
from archiflow.services.ratelimit import FixedWindowRateLimiter

TOKENS = {
    "alice-token": "alice",
    "bob-token": "bob",
    "carol-token": "carol",  # verified, but has no user record
}


class FakeVerifier(IdentityVerifier):
    """Maps known tokens to uids and records every verification attempt."""

    def __init__(self, tokens: Dict[str, str]):
        self.tokens = tokens
        self.calls: list[str] = []

    def verify(self, token: str) -> Principal:
        self.calls.append(token)
        uid = self.tokens.get(token)
        if uid is None:
            raise InvalidCredential()
        return Principal(uid=uid, claims={"uid": uid, "email": f"{uid}@example.com"})


class SpyDatabase(InMemoryDatabase):
    """In-memory database that counts calls per operation."""

    def __init__(self, data=None):
        super().__init__(data)
        self.calls: Dict[str, int] = {}

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    def get(self, path):
        self._count("get")
        return super().get(path)

    def update(self, path, values):
        self._count("update")
        return super().update(path, values)

    def transaction(self, path, update_fn):
        self._count("transaction")
        return super().transaction(path, update_fn)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


class FakeCompletions:
    """httpx transport handler standing in for OpenRouter."""

    def __init__(self):
        self.content = "<!DOCTYPE html><html></html>"
        self.status_code = 200
        self.requests: list[Dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.status_code >= 400:
            return httpx.Response(self.status_code, text="upstream exploded")
        return httpx.Response(200, json={"choices": [{"message": {"content": self.content}}]})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openrouter_api_key="test-key",
        log_json=False,
        log_level="WARNING",
    )


@pytest.fixture
def seed() -> Dict[str, Any]:
    return {
        "users": {
            "alice": {"id": "alice", "creditsTotal": 10, "creditsUsed": 0, "plan": "Pro"},
            "bob": {"id": "bob", "creditsTotal": 10, "creditsUsed": 9},
        }
    }


@pytest.fixture
def database(seed) -> SpyDatabase:
    return SpyDatabase(seed)


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier(TOKENS)


@pytest.fixture
def limiter(settings) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_ms=settings.rate_limit_window_ms,
    )


@pytest.fixture
def completions() -> FakeCompletions:
    return FakeCompletions()


@pytest.fixture
def ai_client(completions) -> OpenRouterClient:
    return OpenRouterClient(api_key="test-key", transport=httpx.MockTransport(completions))


@pytest.fixture
def app(settings, database, verifier, limiter, ai_client):
    return create_app(settings, database=database, verifier=verifier, limiter=limiter, ai_client=ai_client)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
