"""Shared test fixtures."""

import os

os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")

import json
import time
import uuid
from unittest.mock import MagicMock

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from startupsareeasy.config.settings import Settings
from startupsareeasy.db.client import get_supabase
from startupsareeasy.main import app
from startupsareeasy.rest.client import RestClient
from startupsareeasy.rest.dedup import RequestDeduplicator

SUPABASE_URL = "https://project.supabase.co"


def make_token(sub: str = "user-1", expires_in: float = 3600, **claims) -> str:
    payload = {"sub": sub, "exp": int(time.time() + expires_in), **claims}
    return jwt.encode(payload, "test-secret", algorithm="HS256")


class Recorder:
    """httpx mock transport handler that records requests and replays queued responses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: list[tuple[str, str, object]] = []

    def add(self, method: str, path_fragment: str, response) -> None:
        """``response`` is an ``httpx.Response`` or a callable taking the request."""
        self.routes.append((method, path_fragment, response))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for index, (method, fragment, response) in enumerate(self.routes):
            if request.method == method and fragment in request.url.path:
                if not callable(response):
                    self.routes.pop(index)
                    return response
                return response(request)
        return httpx.Response(404, json={"message": f"no route for {request.method} {request.url.path}"})

    def sent(self, method: str, fragment: str = "") -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and fragment in r.url.path]


def json_body(request: httpx.Request) -> dict:
    return json.loads(request.content or b"{}")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        SUPABASE_URL=SUPABASE_URL,
        SUPABASE_ANON_KEY="anon-key",
        SUPABASE_SERVICE_ROLE_KEY="service-role-key",
        APP_URL="http://app.test",
        TELEGRAM_FUNCTION_URL="https://functions.test/tg-login",
    )


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def http(recorder):
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


@pytest.fixture
def rest(http):
    return RestClient(f"{SUPABASE_URL}/rest/v1", "anon-key", http, RequestDeduplicator(http))


@pytest.fixture
def db():
    return MagicMock()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_supabase] = lambda: db
    # Each test gets its own client address so the login rate limit never carries over
    with TestClient(app, headers={"X-Forwarded-For": uuid.uuid4().hex}) as test_client:
        yield test_client
    app.dependency_overrides.clear()
