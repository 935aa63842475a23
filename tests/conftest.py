"""
Shared fixtures: a throwaway SQLite database and simulated upstream APIs.
"""

import os
import tempfile
from pathlib import Path

import httpx
import pytest

# Set environment BEFORE importing app modules; the engine is built at import time
_DB_PATH = Path(tempfile.mkdtemp(prefix="dashboard-tests-")) / "test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["JWT_SECRET"] = "test-secret"  # pragma: allowlist secret
os.environ["JWT_ALGORITHM"] = "HS256"
# empty values keep a developer .env from switching on live upstream calls
os.environ["CRYPTOPANIC_TOKEN"] = ""
os.environ["HF_API_TOKEN"] = ""

from sqlalchemy import text  # noqa: E402

from config import Settings  # noqa: E402
from db import engine, init_db  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    init_db()
    yield
    with engine.begin() as conn:
        conn.execute(text("DELETE FROM user_votes"))
        conn.execute(text("DELETE FROM user_preferences"))


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=os.environ["DATABASE_URL"], jwt_secret="test-secret")


class FakeUpstream:
    """
    Routes requests by host to canned responses and records every call.

    A route value may be an httpx.Response, a callable(request) -> Response,
    or an exception instance to raise.
    """

    def __init__(self, routes: dict | None = None):
        self.routes = routes or {}
        self.calls: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get(request.url.host)
        if route is None:
            raise httpx.ConnectError("no route to host", request=request)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        # fresh response per request
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def hosts(self) -> list[str]:
        return [r.url.host for r in self.calls]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


HEALTHY_ROUTES = {
    "cryptopanic.com": httpx.Response(200, json={"results": [
        {"id": 101, "title": "BTC breaks resistance", "url": "https://news.example/btc"},
        {"id": 102, "title": "ETH gas fees fall", "url": "https://news.example/eth"},
        {"id": 103, "title": "Regulators meet exchanges", "url": "https://news.example/reg"},
    ]}),
    "api.coingecko.com": httpx.Response(200, json={
        "bitcoin": {"usd": 65000},
        "ethereum": {"usd": 3200.5},
    }),
    "api-inference.huggingface.co": httpx.Response(200, json=[
        {"generated_text": "Watch BTC funding rates this week."},
    ]),
    "meme-api.com": httpx.Response(200, json={
        "postLink": "https://redd.it/abc",
        "title": "Number go up",
        "url": "https://i.redd.it/abc.jpg",
    }),
}


@pytest.fixture
def healthy_upstream() -> FakeUpstream:
    return FakeUpstream(dict(HEALTHY_ROUTES))


@pytest.fixture
def dead_upstream() -> FakeUpstream:
    return FakeUpstream({})
