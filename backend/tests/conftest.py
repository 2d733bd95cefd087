"""
Pytest configuration and fixtures for the fan-activation backend.

Environment is set before ``app`` is imported: settings are cached and the
engine is built at import time.
"""
import asyncio
import os
import tempfile

import httpx
import pytest

_DB_DIR = tempfile.mkdtemp(prefix="fan-activation-tests-")
_DB_PATH = os.path.join(_DB_DIR, "test.db")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["APP_URL"] = "https://fans.example.com"
os.environ["SIGNUP_INVITE_CODE"] = "test-invite"
os.environ["BRIGHT_DATA_API_KEY"] = "bd-test-key"
os.environ["BRIGHT_DATA_TIKTOK_PROFILE_SCRAPER_ID"] = "gd_tiktok_profile"
os.environ["BRIGHT_DATA_INSTAGRAM_PROFILE_SCRAPER_ID"] = "gd_instagram_profile"
os.environ["BRIGHT_DATA_YOUTUBE_PROFILE_SCRAPER_ID"] = "gd_youtube_profile"
os.environ["BRIGHT_DATA_TIKTOK_POST_SCRAPER_ID"] = "gd_tiktok_post"
os.environ["BRIGHT_DATA_INSTAGRAM_POST_SCRAPER_ID"] = "gd_instagram_post"
os.environ["BRIGHT_DATA_YOUTUBE_SHORTS_SCRAPER_ID"] = "gd_youtube_shorts"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["CELERY_ENABLED"] = "false"
os.environ["LLM_PROVIDER"] = "stub"
os.environ["VERIFICATION_POLL_INTERVAL_SEC"] = "0.01"
os.environ["VERIFICATION_TIMEOUT_SEC"] = "0.2"
os.environ.pop("BRIGHT_DATA_WEBHOOK_SECRET", None)
os.environ.pop("CRON_SECRET", None)

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app import db as app_db  # noqa: E402
from app.integrations import brightdata_client  # noqa: E402
from app.main import app  # noqa: E402
from app.models import User  # noqa: E402
from app.routes_auth import _tokens, hash_password, issue_token  # noqa: E402
from app.services.llm_provider import StubLLMProvider, set_llm_provider  # noqa: E402
from app.settings import get_settings  # noqa: E402

# NullPool: every asyncio.run() and the TestClient portal get their own connection
test_engine = create_async_engine(os.environ["DATABASE_URL"], poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, expire_on_commit=False)


async def _override_session():
    async with TestSessionLocal() as session:
        yield session


app.dependency_overrides[app_db.get_session] = _override_session


async def _reset_schema():
    async with test_engine.begin() as conn:
        await conn.run_sync(app_db.Base.metadata.drop_all)
        await conn.run_sync(app_db.Base.metadata.create_all)


@pytest.fixture(autouse=True)
def fresh_db():
    asyncio.run(_reset_schema())
    _tokens.clear()
    set_llm_provider(StubLLMProvider())
    yield
    set_llm_provider(None)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def run():
    """Run a coroutine factory ``fn(session)`` inside a fresh session."""

    def _run(fn):
        async def _inner():
            async with TestSessionLocal() as session:
                return await fn(session)

        return asyncio.run(_inner())

    return _run


@pytest.fixture
def make_user(run):
    def _make(email="fan@example.com"):
        async def _create(session):
            user = User(email=email, password_hash=hash_password("password123"), role="user")
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

        return run(_create)

    return _make


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def login_as(make_user):
    """Create a user and return bearer headers for it."""

    def _login(email="fan@example.com"):
        user = make_user(email)
        return {"Authorization": f"Bearer {issue_token(user.id).token}"}

    return _login


@pytest.fixture
def auth_headers(login_as):
    return login_as()


class BrightDataStub:
    """Records requests and answers them from a per-path table."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, object] = {}

    def on(self, path: str, response):
        """``response`` is an httpx.Response or a callable(request) -> httpx.Response."""
        self.routes[path] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get(request.url.path)
        if response is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(response):
            return response(request)
        return response


@pytest.fixture
def brightdata(monkeypatch):
    stub = BrightDataStub()

    def _client():
        return httpx.AsyncClient(
            base_url="https://api.brightdata.com",
            transport=httpx.MockTransport(stub.handler),
        )

    monkeypatch.setattr(brightdata_client, "_make_client", _client)
    return stub
