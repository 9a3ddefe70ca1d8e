"""
Shared fixtures for Indicore backend integration tests.

Runs against a throwaway SQLite file through aiosqlite. Each test function
gets its own session; tables are created before and dropped after every test.
Outbound AI and translation traffic never leaves the process: the ``client``
fixture installs failing httpx transports by default, and tests swap in
their own handlers with ``mock_ai`` / ``mock_translation``.
"""
from __future__ import annotations

import json
import os
from typing import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override settings *before* any app module is imported, so that
# settings and the global engine point at the test configuration.
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///./test_indicore.db",
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["PERPLEXITY_API_KEY"] = "test-perplexity-key"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
for _key in (
    "GROQ_API_KEY",
    "GEMINI_API_KEY",
    "DEEPSEEK_API_KEY",
    "OPENROUTER_API_KEY",
    "HUGGINGFACE_API_KEY",
    "GOOGLE_TRANSLATE_API_KEY",
):
    os.environ[_key] = ""

from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.services.ai_providers import AIClient, get_ai_client  # noqa: E402
from app.services.translation import TranslationService, get_translation_service  # noqa: E402

Handler = Callable[[httpx.Request], httpx.Response]


def _unavailable(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"error": "service unavailable in tests"})


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a DB session for each test. Tables are dropped afterwards
    so each test starts with a clean slate.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB dependency
    overridden to use the per-test session.
    """

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_ai_client] = lambda: AIClient(transport=httpx.MockTransport(_unavailable))
    app.dependency_overrides[get_translation_service] = lambda: TranslationService(
        transport=httpx.MockTransport(_unavailable)
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def mock_ai() -> Callable[[Handler], None]:
    """Route every AIClient request through *handler* for the rest of the test."""

    def _install(handler: Handler) -> None:
        app.dependency_overrides[get_ai_client] = lambda: AIClient(transport=httpx.MockTransport(handler))

    return _install


@pytest.fixture
def mock_translation() -> Callable[[Handler], None]:
    """Route every TranslationService request through *handler*."""

    def _install(handler: Handler) -> None:
        app.dependency_overrides[get_translation_service] = lambda: TranslationService(
            transport=httpx.MockTransport(handler)
        )

    return _install


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

AUTH_HEADERS = {
    "X-User-Id": "test-user-1",
    "X-User-Email": "test1@example.com",
    "X-User-Name": "Test User 1",
}

AUTH_HEADERS_USER2 = {
    "X-User-Id": "test-user-2",
    "X-User-Email": "test2@example.com",
    "X-User-Name": "Test User 2",
}


def completion(content: str, status_code: int = 200) -> httpx.Response:
    """An OpenAI-style chat completion response."""
    return httpx.Response(status_code, json={"choices": [{"message": {"content": content}}]})


def sse_body(*deltas: str, done: bool = True) -> bytes:
    """Server-sent-event body carrying *deltas* as streamed chat chunks."""
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": delta}}]})
        for delta in deltas
    ]
    if done:
        lines.append("data: [DONE]")
    return ("\n\n".join(lines) + "\n\n").encode("utf-8")
