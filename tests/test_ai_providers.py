"""Tests for AIClient: Perplexity calls and the multi-provider fallback chain."""
import json

import httpx
import pytest

from app.config import settings
from app.services.ai_providers import AIClient, AIProviderError, available_providers
from tests.conftest import completion


def _client(handler) -> AIClient:
    return AIClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def fallback_keys(monkeypatch):
    """Configure groq, gemini and deepseek."""
    monkeypatch.setattr(settings, "GROQ_API_KEY", "groq-key")
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "gemini-key")
    monkeypatch.setattr(settings, "DEEPSEEK_API_KEY", "deepseek-key")


def test_available_providers_follows_configured_keys(monkeypatch):
    assert available_providers() == ["perplexity"]
    monkeypatch.setattr(settings, "OPENROUTER_API_KEY", "or-key")
    assert available_providers() == ["openrouter", "perplexity"]


# ---------------------------------------------------------------------------
# Perplexity
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_complete_sends_perplexity_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["payload"] = json.loads(request.content)
        return completion("Answer text")

    answer = await _client(handler).complete([{"role": "user", "content": "Q"}], max_tokens=100)
    assert answer == "Answer text"
    assert seen["auth"] == "Bearer test-perplexity-key"
    assert seen["payload"]["model"] == "sonar-pro"
    assert seen["payload"]["max_tokens"] == 100
    assert seen["payload"]["frequency_penalty"] == 1
    assert seen["payload"]["stream"] is False


@pytest.mark.asyncio
async def test_complete_maps_upstream_status():
    with pytest.raises(AIProviderError) as excinfo:
        await _client(lambda r: httpx.Response(402, json={})).complete([{"role": "user", "content": "Q"}])
    assert excinfo.value.status_code == 402
    assert excinfo.value.code == "API_CREDITS_EXHAUSTED"
    assert excinfo.value.message.startswith("Insufficient credits")
    assert excinfo.value.is_upstream_http_error


@pytest.mark.asyncio
async def test_complete_rejects_malformed_body():
    with pytest.raises(AIProviderError) as excinfo:
        await _client(lambda r: httpx.Response(200, json={"choices": []})).complete(
            [{"role": "user", "content": "Q"}]
        )
    assert excinfo.value.code == "INVALID_RESPONSE"
    assert not excinfo.value.is_upstream_http_error


@pytest.mark.asyncio
async def test_complete_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AIProviderError) as excinfo:
        await _client(handler).complete([{"role": "user", "content": "Q"}])
    assert excinfo.value.code == "TRANSPORT_ERROR"
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_complete_without_key(monkeypatch):
    monkeypatch.setattr(settings, "PERPLEXITY_API_KEY", "")
    with pytest.raises(AIProviderError) as excinfo:
        await _client(lambda r: completion("unused")).complete([{"role": "user", "content": "Q"}])
    assert excinfo.value.status_code == 503
    assert excinfo.value.code == "NOT_CONFIGURED"


# ---------------------------------------------------------------------------
# Fallback chain
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fallback_without_providers():
    with pytest.raises(AIProviderError) as excinfo:
        await _client(lambda r: completion("unused")).complete_with_fallback(
            [{"role": "user", "content": "hi"}]
        )
    assert excinfo.value.status_code == 503
    assert excinfo.value.code == "NOT_CONFIGURED"


@pytest.mark.asyncio
async def test_fallback_moves_to_next_provider(fallback_keys):
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "api.groq.com":
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "From Gemini"}]}}]})

    result = await _client(handler).complete_with_fallback(
        [{"role": "user", "content": "hi"}],
        system_prompt="Be brief.",
    )
    assert result.provider == "gemini"
    assert result.content == "From Gemini"
    assert hosts == ["api.groq.com", "generativelanguage.googleapis.com"]


@pytest.mark.asyncio
async def test_gemini_prompt_uses_last_user_message(fallback_keys):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.groq.com":
            return httpx.Response(500, text="boom")
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})

    await _client(handler).complete_with_fallback(
        [
            {"role": "user", "content": "What is GST?"},
            {"role": "assistant", "content": "A consumption tax."},
        ],
    )
    assert seen["payload"]["contents"][0]["parts"][0]["text"] == "What is GST?"


@pytest.mark.asyncio
async def test_fallback_sends_system_prompt_first(fallback_keys):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.content)
        return completion("ok")

    await _client(handler).complete_with_fallback(
        [{"role": "user", "content": "hi"}],
        system_prompt="Be brief.",
        max_tokens=10,
    )
    assert seen["payload"]["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "hi"},
    ]
    assert seen["payload"]["max_tokens"] == 10


@pytest.mark.asyncio
async def test_fallback_preferred_and_excluded(fallback_keys):
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        return completion("ok")

    result = await _client(handler).complete_with_fallback(
        [{"role": "user", "content": "hi"}],
        preferred_provider="deepseek",
    )
    assert result.provider == "deepseek"
    assert hosts == ["api.deepseek.com"]

    hosts.clear()
    result = await _client(handler).complete_with_fallback(
        [{"role": "user", "content": "hi"}],
        exclude_providers=["groq", "gemini"],
    )
    assert result.provider == "deepseek"


@pytest.mark.asyncio
async def test_fallback_all_providers_fail(fallback_keys):
    with pytest.raises(AIProviderError) as excinfo:
        await _client(lambda r: httpx.Response(429, json={})).complete_with_fallback(
            [{"role": "user", "content": "hi"}]
        )
    assert excinfo.value.status_code == 502
    assert excinfo.value.code == "ALL_PROVIDERS_FAILED"
    assert "groq" in excinfo.value.message
    assert "deepseek" in excinfo.value.message
