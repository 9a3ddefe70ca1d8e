"""
Outbound LLM provider client.

All AI traffic leaves the backend through ``AIClient``: Perplexity for chat,
streaming chat and evaluations, OpenAI for JSON-mode evaluations, and a
fallback chain (Groq → Gemini → DeepSeek → OpenRouter → Hugging Face) for
short auxiliary generations such as chat titles.

Public API
----------
AIClient.complete(messages, ...)                  -> str
AIClient.open_chat_stream(messages, ...)          -> UpstreamStream
AIClient.complete_with_fallback(messages, ...)    -> ProviderResult
AIClient.complete_openai(messages, ...)           -> str
available_providers()                             -> List[str]
get_ai_client()                                   -> AIClient  (FastAPI dependency)
"""
from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

Message = Dict[str, str]

PROVIDER_ORDER = ("groq", "gemini", "deepseek", "openrouter", "huggingface")

_STATUS_MESSAGES = {
    401: "Invalid API key. Please check your API key configuration.",
    402: "Insufficient credits. Please add credits to your AI provider account.",
    403: "Access denied. Please verify your API key permissions.",
    429: "Rate limit exceeded. Please wait a moment and try again.",
}


def friendly_status_message(status_code: int, default: str) -> str:
    """User-facing message for an upstream HTTP status."""
    return _STATUS_MESSAGES.get(status_code, default)


class AIProviderError(Exception):
    """An AI provider call failed; carries the HTTP status to surface."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        provider: Optional[str] = None,
        code: str = "API_ERROR",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.provider = provider
        self.code = code

    @property
    def is_upstream_http_error(self) -> bool:
        """True when the provider answered with a non-success HTTP status."""
        return self.code in ("API_ERROR", "API_CREDITS_EXHAUSTED")


def _http_error(provider: str, status_code: int, default: str) -> AIProviderError:
    code = "API_CREDITS_EXHAUSTED" if status_code in (401, 402) else "API_ERROR"
    return AIProviderError(
        friendly_status_message(status_code, default),
        status_code=status_code,
        provider=provider,
        code=code,
    )


@dataclasses.dataclass
class ProviderResult:
    """Returned by AIClient.complete_with_fallback."""

    content: str
    provider: str


def available_providers() -> List[str]:
    """Names of providers that have an API key configured."""
    keys = {
        "groq": settings.GROQ_API_KEY,
        "gemini": settings.GEMINI_API_KEY,
        "deepseek": settings.DEEPSEEK_API_KEY,
        "openrouter": settings.OPENROUTER_API_KEY,
        "huggingface": settings.HUGGINGFACE_API_KEY,
        "perplexity": settings.PERPLEXITY_API_KEY,
    }
    return [name for name, key in keys.items() if key]


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class UpstreamStream:
    """An open server-sent-event response from a chat completions endpoint."""

    client: httpx.AsyncClient
    response: httpx.Response
    done: bool = False

    async def deltas(self) -> AsyncIterator[str]:
        """
        Yield ``choices[0].delta.content`` for every ``data:`` line until
        ``data: [DONE]`` or the end of the body.  Lines that are not valid
        JSON (keep-alives, partial frames) are skipped.
        ``done`` is set once the terminator arrives.
        """
        async for line in self.response.aiter_lines():
            if not line.startswith("data: "):
                continue
            data = line[len("data: "):].strip()
            if data == "[DONE]":
                self.done = True
                return
            try:
                parsed = json.loads(data)
            except (json.JSONDecodeError, ValueError):
                continue
            content = _delta_content(parsed)
            if content:
                yield content

    async def aclose(self) -> None:
        await self.response.aclose()
        await self.client.aclose()


def _delta_content(payload: Any) -> Optional[str]:
    try:
        return payload["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None


# ---------------------------------------------------------------------------
# AIClient
# ---------------------------------------------------------------------------

class AIClient:
    """HTTP client for every AI provider the backend talks to."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(float(timeout), connect=10.0),
            transport=self._transport,
        )

    # ------------------------------------------------------------------
    # Perplexity
    # ------------------------------------------------------------------

    def _perplexity_headers(self, accept: str = "application/json") -> Dict[str, str]:
        if not settings.PERPLEXITY_API_KEY:
            raise AIProviderError(
                "PERPLEXITY_API_KEY not configured",
                status_code=503,
                provider="perplexity",
                code="NOT_CONFIGURED",
            )
        return {
            "Authorization": f"Bearer {settings.PERPLEXITY_API_KEY}",
            "Content-Type": "application/json",
            "Accept": accept,
        }

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        model: Optional[str] = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        top_p: float = 0.9,
        frequency_penalty: Optional[float] = 1,
    ) -> str:
        """POST a non-streaming Perplexity chat completion and return the text."""
        headers = self._perplexity_headers()
        payload: Dict[str, Any] = {
            "model": model or settings.PERPLEXITY_MODEL,
            "messages": list(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": top_p,
            "stream": False,
        }
        if frequency_penalty is not None:
            payload["presence_penalty"] = 0
            payload["frequency_penalty"] = frequency_penalty

        try:
            async with self._client(settings.AI_TIMEOUT) as client:
                resp = await client.post(
                    f"{settings.PERPLEXITY_BASE_URL}/chat/completions",
                    headers=headers,
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.error("perplexity request failed: %s", exc)
            raise AIProviderError("Internal server error", provider="perplexity", code="TRANSPORT_ERROR") from exc

        if resp.status_code != 200:
            logger.error("perplexity returned %d: %s", resp.status_code, resp.text[:200])
            raise _http_error(
                "perplexity",
                resp.status_code,
                "An error occurred while processing your request.",
            )

        content = _message_content(resp)
        if content is None:
            raise AIProviderError(
                "Invalid response format from Perplexity API",
                provider="perplexity",
                code="INVALID_RESPONSE",
            )
        return content

    async def open_chat_stream(
        self,
        messages: Sequence[Message],
        *,
        model: Optional[str] = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        top_p: float = 0.9,
    ) -> UpstreamStream:
        """
        Open a streaming Perplexity completion.

        The upstream status is checked before returning so that errors can be
        reported with a proper HTTP status instead of inside the relayed body.
        """
        headers = self._perplexity_headers(accept="text/event-stream")
        payload = {
            "model": model or settings.PERPLEXITY_MODEL,
            "messages": list(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": top_p,
            "stream": True,
        }
        client = self._client(settings.AI_STREAM_TIMEOUT)
        try:
            request = client.build_request(
                "POST",
                f"{settings.PERPLEXITY_BASE_URL}/chat/completions",
                headers=headers,
                json=payload,
            )
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            logger.error("perplexity stream request failed: %s", exc)
            raise AIProviderError("Internal server error", provider="perplexity", code="TRANSPORT_ERROR") from exc

        if response.status_code != 200:
            body = await response.aread()
            await response.aclose()
            await client.aclose()
            logger.error(
                "perplexity stream returned %d: %s",
                response.status_code,
                body[:200].decode("utf-8", "replace"),
            )
            raise _http_error(
                "perplexity",
                response.status_code,
                "An error occurred while processing your request.",
            )

        return UpstreamStream(client=client, response=response)

    # ------------------------------------------------------------------
    # OpenAI
    # ------------------------------------------------------------------

    async def complete_openai(
        self,
        messages: Sequence[Message],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
        json_mode: bool = False,
    ) -> str:
        """POST to OpenAI chat completions, optionally in JSON-object mode."""
        if not settings.OPENAI_API_KEY:
            raise AIProviderError(
                "OpenAI API key not configured",
                status_code=500,
                provider="openai",
                code="NOT_CONFIGURED",
            )
        payload: Dict[str, Any] = {
            "model": model or settings.OPENAI_MODEL,
            "messages": list(messages),
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        try:
            async with self._client(settings.AI_TIMEOUT) as client:
                resp = await client.post(
                    "https://api.openai.com/v1/chat/completions",
                    headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}"},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.error("openai request failed: %s", exc)
            raise AIProviderError(str(exc) or "OpenAI request failed", provider="openai", code="TRANSPORT_ERROR") from exc

        if resp.status_code != 200:
            logger.error("openai returned %d: %s", resp.status_code, resp.text[:200])
            raise _http_error("openai", resp.status_code, "OpenAI request failed.")

        content = _message_content(resp)
        if content is None:
            raise AIProviderError("Invalid response format from OpenAI", provider="openai", code="INVALID_RESPONSE")
        return content

    # ------------------------------------------------------------------
    # Fallback chain
    # ------------------------------------------------------------------

    async def complete_with_fallback(
        self,
        messages: Sequence[Message],
        system_prompt: Optional[str] = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        *,
        preferred_provider: Optional[str] = None,
        exclude_providers: Sequence[str] = (),
    ) -> ProviderResult:
        """
        Try each configured provider in turn and return the first answer.

        Raises:
            AIProviderError: when no provider is configured or all of them fail
        """
        message_array: List[Message] = (
            [{"role": "system", "content": system_prompt}] if system_prompt else []
        ) + list(messages)
        last_user = _last_user_content(messages)

        calls: Dict[str, Callable[[], Awaitable[str]]] = {
            "groq": lambda: self._call_openai_compatible(
                "groq",
                "https://api.groq.com/openai/v1/chat/completions",
                settings.GROQ_API_KEY,
                settings.GROQ_MODEL,
                message_array,
                max_tokens,
                temperature,
            ),
            "gemini": lambda: self._call_gemini(last_user, system_prompt, max_tokens, temperature),
            "deepseek": lambda: self._call_openai_compatible(
                "deepseek",
                "https://api.deepseek.com/v1/chat/completions",
                settings.DEEPSEEK_API_KEY,
                settings.DEEPSEEK_MODEL,
                message_array,
                max_tokens,
                temperature,
            ),
            "openrouter": lambda: self._call_openai_compatible(
                "openrouter",
                "https://openrouter.ai/api/v1/chat/completions",
                settings.OPENROUTER_API_KEY,
                settings.OPENROUTER_MODEL,
                message_array,
                max_tokens,
                temperature,
                extra_headers={"HTTP-Referer": settings.APP_URL, "X-Title": "Indicore"},
            ),
            "huggingface": lambda: self._call_huggingface(
                f"{system_prompt}\n\nUser: {last_user}" if system_prompt else last_user,
                max_tokens,
                temperature,
            ),
        }

        enabled = [
            name for name in PROVIDER_ORDER
            if name in available_providers() and name not in exclude_providers
        ]
        if preferred_provider in enabled:
            enabled.remove(preferred_provider)
            enabled.insert(0, preferred_provider)

        if not enabled:
            raise AIProviderError(
                "No AI providers configured. Please set at least one API key.",
                status_code=503,
                code="NOT_CONFIGURED",
            )

        errors: List[str] = []
        for name in enabled:
            try:
                logger.info("[AI Provider] Trying %s...", name)
                content = await calls[name]()
                logger.info("[AI Provider] Success with %s", name)
                return ProviderResult(content=content, provider=name)
            except (AIProviderError, httpx.HTTPError) as exc:
                logger.warning("[AI Provider] %s failed: %s", name, exc)
                errors.append(f"{name}: {exc}")

        raise AIProviderError(
            f"All AI providers failed. Errors: {'; '.join(errors)}",
            status_code=502,
            code="ALL_PROVIDERS_FAILED",
        )

    async def _call_openai_compatible(
        self,
        provider: str,
        url: str,
        api_key: str,
        model: str,
        messages: List[Message],
        max_tokens: int,
        temperature: float,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """POST to an OpenAI-compatible chat completions endpoint."""
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        headers.update(extra_headers or {})
        async with self._client(settings.AI_TIMEOUT) as client:
            resp = await client.post(
                url,
                headers=headers,
                json={
                    "model": model,
                    "messages": messages,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                    "top_p": 0.9,
                },
            )
        if resp.status_code == 429:
            raise AIProviderError(f"{provider} rate limit exceeded. Please try again later.", 429, provider)
        if resp.status_code != 200:
            raise AIProviderError(f"HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code, provider)
        content = _message_content(resp)
        if content is None:
            raise AIProviderError(f"Invalid response format from {provider}", provider=provider, code="INVALID_RESPONSE")
        return content

    async def _call_gemini(
        self,
        prompt: str,
        system_prompt: Optional[str],
        max_tokens: int,
        temperature: float,
    ) -> str:
        full_prompt = f"{system_prompt}\n\nUser: {prompt}\nAssistant:" if system_prompt else prompt
        async with self._client(settings.AI_TIMEOUT) as client:
            resp = await client.post(
                "https://generativelanguage.googleapis.com/v1beta/models/"
                f"{settings.GEMINI_MODEL}:generateContent",
                params={"key": settings.GEMINI_API_KEY},
                json={
                    "contents": [{"parts": [{"text": full_prompt}]}],
                    "generationConfig": {
                        "maxOutputTokens": max_tokens,
                        "temperature": temperature,
                        "topP": 0.9,
                        "topK": 40,
                    },
                },
            )
        if resp.status_code == 429:
            raise AIProviderError("gemini rate limit exceeded. Please try again later.", 429, "gemini")
        if resp.status_code != 200:
            raise AIProviderError(f"HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code, "gemini")
        try:
            return resp.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise AIProviderError("Invalid response format from Gemini", provider="gemini", code="INVALID_RESPONSE") from exc

    async def _call_huggingface(self, prompt: str, max_tokens: int, temperature: float) -> str:
        async with self._client(settings.AI_TIMEOUT) as client:
            resp = await client.post(
                f"https://api-inference.huggingface.co/models/{settings.HUGGINGFACE_MODEL}",
                headers={"Authorization": f"Bearer {settings.HUGGINGFACE_API_KEY}"},
                json={
                    "inputs": prompt,
                    "parameters": {
                        "max_new_tokens": max_tokens,
                        "temperature": temperature,
                        "return_full_text": False,
                    },
                },
            )
        if resp.status_code == 503:
            raise AIProviderError(
                "Hugging Face model is loading. Please wait a moment and try again.", 503, "huggingface"
            )
        if resp.status_code != 200:
            raise AIProviderError(f"HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code, "huggingface")
        try:
            return resp.json()[0]["generated_text"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise AIProviderError(
                "Invalid response format from Hugging Face", provider="huggingface", code="INVALID_RESPONSE"
            ) from exc


def _message_content(resp: httpx.Response) -> Optional[str]:
    try:
        return resp.json()["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError, ValueError):
        return None


def _last_user_content(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if message.get("role") == "user" and message.get("content"):
            return message["content"]
    return ""


def get_ai_client() -> AIClient:
    """FastAPI dependency returning the shared provider client."""
    return AIClient()
