"""
Short chat titles generated from the first message of a conversation.
"""
import logging
import re

import httpx

from app.services.ai_providers import AIClient, AIProviderError

logger = logging.getLogger(__name__)

DEFAULT_CHAT_NAME = "New Chat"
MAX_TITLE_LENGTH = 30

_GENERIC_NAME_RE = re.compile(r"^Chat \d+$")


def is_generic_chat_name(name: str) -> bool:
    """True for placeholder names such as ``Chat 3``."""
    return bool(_GENERIC_NAME_RE.match(name or ""))


def clean_title(raw: str) -> str:
    """Strip whitespace and surrounding quotes, truncating long titles."""
    title = (raw or "").strip().strip("\"'").strip()
    if len(title) > MAX_TITLE_LENGTH:
        return f"{title[:MAX_TITLE_LENGTH]}..."
    return title


async def generate_chat_name(client: AIClient, first_message: str, language: str = "en") -> str:
    """
    Ask the fallback provider chain for a 1-3 word title.

    Returns ``New Chat`` when the message is empty, no provider is configured
    or every provider fails.
    """
    if not first_message or not first_message.strip():
        return DEFAULT_CHAT_NAME

    prompt = f'Generate a short, catchy 1-3 word title for this conversation: "{first_message}"'
    if language and language != "en":
        prompt += f" (language: {language})"

    try:
        result = await client.complete_with_fallback(
            [{"role": "user", "content": prompt}],
            system_prompt="Reply with the title only, without quotes or punctuation.",
            max_tokens=10,
            temperature=0.7,
        )
    except (AIProviderError, httpx.HTTPError) as exc:
        logger.warning("Chat name generation failed: %s", exc)
        return DEFAULT_CHAT_NAME

    title = clean_title(result.content)
    return title or DEFAULT_CHAT_NAME
