"""
Streaming chat relay.

Relays Perplexity deltas to the browser as plain text, cleaning citation
markers and known garbled phrases on the way.  When the upstream signals
completion, the accumulated answer is checked and, if it looks truncated or
garbled, a regeneration marker is appended so the client can retry.
"""
import logging
import re
from typing import AsyncIterator, Dict, List, Optional

from app.services.ai_providers import UpstreamStream
from app.utils.helpers import clean_citations
from app.utils.languages import response_language_instruction

logger = logging.getLogger(__name__)

REGENERATE_MARKER = "\n\n[REGENERATING_INCOMPLETE_RESPONSE]"
STREAM_ERROR_TEXT = "Streaming error"

DEFAULT_SYSTEM_PROMPT = """You are Indicore, an AI-powered exam preparation assistant specialized in PCS, UPSC, and SSC exams. You help students with multilingual study materials, answer writing practice, document evaluation, and regional language support.

CRITICAL RESPONSE REQUIREMENTS:
- Write complete, well-formed sentences that make grammatical sense
- Provide comprehensive answers that fully address the user's question
- Use proper grammar, punctuation, and sentence structure
- Structure your response logically with clear paragraphs
- NEVER include reference numbers like [1], [2], [3]
- NEVER include citations or source references
- Always complete your thoughts and sentences fully
- Write in a helpful, conversational tone
- Focus on being educational and exam-focused
- Ensure every sentence is grammatically correct and meaningful

RESPONSE FORMAT:
- Start with a clear, complete introduction that directly addresses the user
- Provide detailed explanations with examples
- End with a helpful conclusion or summary
- Ensure every sentence is complete and meaningful
- Make sure your response reads like natural, fluent English"""

_DANGLING_WORDS = (
    "and", "or", "the", "a", "an", "to", "of", "in", "for", "with", "by",
    "from", "about", "through", "during", "while", "because", "although",
    "however", "therefore", "moreover", "furthermore", "additionally",
    "consequently", "meanwhile", "otherwise", "nevertheless", "nonetheless",
)

_INCOMPLETE_PATTERNS = [
    re.compile(r"-\s*$"),
    re.compile(r",\s*$"),
    re.compile(r"\b(?:%s)\s*$" % "|".join(_DANGLING_WORDS), re.IGNORECASE),
]

_GARBLED_RE = re.compile(
    r"(PCSC|PCS|UPSC|SSC)\s+exams?\s+need\s+help"
    r"|I'm\s+to\s+support"
    r"|Let\s+me\s+know\s+I\s+can\s+you",
    re.IGNORECASE,
)

_GARBLED_CHUNK_PATTERNS = [
    re.compile(r"\b(PCSC|PCS|UPSC|SSC)\s+exams?\s+need\s+help\s+[^.]*\.", re.IGNORECASE),
    re.compile(r"\bI'm\s+to\s+support\s+[^.]*\.", re.IGNORECASE),
    re.compile(r"\bLet\s+me\s+know\s+I\s+can\s+you\s+today", re.IGNORECASE),
]


def calculate_max_tokens(message: str) -> int:
    """Token budget scaled to the length of the question."""
    length = len(message)
    if length < 100:
        return 4000
    if length < 500:
        return 8000
    if length < 2000:
        return 12000
    return 16000


def is_response_complete(text: str) -> bool:
    """
    Heuristic completeness check on an accumulated answer.

    Short answers, a short trailing fragment after the last sentence end, or
    a trailing dash, comma or connective word all count as incomplete.
    """
    trimmed = text.strip()
    if len(trimmed) < 10:
        return False

    last_fragment = re.split(r"[.!?]", trimmed)[-1].strip()
    if 0 < len(last_fragment) < 5:
        return False

    return not any(pattern.search(trimmed) for pattern in _INCOMPLETE_PATTERNS)


def looks_garbled(text: str) -> bool:
    return bool(_GARBLED_RE.search(text or ""))


def clean_stream_chunk(content: str) -> str:
    """Remove citation markers and known garbled phrases from a delta."""
    content = clean_citations(content)
    for pattern in _GARBLED_CHUNK_PATTERNS:
        content = pattern.sub("", content)
    return content


def build_system_prompt(system_prompt: Optional[str], language: Optional[str]) -> str:
    """Caller's prompt (or the default) plus a forced-language suffix."""
    prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
    return prompt + response_language_instruction(language or "en")


def build_messages(message: str, system_prompt: Optional[str], language: Optional[str]) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": build_system_prompt(system_prompt, language)},
        {"role": "user", "content": message},
    ]


async def relay_stream(stream: UpstreamStream) -> AsyncIterator[str]:
    """
    Yield cleaned deltas from *stream*, then the regeneration marker when
    upstream sent ``[DONE]`` and the answer is non-empty and incomplete or
    garbled.

    A failure after streaming began ends the body with ``Streaming error``.
    The upstream connection is always closed.
    """
    full_response = ""
    try:
        async for delta in stream.deltas():
            content = clean_stream_chunk(delta)
            if not content:
                continue
            full_response += content
            yield content
    except Exception as exc:
        logger.error("Upstream stream failed after %d chars: %s", len(full_response), exc)
        yield STREAM_ERROR_TEXT
        return
    finally:
        await stream.aclose()

    if stream.done and full_response.strip() and (
        not is_response_complete(full_response) or looks_garbled(full_response)
    ):
        logger.info("Incomplete or garbled stream (%d chars); signalling regeneration", len(full_response))
        yield REGENERATE_MARKER
