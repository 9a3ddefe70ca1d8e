"""
Supported interface/answer languages and their display names.
"""
from typing import Dict

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "hi": "Hindi",
    "mr": "Marathi",
    "ta": "Tamil",
    "bn": "Bengali",
    "pa": "Punjabi",
    "gu": "Gujarati",
    "te": "Telugu",
    "ml": "Malayalam",
    "kn": "Kannada",
    "es": "Spanish",
}

SUPPORTED_LANGUAGES = tuple(LANGUAGE_NAMES)


def language_name(code: str, default: str = "English") -> str:
    """Display name for a language code, *default* when unknown."""
    return LANGUAGE_NAMES.get((code or "").lower(), default)


def response_language_instruction(code: str) -> str:
    """System-prompt suffix forcing replies into a non-English language."""
    if not code or code == "en":
        return ""
    name = language_name(code)
    return (
        f" Your response MUST be entirely in {name}. Do not use any other language. "
        f"Ensure perfect grammar and natural flow in {name}."
    )
