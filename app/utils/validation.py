"""
Input sanitisation and content-safety checks for user-submitted text.

``validate_message`` is the entry point used by the chat routes: it sanitises
the text, enforces length bounds and rejects markup that would execute in
the browser when the message is rendered back.
"""
from __future__ import annotations

import dataclasses
import re
from typing import List, Optional

from app.utils.languages import SUPPORTED_LANGUAGES


class ValidationError(ValueError):
    """Raised when user input fails validation."""

    def __init__(self, message: str, field: Optional[str] = None, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message)
        self.field = field
        self.code = code


_PROTOCOL_RE = re.compile(r"(javascript|vbscript|data):", re.IGNORECASE)

_DANGEROUS_PATTERNS = [
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE),
    re.compile(r"<object\b[^<]*(?:(?!</object>)<[^<]*)*</object>", re.IGNORECASE),
    re.compile(r"<embed\b[^<]*(?:(?!</embed>)<[^<]*)*</embed>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
]


@dataclasses.dataclass
class SecurityCheck:
    """Outcome of scanning a piece of text for executable markup."""

    is_valid: bool
    threats: List[str]


def sanitize_text(value: str) -> str:
    """Strip angle brackets and script protocols, then trim."""
    value = value.replace("<", "").replace(">", "")
    return _PROTOCOL_RE.sub("", value).strip()


def check_security(content: str) -> SecurityCheck:
    """Scan raw text for script/iframe markup, event handlers and script URLs."""
    threats = []
    for pattern in _DANGEROUS_PATTERNS:
        if pattern.search(content or ""):
            threats.append("XSS")
            break
    return SecurityCheck(is_valid=not threats, threats=threats)


def validate_message(value: Optional[str], max_length: int, field: str = "Message") -> str:
    """
    Validate and sanitise a chat message.

    Raises:
        ValidationError: with code REQUIRED, MAX_LENGTH or XSS_DETECTED
    """
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field, "REQUIRED")

    check = check_security(value)
    if not check.is_valid:
        raise ValidationError("Potentially malicious content detected", field, "XSS_DETECTED")

    cleaned = sanitize_text(str(value))
    if not cleaned:
        raise ValidationError(f"{field} is required", field, "REQUIRED")
    if len(cleaned) > max_length:
        raise ValidationError(
            f"{field} must be no more than {max_length} characters", field, "MAX_LENGTH"
        )
    return cleaned


def validate_language(code: Optional[str]) -> str:
    """Return *code* when supported, else raise UNSUPPORTED_LANGUAGE."""
    if code and code not in SUPPORTED_LANGUAGES:
        raise ValidationError("Unsupported language", "language", "UNSUPPORTED_LANGUAGE")
    return code or "en"
