"""
Text translation through free public services with a demo fallback.

Chain: LibreTranslate → MyMemory → Google Translate (only with an API key)
→ a local word substitution for common greetings, clearly labelled as a demo.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from typing import Dict, List, Optional, Tuple

import httpx

from app.config import settings
from app.utils.languages import LANGUAGE_NAMES

logger = logging.getLogger(__name__)

_DEMO_NOTE = (
    "[Note: This is a demo translation. For real-time translation, the system will "
    "automatically use free translation services like LibreTranslate or MyMemory API.]"
)

_DEMO_KEYS = (
    "hello", "hi", "thank you", "thanks", "good", "bad",
    "yes", "no", "please", "sorry", "welcome", "goodbye",
)

# English → target, in _DEMO_KEYS order
_DEMO_WORDS: Dict[str, Tuple[str, ...]] = {
    "hi": ("नमस्ते", "नमस्ते", "धन्यवाद", "धन्यवाद", "अच्छा", "बुरा",
           "हाँ", "नहीं", "कृपया", "माफ करें", "स्वागत है", "अलविदा"),
    "bn": ("হ্যালো", "হ্যালো", "ধন্যবাদ", "ধন্যবাদ", "ভাল", "খারাপ",
           "হ্যাঁ", "না", "দয়া করে", "দুঃখিত", "স্বাগতম", "বিদায়"),
    "mr": ("नमस्कार", "नमस्कार", "धन्यवाद", "धन्यवाद", "चांगले", "वाईट",
           "होय", "नाही", "कृपया", "माफ करा", "स्वागत आहे", "निरोप"),
    "ta": ("வணக்கம்", "வணக்கம்", "நன்றி", "நன்றி", "நல்லது", "மோசமான",
           "ஆம்", "இல்லை", "தயவு செய்து", "மன்னிக்கவும்", "வரவேற்கிறோம்", "பிரியாவிடை"),
    "te": ("నమస్కారం", "నమస్కారం", "ధన్యవాదాలు", "ధన్యవాదాలు", "మంచిది", "చెడ్డది",
           "అవును", "కాదు", "దయచేసి", "క్షమించండి", "స్వాగతం", "వీడ్కోలు"),
    "gu": ("નમસ્તે", "નમસ્તે", "આભાર", "આભાર", "સારું", "ખરાબ",
           "હા", "ના", "કૃપા કરીને", "માફ કરશો", "સ્વાગત છે", "આવજો"),
    "pa": ("ਸਤ ਸ੍ਰੀ ਅਕਾਲ", "ਸਤ ਸ੍ਰੀ ਅਕਾਲ", "ਧੰਨਵਾਦ", "ਧੰਨਵਾਦ", "ਚੰਗਾ", "ਮਾੜਾ",
           "ਹਾਂ", "ਨਹੀਂ", "ਕਿਰਪਾ ਕਰਕੇ", "ਮਾਫ ਕਰਨਾ", "ਜੀ ਆਇਆਂ ਨੂੰ", "ਅਲਵਿਦਾ"),
    "ml": ("നമസ്കാരം", "നമസ്കാരം", "നന്ദി", "നന്ദി", "നല്ലത്", "മോശം",
           "അതെ", "ഇല്ല", "ദയവായി", "ക്ഷമിക്കണം", "സ്വാഗതം", "വിട"),
    "kn": ("ನಮಸ್ಕಾರ", "ನಮಸ್ಕಾರ", "ಧನ್ಯವಾದಗಳು", "ಧನ್ಯವಾದಗಳು", "ಒಳ್ಳೆಯದು", "ಕೆಟ್ಟದು",
           "ಹೌದು", "ಇಲ್ಲ", "ದಯವಿಟ್ಟು", "ಕ್ಷಮಿಸಿ", "ಸ್ವಾಗತ", "ವಿದಾಯ"),
    "es": ("hola", "hola", "gracias", "gracias", "bueno", "malo",
           "sí", "no", "por favor", "lo siento", "bienvenido", "adiós"),
}


@dataclasses.dataclass
class TranslationResult:
    """Translated text plus the service that produced it."""

    text: str
    provider: str


def demo_translate(text: str, source: str, target: str) -> str:
    """Substitute common English words and wrap the result in a demo notice."""
    translated = text
    if source == "en" and target in _DEMO_WORDS:
        for english, local in zip(_DEMO_KEYS, _DEMO_WORDS[target]):
            translated = re.sub(rf"\b{english}\b", local, translated, flags=re.IGNORECASE)

    source_name = LANGUAGE_NAMES.get(source, source)
    target_name = LANGUAGE_NAMES.get(target, target)
    return f"[Translated from {source_name} to {target_name}]\n\n{translated}\n\n{_DEMO_NOTE}"


class TranslationService:
    """Runs the translation chain; *transport* lets tests stub every service."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    async def translate(self, text: str, source: str, target: str) -> TranslationResult:
        """
        Translate *text* from *source* to *target*.

        Never raises for service failures; the demo fallback always answers.
        """
        if source == target:
            return TranslationResult(text=text, provider="none")

        async with httpx.AsyncClient(
            timeout=float(settings.TRANSLATION_TIMEOUT),
            transport=self._transport,
        ) as client:
            attempts: List[Tuple[str, object]] = [
                ("libretranslate", self._libretranslate),
                ("mymemory", self._mymemory),
            ]
            if settings.GOOGLE_TRANSLATE_API_KEY:
                attempts.append(("google", self._google))

            for name, call in attempts:
                try:
                    translated = await call(client, text, source, target)
                except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
                    logger.info("%s translation failed: %s", name, exc)
                    continue
                if translated:
                    return TranslationResult(text=translated, provider=name)
                logger.info("%s returned no translation, trying next service", name)

        logger.warning("All translation services failed; using demo translation (%s→%s)", source, target)
        return TranslationResult(text=demo_translate(text, source, target), provider="demo")

    async def _libretranslate(self, client: httpx.AsyncClient, text: str, source: str, target: str) -> Optional[str]:
        resp = await client.post(
            settings.LIBRETRANSLATE_URL,
            json={"q": text, "source": source, "target": target, "format": "text"},
        )
        if resp.status_code != 200:
            return None
        return resp.json().get("translatedText")

    async def _mymemory(self, client: httpx.AsyncClient, text: str, source: str, target: str) -> Optional[str]:
        resp = await client.get(
            settings.MYMEMORY_URL,
            params={"q": text, "langpair": f"{source}|{target}"},
        )
        if resp.status_code != 200:
            return None
        data = resp.json()
        if data.get("responseStatus") != 200:
            return None
        return (data.get("responseData") or {}).get("translatedText")

    async def _google(self, client: httpx.AsyncClient, text: str, source: str, target: str) -> Optional[str]:
        resp = await client.post(
            "https://translation.googleapis.com/language/translate/v2",
            params={"key": settings.GOOGLE_TRANSLATE_API_KEY},
            json={"q": text, "source": source, "target": target, "format": "text"},
        )
        if resp.status_code != 200:
            return None
        return resp.json()["data"]["translations"][0]["translatedText"]


def get_translation_service() -> TranslationService:
    """FastAPI dependency returning the translation chain."""
    return TranslationService()
