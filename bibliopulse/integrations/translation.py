from __future__ import annotations

import logging
import re

import requests

from bibliopulse.integrations.http_client import CatalogError, get_json

logger = logging.getLogger(__name__)

TRANSLATE_URL = "https://translate.googleapis.com/translate_a/single"

FRENCH_WORDS = frozenset({
    "le", "la", "les", "un", "une", "des",
    "et", "est", "sont", "dans",
    "ce", "cette", "ces", "mon", "ton", "son",
    "par", "pour", "sur", "avec",
})
FRENCH_CHARS = ("é", "è", "ê", "à", "ù", "ç", "ï", "î")

_REF_MARK_RE = re.compile(r"\[\d+\]")


def looks_french(text: str) -> bool:
    lower = (text or "").lower()
    if any(ch in lower for ch in FRENCH_CHARS):
        return True
    return any(w in FRENCH_WORDS for w in lower.split())


def translate_to_french(text: str, session: requests.Session, *, timeout_s: float = 10) -> str:
    """Best effort: the original text comes back on any failure."""
    if not text:
        return ""
    if looks_french(text):
        return text

    clean = _REF_MARK_RE.sub("", text)
    params = {"client": "gtx", "sl": "auto", "tl": "fr", "dt": "t", "q": clean}
    try:
        data = get_json(session, TRANSLATE_URL, params=params, timeout_s=timeout_s, label="Translate")
    except CatalogError as e:
        logger.warning("translate: failed | err=%s", e)
        return text

    try:
        parts = [seg[0] for seg in data[0] if seg and seg[0]]
    except (TypeError, IndexError, KeyError):
        logger.warning("translate: unexpected payload shape")
        return text
    return "".join(parts) or text
