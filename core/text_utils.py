"""Shared text-normalisation helpers.

Centralises accent-stripping, whitespace collapsing, and the key
functions used by identity linking, city lookups, and context-word
matching.
"""

from __future__ import annotations

import re as _re
import unicodedata as _unicodedata

# ---------------------------------------------------------------------------
# Accent / diacritic stripping
# ---------------------------------------------------------------------------

# Single-char replacements for letters whose NFD decomposition doesn't
# yield a clean base letter.
_SPECIAL: dict[str, str] = {
    "ß": "s", "ẞ": "S",
    "æ": "a", "Æ": "A",
    "œ": "o", "Œ": "O",
    "ø": "o", "Ø": "O",
    "ł": "l", "Ł": "L",
}


def strip_accents(text: str) -> str:
    """Strip diacritics while preserving string length.

    Each original character maps to exactly one output character, so
    ``len(result) == len(text)`` and offsets stay valid.

    Examples: é→e, ü→u, ç→c, ß→s.
    """
    out: list[str] = []
    for ch in text:
        if ch in _SPECIAL:
            out.append(_SPECIAL[ch])
        else:
            nfd = _unicodedata.normalize("NFD", ch)
            base = "".join(c for c in nfd if _unicodedata.category(c) != "Mn")
            out.append(base if base else ch)
    return "".join(out)


# ---------------------------------------------------------------------------
# Whitespace collapsing
# ---------------------------------------------------------------------------

def ws_collapse(text: str) -> str:
    """Collapse whitespace runs into single spaces and strip."""
    return _re.sub(r"\s+", " ", text).strip()


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def identity_key(text: str) -> str:
    """Case- and whitespace-insensitive key for repeated-mention linking.

    Diacritics are significant: ``"Müller"`` and ``"Muller"`` produce
    different keys.
    """
    return ws_collapse(text).lower()


def normalize_city(city: str) -> str:
    """Lowercase, accent-free, single-spaced city name for lookups."""
    city = city.replace("ß", "ss").replace("ẞ", "SS")
    return ws_collapse(strip_accents(city)).lower()


def normalize_for_matching(text: str) -> str:
    """Lowercase, strip accents, normalise quotes/dashes, collapse whitespace.

    Intended for vocabulary lookups where offsets are not important.
    Quote normalisation happens before NFKD because several Unicode
    quotes have no decomposition.
    """
    text = text.translate(_QUOTE_MAP)
    text = text.translate(_DASH_MAP)
    text = _unicodedata.normalize("NFKD", text)
    text = "".join(c for c in text if not _unicodedata.combining(c))
    text = text.lower()
    return _re.sub(r"\s+", " ", text).strip()


# ---------------------------------------------------------------------------
# Quote / dash normalisation maps (built once at import time)
# ---------------------------------------------------------------------------

_QUOTE_MAP: dict[int, int] = {
    ord(c): ord("'")
    for c in (
        "‘",  # LEFT SINGLE QUOTATION MARK
        "’",  # RIGHT SINGLE QUOTATION MARK
        "‚",  # SINGLE LOW-9 QUOTATION MARK
        "ʼ",  # MODIFIER LETTER APOSTROPHE
        "`",  # GRAVE ACCENT
        "´",  # ACUTE ACCENT
        "＇",  # FULLWIDTH APOSTROPHE
    )
}

_DASH_MAP: dict[int, int] = {
    ord(c): ord("-")
    for c in (
        "‐",  # HYPHEN
        "‑",  # NON-BREAKING HYPHEN
        "‒",  # FIGURE DASH
        "–",  # EN DASH
        "—",  # EM DASH
        "－",  # FULLWIDTH HYPHEN-MINUS
    )
}
