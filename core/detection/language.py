"""Lightweight stop-word-based language detection for the PII pipeline.

Detects English (en), French (fr), German (de) and Italian (it), the
languages the deny list and context lexicon are curated for.  Returns
*default* for very short texts or when no language clears the threshold;
the pipeline then consults every language's context words.
"""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("en", "fr", "de", "it")

_SAMPLE_SIZE = 2_000          # chars to sample
_MIN_WORDS = 6                # need this many tokens to judge
_THRESHOLD = 0.10             # 10 % stop-word ratio to claim a language

# ---------------------------------------------------------------------------
# Stop-word sets (top ~60 function words per language)
# ---------------------------------------------------------------------------

_STOP: dict[str, frozenset[str]] = {
    "en": frozenset({
        "the", "be", "to", "of", "and", "a", "in", "that", "have", "i",
        "it", "for", "not", "on", "with", "he", "as", "you", "do", "at",
        "this", "but", "his", "by", "from", "they", "we", "her", "she",
        "or", "an", "will", "my", "one", "all", "would", "there", "their",
        "what", "so", "if", "about", "who", "which", "when", "can", "no",
        "your", "please", "our", "was", "were", "been", "has", "are", "is",
    }),
    "fr": frozenset({
        "de", "la", "le", "et", "les", "des", "en", "un", "du", "une",
        "que", "est", "dans", "qui", "par", "pour", "au", "il", "sur",
        "ne", "se", "pas", "plus", "son", "ce", "avec", "ou", "mais",
        "sont", "sa", "aux", "ont", "ses", "cette", "comme", "nous",
        "tout", "aussi", "elle", "fait", "ces", "dont", "leur", "votre",
        "vous", "bien", "peut", "tous", "sans", "je", "lui", "donc",
    }),
    "de": frozenset({
        "der", "die", "und", "in", "den", "von", "zu", "das", "mit",
        "sich", "des", "auf", "ist", "im", "dem", "nicht", "ein",
        "eine", "als", "auch", "es", "an", "werden", "aus", "er", "hat",
        "dass", "sie", "nach", "wird", "bei", "einer", "um", "am", "sind",
        "noch", "wie", "einem", "so", "zum", "aber", "ihr", "nur", "bitte",
        "oder", "mir", "war", "wenn", "durch", "ihre", "unter", "sehr",
    }),
    "it": frozenset({
        "di", "che", "la", "il", "un", "a", "per", "in", "una", "mi",
        "ma", "lo", "ha", "le", "si", "ho", "non", "con", "li", "da",
        "se", "no", "come", "io", "ci", "questo", "dei", "nel", "del",
        "al", "sono", "era", "gli", "suo", "anche", "alla", "tutto",
        "della", "dal", "stata", "ancora", "dopo", "essere", "quella",
        "qui", "dove", "sua", "stato", "loro", "questa", "tra", "poi",
    }),
}


def detect_language(text: str, default: Optional[str] = "en") -> Optional[str]:
    """Return the ISO-639-1 code of the most-likely language.

    Uses stop-word frequency analysis on a sample of the text.
    Returns *default* when the text is too short or no language reaches
    the threshold.
    """
    sample = text[:_SAMPLE_SIZE]
    words = [w.lower().strip(".,;:!?()[]{}\"'«»—–-") for w in sample.split()]
    words = [w for w in words if len(w) >= 2 or w in ("a", "i")]

    if len(words) < _MIN_WORDS:
        return default  # too short to judge

    n = len(words)
    best_lang = default
    best_ratio = 0.0

    for lang, stops in _STOP.items():
        hits = sum(1 for w in words if w in stops)
        ratio = hits / n
        if ratio > best_ratio:
            best_ratio = ratio
            best_lang = lang

    if best_ratio < _THRESHOLD:
        best_lang = default  # nothing matched well enough

    logger.debug(
        "Language detection: %s (%.1f%% stop-word match, %d words sampled)",
        best_lang, best_ratio * 100, n,
    )
    return best_lang
