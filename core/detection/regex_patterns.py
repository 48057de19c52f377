"""Declarative regex pattern definitions for high-recall PII detection.

Swiss / EU identifiers, contact data, addresses, dates and amounts.  This
module holds pattern data only; the scanning loop lives in
``regex_detector.py``.  Patterns are tuned for recall; later passes
(format validation, context scoring) prune the false positives.

Each entry carries a ``priority`` (lower wins when two rule matches
overlap) and an optional ``gate``: a cheap format check on the matched
text, run before the match is accepted.
"""

from __future__ import annotations

import re
from typing import Callable, NamedTuple, Optional

from models.schemas import PIIType

_NOFLAGS = 0
_IC = re.IGNORECASE


class PatternDef(NamedTuple):
    pii_type: PIIType
    regex: re.Pattern
    priority: int
    gate: Optional[Callable[[str], bool]] = None


# ═══════════════════════════════════════════════════════════════════════════
# Gates
# ═══════════════════════════════════════════════════════════════════════════

def _digits_between(lo: int, hi: int) -> Callable[[str], bool]:
    def gate(text: str) -> bool:
        return lo <= sum(ch.isdigit() for ch in text) <= hi
    gate.__name__ = f"digits_{lo}_{hi}"
    return gate


_avs_gate = _digits_between(13, 13)
_phone_gate = _digits_between(9, 15)
_payment_ref_gate = _digits_between(26, 27)


# ═══════════════════════════════════════════════════════════════════════════
# Pattern fragments
# ═══════════════════════════════════════════════════════════════════════════

_MONTHS_DE = r"Januar|Jänner|Februar|M[äa]rz|April|Mai|Juni|Juli|August|September|Oktober|November|Dezember"
_MONTHS_FR = r"janvier|f[ée]vrier|mars|avril|mai|juin|juillet|ao[uû]t|septembre|octobre|novembre|d[ée]cembre"
_MONTHS_IT = r"gennaio|febbraio|marzo|aprile|maggio|giugno|luglio|agosto|settembre|ottobre|novembre|dicembre"
_MONTHS_EN = (
    r"Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?|"
    r"Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?"
)
_DAY = r"(?:0?[1-9]|[12]\d|3[01])"
_YEAR = r"(?:19|20)\d{2}"

_CITY_DE = r"[A-ZÄÖÜ][a-zäöüéèß]+(?:-[A-Za-zäöüéèß]+)*"
_CITY_FR = r"[A-ZÀÂÆÉÈÊËÏÎÔŒÙÛÜ][a-zàâæéèêëïîôœùûüÿç]+(?:-[A-Za-zàâæéèêëïîôœùûüÿç]+)*"
_NAME_WORD = r"[A-ZÀ-ÖØ-Þ][a-zà-öø-ÿ'’]+"
_HOUSE_NO = r"\d{1,4}[a-zA-Z]?\b"


# ═══════════════════════════════════════════════════════════════════════════
# Standalone pattern definitions
# ═══════════════════════════════════════════════════════════════════════════

def _p(pii_type: PIIType, pattern: str, priority: int,
       flags: int = _NOFLAGS, gate: Optional[Callable[[str], bool]] = None) -> PatternDef:
    return PatternDef(pii_type, re.compile(pattern, flags), priority, gate)


PATTERNS: list[PatternDef] = [
    # ──────────────────────────────────────────────────────────────────
    # Priority 1: high-confidence identifiers
    # ──────────────────────────────────────────────────────────────────
    # Swiss AVS / AHV: 756.1234.5678.97
    _p(PIIType.SWISS_AVS, r"\b756[.\s]?\d{4}[.\s]?\d{4}[.\s]?\d{2}\b", 1, gate=_avs_gate),

    # IBAN: CH93 0076 2011 6238 5295 7, DE89370400440532013000
    _p(PIIType.IBAN, r"\b[A-Z]{2}\d{2}(?:[ ]?[A-Z0-9]{4}){3,7}(?:[ ]?[A-Z0-9]{1,3})?\b", 1),

    # E-mail
    _p(PIIType.EMAIL, r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b", 1),

    # ──────────────────────────────────────────────────────────────────
    # Priority 2: semi-structured identifiers
    # ──────────────────────────────────────────────────────────────────
    # International: +41 79 123 45 67, 0041 44 668 18 00, +49 (30) 1234567
    _p(PIIType.PHONE,
       r"(?<![\w+])(?:\+|00)(?:41|49|33|39|43|423)[\s.\-]?(?:\(?\d{1,4}\)?[\s.\-]?)?"
       r"\d{2,4}[\s.\-]?\d{2,4}(?:[\s.\-]?\d{2,4})?",
       2, gate=_phone_gate),
    # Swiss national: 079 123 45 67, 044 668 18 00
    _p(PIIType.PHONE, r"(?<![\w+])0[1-9]\d[\s.\-]?\d{3}[\s.\-]?\d{2}[\s.\-]?\d{2}\b", 2, gate=_phone_gate),

    # Swiss UID / VAT: CHE-123.456.789 MWST
    _p(PIIType.VAT_NUMBER, r"\bCHE[-\s]?\d{3}[.\s]?\d{3}[.\s]?\d{3}(?:\s*(?:MWST|TVA|IVA))?\b", 2, _IC),
    # EU VAT: DE123456789, FR12345678901
    _p(PIIType.VAT_NUMBER, r"\b(?:DE|FR|IT|AT)\s?\d{8,11}\b", 2),

    # Swiss QR / ESR reference: 26-27 digits in groups of 5
    _p(PIIType.PAYMENT_REF, r"\b\d{2}\s?\d{5}\s?\d{5}\s?\d{5}\s?\d{5}\s?\d{5,6}\b", 2,
       gate=_payment_ref_gate),

    # ──────────────────────────────────────────────────────────────────
    # Priority 3: addresses
    # ──────────────────────────────────────────────────────────────────
    # Swiss postal code + city: 8001 Zürich, CH-1000 Lausanne
    _p(PIIType.SWISS_ADDRESS, rf"\b(?:CH[-\s]?)?[1-9]\d{{3}}[ \t]+{_CITY_DE}", 3),
    # German / Austrian postal code + city: 10115 Berlin, D-80331 München
    _p(PIIType.EU_ADDRESS, rf"\b(?:[DA][-\s]?)?\d{{5}}[ \t]+{_CITY_DE}", 3),
    # French postal code + city: 75008 Paris, F-74000 Annecy
    _p(PIIType.EU_ADDRESS, rf"\b(?:F[-\s]?)?\d{{5}}[ \t]+{_CITY_FR}", 3),

    # German street + number: Bahnhofstrasse 12
    _p(PIIType.ADDRESS,
       rf"\b[A-ZÄÖÜ][a-zäöüß]+(?:straße|strasse|str\.|gasse|weg|platz|allee)[ \t]+{_HOUSE_NO}", 3),
    # French street + number: rue de Lausanne 12, avenue de la Gare 5b
    _p(PIIType.ADDRESS,
       r"\b(?i:rue|avenue|boulevard|chemin|place|allée|route|quai)[ \t]+"
       r"(?:(?i:de[ \t]+la|du|des|de)[ \t]+|(?i:de[ \t]+l)['’])?"
       rf"{_NAME_WORD}(?:[ \t\-]{_NAME_WORD}){{0,3}}[ \t]+{_HOUSE_NO}", 3),
    # Italian street + number: Via Nassa 5, Piazza della Riforma 1
    _p(PIIType.ADDRESS,
       r"\b(?:Via|Viale|Piazza|Corso|Vicolo|Largo)[ \t]+(?:(?:della|del|dei|di)[ \t]+)?"
       rf"{_NAME_WORD}(?:[ \t]{_NAME_WORD}){{0,3}}[ \t]+{_HOUSE_NO}", 3),

    # ──────────────────────────────────────────────────────────────────
    # Priority 4: dates
    # ──────────────────────────────────────────────────────────────────
    # European numeric: 15.03.1985, 1/2/85, 15-03-1985
    _p(PIIType.DATE, rf"\b{_DAY}[./\-](?:0?[1-9]|1[0-2])[./\-](?:19|20)?\d{{2}}\b", 4),
    # ISO: 1985-03-15
    _p(PIIType.DATE, rf"\b{_YEAR}-(?:0[1-9]|1[0-2])-(?:0[1-9]|[12]\d|3[01])\b", 4),
    # German: 15. März 1985
    _p(PIIType.DATE, rf"\b{_DAY}\.?[ \t]*(?:{_MONTHS_DE})[ \t]*(?:19|20)?\d{{2}}\b", 4, _IC),
    # French: 15 mars 1985, 1er janvier 2024
    _p(PIIType.DATE, rf"\b{_DAY}(?:er)?[ \t]*(?:{_MONTHS_FR})[ \t]*(?:19|20)?\d{{2}}\b", 4, _IC),
    # Italian: 15 marzo 1985
    _p(PIIType.DATE, rf"\b{_DAY}[ \t]*(?:{_MONTHS_IT})[ \t]*(?:19|20)?\d{{2}}\b", 4, _IC),
    # English: 15 March 1985, March 15, 1985
    _p(PIIType.DATE, rf"\b{_DAY}[ \t]+(?:{_MONTHS_EN})\.?[ \t]+{_YEAR}\b", 4, _IC),
    _p(PIIType.DATE, rf"\b(?:{_MONTHS_EN})\.?[ \t]+{_DAY},?[ \t]+{_YEAR}\b", 4, _IC),

    # ──────────────────────────────────────────────────────────────────
    # Priority 5: amounts
    # ──────────────────────────────────────────────────────────────────
    # CHF 1'250.00, EUR 1.250,50, Fr. 80.–
    _p(PIIType.AMOUNT,
       r"(?<!\w)(?:CHF|EUR|€|Fr\.?)[ \t]*\d{1,3}(?:['’ .,]\d{3})*(?:[.,]\d{2}|\.[–\-])?(?!\d)", 5, _IC),
    # 1'250.00 CHF
    _p(PIIType.AMOUNT,
       r"\b\d{1,3}(?:['’ .,]\d{3})*(?:[.,]\d{2})?[ \t]*(?:CHF|EUR|€)(?!\w)", 5),
]
