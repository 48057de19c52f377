"""Address component tagging — street, number, postal code, city, country.

Regex + lexicon recognisers over the full text.  Each recogniser has its
own confidence; overlapping hits are resolved afterwards so a city name
that is part of a street ("Rue de *Lausanne*") is not reported twice.
Linking the fragments into addresses is ``address_linker``'s job.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from core.detection import detection_config as det_cfg
from core.detection.postal_db import SwissPostalDatabase
from core.detection.validators import is_swiss_postal_code
from models.schemas import AddressComponent, AddressComponentType as C

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lexicons
# ---------------------------------------------------------------------------

_UPPER = "A-ZÄÖÜÀÂÇÉÈÊËÎÏÔÙÛ"
_WORD = r"[^\W\d_](?:[^\W\d_]|['’-])*"
_CAP_WORD = rf"[{_UPPER}](?:[^\W\d_]|['’-])*"

# de compound suffixes ("Bahnhofstrasse") and separate words ("Badener Strasse")
_STREET_SUFFIXES = (
    "strasse", "straße", "str.", "gasse", "weg", "platz", "allee", "damm", "graben",
)
# fr prefixes, matched in any case ("rue de Lausanne")
_STREET_PREFIXES_FR = (
    "rue", "ruelle", "avenue", "boulevard", "chemin", "allée", "impasse", "quai",
)
# Prefixes that are also ordinary words ("via", "place"); capitalised only
_STREET_PREFIXES_CAP = (
    "Av.", "Bd", "Ch.", "Place", "Route", "Rte", "Passage", "Promenade",
    "Via", "Viale", "Piazza", "Piazzale", "Corso", "Vicolo", "Largo",
)
# en suffixes written as a separate word
_STREET_EN = ("Street", "St.", "Road", "Rd.", "Lane", "Avenue", "Drive", "Way")

_SWISS_CITIES: tuple[str, ...] = (
    "Zürich", "Zurich", "Zurigo", "Genève", "Geneva", "Genf", "Ginevra",
    "Basel", "Bâle", "Basilea", "Bern", "Berne", "Berna", "Lausanne",
    "Losanna", "Winterthur", "Luzern", "Lucerne", "Lucerna", "St. Gallen",
    "Saint-Gall", "Lugano", "Biel", "Bienne", "Thun", "Fribourg", "Freiburg",
    "Neuchâtel", "Neuchatel", "Sion", "Sitten", "Chur", "Montreux", "Zug",
)

_EU_CITIES: tuple[str, ...] = (
    "Berlin", "München", "Munich", "Hamburg", "Köln", "Frankfurt", "Stuttgart",
    "Paris", "Lyon", "Marseille", "Strasbourg", "Annecy", "Wien", "Vienna",
    "Graz", "Salzburg", "Innsbruck", "Milano", "Milan", "Roma", "Rome",
    "Torino", "Como", "Vaduz", "Bruxelles", "Amsterdam", "Luxembourg",
)

_COUNTRIES: tuple[str, ...] = (
    "Switzerland", "Suisse", "Schweiz", "Svizzera", "Germany", "Allemagne",
    "Deutschland", "Germania", "France", "Frankreich", "Francia", "Italy",
    "Italie", "Italien", "Italia", "Austria", "Autriche", "Österreich",
    "Liechtenstein", "Belgium", "Belgique", "Belgien", "Netherlands",
    "Pays-Bas", "Niederlande", "Luxembourg", "Luxemburg",
)
_COUNTRY_CODES = ("CH", "DE", "FR", "IT", "AT", "LI", "BE", "NL", "LU")

# Tie-break when two components overlap: lower rank wins
_RANK = {C.STREET_NAME: 0, C.POSTAL_CODE: 1, C.STREET_NUMBER: 2, C.COUNTRY: 3, C.CITY: 4}

_CONFIDENCE = {
    C.STREET_NAME: 0.7,
    C.STREET_NUMBER: 0.5,
    C.POSTAL_CODE: 0.6,
    C.CITY: 0.6,
    C.COUNTRY: 0.7,
}
_KNOWN_POSTAL_CONFIDENCE = 0.8
_KNOWN_CITY_CONFIDENCE = 0.75


def _alternation(words: tuple[str, ...]) -> str:
    return "|".join(re.escape(w) for w in sorted(set(words), key=len, reverse=True))


_STREET_COMPOUND_RE = re.compile(
    rf"\b[{_UPPER}][^\W\d_]*(?:{_alternation(_STREET_SUFFIXES)})(?=[\s,]|$)"
)
_STREET_SEPARATE_RE = re.compile(
    rf"\b{_CAP_WORD}[ \t]+(?:{_alternation(tuple(s.capitalize() for s in _STREET_SUFFIXES))})(?=[\s,]|$)"
)
_STREET_PREFIX_RE = re.compile(
    rf"\b(?:(?i:{_alternation(_STREET_PREFIXES_FR)})|{_alternation(_STREET_PREFIXES_CAP)})[ \t]+"
    r"(?:(?i:de[ \t]+la|du|des|de|della|del|dei|di)[ \t]+|(?i:de[ \t]+l)['’])?"
    rf"{_CAP_WORD}(?:[ \t]+{_CAP_WORD})*"
)
_STREET_EN_RE = re.compile(
    rf"\b{_CAP_WORD}(?:[ \t]+{_CAP_WORD})?[ \t]+(?:{_alternation(_STREET_EN)})(?=[\s,]|$)"
)
_NUMBER_RE = re.compile(r"\b\d{1,4}[a-zA-Z]?(?:\s*[-–]\s*\d{1,4}[a-zA-Z]?)?\b")
_SWISS_POSTAL_RE = re.compile(rf"\b(?:CH[-\s]?)?([1-9]\d{{3}})\b(?=[ \t]+[{_UPPER}])|\bCH-([1-9]\d{{3}})\b")
_EU_POSTAL_RE = re.compile(rf"\b(?:[DFAI][-\s])?(\d{{5}})\b(?=[ \t]+[{_UPPER}])")
_CITY_AFTER_POSTAL_RE = re.compile(rf"[ \t]+({_CAP_WORD}(?:-{_WORD})*)")


class AddressComponentDetector:
    """Tag address fragments in free text."""

    def __init__(
        self,
        postal_db: Optional[SwissPostalDatabase] = None,
        street_number_distance: int = det_cfg.STREET_NUMBER_DISTANCE,
    ) -> None:
        self.postal_db = postal_db if postal_db is not None else SwissPostalDatabase.from_file()
        self.street_number_distance = street_number_distance
        cities = set(_SWISS_CITIES) | set(_EU_CITIES) | set(self.postal_db.city_names())
        self._city_re = re.compile(rf"\b(?:{_alternation(tuple(cities))})\b", re.IGNORECASE)
        self._country_re = re.compile(rf"\b(?:{_alternation(_COUNTRIES)})\b", re.IGNORECASE)
        self._country_code_re = re.compile(
            rf",[ \t]*({'|'.join(_COUNTRY_CODES)})\b(?=[ \t]*(?:$|\n|[.;]))", re.MULTILINE,
        )

    def detect(self, text: str) -> list[AddressComponent]:
        if not text:
            return []
        streets = self._streets(text)
        found = (
            streets
            + self._street_numbers(text, streets)
            + self._postal_codes(text)
            + self._cities(text)
            + self._countries(text)
        )
        components = self._dedupe(found)
        logger.debug("Address components: %d raw, %d kept", len(found), len(components))
        return components

    # ── recognisers ──────────────────────────────────────────────────

    def _streets(self, text: str) -> list[AddressComponent]:
        out: list[AddressComponent] = []
        for rx in (_STREET_PREFIX_RE, _STREET_SEPARATE_RE, _STREET_COMPOUND_RE, _STREET_EN_RE):
            for m in rx.finditer(text):
                value = m.group(0).rstrip()
                if len(value) < 5:
                    continue
                out.append(_component(C.STREET_NAME, value, m.start()))
        return out

    def _street_numbers(
        self, text: str, streets: list[AddressComponent],
    ) -> list[AddressComponent]:
        """The nearest number after each street (or just before it, en style)."""
        out: list[AddressComponent] = []
        limit = self.street_number_distance
        for street in streets:
            after = text[street.end:street.end + limit]
            m = _NUMBER_RE.search(after)
            if m and not re.search(r"[\d\n]", after[:m.start()]):
                out.append(_component(C.STREET_NUMBER, m.group(0), street.end + m.start()))
                continue
            before_start = max(0, street.start - 12)
            before = text[before_start:street.start]
            m = re.search(r"\b(\d{1,4}[a-zA-Z]?)[ \t]+$", before)
            if m:
                out.append(_component(C.STREET_NUMBER, m.group(1), before_start + m.start(1)))
        return out

    def _postal_codes(self, text: str) -> list[AddressComponent]:
        out: list[AddressComponent] = []
        for m in _SWISS_POSTAL_RE.finditer(text):
            code = m.group(1) or m.group(2)
            if not is_swiss_postal_code(int(code)):
                continue
            conf = _KNOWN_POSTAL_CONFIDENCE if self.postal_db.lookup(code) else _CONFIDENCE[C.POSTAL_CODE]
            out.append(_component(C.POSTAL_CODE, m.group(0), m.start(), conf))
        for m in _EU_POSTAL_RE.finditer(text):
            out.append(_component(C.POSTAL_CODE, m.group(0), m.start()))
        return out

    def _cities(self, text: str) -> list[AddressComponent]:
        out: list[AddressComponent] = []
        for m in self._city_re.finditer(text):
            if m.group(0)[0].isupper():
                out.append(_component(C.CITY, m.group(0), m.start(), _KNOWN_CITY_CONFIDENCE))
        # Capitalised word right after a postal code
        for postal in self._postal_codes(text):
            m = _CITY_AFTER_POSTAL_RE.match(text, postal.end)
            if m:
                out.append(_component(C.CITY, m.group(1), m.start(1)))
        return out

    def _countries(self, text: str) -> list[AddressComponent]:
        out: list[AddressComponent] = []
        for m in self._country_re.finditer(text):
            if m.group(0)[0].isupper():
                out.append(_component(C.COUNTRY, m.group(0), m.start()))
        for m in self._country_code_re.finditer(text):
            out.append(_component(C.COUNTRY, m.group(1), m.start(1)))
        return out

    # ── overlap resolution ───────────────────────────────────────────

    @staticmethod
    def _dedupe(components: list[AddressComponent]) -> list[AddressComponent]:
        """Keep the best non-overlapping set; street names beat embedded cities."""
        ranked = sorted(
            components,
            key=lambda c: (_RANK[c.type], -(c.end - c.start), -c.confidence, c.start),
        )
        kept: list[AddressComponent] = []
        for comp in ranked:
            if any(comp.start < k.end and k.start < comp.end for k in kept):
                continue
            kept.append(comp)
        kept.sort(key=lambda c: (c.start, c.end))
        return kept


def _component(
    ctype: C, value: str, start: int, confidence: Optional[float] = None,
) -> AddressComponent:
    return AddressComponent(
        type=ctype,
        text=value,
        start=start,
        end=start + len(value),
        confidence=_CONFIDENCE[ctype] if confidence is None else confidence,
    )
