"""Swiss postal-code lookup table (code → city, canton, aliases).

Backs the address scorer's "postal code validates" and "city matches
postal code" checks.  The table ships as ``data/swiss_postal_codes.json``;
if it cannot be read the database degrades to range-only answers
(``is_valid`` by numeric range, no city matching) and records why in
``load_error``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NamedTuple, Optional

from core.text_utils import normalize_city

logger = logging.getLogger(__name__)

DEFAULT_POSTAL_DB_PATH = Path(__file__).parent / "data" / "swiss_postal_codes.json"

SWISS_CANTONS: dict[str, str] = {
    "AG": "Aargau", "AI": "Appenzell Innerrhoden", "AR": "Appenzell Ausserrhoden",
    "BE": "Bern", "BL": "Basel-Landschaft", "BS": "Basel-Stadt",
    "FR": "Fribourg", "GE": "Genève", "GL": "Glarus", "GR": "Graubünden",
    "JU": "Jura", "LU": "Luzern", "NE": "Neuchâtel", "NW": "Nidwalden",
    "OW": "Obwalden", "SG": "St. Gallen", "SH": "Schaffhausen",
    "SO": "Solothurn", "SZ": "Schwyz", "TG": "Thurgau", "TI": "Ticino",
    "UR": "Uri", "VD": "Vaud", "VS": "Valais", "ZG": "Zug", "ZH": "Zürich",
}

# (min, max, canton(s)): first-digit regions of the Swiss postal system
SWISS_POSTAL_RANGES: list[tuple[int, int, str]] = [
    (1000, 1299, "VD"), (1300, 1399, "VD/VS"), (1400, 1499, "VD"),
    (1500, 1599, "FR/VD"), (1600, 1699, "FR/VD"), (1700, 1799, "FR"),
    (1800, 1899, "VD/VS"), (1900, 1999, "VS"), (2000, 2299, "NE"),
    (2300, 2499, "NE/BE"), (2500, 2599, "BE"), (2600, 2699, "BE/SO"),
    (2700, 2799, "BE/JU"), (2800, 2999, "JU"), (3000, 3999, "BE"),
    (4000, 4999, "BS/BL/SO/AG"), (5000, 5999, "AG/SO"),
    (6000, 6999, "LU/ZG/SZ/NW/OW/UR/TI"), (7000, 7999, "GR"),
    (8000, 8999, "ZH/SH/TG/SG"), (9000, 9699, "SG/AR/AI/TG"),
]


class PostalEntry(NamedTuple):
    code: str
    city: str
    canton: str
    aliases: tuple[str, ...]


def _range_canton(code: int) -> Optional[str]:
    for lo, hi, canton in SWISS_POSTAL_RANGES:
        if lo <= code <= hi:
            return canton
    return None


class SwissPostalDatabase:
    """In-memory postal table with normalised city keys."""

    def __init__(self, entries: Optional[dict[str, PostalEntry]] = None) -> None:
        self._entries: dict[str, PostalEntry] = dict(entries or {})
        self._city_index: dict[str, list[str]] = {}
        self.load_error: Optional[str] = None
        for code, entry in self._entries.items():
            for name in (entry.city, *entry.aliases):
                self._city_index.setdefault(normalize_city(name), []).append(code)

    @classmethod
    def from_file(cls, path: Path = DEFAULT_POSTAL_DB_PATH) -> "SwissPostalDatabase":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
            entries = {
                str(code): PostalEntry(
                    code=str(code),
                    city=info["city"],
                    canton=info.get("canton", ""),
                    aliases=tuple(info.get("aliases", ())),
                )
                for code, info in data["codes"].items()
            }
            logger.debug("Loaded %d Swiss postal codes from %s", len(entries), path)
            return cls(entries)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Postal table %s unusable (%s) — range checks only", path, exc)
            db = cls()
            db.load_error = f"{type(exc).__name__}: {exc}"
            return db

    @property
    def available(self) -> bool:
        return bool(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------

    def lookup(self, code: str) -> Optional[PostalEntry]:
        return self._entries.get(_clean_code(code))

    def in_range(self, code: str) -> bool:
        digits = _clean_code(code)
        return len(digits) == 4 and _range_canton(int(digits)) is not None

    def is_valid(self, code: str) -> bool:
        """Known code; without a loaded table, any code inside a Swiss range."""
        if self.available:
            return self.lookup(code) is not None
        return self.in_range(code)

    def canton_for(self, code: str) -> Optional[str]:
        entry = self.lookup(code)
        if entry is not None:
            return entry.canton
        digits = _clean_code(code)
        return _range_canton(int(digits)) if len(digits) == 4 else None

    def city_matches(self, code: str, city: str) -> bool:
        """True when *city* (any language variant) is the city of *code*."""
        entry = self.lookup(code)
        if entry is None:
            return False
        wanted = normalize_city(city)
        return any(normalize_city(name) == wanted for name in (entry.city, *entry.aliases))

    def is_known_city(self, city: str) -> bool:
        return normalize_city(city) in self._city_index

    def codes_for_city(self, city: str) -> list[str]:
        return list(self._city_index.get(normalize_city(city), []))

    def city_names(self) -> list[str]:
        """Every city spelling in the table, longest first."""
        names = {name for e in self._entries.values() for name in (e.city, *e.aliases)}
        return sorted(names, key=lambda n: (-len(n), n))


def _clean_code(code: str) -> str:
    return "".join(ch for ch in code if ch.isdigit())
