"""Curated false-positive strings that must never be reported as PII.

Table headers ("Montant", "Betrag"), month abbreviations flagged as
names, company suffixes on PERSON spans, …  Terms are scoped globally,
per entity type, or per language, and may be plain strings
(case-insensitive, exact match after trimming) or regexes.

The curated list ships as ``data/deny_list.json``.  A missing or malformed
file is logged and the built-in table-header list is used instead.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Optional, Union

from models.schemas import PIIType

logger = logging.getLogger(__name__)

DEFAULT_DENY_LIST_PATH = Path(__file__).parent / "data" / "deny_list.json"

Pattern = Union[str, re.Pattern]

# Fallback when the data file cannot be read
_BUILTIN_GLOBAL: tuple[str, ...] = (
    "Montant", "Total", "TVA", "Facture", "Client", "Référence",
    "Betrag", "Summe", "MwSt", "Rechnung", "Kunde", "Referenz",
    "Amount", "Invoice", "Customer", "Reference", "Date", "Datum",
)

_FLAG_MAP = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


def _parse_entry(entry: Union[str, dict]) -> Pattern:
    if isinstance(entry, str):
        return entry
    if entry.get("type") == "regex":
        flags = 0
        for ch in entry.get("flags", ""):
            flags |= _FLAG_MAP.get(ch, 0)
        return re.compile(entry["pattern"], flags)
    return entry["pattern"]


class _Bucket:
    """Exact-string set + regex list for one scope."""

    __slots__ = ("strings", "regexes")

    def __init__(self) -> None:
        self.strings: set[str] = set()
        self.regexes: list[re.Pattern] = []

    def add(self, pattern: Pattern) -> None:
        if isinstance(pattern, str):
            self.strings.add(pattern.strip().lower())
        else:
            self.regexes.append(pattern)

    def matches(self, text: str, lowered: str) -> bool:
        if lowered in self.strings:
            return True
        return any(rx.search(text) for rx in self.regexes)


class DenyList:
    """Global / per-type / per-language false-positive filter."""

    def __init__(
        self,
        global_terms: tuple[Pattern, ...] | list[Pattern] = (),
        by_type: Optional[dict[str, list[Pattern]]] = None,
        by_language: Optional[dict[str, list[Pattern]]] = None,
    ) -> None:
        self._global = _Bucket()
        self._by_type: dict[str, _Bucket] = {}
        self._by_language: dict[str, _Bucket] = {}
        self.load_error: Optional[str] = None

        for p in global_terms:
            self._global.add(p)
        for type_name, patterns in (by_type or {}).items():
            for p in patterns:
                self.add(p, entity_type=type_name)
        for lang, patterns in (by_language or {}).items():
            for p in patterns:
                self.add(p, language=lang)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Path = DEFAULT_DENY_LIST_PATH) -> "DenyList":
        """Load a deny list JSON file, falling back to built-ins on error."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
            deny = cls(
                global_terms=[_parse_entry(e) for e in data.get("global", [])],
                by_type={
                    k: [_parse_entry(e) for e in v]
                    for k, v in data.get("by_entity_type", {}).items()
                },
                by_language={
                    k: [_parse_entry(e) for e in v]
                    for k, v in data.get("by_language", {}).items()
                },
            )
            logger.debug("Loaded deny list %s (version %s)", path, data.get("version", "?"))
            return deny
        except (OSError, ValueError, KeyError, TypeError, AttributeError, re.error) as exc:
            logger.warning("Deny list %s unusable (%s) — using built-in defaults", path, exc)
            deny = cls(global_terms=_BUILTIN_GLOBAL)
            deny.load_error = f"{type(exc).__name__}: {exc}"
            return deny

    def add(
        self,
        pattern: Pattern,
        entity_type: Union[PIIType, str, None] = None,
        language: Optional[str] = None,
    ) -> None:
        """Add *pattern* globally, for one entity type, or for one language."""
        if entity_type is not None:
            key = entity_type.value if isinstance(entity_type, PIIType) else str(entity_type)
            self._by_type.setdefault(key, _Bucket()).add(pattern)
        elif language is not None:
            self._by_language.setdefault(language, _Bucket()).add(pattern)
        else:
            self._global.add(pattern)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def is_denied(
        self,
        text: str,
        entity_type: Union[PIIType, str],
        language: Optional[str] = None,
    ) -> bool:
        trimmed = text.strip()
        lowered = trimmed.lower()
        if self._global.matches(trimmed, lowered):
            return True
        key = entity_type.value if isinstance(entity_type, PIIType) else str(entity_type)
        bucket = self._by_type.get(key)
        if bucket is not None and bucket.matches(trimmed, lowered):
            return True
        if language:
            bucket = self._by_language.get(language)
            if bucket is not None and bucket.matches(trimmed, lowered):
                return True
        return False
