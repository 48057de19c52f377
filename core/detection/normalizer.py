"""Text normalisation ahead of detection.

Undoes the common ways people disguise PII in running text (Unicode
look-alikes, zero-width characters, ``john (at) example (dot) com``,
``+41 (0) 79 …``) while keeping a per-character index map back to the
original input.  Detection runs on the normalised text; the pipeline maps
every final span back through :meth:`NormalizationResult.map_span` so the
caller always receives offsets into the text it supplied.

Standalone English ``at`` / ``dot`` and German ``Punkt`` are deliberately
left alone: "call us at +41 …" must not become an e-mail address.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_ZERO_WIDTH = frozenset({
    "\u200b",  # ZERO WIDTH SPACE
    "\u200c",  # ZERO WIDTH NON-JOINER
    "\u200d",  # ZERO WIDTH JOINER
    "\u2060",  # WORD JOINER
    "\ufeff",  # BOM / ZERO WIDTH NO-BREAK SPACE
})

_NBSP = frozenset({
    "\u00a0",  # NO-BREAK SPACE
    "\u2007",  # FIGURE SPACE
    "\u202f",  # NARROW NO-BREAK SPACE
})

# (pattern, replacement template): applied in order
_EMAIL_PATTERNS: list[tuple[re.Pattern, str]] = [
    # EN
    (re.compile(r"\s*[(\[{]\s*at\s*[)\]}]\s*", re.IGNORECASE), "@"),
    (re.compile(r"\s*[(\[{]\s*dot\s*[)\]}]\s*", re.IGNORECASE), "."),
    # FR
    (re.compile(r"\s*\(\s*arobase\s*\)\s*", re.IGNORECASE), "@"),
    (re.compile(r"(?<=\w)\s*\barobase\b\s*(?=\w)", re.IGNORECASE), "@"),
    (re.compile(r"\s*\(\s*point\s*\)\s*", re.IGNORECASE), "."),
    # DE
    (re.compile(r"\s*\(\s*klammeraffe\s*\)\s*", re.IGNORECASE), "@"),
    (re.compile(r"(?<=\w)\s*\bklammeraffe\b\s*(?=\w)", re.IGNORECASE), "@"),
    (re.compile(r"\s*\(\s*punkt\s*\)\s*", re.IGNORECASE), "."),
]

_PHONE_PATTERNS: list[tuple[re.Pattern, str]] = [
    # +41 (0) 79 … → +41 79 …
    (re.compile(r"(\+\d{1,3})\s*\(0\)\s*"), r"\1 "),
]


@dataclass(frozen=True)
class NormalizationResult:
    """Normalised text plus ``index_map[i]`` = original offset of char *i*."""

    text: str
    index_map: list[int] = field(repr=False)
    original_length: int = 0

    @property
    def changed(self) -> bool:
        return self.index_map != list(range(self.original_length)) or len(self.text) != self.original_length

    def map_span(self, start: int, end: int) -> tuple[int, int]:
        """Map a ``[start, end)`` span of the normalised text to the original.

        The end is mapped through the last covered character so a span that
        ends on a replacement (``(dot) ch``) still covers the full
        obfuscated substring.
        """
        if not self.index_map:
            return start, end
        last = len(self.index_map) - 1
        mapped_start = self.index_map[min(start, last)]
        if end <= 0:
            return mapped_start, mapped_start
        mapped_end = self.index_map[min(end - 1, last)] + 1
        return mapped_start, max(mapped_end, mapped_start)


class TextNormalizer:
    """Offset-preserving de-obfuscation of detection input."""

    def __init__(
        self,
        *,
        normalize_unicode: bool = True,
        normalize_whitespace: bool = True,
        handle_emails: bool = True,
        handle_phones: bool = True,
        form: str = "NFKC",
    ) -> None:
        self.normalize_unicode = normalize_unicode
        self.normalize_whitespace = normalize_whitespace
        self.handle_emails = handle_emails
        self.handle_phones = handle_phones
        self.form = form

    def normalize(self, text: str) -> NormalizationResult:
        if not text:
            return NormalizationResult(text="", index_map=[], original_length=0)

        if self.normalize_unicode:
            out, index_map = self._unicode(text)
        else:
            out, index_map = text, list(range(len(text)))

        if self.normalize_whitespace:
            out, index_map = self._whitespace(out, index_map)
        if self.handle_emails:
            out, index_map = self._apply_patterns(out, index_map, _EMAIL_PATTERNS)
        if self.handle_phones:
            out, index_map = self._apply_patterns(out, index_map, _PHONE_PATTERNS)

        if len(out) != len(text):
            logger.debug("Normalised text: %d → %d chars", len(text), len(out))
        return NormalizationResult(text=out, index_map=index_map, original_length=len(text))

    # ── steps ────────────────────────────────────────────────────────

    def _unicode(self, text: str) -> tuple[str, list[int]]:
        """Normalise per base-char cluster so each output char knows its origin."""
        if unicodedata.is_normalized(self.form, text):
            return text, list(range(len(text)))

        parts: list[str] = []
        index_map: list[int] = []
        i, n = 0, len(text)
        while i < n:
            j = i + 1
            while j < n and unicodedata.combining(text[j]):
                j += 1
            cluster = unicodedata.normalize(self.form, text[i:j])
            parts.append(cluster)
            index_map.extend([i] * len(cluster))
            i = j
        return "".join(parts), index_map

    @staticmethod
    def _whitespace(text: str, index_map: list[int]) -> tuple[str, list[int]]:
        parts: list[str] = []
        new_map: list[int] = []
        for ch, orig in zip(text, index_map):
            if ch in _ZERO_WIDTH:
                continue
            parts.append(" " if ch in _NBSP else ch)
            new_map.append(orig)
        return "".join(parts), new_map

    @staticmethod
    def _apply_patterns(
        text: str,
        index_map: list[int],
        patterns: list[tuple[re.Pattern, str]],
    ) -> tuple[str, list[int]]:
        for pattern, template in patterns:
            parts: list[str] = []
            new_map: list[int] = []
            last = 0
            for m in pattern.finditer(text):
                if m.end() == m.start():
                    continue
                parts.append(text[last:m.start()])
                new_map.extend(index_map[last:m.start()])
                replacement = m.expand(template)
                if replacement:
                    # First char anchors the start, the rest the end of the match
                    parts.append(replacement)
                    new_map.append(index_map[m.start()])
                    new_map.extend([index_map[m.end() - 1]] * (len(replacement) - 1))
                last = m.end()
            if last == 0:
                continue
            parts.append(text[last:])
            new_map.extend(index_map[last:])
            text, index_map = "".join(parts), new_map
        return text, index_map
