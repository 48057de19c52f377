"""Regex-based PII detector — the rule half of the high-recall pass.

Runs every pattern in :mod:`core.detection.regex_patterns` over the text,
applies each pattern's format gate and the minimum-length rule, and
resolves overlaps between rule matches by pattern priority (then span
length).  Confidence is uniform at this stage; validation and context
scoring adjust it later.
"""

from __future__ import annotations

import logging
from typing import Iterable, NamedTuple, Optional

from core.detection import detection_config as det_cfg
from core.detection.regex_patterns import PATTERNS as _PATTERNS, PatternDef
from models.schemas import DetectionSource, Entity, PIIType

logger = logging.getLogger(__name__)


class RegexMatch(NamedTuple):
    start: int
    end: int
    text: str
    pii_type: PIIType
    priority: int


def detect_regex(
    text: str,
    allowed_types: Optional[Iterable[PIIType]] = None,
    patterns: Optional[list[PatternDef]] = None,
    min_length: int = det_cfg.MIN_MATCH_LENGTH,
) -> list[RegexMatch]:
    """Scan *text* with the pattern library.

    Returns non-overlapping matches sorted by position.  When two matches
    overlap the lower priority number wins; on equal priority the longer
    span wins, then the earlier one.
    """
    _allowed = set(allowed_types) if allowed_types else None
    all_matches: list[RegexMatch] = []

    for pdef in patterns if patterns is not None else _PATTERNS:
        if _allowed and pdef.pii_type not in _allowed:
            continue
        for m in pdef.regex.finditer(text):
            matched = m.group()
            stripped = matched.rstrip()
            if len(stripped.strip()) < min_length:
                continue
            # ── Format gate ──
            if pdef.gate is not None and not pdef.gate(stripped):
                continue
            all_matches.append(RegexMatch(
                start=m.start(),
                end=m.start() + len(stripped),
                text=stripped,
                pii_type=pdef.pii_type,
                priority=pdef.priority,
            ))

    # Best candidates first, then greedily keep what doesn't collide
    ranked = sorted(all_matches, key=lambda x: (x.priority, -(x.end - x.start), x.start))
    kept: list[RegexMatch] = []
    for match in ranked:
        if any(match.start < k.end and k.start < match.end for k in kept):
            continue
        kept.append(match)
    kept.sort(key=lambda x: (x.start, x.end))

    logger.debug("Regex: %d raw matches, %d kept", len(all_matches), len(kept))
    return kept


def matches_to_entities(
    matches: list[RegexMatch],
    confidence: float = det_cfg.RULE_CONFIDENCE,
) -> list[Entity]:
    return [
        Entity(
            type=m.pii_type,
            text=m.text,
            start=m.start,
            end=m.end,
            confidence=confidence,
            source=DetectionSource.RULE,
            metadata={"pattern_priority": m.priority},
        )
        for m in matches
    ]
