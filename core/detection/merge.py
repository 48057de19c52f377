"""Detection merge — combines rule and ML candidates into one span list.

Overlapping candidates collapse into a single entity covering the union
of their spans.  The merged entity keeps the highest confidence, is
marked ``BOTH`` when the detectors disagree on source, and takes the
rule-based type when a rule and an ML prediction collide (a regex knows
an IBAN is an IBAN; the model only knows it saw "something").

Also home of the Markdown frontmatter guard: a leading ``---`` … ``---``
block is document metadata, not content, and candidates inside it are
dropped.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from models.schemas import DetectionSource, Entity, entity_id

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"\A\ufeff?---[ \t]*\r?\n.*?\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


def _merged_source(a: DetectionSource, b: DetectionSource) -> DetectionSource:
    if a == b:
        return a
    return DetectionSource.BOTH


def _rule_like(source: DetectionSource) -> bool:
    return source in (DetectionSource.RULE, DetectionSource.BOTH, DetectionSource.MANUAL)


def merge_candidates(entities: list[Entity], text: str) -> list[Entity]:
    """Union-merge overlapping candidates; result sorted by start."""
    if not entities:
        return []

    ordered = sorted(entities, key=lambda e: (e.start, -(e.end - e.start)))
    merged: list[Entity] = [ordered[0].model_copy(deep=True)]

    for ent in ordered[1:]:
        cur = merged[-1]
        if ent.start >= cur.end:
            merged.append(ent.model_copy(deep=True))
            continue

        # Overlap → union
        if cur.source == DetectionSource.ML and _rule_like(ent.source):
            cur.type = ent.type
        cur.start = min(cur.start, ent.start)
        cur.end = max(cur.end, ent.end)
        cur.text = text[cur.start:cur.end]
        cur.confidence = max(cur.confidence, ent.confidence)
        cur.source = _merged_source(cur.source, ent.source)
        cur.metadata = {**ent.metadata, **cur.metadata}
        cur.metadata["merged_count"] = cur.metadata.get("merged_count", 1) + 1
        cur.id = entity_id(cur.type, cur.start, cur.end)

    if len(merged) != len(entities):
        logger.debug("Merged %d candidates into %d", len(entities), len(merged))
    return merged


def find_frontmatter_end(text: str) -> Optional[int]:
    """Offset just past a leading ``---`` frontmatter block, or None."""
    m = _FRONTMATTER_RE.match(text)
    return m.end() if m else None


def drop_frontmatter(entities: list[Entity], frontmatter_end: Optional[int]) -> list[Entity]:
    if not frontmatter_end:
        return entities
    kept = [e for e in entities if e.start >= frontmatter_end]
    if len(kept) != len(entities):
        logger.debug("Dropped %d candidates inside frontmatter", len(entities) - len(kept))
    return kept
