"""Direction-aware confidence adjustment from nearby vocabulary.

"Jean Dupont" right after "Nom :" is more likely a name than a bare
"Jean"; an IBAN next to "Konto" more likely real.  The enhancer looks at
a window of text before and after each entity, finds context words from
:mod:`core.detection.context_words`, and nudges the confidence:

* a word found *before* the entity counts ``preceding_weight`` × its
  weight, *after* it ``following_weight`` × its weight, capped at twice
  its weight when found on both sides;
* positive and negative totals are normalised by the larger direction
  weight, scaled by ``similarity_factor`` and each capped at it;
* net boost = positive − negative; with positive context and a positive
  net the result is floored at ``min_score_with_context``.

Words are matched on whole-word boundaries in accent-folded lowercase.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from core.detection import detection_config as det_cfg
from core.detection.context_words import ContextWord, get_context_words, pos
from core.detection.deny_list import DenyList
from core.text_utils import normalize_for_matching
from models.schemas import Entity, PIIType, RuntimeContext

logger = logging.getLogger(__name__)

_RUNTIME_WORD_WEIGHT = 1.0


@dataclass
class EnhancementResult:
    entity: Entity
    context_found: list[str] = field(default_factory=list)
    boost_applied: float = 0.0
    original_confidence: float = 0.0
    skipped: bool = False
    skip_reason: Optional[str] = None


@lru_cache(maxsize=4096)
def _word_pattern(word: str) -> re.Pattern:
    folded = normalize_for_matching(word)
    body = r"\s+".join(re.escape(part) for part in folded.split(" "))
    left = r"(?<!\w)" if folded[:1].isalnum() else ""
    right = r"(?!\w)" if folded[-1:].isalnum() else ""
    return re.compile(left + body + right)


class ContextEnhancer:
    """Boost or reduce entity confidence from surrounding context words."""

    def __init__(
        self,
        window_size: int = det_cfg.CONTEXT_WINDOW,
        similarity_factor: float = det_cfg.SIMILARITY_FACTOR,
        min_score_with_context: float = det_cfg.MIN_SCORE_WITH_CONTEXT,
        preceding_weight: float = det_cfg.PRECEDING_WEIGHT,
        following_weight: float = det_cfg.FOLLOWING_WEIGHT,
        window_by_type: Optional[dict[PIIType, int]] = None,
        deny_list: Optional[DenyList] = None,
    ) -> None:
        self.window_size = window_size
        self.similarity_factor = similarity_factor
        self.min_score_with_context = min_score_with_context
        self.preceding_weight = preceding_weight
        self.following_weight = following_weight
        self.window_by_type = dict(det_cfg.CONTEXT_WINDOW_BY_TYPE)
        if window_by_type:
            self.window_by_type.update(window_by_type)
        self.deny_list = deny_list

    def window_for(self, entity_type: PIIType) -> int:
        return self.window_by_type.get(entity_type, self.window_size)

    # ------------------------------------------------------------------

    def enhance(
        self,
        entity: Entity,
        text: str,
        context_words: Optional[list[ContextWord]] = None,
        language: Optional[str] = None,
    ) -> EnhancementResult:
        """Return a copy of *entity* with its context-adjusted confidence.

        *context_words* defaults to the lexicon for the entity's type and
        *language*.
        """
        original = entity.confidence
        if self.deny_list is not None and self.deny_list.is_denied(entity.text, entity.type, language):
            return EnhancementResult(
                entity=entity.model_copy(),
                original_confidence=original,
                skipped=True,
                skip_reason="denied",
            )

        words = context_words if context_words is not None else get_context_words(entity.type, language)
        if not words:
            return EnhancementResult(entity=entity.model_copy(), original_confidence=original)

        window = self.window_for(entity.type)
        before = normalize_for_matching(text[max(0, entity.start - window):entity.start])
        after = normalize_for_matching(text[entity.end:entity.end + window])

        found: list[str] = []
        positive = negative = 0.0
        for cw in words:
            rx = _word_pattern(cw.word)
            in_before = rx.search(before) is not None
            in_after = rx.search(after) is not None
            if not (in_before or in_after):
                continue
            found.append(cw.word)
            contribution = 0.0
            if in_before:
                contribution += cw.weight * self.preceding_weight
            if in_after:
                contribution += cw.weight * self.following_weight
            contribution = min(contribution, cw.weight * 2)
            if cw.positive:
                positive += contribution
            else:
                negative += contribution

        max_direction = max(self.preceding_weight, self.following_weight)
        pos_boost = min(positive / max_direction * self.similarity_factor, self.similarity_factor)
        neg_boost = min(negative / max_direction * self.similarity_factor, self.similarity_factor)
        net = pos_boost - neg_boost

        confidence = original + net
        if pos_boost > 0 and net > 0:
            confidence = max(confidence, self.min_score_with_context)
        confidence = max(0.0, min(1.0, confidence))

        return EnhancementResult(
            entity=entity.model_copy(update={"confidence": confidence}),
            context_found=found,
            boost_applied=confidence - original,
            original_confidence=original,
        )

    def enhance_all(
        self,
        entities: list[Entity],
        text: str,
        language: Optional[str] = None,
        runtime_context: Optional[RuntimeContext] = None,
    ) -> list[EnhancementResult]:
        results = []
        for entity in entities:
            words = get_context_words(entity.type, language)
            words += runtime_words(entity.type, runtime_context)
            results.append(self.enhance(entity, text, words, language))
        return results


def runtime_words(
    entity_type: PIIType, runtime_context: Optional[RuntimeContext],
) -> list[ContextWord]:
    """Caller-supplied vocabulary for *entity_type* as positive context words.

    Extra words for the type count at full weight.  A region label hinted
    as this type, or a column header that is already a known label for
    it, is added as a word itself.
    """
    if runtime_context is None:
        return []
    words = [
        pos(w, _RUNTIME_WORD_WEIGHT)
        for w in runtime_context.context_words.get(entity_type, [])
        if w.strip()
    ]
    for header, hinted in runtime_context.region_hints.items():
        if hinted == entity_type and header.strip():
            words.append(pos(header, _RUNTIME_WORD_WEIGHT))
    if runtime_context.column_headers:
        known = {normalize_for_matching(cw.word) for cw in get_context_words(entity_type) if cw.positive}
        for header in runtime_context.column_headers:
            if normalize_for_matching(header) in known:
                words.append(pos(header, _RUNTIME_WORD_WEIGHT))
    return words
