"""Pass 30 — context-word confidence adjustment."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from core.detection import detection_config as det_cfg
from core.detection.context_enhancer import ContextEnhancer, runtime_words
from core.detection.context_words import get_context_words
from core.detection.deny_list import DenyList
from models.schemas import Entity, PIIType

if TYPE_CHECKING:
    from core.detection.pipeline import PipelineContext

logger = logging.getLogger(__name__)


def _window_overrides(raw: Any) -> dict[PIIType, int]:
    if not raw:
        return {}
    return {PIIType(k): int(v) for k, v in dict(raw).items()}


class ContextScoringPass:
    """Run the :class:`ContextEnhancer` over every visible entity.

    Entities on the deny list are removed rather than scored, so nothing
    a later pass produced can slip a denied term back into the output.
    """

    name = "context_scoring"
    order = det_cfg.ORDER_CONTEXT_SCORING

    def __init__(self, deny_list: Optional[DenyList] = None) -> None:
        self.enabled = True
        self.deny_list = deny_list

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        deny_enabled = bool(context.option("deny_list_enabled", True))
        enhancer = ContextEnhancer(
            window_size=int(context.option("context_window", det_cfg.CONTEXT_WINDOW)),
            window_by_type=_window_overrides(context.option("context_windows")),
            deny_list=self.deny_list if deny_enabled else None,
        )
        runtime = context.runtime_context
        counts: dict[str, int] = context.metadata.setdefault("deny_list_filtered", {})

        out: list[Entity] = []
        for ent in entities:
            if ent.hidden:
                out.append(ent)
                continue
            words = get_context_words(ent.type, context.language)
            words += runtime_words(ent.type, runtime)
            result = enhancer.enhance(ent, text, words, context.language)
            if result.skipped:
                counts[ent.type.value] = counts.get(ent.type.value, 0) + 1
                continue

            scored = result.entity
            scored.metadata["context"] = {
                "found": result.context_found,
                "boost": round(result.boost_applied, 4),
            }
            if scored.confidence < det_cfg.REVIEW_THRESHOLD:
                scored.flagged_for_review = True
            out.append(scored)
        return out
