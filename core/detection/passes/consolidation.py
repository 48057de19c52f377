"""Pass 50 — final overlap resolution and identity linking.

Runs last so it sees final confidences and address groupings.

Overlaps between visible entities are settled by the type priority table
(``detection_config.TYPE_PRIORITY``); equal priorities fall back to
higher confidence, longer span, earlier start.  Survivors with the same
type and the same case/whitespace-insensitive text share a
``logical_id`` such as ``PERSON_1``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from core.detection import detection_config as det_cfg
from core.text_utils import identity_key
from models.schemas import Entity, PIIType

if TYPE_CHECKING:
    from core.detection.pipeline import PipelineContext

logger = logging.getLogger(__name__)


class ConsolidationPass:
    name = "consolidation"
    order = det_cfg.ORDER_CONSOLIDATION

    def __init__(self, type_priority: Optional[dict[PIIType, int]] = None) -> None:
        self.enabled = True
        self.type_priority = dict(det_cfg.TYPE_PRIORITY)
        if type_priority:
            self.type_priority.update(type_priority)

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        visible = [e for e in entities if not e.hidden]
        hidden = [e for e in entities if e.hidden]

        kept = self.resolve_overlaps(visible)
        if len(kept) != len(visible):
            context.metadata["overlaps_resolved"] = len(visible) - len(kept)
        assign_logical_ids(kept)

        # Components follow their parent address; components whose parent
        # lost an overlap are dropped with it
        by_parent: dict[str, list[Entity]] = {}
        for comp in hidden:
            by_parent.setdefault(comp.metadata.get("component_of", ""), []).append(comp)

        out: list[Entity] = []
        for ent in kept:
            out.append(ent)
            out.extend(sorted(by_parent.get(ent.id, []), key=lambda c: c.start))
        return out

    def priority(self, entity: Entity) -> int:
        return self.type_priority.get(entity.type, 0)

    def resolve_overlaps(self, entities: list[Entity]) -> list[Entity]:
        """Greedy keep-best: highest-ranked entities claim their spans first."""
        ranked = sorted(
            entities,
            key=lambda e: (-self.priority(e), -e.confidence, -(e.end - e.start), e.start),
        )
        kept: list[Entity] = []
        for ent in ranked:
            if any(ent.overlaps(k) for k in kept):
                logger.debug("Overlap: dropped %s %r", ent.type.value, ent.text)
                continue
            kept.append(ent)
        kept.sort(key=lambda e: (e.start, -(e.end - e.start)))
        return kept


def assign_logical_ids(entities: list[Entity]) -> None:
    """Set ``logical_id`` = ``{TYPE}_{n}``, numbered by first occurrence."""
    ids: dict[tuple[PIIType, str], str] = {}
    counters: dict[PIIType, int] = {}
    for ent in sorted(entities, key=lambda e: (e.start, e.end)):
        key = (ent.type, identity_key(ent.text))
        if key not in ids:
            counters[ent.type] = counters.get(ent.type, 0) + 1
            ids[key] = f"{ent.type.value}_{counters[ent.type]}"
        ent.logical_id = ids[key]
