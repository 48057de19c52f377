"""Pass 25 — link address components into grouped addresses.

Street, number, postal code, city and country fragments close to each
other become one ``ADDRESS`` entity spanning the whole address.  The
linked fragments are kept as hidden component entities so they are
never reported (or redacted) twice; overlapping address-like candidates
from the high-recall pass are absorbed into the group.

A lone postal code or street name that no other entity covers survives
as a low-confidence, review-flagged ``ADDRESS``.

Postal code + city groups sitting on a span the validation pass rejected
(a year followed by a city) are not rebuilt.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from core.detection import detection_config as det_cfg
from core.detection.address_components import AddressComponentDetector
from core.detection.address_linker import AddressGroup, AddressLinker
from core.detection.address_scorer import AddressScorer, ScoredAddress
from core.detection.postal_db import SwissPostalDatabase
from models.schemas import (
    AddressComponent,
    AddressComponentType,
    AddressPattern,
    DetectionSource,
    Entity,
    PIIType,
)

if TYPE_CHECKING:
    from core.detection.pipeline import PipelineContext

logger = logging.getLogger(__name__)

_CONSUMABLE = frozenset({
    PIIType.ADDRESS, PIIType.SWISS_ADDRESS, PIIType.EU_ADDRESS, PIIType.LOCATION,
})
_STANDALONE_TYPES = frozenset({
    AddressComponentType.POSTAL_CODE, AddressComponentType.STREET_NAME,
})
_ADDRESS_TYPE_NAMES = frozenset(t.value for t in _CONSUMABLE)


class AddressRelationshipPass:
    name = "address_relationship"
    order = det_cfg.ORDER_ADDRESS_RELATIONSHIP

    def __init__(
        self,
        postal_db: SwissPostalDatabase,
        detector: Optional[AddressComponentDetector] = None,
    ) -> None:
        self.enabled = True
        self.postal_db = postal_db
        self.detector = detector or AddressComponentDetector(postal_db=postal_db)
        self.scorer = AddressScorer(postal_db)

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        components = self.detector.detect(text)
        if not components:
            return entities

        proximity = int(context.option("address_proximity", det_cfg.ADDRESS_PROXIMITY))
        linker = AddressLinker(proximity=proximity, newline_proximity=2 * proximity)
        rejected = _rejected_spans(context)
        groups = [
            g for g in linker.link(text, components)
            if g.pattern != AddressPattern.NONE and not _locality_rejected(g, rejected)
        ]

        addresses: list[Entity] = []
        hidden: list[Entity] = []
        remaining = list(entities)
        for group in groups:
            address, remaining = self._build_address(text, group, remaining)
            addresses.append(address)
            hidden.extend(_component_entity(c, address.id) for c in group.components)

        linked = {(c.start, c.end) for g in groups for c in g.components}
        occupied = remaining + addresses
        standalone = [
            _standalone_entity(c)
            for c in components
            if c.type in _STANDALONE_TYPES
            and (c.start, c.end) not in linked
            and not any(c.start < e.end and e.start < c.end for e in occupied)
            and not any(c.start < end and start < c.end for start, end in rejected)
        ]

        if groups:
            logger.debug(
                "Address linking: %d components → %d grouped, %d standalone",
                len(components), len(groups), len(standalone),
            )
        return remaining + addresses + standalone + hidden

    def _build_address(
        self, text: str, group: AddressGroup, entities: list[Entity],
    ) -> tuple[Entity, list[Entity]]:
        """ADDRESS entity for *group*, plus *entities* minus what it absorbed."""
        scored: ScoredAddress = self.scorer.score(group)
        start, end = group.start, group.end
        source = DetectionSource.RULE
        consumed: list[str] = []
        kept: list[Entity] = []
        for ent in entities:
            if ent.type in _CONSUMABLE and not ent.hidden and ent.start < end and start < ent.end:
                start, end = min(start, ent.start), max(end, ent.end)
                if ent.source != DetectionSource.RULE:
                    source = DetectionSource.BOTH
                consumed.append(ent.type.value)
                continue
            kept.append(ent)

        address = Entity(
            type=PIIType.ADDRESS,
            text=text[start:end],
            start=start,
            end=end,
            confidence=scored.confidence,
            source=source,
            flagged_for_review=scored.flagged_for_review,
            components=[c.model_copy() for c in group.components],
            metadata={
                "grouped_address": True,
                "pattern": group.pattern.value,
                "status": scored.status,
                "scoring": scored.factors,
                "breakdown": scored.breakdown,
                "consumed": consumed,
            },
        )
        return address, kept


def _rejected_spans(context: PipelineContext) -> list[tuple[int, int]]:
    return [
        (r["start"], r["end"])
        for r in context.metadata.get("validation_rejected", [])
        if r["type"] in _ADDRESS_TYPE_NAMES
    ]


def _locality_rejected(group: AddressGroup, rejected: list[tuple[int, int]]) -> bool:
    """Postal code + city with no street, on a span validation already dropped
    (``"In 2021 Basel"``)."""
    if group.types & {AddressComponentType.STREET_NAME, AddressComponentType.STREET_NUMBER}:
        return False
    postal = group.first(AddressComponentType.POSTAL_CODE)
    if postal is None:
        return False
    return any(postal.start < end and start < postal.end for start, end in rejected)


def _component_entity(comp: AddressComponent, parent_id: str) -> Entity:
    return Entity(
        type=PIIType.ADDRESS,
        text=comp.text,
        start=comp.start,
        end=comp.end,
        confidence=comp.confidence,
        source=comp.source,
        hidden=True,
        metadata={"component_type": comp.type.value, "component_of": parent_id},
    )


def _standalone_entity(comp: AddressComponent) -> Entity:
    return Entity(
        type=PIIType.ADDRESS,
        text=comp.text,
        start=comp.start,
        end=comp.end,
        confidence=min(comp.confidence, det_cfg.STANDALONE_COMPONENT_MAX_CONFIDENCE),
        source=comp.source,
        flagged_for_review=True,
        metadata={"component_type": comp.type.value, "status": "partial"},
    )
