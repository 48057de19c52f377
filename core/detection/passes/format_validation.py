"""Pass 20 — structural validation (checksums, formats, ranges)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.detection import detection_config as det_cfg
from core.detection.validators import ValidatorRegistry
from models.schemas import Entity

if TYPE_CHECKING:
    from core.detection.pipeline import PipelineContext

logger = logging.getLogger(__name__)


class FormatValidationPass:
    """Boost structurally valid entities, demote or drop invalid ones.

    valid   → ``min(1, confidence × 1.2)``
    invalid → ``min(confidence, validator confidence)``; dropped below the
    validation floor.  Types without a validator pass through untouched.
    Dropped spans are listed in ``metadata["validation_rejected"]`` (type and
    offsets only) so later passes do not rebuild them.
    """

    name = "format_validation"
    order = det_cfg.ORDER_FORMAT_VALIDATION

    def __init__(self, registry: ValidatorRegistry) -> None:
        self.enabled = True
        self.registry = registry

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        floor = float(context.option("validation_floor", det_cfg.VALIDATION_FLOOR))
        kept: list[Entity] = []
        dropped = 0

        for ent in entities:
            validator = self.registry.get(ent.type)
            if validator is None:
                kept.append(ent)
                continue

            result = validator.validate(ent, text)
            if result.is_valid:
                ent.confidence = min(1.0, ent.confidence * det_cfg.VALID_BOOST_FACTOR)
            else:
                ent.confidence = min(ent.confidence, result.confidence)
            ent.metadata["validation"] = {
                "validator": validator.name,
                "valid": result.is_valid,
                "confidence": result.confidence,
                "reason": result.reason,
            }

            if not result.is_valid and ent.confidence < floor:
                dropped += 1
                context.metadata.setdefault("validation_rejected", []).append(
                    {"type": ent.type.value, "start": ent.start, "end": ent.end},
                )
                logger.debug(
                    "Dropped %s %r: %s", ent.type.value, ent.text, result.reason,
                )
                continue
            kept.append(ent)

        if dropped:
            context.metadata["validation_dropped"] = (
                context.metadata.get("validation_dropped", 0) + dropped
            )
        return kept
