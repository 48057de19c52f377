"""The five standard detection passes, in run order."""

from core.detection.passes.high_recall import HighRecallPass
from core.detection.passes.format_validation import FormatValidationPass
from core.detection.passes.address_relationship import AddressRelationshipPass
from core.detection.passes.context_scoring import ContextScoringPass
from core.detection.passes.consolidation import ConsolidationPass

__all__ = [
    "HighRecallPass",
    "FormatValidationPass",
    "AddressRelationshipPass",
    "ContextScoringPass",
    "ConsolidationPass",
]
