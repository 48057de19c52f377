"""Detection pipeline configuration constants.

This module centralizes the magic numbers and thresholds used by the
passes. Each constant is documented with its purpose and the impact of
changing it. Run-time overrides go through ``DetectionPipeline.configure``;
these are only the defaults.

Tuning Guide:
- Lower ML threshold → more recall, more noise for the validation passes
- Wider proximity / context windows → more grouping, more accidental matches
"""

from __future__ import annotations

from models.schemas import PIIType

# =============================================================================
# PASS ORDER
# =============================================================================

ORDER_HIGH_RECALL: int = 10
ORDER_FORMAT_VALIDATION: int = 20
ORDER_ADDRESS_RELATIONSHIP: int = 25
ORDER_CONTEXT_SCORING: int = 30
ORDER_CONSOLIDATION: int = 50

# =============================================================================
# HIGH-RECALL DETECTION
# =============================================================================

ML_THRESHOLD: float = 0.3
"""Minimum merged ML score to keep a prediction.
Kept low on purpose: later passes prune false positives."""

RULE_CONFIDENCE: float = 0.7
"""Confidence assigned to every regex match before validation."""

MIN_MATCH_LENGTH: int = 3
"""Regex matches shorter than this are discarded."""

ML_MAX_INPUT_CHARS: int = 100_000
"""Hard ceiling on text handed to the classifier in one call."""

CHUNK_MAX_TOKENS: int = 512
"""Token budget per classifier window (BERT-style models)."""

CHUNK_OVERLAP_TOKENS: int = 50
"""Tokens repeated between consecutive windows so entities on a boundary
are seen whole at least once."""

CHARS_PER_TOKEN: int = 4
"""Rough chars→tokens estimate for European languages."""

SUBWORD_MAX_GAP: int = 5
"""Max characters between two B-/I- tokens of the same entity to merge."""

SUBWORD_MIN_LENGTH: int = 2
"""Merged ML spans shorter than this are discarded."""

# =============================================================================
# RETRY POLICY (ML inference)
# =============================================================================

RETRY_MAX_ATTEMPTS: int = 3
RETRY_INITIAL_DELAY_MS: float = 100.0
RETRY_MAX_DELAY_MS: float = 5000.0
RETRY_MULTIPLIER: float = 2.0

# =============================================================================
# FORMAT VALIDATION
# =============================================================================

VALID_BOOST_FACTOR: float = 1.2
"""Multiplier applied to a structurally valid entity's confidence."""

VALIDATION_FLOOR: float = 0.35
"""Invalid entities whose confidence falls below this are dropped."""

# =============================================================================
# ADDRESS LINKING & SCORING
# =============================================================================

ADDRESS_PROXIMITY: int = 50
"""Max gap in characters between two linked address components."""

ADDRESS_NEWLINE_PROXIMITY: int = 100
"""Gap allowed when exactly one newline separates two components."""

ADDRESS_MIN_COMPONENTS: int = 2

STREET_NUMBER_DISTANCE: int = 50
"""A number is only a street number when this close to a street name."""

SCORE_PER_COMPONENT: float = 0.2
SCORE_COMPONENTS_CAP: float = 0.6
SCORE_FULL_PATTERN: float = 0.3
SCORE_PARTIAL_PATTERN: float = 0.1
SCORE_POSTAL_VALID: float = 0.2
SCORE_CITY_MATCH: float = 0.1

ADDRESS_CONFIRMED_THRESHOLD: float = 0.8
"""Grouped addresses at or above this are confirmed."""

ADDRESS_REVIEW_THRESHOLD: float = 0.6
"""Grouped addresses below this are flagged for review."""

STANDALONE_COMPONENT_MAX_CONFIDENCE: float = 0.45
"""Ceiling for unlinked components kept as independent entities."""

# =============================================================================
# CONTEXT SCORING
# =============================================================================

CONTEXT_WINDOW: int = 100
CONTEXT_WINDOW_BY_TYPE: dict[PIIType, int] = {
    PIIType.PERSON: 150,
    PIIType.IBAN: 40,
    PIIType.EMAIL: 50,
    PIIType.PHONE: 60,
    PIIType.SWISS_AVS: 60,
}
"""Label-to-value distance differs by type: names sit far from their
salutations, IBANs directly after their label."""

PRECEDING_WEIGHT: float = 1.2
FOLLOWING_WEIGHT: float = 0.8
SIMILARITY_FACTOR: float = 0.35
MIN_SCORE_WITH_CONTEXT: float = 0.4

REVIEW_THRESHOLD: float = 0.4
"""Entities scored below this after context scoring are flagged for review."""

# =============================================================================
# CONSOLIDATION
# =============================================================================

TYPE_PRIORITY: dict[PIIType, int] = {
    PIIType.SWISS_AVS: 100,
    PIIType.IBAN: 95,
    PIIType.VAT_NUMBER: 85,
    PIIType.EMAIL: 80,
    PIIType.PHONE: 75,
    PIIType.PAYMENT_REF: 70,
    PIIType.SWISS_ADDRESS: 60,
    PIIType.EU_ADDRESS: 58,
    PIIType.ADDRESS: 55,
    PIIType.PERSON: 48,
    PIIType.ORGANIZATION: 45,
    PIIType.DATE: 20,
    PIIType.AMOUNT: 18,
    PIIType.LOCATION: 15,
    PIIType.UNKNOWN: 0,
}
"""Overlap winner table: specific identifier formats outrank generic spans."""
