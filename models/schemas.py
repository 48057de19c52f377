"""Pydantic data models for the PII detection pipeline."""

from __future__ import annotations

import enum
import hashlib
from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PIIType(str, enum.Enum):
    """Categories of personally identifiable information."""
    PERSON = "PERSON"
    ORGANIZATION = "ORGANIZATION"
    LOCATION = "LOCATION"
    DATE = "DATE"
    PHONE = "PHONE"
    EMAIL = "EMAIL"
    ADDRESS = "ADDRESS"
    SWISS_AVS = "SWISS_AVS"
    SWISS_ADDRESS = "SWISS_ADDRESS"
    EU_ADDRESS = "EU_ADDRESS"
    IBAN = "IBAN"
    VAT_NUMBER = "VAT_NUMBER"
    PAYMENT_REF = "PAYMENT_REF"
    AMOUNT = "AMOUNT"
    UNKNOWN = "UNKNOWN"


class DetectionSource(str, enum.Enum):
    """Which detector produced the entity."""
    ML = "ML"
    RULE = "RULE"
    BOTH = "BOTH"
    MANUAL = "MANUAL"


class AddressComponentType(str, enum.Enum):
    STREET_NAME = "STREET_NAME"
    STREET_NUMBER = "STREET_NUMBER"
    POSTAL_CODE = "POSTAL_CODE"
    CITY = "CITY"
    COUNTRY = "COUNTRY"


class AddressPattern(str, enum.Enum):
    """Layout a linked component group was recognised as."""
    SWISS = "SWISS"
    EU = "EU"
    PARTIAL = "PARTIAL"
    NONE = "NONE"


ADDRESS_TYPES = frozenset({
    PIIType.ADDRESS, PIIType.SWISS_ADDRESS, PIIType.EU_ADDRESS,
})


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class AddressComponent(BaseModel):
    """One tagged fragment of a postal address."""
    type: AddressComponentType
    text: str
    start: int
    end: int
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    source: DetectionSource = DetectionSource.RULE


def entity_id(pii_type: PIIType, start: int, end: int) -> str:
    """Stable id: the same type and span give the same id on every run."""
    return hashlib.sha256(f"{pii_type.value}:{start}:{end}".encode()).hexdigest()[:12]


class Entity(BaseModel):
    """A detected span believed to contain PII of a specific type."""
    id: str = ""
    type: PIIType
    text: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)
    source: DetectionSource = DetectionSource.RULE
    logical_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Review / grouping bookkeeping
    flagged_for_review: bool = False
    hidden: bool = False
    components: list[AddressComponent] = Field(default_factory=list)

    def model_post_init(self, __context: Any) -> None:
        if not self.id:
            self.id = entity_id(self.type, self.start, self.end)

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Entity") -> bool:
        return self.start < other.end and other.start < self.end


class RuntimeContext(BaseModel):
    """Caller-supplied hints for structured inputs such as CSV."""
    column_headers: list[str] = Field(default_factory=list)
    region_hints: dict[str, PIIType] = Field(
        default_factory=dict,
        description="Header / region label → expected entity type",
    )
    context_words: dict[PIIType, list[str]] = Field(
        default_factory=dict,
        description="Extra positive vocabulary per entity type",
    )


class ValidationResult(BaseModel):
    is_valid: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Pipeline output
# ---------------------------------------------------------------------------

class PassRunInfo(BaseModel):
    """Timing and entity-count bookkeeping for one executed pass."""
    name: str
    order: int
    duration_ms: float = 0.0
    entities_before: int = 0
    entities_after: int = 0
    error: Optional[str] = None


class DetectionResult(BaseModel):
    """Final, immutable outcome of one ``DetectionPipeline.process`` call."""
    entities: list[Entity] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# API request / response bodies
# ---------------------------------------------------------------------------

class DetectRequest(BaseModel):
    text: str
    language: Optional[str] = None
    options: dict[str, Any] = Field(default_factory=dict)
    runtime_context: Optional[RuntimeContext] = None


class BatchDetectRequest(BaseModel):
    texts: list[str] = Field(min_length=1)
    language: Optional[str] = None
    options: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    ml_available: bool


class SettingsUpdate(BaseModel):
    """Partial update of user-editable detection settings."""
    ml_enabled: Optional[bool] = None
    ml_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    address_proximity: Optional[int] = Field(default=None, ge=1, le=500)
    context_window: Optional[int] = Field(default=None, ge=1, le=1000)
    deny_list_enabled: Optional[bool] = None
    show_components: Optional[bool] = None
    validation_floor: Optional[float] = Field(default=None, ge=0.0, le=1.0)
