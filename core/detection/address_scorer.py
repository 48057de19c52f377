"""Additive confidence scoring for linked address groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from core.detection import detection_config as det_cfg
from core.detection.address_linker import AddressGroup
from core.detection.postal_db import SwissPostalDatabase
from models.schemas import AddressComponentType as C, AddressPattern

STATUS_CONFIRMED = "confirmed"
STATUS_PARTIAL = "partial"
STATUS_REVIEW = "review"

_FULL_PATTERNS = (AddressPattern.SWISS, AddressPattern.EU)


@dataclass
class ScoredAddress:
    group: AddressGroup
    confidence: float
    status: str
    factors: dict[str, float] = field(default_factory=dict)
    breakdown: dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def flagged_for_review(self) -> bool:
        return self.status == STATUS_REVIEW


class AddressScorer:
    """Score = component coverage + pattern bonus + postal/city checks."""

    def __init__(self, postal_db: SwissPostalDatabase) -> None:
        self.postal_db = postal_db

    def score(self, group: AddressGroup) -> ScoredAddress:
        factors: dict[str, float] = {}

        factors["components"] = min(
            det_cfg.SCORE_PER_COMPONENT * len(group.types), det_cfg.SCORE_COMPONENTS_CAP,
        )
        if group.pattern in _FULL_PATTERNS:
            factors["pattern"] = det_cfg.SCORE_FULL_PATTERN
        elif group.pattern == AddressPattern.PARTIAL:
            factors["pattern"] = det_cfg.SCORE_PARTIAL_PATTERN

        postal = group.first(C.POSTAL_CODE)
        city = group.first(C.CITY)
        code = _digits(postal.text) if postal else ""
        if len(code) == 4:
            if self.postal_db.lookup(code) is not None:
                factors["postal"] = det_cfg.SCORE_POSTAL_VALID
            elif self.postal_db.in_range(code):
                factors["postal"] = det_cfg.SCORE_POSTAL_VALID / 2
            if city is not None and self.postal_db.city_matches(code, city.text):
                factors["city_match"] = det_cfg.SCORE_CITY_MATCH
        elif len(code) == 5:
            # No EU lookup table; shape alone is weak evidence
            factors["postal"] = det_cfg.SCORE_POSTAL_VALID / 2

        confidence = round(min(1.0, sum(factors.values())), 4)
        if confidence >= det_cfg.ADDRESS_CONFIRMED_THRESHOLD:
            status = STATUS_CONFIRMED
        elif confidence < det_cfg.ADDRESS_REVIEW_THRESHOLD:
            status = STATUS_REVIEW
        else:
            status = STATUS_PARTIAL

        return ScoredAddress(
            group=group,
            confidence=confidence,
            status=status,
            factors={k: round(v, 4) for k, v in factors.items()},
            breakdown=self._breakdown(group, code),
        )

    def _breakdown(self, group: AddressGroup, code: str) -> dict[str, Optional[str]]:
        def text_of(ctype: C) -> Optional[str]:
            comp = group.first(ctype)
            return comp.text if comp else None

        return {
            "street": text_of(C.STREET_NAME),
            "number": text_of(C.STREET_NUMBER),
            "postal": code or None,
            "city": text_of(C.CITY),
            "country": text_of(C.COUNTRY),
            "canton": self.postal_db.canton_for(code) if len(code) == 4 else None,
        }


def _digits(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit())
