"""Tests for address component tagging, linking, scoring and the grouping pass."""

from __future__ import annotations

import pytest

from core.detection.address_components import AddressComponentDetector
from core.detection.address_linker import AddressGroup, AddressLinker, classify
from core.detection.address_scorer import (
    STATUS_CONFIRMED,
    STATUS_PARTIAL,
    STATUS_REVIEW,
    AddressScorer,
)
from core.detection.passes.address_relationship import AddressRelationshipPass
from core.detection.pipeline import PipelineContext
from models.schemas import (
    AddressComponent,
    AddressComponentType as C,
    AddressPattern,
    DetectionSource,
    Entity,
    PIIType,
)

ZURICH = "Bahnhofstrasse 10, 8001 Zürich"


def _comp(ctype: C, text: str, start: int) -> AddressComponent:
    return AddressComponent(type=ctype, text=text, start=start, end=start + len(text))


def _group(*components: AddressComponent) -> AddressGroup:
    group = AddressGroup(components=list(components))
    group.pattern = classify(group)
    return group


@pytest.fixture(scope="module")
def detector(postal_db):
    return AddressComponentDetector(postal_db=postal_db)


# ---------------------------------------------------------------------------
# Component tagging
# ---------------------------------------------------------------------------

class TestComponents:
    def test_swiss_german_address(self, detector):
        comps = detector.detect(ZURICH)
        assert [(c.type, c.text) for c in comps] == [
            (C.STREET_NAME, "Bahnhofstrasse"),
            (C.STREET_NUMBER, "10"),
            (C.POSTAL_CODE, "8001"),
            (C.CITY, "Zürich"),
        ]

    def test_offsets_match_text(self, detector):
        for comp in detector.detect(ZURICH):
            assert ZURICH[comp.start:comp.end] == comp.text

    def test_known_postal_code_more_confident(self, detector):
        known = detector.detect("3000 Bern")[0]
        unknown = detector.detect("3999 Irgendwo")[0]
        assert known.type == unknown.type == C.POSTAL_CODE
        assert known.confidence > unknown.confidence

    def test_french_prefix_street(self, detector):
        comps = detector.detect("Avenue de la Gare 5")
        assert comps[0].type == C.STREET_NAME
        assert comps[0].text == "Avenue de la Gare"
        assert comps[1].type == C.STREET_NUMBER

    def test_city_inside_street_not_reported_twice(self, detector):
        comps = detector.detect("Rue de Lausanne 12")
        assert [c.type for c in comps] == [C.STREET_NAME, C.STREET_NUMBER]

    def test_country(self, detector):
        comps = detector.detect("Via Roma 3, 6900 Lugano, Svizzera")
        assert comps[-1].type == C.COUNTRY
        assert comps[-1].text == "Svizzera"

    def test_lowercase_via_not_a_street(self, detector):
        assert all(c.type != C.STREET_NAME for c in detector.detect("sent via email today"))

    def test_empty(self, detector):
        assert detector.detect("") == []


# ---------------------------------------------------------------------------
# Linking & classification
# ---------------------------------------------------------------------------

class TestLinker:
    def test_close_components_grouped(self, detector):
        groups = AddressLinker().link(ZURICH, detector.detect(ZURICH))
        assert len(groups) == 1
        assert groups[0].text == ZURICH
        assert groups[0].pattern == AddressPattern.SWISS

    def test_two_line_address(self, detector):
        text = "Bahnhofstrasse 10\n8001 Zürich"
        groups = AddressLinker().link(text, detector.detect(text))
        assert len(groups) == 1
        assert groups[0].pattern == AddressPattern.SWISS

    def test_blank_line_separates(self):
        text = "Bahnhofstrasse\n\n8001"
        comps = [_comp(C.STREET_NAME, "Bahnhofstrasse", 0), _comp(C.POSTAL_CODE, "8001", 16)]
        assert AddressLinker().link(text, comps) == []

    def test_gap_beyond_proximity(self):
        text = "8001" + " " * 20 + "Zürich"
        comps = [_comp(C.POSTAL_CODE, "8001", 0), _comp(C.CITY, "Zürich", 24)]
        assert AddressLinker(proximity=10).link(text, comps) == []
        assert len(AddressLinker(proximity=30).link(text, comps)) == 1

    def test_repeated_type_starts_new_group(self):
        text = "3000 Bern 8001 Zürich"
        comps = [
            _comp(C.POSTAL_CODE, "3000", 0), _comp(C.CITY, "Bern", 5),
            _comp(C.POSTAL_CODE, "8001", 10), _comp(C.CITY, "Zürich", 15),
        ]
        groups = AddressLinker().link(text, comps)
        assert [g.text for g in groups] == ["3000 Bern", "8001 Zürich"]

    def test_single_component_dropped(self):
        assert AddressLinker().link("Bern", [_comp(C.CITY, "Bern", 0)]) == []

    def test_city_first_group_is_not_a_full_pattern(self, detector):
        text = "Bern CH-3011 Bundesplatz 3"
        comps = detector.detect(text)
        assert [c.type for c in comps] == [C.CITY, C.POSTAL_CODE, C.STREET_NAME, C.STREET_NUMBER]
        groups = AddressLinker().link(text, comps)
        assert [(g.pattern, g.text) for g in groups] == [(AddressPattern.PARTIAL, text)]

    def test_nothing_follows_country(self):
        text = "Schweiz, Bahnhofstrasse 10"
        comps = [
            _comp(C.COUNTRY, "Schweiz", 0),
            _comp(C.STREET_NAME, "Bahnhofstrasse", 9), _comp(C.STREET_NUMBER, "10", 24),
        ]
        groups = AddressLinker().link(text, comps)
        assert [g.text for g in groups] == ["Bahnhofstrasse 10"]


class TestClassify:
    def test_inverted_order_is_full_pattern(self):
        group = _group(
            _comp(C.POSTAL_CODE, "8001", 0), _comp(C.CITY, "Zürich", 5),
            _comp(C.STREET_NAME, "Bahnhofstrasse", 13), _comp(C.STREET_NUMBER, "10", 28),
        )
        assert group.pattern == AddressPattern.SWISS

    def test_interleaved_order_is_partial(self):
        group = _group(
            _comp(C.CITY, "Bern", 0), _comp(C.POSTAL_CODE, "CH-3011", 5),
            _comp(C.STREET_NAME, "Bundesplatz", 13), _comp(C.STREET_NUMBER, "3", 25),
        )
        assert group.pattern == AddressPattern.PARTIAL

    def test_street_split_by_locality_is_partial(self):
        group = _group(
            _comp(C.STREET_NAME, "Bahnhofstrasse", 0), _comp(C.POSTAL_CODE, "8001", 15),
            _comp(C.CITY, "Zürich", 20), _comp(C.STREET_NUMBER, "10", 27),
        )
        assert group.pattern == AddressPattern.PARTIAL

    def test_eu_five_digit(self):
        group = _group(
            _comp(C.STREET_NAME, "Hauptstraße", 0), _comp(C.STREET_NUMBER, "5", 12),
            _comp(C.POSTAL_CODE, "80331", 15), _comp(C.CITY, "München", 21),
        )
        assert group.pattern == AddressPattern.EU

    def test_foreign_country_is_eu(self):
        group = _group(
            _comp(C.STREET_NAME, "Rue X", 0), _comp(C.STREET_NUMBER, "5", 6),
            _comp(C.POSTAL_CODE, "1234", 9), _comp(C.CITY, "Y", 14),
            _comp(C.COUNTRY, "France", 17),
        )
        assert group.pattern == AddressPattern.EU

    def test_partial_street_and_postal(self):
        group = _group(_comp(C.STREET_NAME, "Bahnhofstrasse", 0), _comp(C.POSTAL_CODE, "8001", 16))
        assert group.pattern == AddressPattern.PARTIAL

    def test_partial_postal_and_city(self):
        assert _group(_comp(C.POSTAL_CODE, "8001", 0), _comp(C.CITY, "Zürich", 5)).pattern \
            == AddressPattern.PARTIAL

    def test_street_and_number_only(self):
        group = _group(_comp(C.STREET_NAME, "Bahnhofstrasse", 0), _comp(C.STREET_NUMBER, "10", 15))
        assert group.pattern == AddressPattern.NONE


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class TestScorer:
    def test_full_swiss_address(self, postal_db, detector):
        group = AddressLinker().link(ZURICH, detector.detect(ZURICH))[0]
        scored = AddressScorer(postal_db).score(group)
        assert scored.confidence == 1.0
        assert scored.status == STATUS_CONFIRMED
        assert set(scored.factors) == {"components", "pattern", "postal", "city_match"}
        assert scored.breakdown == {
            "street": "Bahnhofstrasse",
            "number": "10",
            "postal": "8001",
            "city": "Zürich",
            "country": None,
            "canton": "ZH",
        }

    def test_unknown_code_in_range(self, postal_db):
        group = _group(_comp(C.STREET_NAME, "Bahnhofstrasse", 0), _comp(C.POSTAL_CODE, "1999", 16))
        scored = AddressScorer(postal_db).score(group)
        assert scored.confidence == pytest.approx(0.6)
        assert scored.status == STATUS_PARTIAL
        assert not scored.flagged_for_review

    def test_out_of_range_code_flagged(self, postal_db):
        group = _group(_comp(C.POSTAL_CODE, "9999", 0), _comp(C.CITY, "Nowhere", 5))
        scored = AddressScorer(postal_db).score(group)
        assert scored.confidence == pytest.approx(0.5)
        assert scored.status == STATUS_REVIEW
        assert scored.flagged_for_review
        assert "postal" not in scored.factors


# ---------------------------------------------------------------------------
# Pass
# ---------------------------------------------------------------------------

class TestAddressRelationshipPass:
    def test_group_becomes_address_with_hidden_components(self, postal_db):
        out = AddressRelationshipPass(postal_db).execute(ZURICH, [], PipelineContext())
        visible = [e for e in out if not e.hidden]
        hidden = [e for e in out if e.hidden]
        assert len(visible) == 1
        address = visible[0]
        assert address.type == PIIType.ADDRESS
        assert address.text == ZURICH
        assert address.metadata["grouped_address"] is True
        assert len(hidden) == 4
        assert all(h.metadata["component_of"] == address.id for h in hidden)

    def test_absorbs_overlapping_candidates(self, postal_db):
        candidate = Entity(
            type=PIIType.SWISS_ADDRESS, text="8001 Zürich", start=19, end=30,
            confidence=0.82, source=DetectionSource.ML,
        )
        email = Entity(type=PIIType.EMAIL, text="x@y.ch", start=39, end=45, confidence=0.9)
        text = ZURICH + " - Mail: x@y.ch"
        out = AddressRelationshipPass(postal_db).execute(text, [candidate, email], PipelineContext())
        visible = [e for e in out if not e.hidden]
        assert [e.type for e in visible] == [PIIType.EMAIL, PIIType.ADDRESS]
        address = visible[1]
        assert address.source == DetectionSource.BOTH
        assert address.metadata["consumed"] == ["SWISS_ADDRESS"]

    def test_lone_street_kept_as_review_candidate(self, postal_db):
        text = "Please send it to Bahnhofstrasse soon."
        out = AddressRelationshipPass(postal_db).execute(text, [], PipelineContext())
        assert len(out) == 1
        street = out[0]
        assert street.text == "Bahnhofstrasse"
        assert street.confidence <= 0.45
        assert street.flagged_for_review
        assert street.metadata["component_type"] == "STREET_NAME"

    def test_lone_component_covered_by_entity_not_duplicated(self, postal_db):
        text = "Ref 3000 Bern"
        existing = Entity(type=PIIType.SWISS_ADDRESS, text="3000 Bern", start=4, end=13, confidence=0.8)
        out = AddressRelationshipPass(postal_db).execute(text, [existing], PipelineContext())
        # postal code + city link into a PARTIAL group that absorbs the candidate
        visible = [e for e in out if not e.hidden]
        assert len(visible) == 1
        assert visible[0].type == PIIType.ADDRESS

    def test_rejected_locality_not_rebuilt(self, postal_db):
        text = "In 2021 Basel was fine."
        ctx = PipelineContext()
        ctx.metadata["validation_rejected"] = [{"type": "SWISS_ADDRESS", "start": 3, "end": 13}]
        assert AddressRelationshipPass(postal_db).execute(text, [], ctx) == []

    def test_rejected_span_does_not_block_street_address(self, postal_db):
        ctx = PipelineContext()
        ctx.metadata["validation_rejected"] = [{"type": "SWISS_ADDRESS", "start": 19, "end": 30}]
        out = AddressRelationshipPass(postal_db).execute(ZURICH, [], ctx)
        assert [e.text for e in out if not e.hidden] == [ZURICH]

    def test_rejected_span_of_other_type_ignored(self, postal_db):
        text = "In 2021 Basel was fine."
        ctx = PipelineContext()
        ctx.metadata["validation_rejected"] = [{"type": "DATE", "start": 3, "end": 13}]
        out = AddressRelationshipPass(postal_db).execute(text, [], ctx)
        assert [e.type for e in out if not e.hidden] == [PIIType.ADDRESS]

    def test_no_components_is_noop(self, postal_db):
        ent = Entity(type=PIIType.EMAIL, text="a@b.ch", start=0, end=6, confidence=0.9)
        out = AddressRelationshipPass(postal_db).execute("a@b.ch", [ent], PipelineContext())
        assert out == [ent]

    def test_proximity_option(self, postal_db):
        text = "8001" + " " * 20 + "Zürich"
        ctx = PipelineContext(config={"address_proximity": 5})
        out = AddressRelationshipPass(postal_db).execute(text, [], ctx)
        assert all(e.metadata.get("grouped_address") is None for e in out)
