"""Tests for core.detection.postal_db."""

from __future__ import annotations

import json

from core.detection.postal_db import SwissPostalDatabase


class TestLookup:
    def test_table_loaded(self, postal_db):
        assert postal_db.available
        assert postal_db.load_error is None
        assert len(postal_db) > 50

    def test_lookup(self, postal_db):
        entry = postal_db.lookup("1201")
        assert entry.city == "Genève"
        assert entry.canton == "GE"
        assert "Genf" in entry.aliases

    def test_lookup_with_prefix(self, postal_db):
        assert postal_db.lookup("CH-8001").city == "Zürich"

    def test_unknown_code(self, postal_db):
        assert postal_db.lookup("1999") is None
        assert not postal_db.is_valid("1999")

    def test_canton_for_unknown_uses_range(self, postal_db):
        assert postal_db.canton_for("1999") == "VS"
        assert postal_db.canton_for("0999") is None


class TestCityMatching:
    def test_official_name(self, postal_db):
        assert postal_db.city_matches("3000", "Bern")

    def test_alias_and_accents(self, postal_db):
        assert postal_db.city_matches("1201", "Geneva")
        assert postal_db.city_matches("1201", "GENEVE")
        assert postal_db.city_matches("4001", "Bale")

    def test_wrong_city(self, postal_db):
        assert not postal_db.city_matches("1201", "Lausanne")

    def test_known_city(self, postal_db):
        assert postal_db.is_known_city("zurich")
        assert "8001" in postal_db.codes_for_city("Zürich")
        assert not postal_db.is_known_city("Atlantis")

    def test_city_names_longest_first(self, postal_db):
        names = postal_db.city_names()
        assert len(names[0]) >= len(names[-1])


class TestDegraded:
    def test_missing_file(self, tmp_path):
        db = SwissPostalDatabase.from_file(tmp_path / "missing.json")
        assert not db.available
        assert db.load_error is not None
        # range-only answers
        assert db.is_valid("1201")
        assert not db.is_valid("9999")
        assert not db.city_matches("1201", "Genève")

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "codes.json"
        path.write_text(json.dumps({"codes": {"1000": {"canton": "VD"}}}), encoding="utf-8")
        db = SwissPostalDatabase.from_file(path)
        assert db.load_error.startswith("KeyError")

    def test_in_range(self):
        db = SwissPostalDatabase()
        assert db.in_range("1000")
        assert db.in_range("9699")
        assert not db.in_range("9700")
        assert not db.in_range("123")
