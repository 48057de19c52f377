"""Tests for core.detection.deny_list."""

from __future__ import annotations

import json
import re

from core.detection.deny_list import DenyList
from models.schemas import PIIType


class TestShippedList:
    def test_loads_without_error(self, deny_list):
        assert deny_list.load_error is None

    def test_global_table_header(self, deny_list):
        assert deny_list.is_denied("Montant", PIIType.PERSON)
        assert deny_list.is_denied("  betrag ", PIIType.ORGANIZATION)

    def test_person_month_abbreviation(self, deny_list):
        assert deny_list.is_denied("Oct", PIIType.PERSON)
        assert not deny_list.is_denied("Oct", PIIType.DATE)

    def test_person_company_suffix(self, deny_list):
        assert deny_list.is_denied("Muster AG", PIIType.PERSON)

    def test_person_street_prefix(self, deny_list):
        assert deny_list.is_denied("Rue du Lac", PIIType.PERSON)

    def test_real_name_kept(self, deny_list):
        assert not deny_list.is_denied("Anna Muster", PIIType.PERSON)

    def test_location_country(self, deny_list):
        assert deny_list.is_denied("Schweiz", PIIType.LOCATION)
        assert not deny_list.is_denied("Schweiz", PIIType.PERSON)

    def test_language_scoped(self, deny_list):
        assert deny_list.is_denied("Monsieur", PIIType.PERSON, language="fr")
        assert not deny_list.is_denied("Monsieur", PIIType.PERSON, language="de")
        assert not deny_list.is_denied("Monsieur", PIIType.PERSON)


class TestConstruction:
    def test_add_global(self):
        deny = DenyList()
        deny.add("Confidential")
        assert deny.is_denied("CONFIDENTIAL", "EMAIL")

    def test_add_per_type_accepts_enum_or_str(self):
        deny = DenyList()
        deny.add("Lorem", entity_type=PIIType.PERSON)
        deny.add("Ipsum", entity_type="PERSON")
        assert deny.is_denied("lorem", PIIType.PERSON)
        assert deny.is_denied("ipsum", "PERSON")
        assert not deny.is_denied("lorem", PIIType.LOCATION)

    def test_regex_entry(self):
        deny = DenyList(by_type={"EMAIL": [re.compile(r"@example\.(com|org)$")]})
        assert deny.is_denied("test@example.com", PIIType.EMAIL)
        assert not deny.is_denied("test@firma.ch", PIIType.EMAIL)

    def test_exact_match_only_for_strings(self):
        deny = DenyList(global_terms=["Total"])
        assert not deny.is_denied("Total Solutions", PIIType.ORGANIZATION)


class TestFromFile:
    def test_custom_file(self, tmp_path):
        path = tmp_path / "deny.json"
        path.write_text(json.dumps({
            "version": "2",
            "global": ["Foo"],
            "by_entity_type": {
                "EMAIL": [{"pattern": "^noreply@", "type": "regex", "flags": "i"}],
            },
            "by_language": {"it": ["Egregio"]},
        }), encoding="utf-8")
        deny = DenyList.from_file(path)
        assert deny.load_error is None
        assert deny.is_denied("foo", PIIType.PERSON)
        assert deny.is_denied("NoReply@firma.ch", PIIType.EMAIL)
        assert deny.is_denied("Egregio", PIIType.PERSON, language="it")

    def test_missing_file_falls_back(self, tmp_path):
        deny = DenyList.from_file(tmp_path / "nope.json")
        assert deny.load_error is not None
        assert deny.is_denied("Montant", PIIType.PERSON)

    def test_malformed_json_falls_back(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        deny = DenyList.from_file(path)
        assert deny.load_error.startswith("JSONDecodeError")
        assert deny.is_denied("Invoice", PIIType.ORGANIZATION)

    def test_bad_regex_falls_back(self, tmp_path):
        path = tmp_path / "bad_regex.json"
        path.write_text(json.dumps({
            "global": [{"pattern": "([", "type": "regex"}],
        }), encoding="utf-8")
        deny = DenyList.from_file(path)
        assert deny.load_error is not None
