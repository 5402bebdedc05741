"""Tests for candidate parsing at the model-output boundary."""

from __future__ import annotations

import pytest

from rogerthat.candidates import (
    PARTNER_REQUIRED_FIELDS,
    coerce_birth_year,
    is_blank,
    missing_fields,
    normalize_tagline,
    parse_celebrity_candidate,
    parse_partner_candidate,
    parse_relationship_group,
)
from rogerthat.store import Gender

VALID = {"name": "Jon Doe", "birth_year": 1980, "gender": "male", "tagline": "Chaos in a tuxedo"}


class TestIsBlank:
    @pytest.mark.parametrize("value", [None, "", "   ", 0, [], {}, False])
    def test_blank(self, value):
        assert is_blank(value)

    @pytest.mark.parametrize("value", ["x", 1980, [1], {"a": 1}])
    def test_not_blank(self, value):
        assert not is_blank(value)


class TestParseCelebrityCandidate:
    def test_valid(self):
        candidate = parse_celebrity_candidate(VALID)
        assert candidate is not None
        assert candidate.kind == "celebrity"
        assert candidate.gender == Gender.MALE
        assert candidate.birth_year == 1980

    @pytest.mark.parametrize("field", ["name", "birth_year", "gender", "tagline"])
    def test_missing_required_field_skips(self, field: str):
        item = {**VALID, field: ""}
        assert parse_celebrity_candidate(item) is None

    def test_string_birth_year_coerced(self):
        assert parse_celebrity_candidate({**VALID, "birth_year": " 1975 "}).birth_year == 1975

    def test_bad_birth_year(self):
        assert parse_celebrity_candidate({**VALID, "birth_year": "nineteen"}) is None

    def test_gender_case_insensitive(self):
        assert parse_celebrity_candidate({**VALID, "gender": "Female"}).gender == Gender.FEMALE

    def test_unknown_gender(self):
        assert parse_celebrity_candidate({**VALID, "gender": "robot"}) is None

    def test_citation_kept(self):
        candidate = parse_celebrity_candidate({**VALID, "citation": " https://news.test/a "})
        assert candidate.citation == "https://news.test/a"

    def test_not_a_mapping(self):
        assert parse_celebrity_candidate(["Jon Doe"]) is None


class TestParsePartnerCandidate:
    def test_partner_name_alias_and_default_gender(self):
        candidate = parse_partner_candidate({"partner_name": "Ann Roe", "birth_year": 1985})
        assert candidate is not None
        assert candidate.name == "Ann Roe"
        assert candidate.gender == Gender.FEMALE
        assert candidate.tagline is None

    def test_explicit_gender_wins(self):
        candidate = parse_partner_candidate({"name": "Sam Poe", "birth_year": 1979, "gender": "male"})
        assert candidate.gender == Gender.MALE

    def test_requires_name_and_birth_year(self):
        assert PARTNER_REQUIRED_FIELDS == ("name", "birth_year")
        assert parse_partner_candidate({"name": "Ann Roe"}) is None


class TestParseRelationshipGroup:
    def test_canonical_keys(self):
        group = parse_relationship_group({"celebrity_name": "Jon Doe", "relationships": [{"name": "Ann Roe"}]})
        assert group.kind == "relationship_group"
        assert group.celebrity_name == "Jon Doe"
        assert group.relationships == [{"name": "Ann Roe"}]

    def test_alias_keys(self):
        group = parse_relationship_group({"name": "Jon Doe", "partners": [{"name": "Ann Roe"}, "junk"]})
        assert group.relationships == [{"name": "Ann Roe"}]

    def test_missing_name(self):
        assert parse_relationship_group({"relationships": []}) is None


class TestHelpers:
    def test_normalize_tagline_collapses_whitespace(self):
        assert normalize_tagline("  Pop \n royalty\t no notes ") == "Pop royalty no notes"
        assert normalize_tagline("   ") is None

    def test_coerce_birth_year_rejects_bool(self):
        assert coerce_birth_year(True) is None
        assert coerce_birth_year(1980.0) == 1980

    def test_missing_fields(self):
        assert missing_fields({"name": "Jon"}) == ["birth_year", "gender", "tagline"]
