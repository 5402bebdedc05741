"""Tests for rogerthat.shared.json_repair."""

from __future__ import annotations

import json

import pytest

from rogerthat.shared.json_repair import (
    clean_json_text,
    extract_json_list,
    extract_json_object,
    parse_last_json_line,
    remove_trailing_commas,
    repair_truncated_json,
    strip_json_fences,
)

CLEAN = [
    {"name": "Jon Doe", "birth_year": 1980, "gender": "male", "tagline": "Chaos in a tuxedo"},
    {"name": "Ann Roe", "birth_year": 1985, "gender": "female", "tagline": "Pop royalty, no notes"},
]


class TestStripJsonFences:
    def test_json_fence(self):
        assert strip_json_fences('```json\n[1, 2]\n```') == "[1, 2]"

    def test_bare_fence(self):
        assert strip_json_fences("```\n{}\n```") == "{}"

    def test_no_fence(self):
        assert strip_json_fences("  [1]  ") == "[1]"


class TestRemoveTrailingCommas:
    def test_before_bracket_and_brace(self):
        assert remove_trailing_commas('[{"a": 1,}, ]') == '[{"a": 1}]'

    def test_commas_inside_strings_kept(self):
        text = '[{"tagline": "Loves lists like [a, ]", "motto": "Emoji queen :-, }",},]'
        assert remove_trailing_commas(text) == '[{"tagline": "Loves lists like [a, ]", "motto": "Emoji queen :-, }"}]'

    def test_escaped_quote_does_not_end_string(self):
        text = r'["say \", ]",]'
        assert json.loads(remove_trailing_commas(text)) == ['say ", ]']

    def test_valid_list_with_bracket_text_unchanged(self):
        items = [{"tagline": "Loves lists like [a, ]"}, {"tagline": "Emoji queen :-, }"}]
        assert extract_json_list(json.dumps(items)) == items

    def test_clean_json_text_combines_both(self):
        assert json.loads(clean_json_text('```json\n[1, 2,]\n```')) == [1, 2]


class TestExtractJsonList:
    def test_clean_list(self):
        assert extract_json_list(json.dumps(CLEAN)) == CLEAN

    def test_fenced_with_trailing_commas_matches_clean(self):
        text = (
            "```json\n"
            "[\n"
            '  {"name": "Jon Doe", "birth_year": 1980, "gender": "male", "tagline": "Chaos in a tuxedo",},\n'
            '  {"name": "Ann Roe", "birth_year": 1985, "gender": "female", "tagline": "Pop royalty, no notes"},\n'
            "]\n"
            "```"
        )
        assert extract_json_list(text) == CLEAN

    @pytest.mark.parametrize("key", ["data", "results", "relationships", "items"])
    def test_wrapper_keys(self, key: str):
        assert extract_json_list(json.dumps({key: CLEAN})) == CLEAN

    def test_first_wrapper_key_wins(self):
        text = json.dumps({"items": [3], "data": [1]})
        assert extract_json_list(text) == [1]

    def test_truncated_list_repairs_to_prefix(self):
        full = json.dumps(CLEAN)
        truncated = full[: full.index('"Ann Roe"') + 20]
        result = extract_json_list(truncated)
        assert result is not None
        assert result[0] == CLEAN[0]
        assert len(result) <= len(CLEAN)

    def test_truncated_inside_string(self):
        result = extract_json_list('[{"name": "Jon Doe", "tagline": "Chaos in a tux')
        assert result == [{"name": "Jon Doe", "tagline": "Chaos in a tux"}]

    def test_truncated_after_colon_is_cut_back(self):
        text = '[{"name": "Jon Doe", "birth_year": 1980}, {"name": "Ann Roe", "birth_year":'
        result = extract_json_list(text)
        assert result is not None
        assert result[0] == {"name": "Jon Doe", "birth_year": 1980}

    def test_truncation_never_raises(self):
        full = json.dumps({"data": CLEAN})
        for cut in range(len(full)):
            result = extract_json_list(full[:cut])
            assert result is None or isinstance(result, list)

    def test_substring_fallback(self):
        text = 'Here you go: [{"name": "Jon Doe"}] hope that helps'
        assert extract_json_list(text) == [{"name": "Jon Doe"}]

    @pytest.mark.parametrize("text", ["", "   ", "no json here", None, '{"answer": "x"}'])
    def test_returns_none(self, text):
        assert extract_json_list(text) is None


class TestExtractJsonObject:
    def test_fenced_object(self):
        text = '```json\n{"answer": {"name": "Jon Doe"}, "relationships": [],}\n```'
        assert extract_json_object(text) == {"answer": {"name": "Jon Doe"}, "relationships": []}

    def test_truncated_object(self):
        result = extract_json_object('{"answer": {"name": "Jon Doe", "birth_year": 1980')
        assert result == {"answer": {"name": "Jon Doe", "birth_year": 1980}}

    def test_surrounding_prose(self):
        assert extract_json_object('Sure! {"a": 1} Enjoy.') == {"a": 1}

    def test_list_is_not_an_object(self):
        assert extract_json_object("[1, 2]") is None

    def test_empty(self):
        assert extract_json_object("") is None


class TestRepairTruncatedJson:
    def test_balanced_input_unchanged_or_none(self):
        repaired = repair_truncated_json("[1, 2]")
        assert repaired is None or json.loads(repaired) == [1, 2]

    def test_closes_in_lifo_order(self):
        repaired = repair_truncated_json('[{"a": [1, 2')
        assert repaired is not None
        assert json.loads(repaired) == [{"a": [1, 2]}]


class TestParseLastJsonLine:
    def test_last_valid_line_wins(self):
        output = "\n".join(
            [
                '{"generated": [{"name": "A"}]}',
                "progress: working",
                '{"generated": [{"name": "B"}], "failed": []}',
                "trailing noise",
            ]
        )
        assert parse_last_json_line(output, "generated") == {"generated": [{"name": "B"}], "failed": []}

    def test_requires_list_at_key(self):
        assert parse_last_json_line('{"generated": "nope"}', "generated") is None

    def test_empty_output(self):
        assert parse_last_json_line("", "generated") is None
