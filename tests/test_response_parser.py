"""Tests for lenient JSON parsing of model replies."""

from __future__ import annotations

import pytest

from foreclosure_abstract.response_parser import find_balanced_json, parse_json_response


class TestParseJsonResponse:
    def test_plain_object(self) -> None:
        result = parse_json_response('{"county": "Collin County"}')
        assert result.ok
        assert result.data == {"county": "Collin County"}

    def test_markdown_fence(self) -> None:
        reply = '```json\n{"note_amount": "1234567"}\n```'
        assert parse_json_response(reply).data == {"note_amount": "1234567"}

    def test_prose_around_object(self) -> None:
        reply = 'Here is the data you asked for: {"trustee": "Pat Trustee"} Let me know!'
        assert parse_json_response(reply).data == {"trustee": "Pat Trustee"}

    def test_braces_inside_strings(self) -> None:
        reply = 'Result: {"legal": "LOT 7 {BLOCK A}", "county": "Collin"} done'
        assert parse_json_response(reply).data == {"legal": "LOT 7 {BLOCK A}", "county": "Collin"}

    def test_top_level_array_yields_first_object(self) -> None:
        reply = '[{"grantor_name": "A"}, {"grantor_name": "B"}]'
        assert parse_json_response(reply).data == {"grantor_name": "A"}

    @pytest.mark.parametrize("reply", [None, "", "   ", "I could not read this document."])
    def test_typed_failure(self, reply: str | None) -> None:
        result = parse_json_response(reply)
        assert not result.ok
        assert result.data is None
        assert result.error

    def test_scalar_is_a_failure(self) -> None:
        result = parse_json_response("42")
        assert not result.ok
        assert "int" in result.error

    def test_array_without_objects(self) -> None:
        assert not parse_json_response("[1, 2, 3]").ok

    def test_truncated_json(self) -> None:
        assert not parse_json_response('{"county": "Collin", "trustee": ').ok


class TestFindBalancedJson:
    def test_nested(self) -> None:
        assert find_balanced_json('x {"a": {"b": [1, 2]}} y') == '{"a": {"b": [1, 2]}}'

    def test_escaped_quote(self) -> None:
        text = r'{"a": "say \"}\" please"}'
        assert find_balanced_json(text) == text

    def test_none_when_unbalanced(self) -> None:
        assert find_balanced_json('{"a": 1') is None

    def test_skips_mismatched_candidates(self) -> None:
        assert find_balanced_json('{] [} {"a": 1}') == '{"a": 1}'

    def test_long_run_of_mismatched_brackets(self) -> None:
        assert find_balanced_json("{]" * 5000) is None


class TestHostileReplies:
    def test_stray_brackets_are_a_typed_failure(self) -> None:
        result = parse_json_response("{]" * 5000)
        assert not result.ok
        assert result.error

    def test_deep_nesting_is_a_typed_failure(self) -> None:
        result = parse_json_response("[" * 100_000 + "]" * 100_000)
        assert not result.ok
