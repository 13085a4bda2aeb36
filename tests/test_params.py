"""Tests for AI call parameter normalization."""

import json

import pytest

from slackmod.exceptions import ErrorKind
from slackmod.params import (
    ParamShape,
    ParsedParams,
    ParseFailure,
    normalize,
    normalize_mapping,
    parse_params,
)


class TestNormalize:
    """Tests for every parameter shape the AI layer sends."""

    def test_none_becomes_empty_mapping(self):
        assert normalize(None) == {}

    def test_mapping_returned_unchanged(self):
        params = {"channel": "#general", "text": "hi"}
        assert normalize(params) is params

    def test_json_string(self):
        assert normalize('{"query": "hello"}') == {"query": "hello"}

    def test_array_encoded_as_string(self):
        """A JSON array whose first element is itself a JSON string."""
        raw = '["{\\"query\\":\\"hello\\"}"]'
        assert normalize(raw) == {"query": "hello"}

    def test_list_with_json_string(self):
        assert normalize(['{"limit": 5}']) == {"limit": 5}

    def test_list_with_bad_json_returned_unchanged(self):
        raw = ["not json"]
        assert normalize(raw) is raw

    def test_list_without_string_returned_unchanged(self):
        raw = [1, 2, 3]
        assert normalize(raw) is raw

    def test_array_like_mapping(self):
        raw = {"0": json.dumps({"channel": "C12345678"}), "length": 1}
        assert normalize(raw) == {"channel": "C12345678"}

    def test_array_like_with_bad_json_returned_unchanged(self):
        raw = {"0": "{broken", "length": 1}
        assert normalize(raw) is raw

    def test_unparseable_string_wrapped_as_raw(self):
        assert normalize("send hi to general") == {"raw": "send hi to general"}

    def test_bad_inner_string_wrapped_as_raw(self):
        raw = '["not json"]'
        assert normalize(raw) == {"raw": raw}

    def test_other_values_returned_unchanged(self):
        assert normalize(42) == 42

    def test_string_array_of_numbers_returned_parsed(self):
        assert normalize("[1, 2]") == [1, 2]

    @pytest.mark.parametrize("raw", [
        None,
        {"a": 1},
        '{"a": 1}',
        '["{\\"a\\": 1}"]',
        ['{"a": 1}'],
        {"0": '{"a": 1}', "length": 1},
    ])
    def test_normalizing_twice_is_a_fixed_point(self, raw):
        once = normalize(raw)
        assert normalize(once) == once

    def test_never_raises_on_odd_input(self):
        for raw in ("", "[", b"bytes", object(), {"length": "x", "0": 1}):
            normalize(raw)

    def test_deeply_nested_json_wrapped_as_raw(self):
        raw = "[" * 100000 + "]" * 100000
        assert normalize(raw) == {"raw": raw}

    def test_deeply_nested_json_in_containers_returned_unchanged(self):
        nested = "[" * 100000
        assert normalize([nested]) == [nested]
        array_like = {"0": nested, "length": 1}
        assert normalize(array_like) == array_like


class TestParseParams:
    """Tests for the discriminated parse result."""

    def test_success_reports_shape(self):
        result = parse_params('["{\\"q\\": 1}"]')
        assert isinstance(result, ParsedParams)
        assert result.shape == ParamShape.JSON_ARRAY
        assert result.value == {"q": 1}

    def test_array_like_shape(self):
        result = parse_params({"0": "{}", "length": 1})
        assert result.shape == ParamShape.ARRAY_LIKE

    def test_failure_carries_fallback_and_kind(self):
        result = parse_params("nope")
        assert isinstance(result, ParseFailure)
        assert result.kind == ErrorKind.PARSE_ERROR
        assert result.fallback == {"raw": "nope"}
        assert result.reason

    def test_boolean_length_is_not_array_like(self):
        result = parse_params({"0": "{}", "length": True})
        assert result.shape == ParamShape.MAPPING


class TestNormalizeMapping:
    """Tests for the dict-coercing wrapper used by action dispatch."""

    def test_mapping_copied(self):
        params = {"a": 1}
        result = normalize_mapping(params)
        assert result == params
        assert result is not params

    def test_non_mapping_becomes_empty(self):
        assert normalize_mapping("[1, 2]") == {}
        assert normalize_mapping(7) == {}
