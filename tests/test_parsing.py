"""Tests for model output parsing."""

import pytest

from ledgerlearn.inference.parsing import (
    Fallback,
    Parsed,
    coerce_bool,
    coerce_confidence,
    parse_model_json,
)


class TestParseModelJson:
    """Tests for parse_model_json()."""

    def test_plain_object(self) -> None:
        result = parse_model_json('{"is_new_document": true, "confidence": 0.9}')
        assert result == Parsed({"is_new_document": True, "confidence": 0.9})

    def test_markdown_code_block(self) -> None:
        result = parse_model_json('```json\n{"account": "6212"}\n```')
        assert isinstance(result, Parsed)
        assert result.get("account") == "6212"

    def test_object_in_prose(self) -> None:
        result = parse_model_json('Sure! Here is my answer: {"account": "5410"} Hope it helps.')
        assert result.get("account") == "5410"

    def test_braces_inside_strings(self) -> None:
        text = 'Answer: {"reasoning": "looks like {a} header", "account": "6110"} done'
        result = parse_model_json(text)
        assert result.get("reasoning") == "looks like {a} header"
        assert result.get("account") == "6110"

    def test_nested_object(self) -> None:
        result = parse_model_json('noise {"a": {"b": 1}, "c": 2} trailing')
        assert result.get("a") == {"b": 1}
        assert result.get("c") == 2

    @pytest.mark.parametrize("content", [None, "", "   \n"])
    def test_empty_response(self, content) -> None:
        assert parse_model_json(content) == Fallback("empty response")

    def test_no_object(self) -> None:
        assert parse_model_json("I cannot tell.") == Fallback("no JSON object in response")

    def test_invalid_json(self) -> None:
        result = parse_model_json("result: {'account': '6212'}")
        assert isinstance(result, Fallback)
        assert result.reason.startswith("invalid JSON")

    def test_array_rejected(self) -> None:
        assert parse_model_json("[1, 2]") == Fallback("expected a JSON object, got list")

    def test_get_default(self) -> None:
        assert Parsed({}).get("missing", "x") == "x"


class TestCoercion:
    """Tests for coerce_confidence() and coerce_bool()."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.42, 0.42),
            ("0.8", 0.8),
            (3, 1.0),
            (-1, 0.0),
            (None, 0.7),
            (True, 0.7),
            ("unsure", 0.7),
            (float("nan"), 0.7),
            ([0.5], 0.7),
        ],
    )
    def test_coerce_confidence(self, value, expected) -> None:
        assert coerce_confidence(value, 0.7) == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (True, True),
            (False, False),
            ("true", True),
            (" Yes ", True),
            ("1", True),
            ("FALSE", False),
            ("no", False),
            ("0", False),
            (1, True),
            (0, False),
            ("maybe", None),
            (None, None),
        ],
    )
    def test_coerce_bool(self, value, expected) -> None:
        assert coerce_bool(value) is expected
