"""
Tests for response decoding and practice payload validation.
"""

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(__file__))

from errors import EmptyResponse, GenerationFailed, MalformedStructuredResponse
from response_parser import (
    DEFAULT_PRACTICE_TITLE,
    PracticePayload,
    SchemaError,
    decode_practice_payload,
    fix_backslashes,
    parse_response,
)


def test_free_text_modes_keep_raw_content():
    raw = "Mitochondria produce ATP through $$C_6H_{12}O_6 + 6O_2$$ respiration."
    result = parse_response(raw, "explain", "Science", fallback_title="mitochondria")

    assert result.title == "mitochondria"
    assert result.content == raw
    assert result.mode == "explain"
    assert result.subject == "Science"
    assert result.questions is None


@pytest.mark.parametrize("raw", [None, ""])
def test_empty_response_fails(raw):
    with pytest.raises(EmptyResponse):
        parse_response(raw, "summarize", "General", fallback_title="anything")


def test_empty_response_is_a_generation_failure():
    assert issubclass(EmptyResponse, GenerationFailed)


def test_practice_payload_becomes_result(practice_json):
    result = parse_response(practice_json, "practice", "Mathematics", fallback_title="ignored")

    assert result.title == "Doubling Drill"
    assert result.mode == "practice"
    assert len(result.questions) == 3
    first = result.questions[0]
    assert first.options == ("1", "2", "3")
    assert first.correct_answer == 1
    assert first.hint == "Think about doubling."


def test_missing_correct_answer_is_malformed(practice_data):
    del practice_data["questions"][2]["correctAnswer"]

    with pytest.raises(MalformedStructuredResponse) as exc_info:
        parse_response(json.dumps(practice_data), "practice", "Mathematics", "t")
    assert "correctAnswer" in exc_info.value.reason, f"❌ Reason should name the field: {exc_info.value.reason}"


def test_snake_case_answer_key_is_malformed(practice_data):
    """Only the correctAnswer wire key carries the answer index."""
    question = practice_data["questions"][0]
    question["correct_answer"] = question.pop("correctAnswer")

    with pytest.raises(MalformedStructuredResponse) as exc_info:
        parse_response(json.dumps(practice_data), "practice", "Mathematics", "t")
    assert "correctAnswer" in exc_info.value.reason


@pytest.mark.parametrize("value", ["1", True, 1.0])
def test_non_integer_answer_index_is_malformed(practice_data, value):
    practice_data["questions"][1]["correctAnswer"] = value

    with pytest.raises(MalformedStructuredResponse):
        parse_response(json.dumps(practice_data), "practice", "Mathematics", "t")


@pytest.mark.parametrize("field", ["question", "options", "explanation", "hint"])
def test_any_missing_question_field_is_malformed(practice_data, field):
    del practice_data["questions"][0][field]

    with pytest.raises(MalformedStructuredResponse):
        parse_response(json.dumps(practice_data), "practice", "Mathematics", "t")


def test_empty_question_list_is_malformed(practice_data):
    practice_data["questions"] = []

    with pytest.raises(MalformedStructuredResponse):
        parse_response(json.dumps(practice_data), "practice", "Mathematics", "t")


def test_missing_question_list_is_malformed(practice_data):
    del practice_data["questions"]

    with pytest.raises(MalformedStructuredResponse):
        parse_response(json.dumps(practice_data), "practice", "Mathematics", "t")


@pytest.mark.parametrize("answer", [-1, 3, 10])
def test_answer_index_out_of_range_is_malformed(practice_data, answer):
    practice_data["questions"][1]["correctAnswer"] = answer

    with pytest.raises(MalformedStructuredResponse):
        parse_response(json.dumps(practice_data), "practice", "Mathematics", "t")


def test_single_option_is_malformed(practice_data):
    practice_data["questions"][0]["options"] = ["only"]
    practice_data["questions"][0]["correctAnswer"] = 0

    with pytest.raises(MalformedStructuredResponse):
        parse_response(json.dumps(practice_data), "practice", "Mathematics", "t")


@pytest.mark.parametrize("raw", ["not json at all", "[1, 2, 3]", '"just a string"', "{\"title\": "])
def test_undecodable_payload_is_malformed(raw):
    with pytest.raises(MalformedStructuredResponse):
        parse_response(raw, "practice", "General", "t")


def test_title_and_content_defaults(practice_data):
    practice_data["title"] = ""
    del practice_data["content"]
    result = parse_response(json.dumps(practice_data), "practice", "General", "t")

    assert result.title == DEFAULT_PRACTICE_TITLE
    assert result.content == ""


def test_fenced_payload_with_raw_latex_is_recovered(practice_data):
    """Unescaped LaTeX backslashes inside a code fence are repaired."""
    body = json.dumps(practice_data).replace(
        "Warm up with", "Use \\sqrt{x} and \\frac{1}{2} \\times 3 and"
    )
    raw = f"Here are your questions:\n```json\n{body}\n```"

    result = parse_response(raw, "practice", "Mathematics", "t")

    assert result.content.startswith("Use \\sqrt{x} and \\frac{1}{2} \\times 3 and"), \
        f"❌ LaTeX commands were decoded as control characters: {result.content!r}"
    assert "\f" not in result.content and "\t" not in result.content
    assert len(result.questions) == 3


def test_fix_backslashes_keeps_valid_escapes():
    assert fix_backslashes('"a\\nB"') == '"a\\nB"'
    assert fix_backslashes('"a\\n b"') == '"a\\n b"'
    assert fix_backslashes('"\\u00e9\\/\\""') == '"\\u00e9\\/\\""'
    assert fix_backslashes('"\\\\beta"') == '"\\\\beta"'


def test_fix_backslashes_escapes_latex_commands():
    """Commands that start like a JSON escape still get their backslash doubled."""
    assert fix_backslashes('"\\alpha"') == '"\\\\alpha"'
    assert fix_backslashes('"\\frac"') == '"\\\\frac"'
    assert fix_backslashes('"\\times \\nabla \\beta \\rho"') == '"\\\\times \\\\nabla \\\\beta \\\\rho"'
    assert fix_backslashes('"\\underline"') == '"\\\\underline"'


def test_decode_returns_tagged_outcome(practice_json):
    assert isinstance(decode_practice_payload(practice_json), PracticePayload)

    outcome = decode_practice_payload('{"title": "x"}')
    assert isinstance(outcome, SchemaError)
    assert "questions" in outcome.reason


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
