"""Tests for model-output JSON parsing."""

import pytest

from app.utils.json_parser import parse_json_safely, parse_match_verdict


@pytest.mark.parametrize(
    "text, expected",
    [
        ('{"match": true}', {"match": True}),
        ('```json\n{"match": false}\n```', {"match": False}),
        ('```\n[1, 2]\n```', [1, 2]),
        ('Here you go: {"match": true, "reason": "ok"} hope it helps', {"match": True, "reason": "ok"}),
        ("", None),
        ("no json here", None),
    ],
)
def test_parse_json_safely(text, expected):
    assert parse_json_safely(text) == expected


def test_verdict_from_json():
    assert parse_match_verdict('{"match": true, "reason": "Same fiscal code"}') == {
        "match": True,
        "reason": "Same fiscal code",
    }


def test_verdict_from_broken_json():
    text = '{"match": false, "reason": "Different street", }'
    assert parse_match_verdict(text) == {"match": False, "reason": "Different street"}


def test_verdict_requires_boolean_match():
    assert parse_match_verdict('{"match": "maybe"}') is None
    assert parse_match_verdict("") is None


def test_verdict_reason_defaults_to_empty():
    assert parse_match_verdict('{"match": true}') == {"match": True, "reason": ""}
