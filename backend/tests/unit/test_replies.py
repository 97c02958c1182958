"""
Unit Tests: JSON extraction from free-form model replies
"""

from __future__ import annotations

import pytest

from documind.services.replies import extract_json_object


@pytest.mark.unit
@pytest.mark.parametrize("text, expected", [
    ('{"answer": "yes"}',                                   {"answer": "yes"}),
    ('  \n{"answer": "yes"}\n',                             {"answer": "yes"}),
    ('```json\n{"answer": "fenced"}\n```',                  {"answer": "fenced"}),
    ('Sure!\n```\n{"answer": "bare fence"}\n```\nThanks',   {"answer": "bare fence"}),
    ('The result is {"answer": "inline"} as requested.',    {"answer": "inline"}),
])
def test_extracts_object(text, expected):
    assert extract_json_object(text) == expected


@pytest.mark.unit
@pytest.mark.parametrize("text", [
    "",
    "no json here",
    "[1, 2, 3]",
    "{not: valid}",
    "} backwards {",
])
def test_returns_none_without_an_object(text):
    assert extract_json_object(text) is None
