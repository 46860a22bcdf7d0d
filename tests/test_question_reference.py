"""Tests for question-number extraction."""

import pytest

from services.tutor.question_reference import extract_question_number, is_affirmative


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Question 5b", "5"),
        ("question 12", "12"),
        ("Can you help with Q7?", "7"),
        ("q3a", "3"),
        ("I'm stuck on question 4 part b", "4"),
        ("2a please", "2"),
        ("10", "10"),
        ("  Question   8  ", "8"),
    ],
)
def test_extracts_question_number(text, expected):
    assert extract_question_number(text) == expected


@pytest.mark.parametrize("text", ["help me", "", "   ", "what does this mean?", "the answer is 42"])
def test_returns_none_without_reference(text):
    assert extract_question_number(text) is None


def test_explicit_token_wins_over_leading_number():
    assert extract_question_number("3 marks for question 6") == "6"


@pytest.mark.parametrize("value", [None, 5, ["question 1"]])
def test_non_string_input_never_raises(value):
    assert extract_question_number(value) is None


@pytest.mark.parametrize("text", ["yes", "Yes!", "ok", "yep", " sure "])
def test_affirmative(text):
    assert is_affirmative(text)


@pytest.mark.parametrize("text", ["no", "yes I mean question 2 actually", "", None])
def test_not_affirmative(text):
    assert not is_affirmative(text)
