"""Tests for chat argument parsing."""

import pytest

from momentum.parser.arguments import (
    parse_category,
    parse_day,
    parse_days,
    parse_difficulty,
    parse_offset,
)


def test_parse_day():
    assert parse_day("mon") == "Monday"
    assert parse_day("Wednesday") == "Wednesday"
    assert parse_day("SAT") == "Saturday"


@pytest.mark.parametrize("text", ["mo", "monkey", "xyz"])
def test_parse_day_rejects(text):
    with pytest.raises(ValueError):
        parse_day(text)


def test_parse_days_keywords():
    assert len(parse_days("all")) == 7
    assert parse_days("weekend") == ["Saturday", "Sunday"]
    assert parse_days("weekdays")[-1] == "Friday"


def test_parse_days_lists_and_ranges():
    assert parse_days("mon,wed,fri") == ["Monday", "Wednesday", "Friday"]
    assert parse_days("mon-wed,sun") == ["Monday", "Tuesday", "Wednesday", "Sunday"]
    assert parse_days("tue,tue") == ["Tuesday"]


def test_parse_days_rejects_backwards_range():
    with pytest.raises(ValueError):
        parse_days("fri-mon")


def test_parse_category():
    assert parse_category("creative") == "Creative"

    with pytest.raises(ValueError, match="Use one of"):
        parse_category("chores")


def test_parse_difficulty():
    assert parse_difficulty(None) == 1.0
    assert parse_difficulty("harder") == 1.25
    assert parse_difficulty("Easy") == 0.8

    with pytest.raises(ValueError):
        parse_difficulty("brutal")


def test_parse_offset():
    assert parse_offset("-10") == -10
    assert parse_offset("+5") == 5

    with pytest.raises(ValueError):
        parse_offset("ten")
