"""Tests for duration parsing and formatting."""

from datetime import datetime, timedelta, timezone

import pytest

from modwarden.util.duration import (
    MAX_DURATION_MS,
    MS_PER_DAY,
    MS_PER_HOUR,
    MS_PER_MINUTE,
    MS_PER_SECOND,
    MS_PER_WEEK,
    format_duration,
    parse_duration,
    parse_duration_timedelta,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("0s", 0),
        ("5s", 5 * MS_PER_SECOND),
        ("1m", MS_PER_MINUTE),
        ("1h", MS_PER_HOUR),
        ("1d", MS_PER_DAY),
        ("1w", MS_PER_WEEK),
        ("90m", 90 * MS_PER_MINUTE),
        ("1H", MS_PER_HOUR),
        ("  2d  ", 2 * MS_PER_DAY),
        ("1h 30m", 90 * MS_PER_MINUTE),
        ("1d12h", 36 * MS_PER_HOUR),
    ],
)
def test_parse_duration_accepts_valid_tokens(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", None, "-5m", "+5m", "5", "m", "5y", "five minutes", "1.5h", "5m-"])
def test_parse_duration_rejects_invalid_text(text):
    assert parse_duration(text) is None


@pytest.mark.parametrize(
    "milliseconds, expected",
    [
        (0, "0s"),
        (999, "0s"),
        (5 * MS_PER_SECOND, "5s"),
        (MS_PER_HOUR, "1h"),
        (5 * MS_PER_MINUTE + 30 * MS_PER_SECOND, "5m 30s"),
        (90 * MS_PER_MINUTE, "1h 30m"),
        (8 * MS_PER_DAY, "1w 1d"),
    ],
)
def test_format_duration_uses_largest_units(milliseconds, expected):
    assert format_duration(milliseconds) == expected


@pytest.mark.parametrize("text", ["0s", "5s", "1m", "1h", "1d", "1w", "90m"])
def test_format_is_left_inverse_of_parse(text):
    parsed = parse_duration(text)
    assert parse_duration(format_duration(parsed)) == parsed


def test_parse_duration_timedelta():
    assert parse_duration_timedelta("1h") == timedelta(hours=1)
    assert parse_duration_timedelta("bogus") is None


def test_oversized_magnitude_is_rejected():
    assert parse_duration("99999999999w") is None
    assert parse_duration_timedelta("99999999999w") is None


def test_longest_accepted_duration_fits_in_a_datetime():
    assert parse_duration("5200w") == 5200 * MS_PER_WEEK
    assert parse_duration("5300w") is None
    datetime.now(timezone.utc) + timedelta(milliseconds=MAX_DURATION_MS)
