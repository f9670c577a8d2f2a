from __future__ import annotations

from datetime import timedelta

import pytest

from services.cadence import DEFAULT_CADENCE, format_duration, parse_duration
from services.errors import InvalidCadenceError


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1s", timedelta(seconds=1)),
        ("500ms", timedelta(milliseconds=500)),
        ("1m30s", timedelta(seconds=90)),
        ("1.5h", timedelta(minutes=90)),
        ("2h45m", timedelta(hours=2, minutes=45)),
        ("250us", timedelta(microseconds=250)),
        ("1500µs", timedelta(microseconds=1500)),
        (" 3s ", timedelta(seconds=3)),
        ("+2s", timedelta(seconds=2)),
    ],
)
def test_parse_duration_accepts_common_forms(text: str, expected: timedelta) -> None:
    assert parse_duration(text) == expected


def test_parse_duration_empty_means_default() -> None:
    assert parse_duration("") == DEFAULT_CADENCE
    assert DEFAULT_CADENCE == timedelta(seconds=1)


@pytest.mark.parametrize("text", ["abc", "1", "1x", "0s", "-1s", "100ns", "s", "1s2"])
def test_parse_duration_rejects_invalid_and_non_positive(text: str) -> None:
    with pytest.raises(InvalidCadenceError):
        parse_duration(text)


def test_invalid_cadence_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_duration("soon")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (timedelta(0), "0s"),
        (timedelta(seconds=2), "2s"),
        (timedelta(seconds=1.5), "1.5s"),
        (timedelta(seconds=90), "1m30s"),
        (timedelta(hours=1), "1h0m0s"),
        (timedelta(milliseconds=250), "250ms"),
        (timedelta(microseconds=1500), "1.5ms"),
        (timedelta(microseconds=500), "500µs"),
    ],
)
def test_format_duration_canonical_form(value: timedelta, expected: str) -> None:
    assert format_duration(value) == expected


def test_formatted_duration_parses_back() -> None:
    for text in ("2s", "1m30s", "1h0m0s", "250ms"):
        assert format_duration(parse_duration(text)) == text
