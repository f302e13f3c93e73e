from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from reminder_bot.core.time_parse import format_clock, parse_time, parse_time_list, parse_time_of_day


@pytest.mark.parametrize(
    "text, expected",
    [
        ("morning", time(9, 0)),
        ("Noon", time(12, 0)),
        ("afternoon", time(14, 0)),
        ("evening", time(18, 0)),
        ("night", time(21, 0)),
        ("midnight", time(0, 0)),
    ],
)
def test_named_times(text, expected) -> None:
    assert parse_time_of_day(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("9:30 AM", time(9, 30)),
        ("9:30am", time(9, 30)),
        ("2pm", time(14, 0)),
        ("2 PM", time(14, 0)),
        ("9:30 a.m.", time(9, 30)),
        ("12am", time(0, 0)),
        ("12 pm", time(12, 0)),
        ("14:30", time(14, 30)),
        ("7:05", time(7, 5)),
        ("18", time(18, 0)),
        ("0", time(0, 0)),
    ],
)
def test_clock_formats(text, expected) -> None:
    assert parse_time_of_day(text) == expected


@pytest.mark.parametrize("text", ["", "25:00", "13pm", "0am", "9:60", "tea time", "9:5"])
def test_invalid_times(text) -> None:
    assert parse_time_of_day(text) is None


def test_parse_time_combines_with_date_and_zeroes_seconds() -> None:
    tz = ZoneInfo("Asia/Kolkata")
    parsed = parse_time("3:45 pm", date(2026, 10, 14), tz)

    assert parsed == datetime(2026, 10, 14, 15, 45, tzinfo=tz)
    assert parsed.second == 0
    assert parsed.microsecond == 0


def test_parse_time_failure() -> None:
    assert parse_time("later", date(2026, 10, 14), timezone.utc) is None


def test_parse_time_list_drops_invalid_and_duplicates() -> None:
    assert parse_time_list("9pm, morning, nonsense, 09:00") == [time(9, 0), time(21, 0)]
    assert parse_time_list("nope, never") == []


def test_format_clock() -> None:
    assert format_clock(time(7, 5)) == "07:05"
