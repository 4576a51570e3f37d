from datetime import date, timedelta

import pytest

from periods import (
    InvalidMonthKey,
    InvalidPayday,
    next_month_key,
    previous_month_key,
    resolve_interval,
    shift_month,
)


def test_interval_spans_from_previous_payday() -> None:
    interval = resolve_interval("2024-01", 25)
    assert interval.start == date(2023, 12, 25)
    assert interval.end == date(2024, 1, 24)
    assert interval.start_str == "2023-12-25"
    assert interval.end_str == "2024-01-24"


def test_interval_clamps_payday_to_short_month() -> None:
    interval = resolve_interval("2024-03", 31)
    assert interval.start == date(2024, 2, 29)
    assert interval.end == date(2024, 3, 30)

    non_leap = resolve_interval("2023-03", 31)
    assert non_leap.start == date(2023, 2, 28)


def test_end_of_clamped_month_precedes_next_start() -> None:
    # Payday 31 in February clamps both the start of March and the end of February.
    feb = resolve_interval("2024-02", 31)
    assert feb.start == date(2024, 1, 31)
    assert feb.end == date(2024, 2, 28)


@pytest.mark.parametrize("payday", [1, 15, 25, 28, 29, 30, 31])
def test_consecutive_intervals_tile_without_gaps(payday: int) -> None:
    month = "2023-01"
    for _ in range(36):
        current = resolve_interval(month, payday)
        following = resolve_interval(next_month_key(month), payday)
        assert current.start <= current.end
        assert current.end + timedelta(days=1) == following.start
        month = next_month_key(month)


def test_payday_one_matches_calendar_month_shifted_back() -> None:
    interval = resolve_interval("2024-05", 1)
    assert interval.start == date(2024, 4, 1)
    assert interval.end == date(2024, 4, 30)


def test_interval_labels_follow_locale() -> None:
    interval = resolve_interval("2024-01", 25, locale="sv")
    assert interval.month_label == "januari 2024"
    assert interval.interval_label == "25 dec - 24 jan 2024"

    english = resolve_interval("2024-01", 25, locale="en")
    assert english.month_label == "January 2024"
    assert english.interval_label == "25 Dec - 24 Jan 2024"


def test_interval_days() -> None:
    interval = resolve_interval("2024-02", 25)
    days = interval.days()
    assert days[0] == date(2024, 1, 25)
    assert days[-1] == date(2024, 2, 24)
    assert len(days) == 31


@pytest.mark.parametrize("key", ["2024-13", "2024-1", "24-01", "2024/01", "", "2024-00"])
def test_invalid_month_keys_are_rejected(key: str) -> None:
    with pytest.raises(InvalidMonthKey):
        resolve_interval(key, 25)


@pytest.mark.parametrize("payday", [0, 32, -1])
def test_invalid_payday_is_rejected(payday: int) -> None:
    with pytest.raises(InvalidPayday):
        resolve_interval("2024-01", payday)


def test_month_arithmetic_crosses_year_boundaries() -> None:
    assert next_month_key("2023-12") == "2024-01"
    assert previous_month_key("2024-01") == "2023-12"
    assert shift_month("2024-03", -15) == "2022-12"
