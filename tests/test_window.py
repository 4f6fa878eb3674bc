from __future__ import annotations

import datetime as dt

import pytest

from orgactivity.errors import InvalidWindowError
from orgactivity.window import resolve_window


def test_explicit_since_wins_over_activity_days() -> None:
    w = resolve_window("2024-01-15", 30, today=dt.date(2024, 3, 1))
    assert w.start == dt.date(2024, 1, 15)


def test_explicit_since_ignores_garbage_days() -> None:
    assert resolve_window("2024-01-15", "not-a-number").start == dt.date(2024, 1, 15)


def test_trailing_days_uses_calendar_subtraction() -> None:
    w = resolve_window(None, 30, today=dt.date(2024, 3, 1))
    assert w.start == dt.date(2024, 1, 31)


def test_trailing_days_crosses_year_boundary() -> None:
    assert resolve_window("", "10", today=dt.date(2024, 1, 5)).start == dt.date(2023, 12, 26)


def test_zero_days_means_today() -> None:
    assert resolve_window(None, 0, today=dt.date(2024, 6, 30)).start == dt.date(2024, 6, 30)


def test_since_accepts_full_timestamp() -> None:
    assert resolve_window("2024-02-10T18:30:00Z").start == dt.date(2024, 2, 10)


def test_window_since_iso_is_midnight_utc() -> None:
    w = resolve_window("2024-01-15")
    assert w.since_iso() == "2024-01-15T00:00:00Z"
    assert w.contains("2024-01-15T00:00:00Z")
    assert not w.contains("2024-01-14T23:59:59Z")
    assert not w.contains(None)


@pytest.mark.parametrize(
    ("since", "days"),
    [
        ("2024-13-45", None),
        ("yesterday", 30),
        (None, -1),
        (None, "ten"),
        (None, None),
        ("   ", "  "),
    ],
)
def test_unusable_inputs_raise(since, days) -> None:
    with pytest.raises(InvalidWindowError):
        resolve_window(since, days, today=dt.date(2024, 3, 1))
