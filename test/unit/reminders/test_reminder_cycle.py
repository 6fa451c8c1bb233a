"""Unit tests for the planning-cycle calendar."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from reminders.cycle import DEFAULT_EPOCH, CycleCalendar, day_in_cycle, resolve_epoch


def test_epoch_is_day_one() -> None:
    """The epoch itself is the first day of a cycle."""
    assert day_in_cycle(DEFAULT_EPOCH) == 1
    assert day_in_cycle(DEFAULT_EPOCH + timedelta(hours=23, minutes=59)) == 1
    assert day_in_cycle(DEFAULT_EPOCH + timedelta(days=1)) == 2


def test_day_before_epoch_is_last_day() -> None:
    """Timestamps before the epoch wrap to the end of the previous cycle."""
    assert day_in_cycle(DEFAULT_EPOCH - timedelta(days=1)) == 14
    assert day_in_cycle(DEFAULT_EPOCH - timedelta(hours=1)) == 14
    assert day_in_cycle(DEFAULT_EPOCH - timedelta(days=14)) == 1


@pytest.mark.parametrize("cycles", [-3, -1, 1, 2, 10])
def test_day_is_periodic_in_cycle_length(cycles: int) -> None:
    """Shifting by whole cycles, forwards or backwards, keeps the day."""
    now = datetime(2025, 3, 18, 9, 30, tzinfo=timezone.utc)

    assert day_in_cycle(now + timedelta(days=14 * cycles)) == day_in_cycle(now)


def test_day_always_in_range() -> None:
    """Every day of a long span maps into 1..14."""
    start = DEFAULT_EPOCH - timedelta(days=100)
    days = {day_in_cycle(start + timedelta(days=offset)) for offset in range(300)}

    assert days == set(range(1, 15))


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = datetime(2025, 1, 6, 12, 0)

    assert day_in_cycle(naive) == 2


def test_planning_window_is_first_two_days() -> None:
    """Only days 1 and 2 are inside the planning window."""
    calendar = CycleCalendar()

    in_window = [
        calendar.is_planning_window(DEFAULT_EPOCH + timedelta(days=offset))
        for offset in range(14)
    ]

    assert in_window == [True, True] + [False] * 12


def test_cycle_info_flags_special_days() -> None:
    """Mid-cycle, cycle-end, and break days are reported by cycle info."""
    calendar = CycleCalendar(DEFAULT_EPOCH)

    mid = calendar.info(DEFAULT_EPOCH + timedelta(days=6))
    end = calendar.info(DEFAULT_EPOCH + timedelta(days=12))
    rest = calendar.info(DEFAULT_EPOCH + timedelta(days=13))

    assert mid.day == 7 and mid.is_mid_cycle
    assert end.day == 13 and end.is_cycle_end
    assert rest.day == 14 and rest.is_break
    assert not rest.is_planning_window


def test_configured_epoch_string_is_used() -> None:
    calendar = CycleCalendar("2025-02-02")

    assert calendar.day(datetime(2025, 2, 2, 8, 0, tzinfo=timezone.utc)) == 1
    assert calendar.day(datetime(2025, 2, 1, 8, 0, tzinfo=timezone.utc)) == 14


def test_unparsable_epoch_falls_back_to_default() -> None:
    """A bad configured start date silently uses the default epoch."""
    assert resolve_epoch("not-a-date") == DEFAULT_EPOCH
    assert resolve_epoch("") == DEFAULT_EPOCH
    assert resolve_epoch(None) == DEFAULT_EPOCH


def test_custom_cycle_length() -> None:
    calendar = CycleCalendar(DEFAULT_EPOCH, cycle_length_days=7)

    assert calendar.day(DEFAULT_EPOCH + timedelta(days=7)) == 1
    assert calendar.day(DEFAULT_EPOCH - timedelta(days=1)) == 7


def test_special_day_predicates_fire_on_their_day_only() -> None:
    """Each single-day predicate is true on exactly one day of the cycle."""
    calendar = CycleCalendar(DEFAULT_EPOCH)
    days = [DEFAULT_EPOCH + timedelta(days=offset, hours=12) for offset in range(14)]

    assert [calendar.day(now) for now in days if calendar.is_mid_cycle_day(now)] == [7]
    assert [calendar.day(now) for now in days if calendar.is_cycle_end_day(now)] == [13]
    assert [calendar.day(now) for now in days if calendar.is_break_day(now)] == [14]


def test_only_iso_dates_are_accepted_as_epoch() -> None:
    """Free-form dates such as "Feb 2 2025" fall back to the default epoch."""
    assert resolve_epoch("Feb 2 2025") == DEFAULT_EPOCH
    assert resolve_epoch("2025-02-02T00:00:00+00:00") == datetime(
        2025, 2, 2, tzinfo=timezone.utc
    )
