"""Recurring planning-cycle calendar.

Cycles are 14 days: 13 working days starting on a Sunday plus one break day.
Days 1 and 2 of each cycle form the planning window, when reminders about
missing due dates, vague cards, and members without tasks are sent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

DEFAULT_CYCLE_LENGTH_DAYS = 14
# Any past cycle start works; Jan 5, 2025 is a Sunday.
DEFAULT_EPOCH = datetime(2025, 1, 5, tzinfo=timezone.utc)

PLANNING_WINDOW_DAYS = frozenset({1, 2})
MID_CYCLE_DAY = 7
CYCLE_END_DAY = 13
BREAK_DAY = 14

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class CycleInfo:
    """Snapshot of where a timestamp falls in the cycle."""

    day: int
    is_planning_window: bool
    is_mid_cycle: bool
    is_cycle_end: bool
    is_break: bool


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_epoch(raw: str | None) -> datetime:
    """Parse a configured cycle start date, falling back to the default epoch.

    Only ISO-8601 dates and datetimes are accepted; free-form forms such as
    "Jan 5 2025" fall back to the default.
    """
    if not raw:
        return DEFAULT_EPOCH
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        logger.debug("Ignoring unparsable cycle start date: %r", raw)
        return DEFAULT_EPOCH
    return _as_utc(parsed)


def day_in_cycle(
    now: datetime,
    epoch: datetime = DEFAULT_EPOCH,
    cycle_length_days: int = DEFAULT_CYCLE_LENGTH_DAYS,
) -> int:
    """Return the 1-based day of the cycle containing ``now``.

    Floor division and modulo both round toward negative infinity, so
    timestamps before the epoch still land in ``[1, cycle_length_days]``.
    """
    elapsed_days = (_as_utc(now) - _as_utc(epoch)) // _ONE_DAY
    return elapsed_days % cycle_length_days + 1


class CycleCalendar:
    """Window predicates bound to a configured epoch and cycle length."""

    def __init__(
        self,
        epoch: datetime | str | None = None,
        cycle_length_days: int = DEFAULT_CYCLE_LENGTH_DAYS,
    ) -> None:
        if isinstance(epoch, datetime):
            self.epoch = _as_utc(epoch)
        else:
            self.epoch = resolve_epoch(epoch)
        self.cycle_length_days = cycle_length_days

    def day(self, now: datetime) -> int:
        return day_in_cycle(now, self.epoch, self.cycle_length_days)

    def is_planning_window(self, now: datetime) -> bool:
        """Return True on the first two days of the cycle."""
        return self.day(now) in PLANNING_WINDOW_DAYS

    def is_mid_cycle_day(self, now: datetime) -> bool:
        return self.day(now) == MID_CYCLE_DAY

    def is_cycle_end_day(self, now: datetime) -> bool:
        return self.day(now) == CYCLE_END_DAY

    def is_break_day(self, now: datetime) -> bool:
        return self.day(now) == BREAK_DAY

    def info(self, now: datetime) -> CycleInfo:
        """Return every window predicate for ``now`` at once."""
        day = self.day(now)
        return CycleInfo(
            day=day,
            is_planning_window=day in PLANNING_WINDOW_DAYS,
            is_mid_cycle=day == MID_CYCLE_DAY,
            is_cycle_end=day == CYCLE_END_DAY,
            is_break=day == BREAK_DAY,
        )


__all__ = [
    "CycleCalendar",
    "CycleInfo",
    "DEFAULT_CYCLE_LENGTH_DAYS",
    "DEFAULT_EPOCH",
    "day_in_cycle",
    "resolve_epoch",
]
