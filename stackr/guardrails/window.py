"""
Period Window Resolver

A weekly limit resets on Sunday at midnight, a monthly limit on the first
of the month at midnight. The window always ends at the reference instant.
"""

from datetime import datetime, timedelta

from stackr.models.guardrail import SpendingCycle, to_naive_local


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime) -> datetime:
    """Most recent Sunday 00:00:00 at or before `now`."""
    # datetime.weekday() is Monday=0..Sunday=6
    days_since_sunday = (now.weekday() + 1) % 7
    return start_of_day(now - timedelta(days=days_since_sunday))


def resolve_window(cycle: SpendingCycle, now: datetime) -> tuple[datetime, datetime]:
    """
    Return the [start, now] window a limit is evaluated over.

    Raises:
        ValueError: If cycle is not a known SpendingCycle
    """
    now = to_naive_local(now)
    cycle = SpendingCycle(cycle)
    if cycle is SpendingCycle.WEEKLY:
        return start_of_week(now), now
    return start_of_day(now.replace(day=1)), now


def resolve_week_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Sunday 00:00:00 through Saturday 23:59:59.999999 of the week containing `now`."""
    now = to_naive_local(now)
    start = start_of_week(now)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end
