"""Week boundary utilities for weekly league sessions."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

LEAGUE_WEEK = timedelta(days=7)


def get_monday(dt: datetime | date) -> date:
    """Get the Monday of the ISO week containing dt."""
    d = dt.date() if isinstance(dt, datetime) else dt
    return d - timedelta(days=d.weekday())


def get_week_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """(Monday 00:00 UTC, following Monday 00:00 UTC) for the week containing ``now``."""
    if now is None:
        now = datetime.now(timezone.utc)
    start = datetime.combine(get_monday(now.astimezone(timezone.utc)), time.min, tzinfo=timezone.utc)
    return start, start + LEAGUE_WEEK


def seconds_until(end: datetime, now: datetime | None = None) -> int:
    if now is None:
        now = datetime.now(timezone.utc)
    return max(0, int((end - now).total_seconds()))
