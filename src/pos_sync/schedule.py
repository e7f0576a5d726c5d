"""Run-window policy for the sync pipeline.

Full refreshes are restricted to the shop's active hours. The window is
given as a start hour and an end hour in a fixed timezone and may wrap
midnight (the default 13:00 to 01:00 does).

Nothing here schedules work; the external trigger (cron) does. These
helpers only decide whether "now" is eligible and produce the next
eligible time for log messages.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Bangkok"
WINDOW_START_HOUR = 13
WINDOW_END_HOUR = 1


def _local(now: datetime | None, tz: str) -> datetime:
    zone = ZoneInfo(tz)
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(zone)


def hour_in_window(hour: int, start_hour: int = WINDOW_START_HOUR, end_hour: int = WINDOW_END_HOUR) -> bool:
    """Check whether an hour of day lies in [start_hour, end_hour).

    Examples:
        >>> hour_in_window(0)
        True
        >>> hour_in_window(12)
        False
    """
    if start_hour == end_hour:
        return True
    if start_hour < end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


def is_within_schedule(
    now: datetime | None = None,
    *,
    tz: str = DEFAULT_TIMEZONE,
    start_hour: int = WINDOW_START_HOUR,
    end_hour: int = WINDOW_END_HOUR,
) -> bool:
    """Return True if the local hour of ``now`` lies inside the run window.

    Args:
        now: Timezone-aware instant. Defaults to the current time.
        tz: IANA timezone the window is expressed in.
        start_hour: First hour of the window.
        end_hour: Hour at which the window closes.
    """
    return hour_in_window(_local(now, tz).hour, start_hour, end_hour)


def get_next_run_time(
    now: datetime | None = None,
    *,
    tz: str = DEFAULT_TIMEZONE,
    start_hour: int = WINDOW_START_HOUR,
    end_hour: int = WINDOW_END_HOUR,
) -> datetime:
    """Return the next eligible run time.

    Inside the window this is the start of the next hour; outside it is the
    next opening of the window (today's start hour when it has not passed yet).
    """
    local = _local(now, tz)
    if hour_in_window(local.hour, start_hour, end_hour):
        return local.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)

    opening = local.replace(hour=start_hour, minute=0, second=0, microsecond=0)
    if opening <= local:
        opening += timedelta(days=1)
    return opening


def format_datetime(value: datetime) -> str:
    """Format a timestamp for log messages, e.g. ``19.10.2026 13:00:00 +07``."""
    return value.strftime("%d.%m.%Y %H:%M:%S %Z")
