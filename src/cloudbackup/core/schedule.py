"""Schedule policy: decides whether a path is due for backup."""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime

from cloudbackup.core.errors import ConfigurationError
from cloudbackup.core.models import ScheduleKind

_DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def _align(last_run: datetime, now: datetime) -> datetime:
    """Express last_run in now's timezone so calendar fields are comparable."""
    if now.tzinfo is None:
        if last_run.tzinfo is None:
            return last_run
        # naive now is local time
        return last_run.astimezone().replace(tzinfo=None)
    if last_run.tzinfo is None:
        return last_run.replace(tzinfo=now.tzinfo)
    return last_run.astimezone(now.tzinfo)


def is_due(
    kind: ScheduleKind,
    last_run: datetime | None,
    now: datetime,
    weekly_days: Collection[int] = (),
    monthly_days: Collection[int] = (),
) -> bool:
    """Return True when a path with this schedule should be backed up now.

    A path that never ran is always due. Weekly and monthly paths are due at
    most once per calendar day, and only on an allowed weekday (Monday = 0) or
    day of month. With no allowed days they never become due again after the
    first run.
    """
    if last_run is None:
        return True
    if kind == ScheduleKind.ONCE:
        return False

    last = _align(last_run, now)
    if kind == ScheduleKind.DAILY:
        return now.timetuple().tm_yday != last.timetuple().tm_yday

    same_day = now.date() == last.date()
    if kind == ScheduleKind.WEEKLY:
        return not same_day and now.weekday() in weekly_days
    if kind == ScheduleKind.MONTHLY:
        return not same_day and now.day in monthly_days
    raise ValueError(f"Unknown schedule kind: {kind!r}")


def parse_schedule(value: str) -> ScheduleKind:
    name = value.strip().lower()
    if name == "dayly":
        name = "daily"
    try:
        return ScheduleKind(name)
    except ValueError:
        raise ConfigurationError(f"Unknown schedule: {value!r}") from None


def _items(value: object) -> list[str]:
    """Accept a YAML list or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        raw = [str(v) for v in value]
    else:
        raw = str(value).split(",")
    return [item.strip() for item in raw if item.strip()]


def parse_weekdays(value: object) -> frozenset[int]:
    """Day names (matched by prefix, e.g. ``mon``, ``Tu``) to weekday numbers."""
    days = set()
    for item in _items(value):
        name = item.lower()
        matches = [i for i, day in enumerate(_DAY_NAMES) if day.startswith(name)]
        if len(matches) != 1:
            raise ConfigurationError(f"Unknown or ambiguous weekday: {item!r}")
        days.add(matches[0])
    return frozenset(days)


def parse_monthdays(value: object) -> frozenset[int]:
    days = set()
    for item in _items(value):
        try:
            day = int(item)
        except ValueError:
            raise ConfigurationError(f"Bad day of month: {item!r}") from None
        if not 1 <= day <= 31:
            raise ConfigurationError(f"Day of month out of range: {day}")
        days.add(day)
    return frozenset(days)


def describe(
    kind: ScheduleKind,
    weekly_days: Collection[int] = (),
    monthly_days: Collection[int] = (),
) -> str:
    """Short human description, e.g. ``weekly (mon, fri)``."""
    if kind == ScheduleKind.WEEKLY:
        names = ", ".join(_DAY_NAMES[d][:3] for d in sorted(weekly_days)) or "no days"
        return f"weekly ({names})"
    if kind == ScheduleKind.MONTHLY:
        days = ", ".join(str(d) for d in sorted(monthly_days)) or "no days"
        return f"monthly ({days})"
    return kind.value
