"""Tests for cloudbackup.core.schedule."""

from datetime import datetime, timedelta, timezone

import pytest

from cloudbackup.core.errors import ConfigurationError
from cloudbackup.core.models import ScheduleKind
from cloudbackup.core.schedule import (
    describe,
    is_due,
    parse_monthdays,
    parse_schedule,
    parse_weekdays,
)

# 2024-01-01 is a Monday
MON = datetime(2024, 1, 1, 10, 0)
MONDAY, FRIDAY = 0, 4


class TestFirstRun:
    @pytest.mark.parametrize("kind", list(ScheduleKind))
    def test_never_run_is_always_due(self, kind):
        assert is_due(kind, None, MON) is True

    @pytest.mark.parametrize("kind", [ScheduleKind.WEEKLY, ScheduleKind.MONTHLY])
    def test_never_run_due_even_without_allowed_days(self, kind):
        assert is_due(kind, None, MON, weekly_days=(), monthly_days=()) is True


class TestOnce:
    def test_not_due_after_first_run(self):
        assert is_due(ScheduleKind.ONCE, MON - timedelta(days=400), MON) is False


class TestDaily:
    def test_same_day_not_due(self):
        assert is_due(ScheduleKind.DAILY, MON.replace(hour=1), MON) is False

    def test_next_day_due(self):
        assert is_due(ScheduleKind.DAILY, MON - timedelta(days=1), MON) is True

    def test_same_day_of_year_in_other_year_not_due(self):
        # Only the day-of-year is compared
        assert is_due(ScheduleKind.DAILY, datetime(2023, 1, 1, 9, 0), MON) is False

    def test_compares_in_now_timezone(self):
        tz = timezone(timedelta(hours=3))
        last = datetime(2024, 1, 1, 22, 30, tzinfo=timezone.utc)  # 01:30 on Jan 2 at +03
        now = datetime(2024, 1, 2, 9, 0, tzinfo=tz)
        assert is_due(ScheduleKind.DAILY, last, now) is False


class TestWeekly:
    def test_allowed_weekday_due(self):
        last = MON - timedelta(days=7)
        assert is_due(ScheduleKind.WEEKLY, last, MON, weekly_days={MONDAY}) is True

    def test_other_weekday_not_due(self):
        last = MON - timedelta(days=7)
        assert is_due(ScheduleKind.WEEKLY, last, MON, weekly_days={FRIDAY}) is False

    def test_same_calendar_day_not_due_even_if_allowed(self):
        last = MON.replace(hour=0, minute=5)
        assert is_due(ScheduleKind.WEEKLY, last, MON, weekly_days={MONDAY}) is False

    def test_empty_allowed_days_never_due_again(self):
        last = MON - timedelta(days=30)
        assert is_due(ScheduleKind.WEEKLY, last, MON, weekly_days=()) is False

    def test_same_day_of_month_other_month_still_due(self):
        last = datetime(2023, 12, 1, 10, 0)  # a Friday, different date
        now = datetime(2024, 3, 1, 10, 0)  # also day 1, a Friday
        assert is_due(ScheduleKind.WEEKLY, last, now, weekly_days={FRIDAY}) is True


class TestMonthly:
    def test_allowed_day_due(self):
        last = datetime(2023, 12, 15)
        assert is_due(ScheduleKind.MONTHLY, last, MON, monthly_days={1, 15}) is True

    def test_other_day_not_due(self):
        last = datetime(2023, 12, 15)
        assert is_due(ScheduleKind.MONTHLY, last, MON, monthly_days={15}) is False

    def test_same_day_not_due(self):
        assert is_due(ScheduleKind.MONTHLY, MON.replace(hour=2), MON, monthly_days={1}) is False

    def test_empty_allowed_days_never_due_again(self):
        assert is_due(ScheduleKind.MONTHLY, datetime(2023, 1, 1), MON, monthly_days=()) is False


class TestParsing:
    def test_schedule_names(self):
        assert parse_schedule("Weekly") == ScheduleKind.WEEKLY
        assert parse_schedule("dayly") == ScheduleKind.DAILY
        with pytest.raises(ConfigurationError):
            parse_schedule("hourly")

    def test_weekdays_by_prefix(self):
        assert parse_weekdays("mon, Fri") == frozenset({0, 4})
        assert parse_weekdays(["tu", "thursday", "su"]) == frozenset({1, 3, 6})
        assert parse_weekdays(None) == frozenset()

    def test_ambiguous_or_unknown_weekday(self):
        with pytest.raises(ConfigurationError):
            parse_weekdays("t")
        with pytest.raises(ConfigurationError):
            parse_weekdays("funday")

    def test_monthdays(self):
        assert parse_monthdays("1, 15") == frozenset({1, 15})
        assert parse_monthdays([28, "31"]) == frozenset({28, 31})
        assert parse_monthdays("") == frozenset()

    def test_bad_monthdays(self):
        with pytest.raises(ConfigurationError):
            parse_monthdays("0")
        with pytest.raises(ConfigurationError):
            parse_monthdays("32")
        with pytest.raises(ConfigurationError):
            parse_monthdays("first")


class TestDescribe:
    def test_descriptions(self):
        assert describe(ScheduleKind.DAILY) == "daily"
        assert describe(ScheduleKind.WEEKLY, weekly_days={4, 0}) == "weekly (mon, fri)"
        assert describe(ScheduleKind.MONTHLY, monthly_days={15, 1}) == "monthly (1, 15)"
        assert describe(ScheduleKind.WEEKLY) == "weekly (no days)"
