"""
Date calculation service.
Handles period keys, assignment expiry, seasons and the calendar windows used
by badge requirements.
"""
from datetime import datetime, timedelta, date, time
from typing import Optional

from quest_engine.constants import (
    ASSIGNMENT_DAILY, ASSIGNMENT_WEEKLY, SEASON_BY_MONTH, DAY_SETS
)
from quest_engine.exceptions import ValidationException


class DateService:
    """Service for date-related operations"""

    @staticmethod
    def get_week_start(target_date: date) -> date:
        """
        Get the Monday of the week containing target_date.

        Example: Sunday 2026-10-18 -> Monday 2026-10-12
        """
        return target_date - timedelta(days=target_date.weekday())

    @staticmethod
    def get_period_key(assignment_type: str, target_date: date) -> date:
        """
        Get the period key for an assignment type.

        Args:
            assignment_type: "daily" or "weekly"
            target_date: Any date inside the period

        Returns:
            The day itself for daily, the Monday for weekly
        """
        if assignment_type == ASSIGNMENT_DAILY:
            return target_date
        if assignment_type == ASSIGNMENT_WEEKLY:
            return DateService.get_week_start(target_date)
        raise ValidationException("assignment_type", f"unknown type {assignment_type!r}")

    @staticmethod
    def get_expiry(assignment_type: str, period_key: date) -> datetime:
        """Get the last moment an assignment for the period is valid"""
        if assignment_type == ASSIGNMENT_WEEKLY:
            last_day = period_key + timedelta(days=6)
        else:
            last_day = period_key
        return datetime.combine(last_day, time(23, 59, 59, 999999))

    @staticmethod
    def get_season(target_date: date) -> str:
        """Get the meteorological season of a date (northern hemisphere)"""
        return SEASON_BY_MONTH[target_date.month]

    @staticmethod
    def is_in_day_set(day_of_week: int, day_set: str) -> bool:
        """Check whether a weekday number (Monday=0) is in a named day set"""
        return day_of_week in DAY_SETS[day_set]

    @staticmethod
    def is_in_time_window(value: time, start: time, end: time) -> bool:
        """
        Check whether a time falls in [start, end).

        Windows where start > end wrap past midnight, e.g. 23:00-02:00
        contains 23:30 and 01:15 but not 02:00.
        """
        if start <= end:
            return start <= value < end
        return value >= start or value < end

    @staticmethod
    def parse_month_day(value: str) -> tuple[int, int]:
        """
        Parse a "MM-DD" string into (month, day).

        Raises:
            ValueError: If the string is not a valid month-day
        """
        parts = value.strip().split("-")
        if len(parts) != 2:
            raise ValueError(f"Invalid month-day {value!r}, expected MM-DD")
        month, day = int(parts[0]), int(parts[1])
        # 2000 is a leap year, so 02-29 is accepted
        date(2000, month, day)
        return month, day

    @staticmethod
    def is_in_month_day_range(
        target_date: date,
        start: tuple[int, int],
        end: tuple[int, int],
        year: Optional[int] = None
    ) -> bool:
        """
        Check whether a date falls in an inclusive month-day range.

        Ranges where start > end wrap over the new year, e.g. (12, 20)-(1, 5)
        contains Dec 24 and Jan 2 but not Jan 10.

        Args:
            target_date: Date to test
            start: (month, day) the range opens on
            end: (month, day) the range closes on, inclusive
            year: If set, only the occurrence that opens in this year counts

        Returns:
            True if the date is inside the range
        """
        month_day = (target_date.month, target_date.day)
        wraps = start > end

        if not wraps:
            inside = start <= month_day <= end
            occurrence_year = target_date.year
        elif month_day >= start:
            inside = True
            occurrence_year = target_date.year
        elif month_day <= end:
            inside = True
            occurrence_year = target_date.year - 1
        else:
            inside = False
            occurrence_year = target_date.year

        if not inside:
            return False
        if year is not None and occurrence_year != year:
            return False
        return True
