"""
Badge requirement variants.
A stored Badge row is parsed once into one of a closed set of requirement
types; each type knows how to measure a user's progress towards it.
"""
from dataclasses import dataclass
from datetime import time
from typing import Iterable, List, Optional, Tuple, Union

from quest_engine.models import Badge, UserStats
from quest_engine.repositories.assignment_repository import CompletionFact
from quest_engine.services.date_service import DateService
from quest_engine.constants import (
    COUNT_REQUIREMENT_METRICS,
    DAY_SETS,
    METRIC_STATS_FIELDS,
    REQUIREMENT_CATEGORY,
    REQUIREMENT_DAY_OF_WEEK,
    REQUIREMENT_HOLIDAY,
    REQUIREMENT_SEASONAL,
    REQUIREMENT_TIME_OF_DAY,
    SEASONS,
)
from quest_engine.exceptions import BadgeRequirementException


@dataclass(frozen=True)
class CountThreshold:
    metric: str
    threshold: int

    def progress(self, stats: Optional[UserStats], facts: List[CompletionFact]) -> int:
        if stats is None:
            return 0
        return getattr(stats, METRIC_STATS_FIELDS[self.metric]) or 0


@dataclass(frozen=True)
class CategoryThreshold:
    category: str
    threshold: int

    def progress(self, stats: Optional[UserStats], facts: List[CompletionFact]) -> int:
        wanted = self.category.lower()
        return sum(1 for fact in facts if (fact.category or "").lower() == wanted)


@dataclass(frozen=True)
class TimeOfDayThreshold:
    start: time
    end: time
    threshold: int

    def progress(self, stats: Optional[UserStats], facts: List[CompletionFact]) -> int:
        return sum(
            1 for fact in facts
            if DateService.is_in_time_window(_completed_time(fact), self.start, self.end)
        )


@dataclass(frozen=True)
class DayOfWeekThreshold:
    day_set: str
    threshold: int

    def progress(self, stats: Optional[UserStats], facts: List[CompletionFact]) -> int:
        return sum(
            1 for fact in facts
            if DateService.is_in_day_set(_completed_day_of_week(fact), self.day_set)
        )


@dataclass(frozen=True)
class SeasonalThreshold:
    season: str
    threshold: int

    def progress(self, stats: Optional[UserStats], facts: List[CompletionFact]) -> int:
        return sum(1 for fact in facts if _completed_season(fact) == self.season)


@dataclass(frozen=True)
class HolidayThreshold:
    start: Tuple[int, int]
    end: Tuple[int, int]
    recurring: bool
    threshold: int
    year: Optional[int] = None

    def progress(self, stats: Optional[UserStats], facts: List[CompletionFact]) -> int:
        year = None if self.recurring else self.year
        return sum(
            1 for fact in facts
            if DateService.is_in_month_day_range(
                fact.completed_at.date(), self.start, self.end, year
            )
        )


Requirement = Union[
    CountThreshold,
    CategoryThreshold,
    TimeOfDayThreshold,
    DayOfWeekThreshold,
    SeasonalThreshold,
    HolidayThreshold,
]


# Older rows may lack the captured facts; fall back to the completion timestamp
def _completed_time(fact: CompletionFact) -> time:
    if fact.completed_time is not None:
        return fact.completed_time
    return fact.completed_at.time()


def _completed_day_of_week(fact: CompletionFact) -> int:
    if fact.day_of_week is not None:
        return fact.day_of_week
    return fact.completed_at.weekday()


def _completed_season(fact: CompletionFact) -> str:
    if fact.season:
        return fact.season
    return DateService.get_season(fact.completed_at.date())


def _parse_time(badge: Badge, value) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return time.fromisoformat(value)
        except ValueError:
            pass
    raise BadgeRequirementException(badge.id, f"invalid time {value!r}")


def _parse_month_day(badge: Badge, value) -> Tuple[int, int]:
    if not value:
        raise BadgeRequirementException(badge.id, "date range start and end are required")
    try:
        return DateService.parse_month_day(value)
    except ValueError as e:
        raise BadgeRequirementException(badge.id, str(e)) from e


def requirement_from_badge(badge: Badge) -> Requirement:
    """
    Parse a stored badge definition into its requirement variant.

    Raises:
        BadgeRequirementException: Unknown type or missing/invalid parameters
    """
    requirement_type = badge.requirement_type
    threshold = badge.requirement_value

    if threshold is None or threshold < 1:
        raise BadgeRequirementException(badge.id, f"threshold must be positive, got {threshold}")

    if requirement_type in COUNT_REQUIREMENT_METRICS:
        return CountThreshold(COUNT_REQUIREMENT_METRICS[requirement_type], threshold)

    if requirement_type == REQUIREMENT_CATEGORY:
        if not badge.requirement_category:
            raise BadgeRequirementException(badge.id, "category is required")
        return CategoryThreshold(badge.requirement_category, threshold)

    if requirement_type == REQUIREMENT_TIME_OF_DAY:
        if badge.requirement_time_start is None or badge.requirement_time_end is None:
            raise BadgeRequirementException(badge.id, "time window start and end are required")
        start = _parse_time(badge, badge.requirement_time_start)
        end = _parse_time(badge, badge.requirement_time_end)
        if start == end:
            raise BadgeRequirementException(badge.id, "time window is empty")
        return TimeOfDayThreshold(start, end, threshold)

    if requirement_type == REQUIREMENT_DAY_OF_WEEK:
        if badge.requirement_days not in DAY_SETS:
            raise BadgeRequirementException(
                badge.id, f"day set must be one of {sorted(DAY_SETS)}"
            )
        return DayOfWeekThreshold(badge.requirement_days, threshold)

    if requirement_type == REQUIREMENT_SEASONAL:
        if badge.requirement_season not in SEASONS:
            raise BadgeRequirementException(badge.id, f"season must be one of {SEASONS}")
        return SeasonalThreshold(badge.requirement_season, threshold)

    if requirement_type == REQUIREMENT_HOLIDAY:
        start = _parse_month_day(badge, badge.requirement_date_start)
        end = _parse_month_day(badge, badge.requirement_date_end)
        recurring = badge.requirement_recurring is not False
        if not recurring and badge.requirement_year is None:
            raise BadgeRequirementException(badge.id, "non-recurring range needs a year")
        return HolidayThreshold(start, end, recurring, threshold, badge.requirement_year)

    raise BadgeRequirementException(badge.id, f"unknown requirement type {requirement_type!r}")


def compute_progress(
    requirement: Requirement,
    stats: Optional[UserStats],
    facts: Iterable[CompletionFact]
) -> int:
    """Measure progress towards a requirement from stats and completion facts"""
    return requirement.progress(stats, list(facts))


def is_met(requirement: Requirement, progress: int) -> bool:
    return progress >= requirement.threshold

