"""
Default badge catalogue.
Seeding is idempotent by badge name; existing badges are left untouched.
"""
import logging
from datetime import time
from typing import List
from sqlalchemy.orm import Session

from quest_engine.database import transaction
from quest_engine.models import Badge
from quest_engine.repositories.badge_repository import BadgeRepository
from quest_engine.constants import (
    DAY_SET_WEEKDAY,
    DAY_SET_WEEKEND,
    REQUIREMENT_CATEGORY,
    REQUIREMENT_CURRENT_STREAK,
    REQUIREMENT_DAY_OF_WEEK,
    REQUIREMENT_HOLIDAY,
    REQUIREMENT_LONGEST_STREAK,
    REQUIREMENT_QUESTS_COMPLETED,
    REQUIREMENT_SEASONAL,
    REQUIREMENT_TIME_OF_DAY,
    REQUIREMENT_TOTAL_POINTS,
    SEASON_AUTUMN,
    SEASON_SPRING,
    SEASON_SUMMER,
    SEASON_WINTER,
)

logger = logging.getLogger("quest_engine.seed")


def _count(name, description, icon, requirement_type, value):
    return dict(
        name=name, description=description, icon=icon,
        requirement_type=requirement_type, requirement_value=value
    )


def _category(name, category, value):
    return dict(
        name=name, description=f"Complete {value} {category} quests", icon="🏷️",
        requirement_type=REQUIREMENT_CATEGORY, requirement_value=value,
        requirement_category=category
    )


DEFAULT_BADGES = [
    _count("First Steps", "Complete your very first quest", "🚶", REQUIREMENT_QUESTS_COMPLETED, 1),
    _count("Getting Started", "Complete 5 quests", "🌟", REQUIREMENT_QUESTS_COMPLETED, 5),
    _count("Quest Explorer", "Complete 10 quests", "🗺️", REQUIREMENT_QUESTS_COMPLETED, 10),
    _count("Dedicated Adventurer", "Complete 25 quests", "⚔️", REQUIREMENT_QUESTS_COMPLETED, 25),
    _count("Quest Master", "Complete 50 quests", "🏆", REQUIREMENT_QUESTS_COMPLETED, 50),
    _count("Legendary Hero", "Complete 100 quests", "👑", REQUIREMENT_QUESTS_COMPLETED, 100),

    _count("Point Collector", "Earn 100 total points", "💎", REQUIREMENT_TOTAL_POINTS, 100),
    _count("Point Accumulator", "Earn 500 total points", "💰", REQUIREMENT_TOTAL_POINTS, 500),
    _count("Point Master", "Earn 1000 total points", "🎯", REQUIREMENT_TOTAL_POINTS, 1000),
    _count("Point Legend", "Earn 2500 total points", "⭐", REQUIREMENT_TOTAL_POINTS, 2500),

    _count("Consistency", "Maintain a 3-day streak", "🔥", REQUIREMENT_CURRENT_STREAK, 3),
    _count("Dedication", "Maintain a 7-day streak", "🔥", REQUIREMENT_CURRENT_STREAK, 7),
    _count("Commitment", "Maintain a 14-day streak", "🔥", REQUIREMENT_CURRENT_STREAK, 14),
    _count("Unstoppable", "Maintain a 30-day streak", "🔥", REQUIREMENT_CURRENT_STREAK, 30),

    _count("Week Warrior", "Achieve a 7-day longest streak", "📅", REQUIREMENT_LONGEST_STREAK, 7),
    _count("Month Champion", "Achieve a 30-day longest streak", "🗓️", REQUIREMENT_LONGEST_STREAK, 30),
    _count("Season Master", "Achieve a 90-day longest streak", "🏅", REQUIREMENT_LONGEST_STREAK, 90),
    _count("Year Legend", "Achieve a 365-day longest streak", "🎖️", REQUIREMENT_LONGEST_STREAK, 365),

    dict(name="Holiday Spirit", description="Complete 5 quests during the holidays", icon="🎄",
         requirement_type=REQUIREMENT_HOLIDAY, requirement_value=5,
         requirement_date_start="12-20", requirement_date_end="01-05", requirement_recurring=True),
    dict(name="New Year Champion", description="Complete 3 quests around New Year", icon="🎆",
         requirement_type=REQUIREMENT_HOLIDAY, requirement_value=3,
         requirement_date_start="12-31", requirement_date_end="01-02", requirement_recurring=True),

    dict(name="Spring Awakening", description="Complete 15 quests in spring", icon="🌸",
         requirement_type=REQUIREMENT_SEASONAL, requirement_value=15, requirement_season=SEASON_SPRING),
    dict(name="Summer Warrior", description="Complete 20 quests in summer", icon="☀️",
         requirement_type=REQUIREMENT_SEASONAL, requirement_value=20, requirement_season=SEASON_SUMMER),
    dict(name="Autumn Achiever", description="Complete 12 quests in autumn", icon="🍂",
         requirement_type=REQUIREMENT_SEASONAL, requirement_value=12, requirement_season=SEASON_AUTUMN),
    dict(name="Winter Survivor", description="Complete 25 quests in winter", icon="❄️",
         requirement_type=REQUIREMENT_SEASONAL, requirement_value=25, requirement_season=SEASON_WINTER),

    dict(name="Early Bird", description="Complete 10 quests between 6 and 9 AM", icon="🐦",
         requirement_type=REQUIREMENT_TIME_OF_DAY, requirement_value=10,
         requirement_time_start=time(6, 0), requirement_time_end=time(9, 0)),
    dict(name="Dawn Breaker", description="Complete 5 quests between 5 and 7 AM", icon="🌅",
         requirement_type=REQUIREMENT_TIME_OF_DAY, requirement_value=5,
         requirement_time_start=time(5, 0), requirement_time_end=time(7, 0)),
    dict(name="Night Owl", description="Complete 10 quests after 9 PM", icon="🦉",
         requirement_type=REQUIREMENT_TIME_OF_DAY, requirement_value=10,
         requirement_time_start=time(21, 0), requirement_time_end=time(23, 59, 59)),
    dict(name="Midnight Runner", description="Complete 5 quests between 11 PM and 2 AM", icon="🌙",
         requirement_type=REQUIREMENT_TIME_OF_DAY, requirement_value=5,
         requirement_time_start=time(23, 0), requirement_time_end=time(2, 0)),

    dict(name="Weekend Warrior", description="Complete 20 quests on weekends", icon="🎉",
         requirement_type=REQUIREMENT_DAY_OF_WEEK, requirement_value=20, requirement_days=DAY_SET_WEEKEND),
    dict(name="Weekday Champion", description="Complete 30 quests on weekdays", icon="💼",
         requirement_type=REQUIREMENT_DAY_OF_WEEK, requirement_value=30, requirement_days=DAY_SET_WEEKDAY),

    _category("First Workout", "fitness", 1),
    _category("Gym Regular", "fitness", 15),
    _category("Health Warrior", "fitness", 25),
    _category("Fitness Enthusiast", "fitness", 50),
    _category("Fitness Legend", "fitness", 100),
    _category("Social Butterfly", "social", 5),
    _category("Friend Maker", "social", 10),
    _category("Social Leader", "social", 25),
    _category("Social Master", "social", 50),
    _category("Community Builder", "social", 75),
    _category("Community Champion", "social", 100),
    _category("Creative Spark", "creative", 3),
    _category("Imagination", "creative", 10),
    _category("Artist", "creative", 25),
    _category("Creative Genius", "creative", 50),
    _category("Artistic Legend", "creative", 100),
]


def seed_default_badges(db: Session) -> List[Badge]:
    """
    Insert any default badge that does not exist yet.

    Returns:
        The badges created by this call
    """
    created = []
    with transaction(db, "seed_default_badges"):
        for definition in DEFAULT_BADGES:
            if BadgeRepository.get_by_name(db, definition["name"]):
                continue
            badge = Badge(**definition)
            db.add(badge)
            created.append(badge)
        db.flush()

    if created:
        logger.info(f"Seeded {len(created)} default badges")
    return created
