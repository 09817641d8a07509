"""
Application constants.
Domain values, cache lifetimes and environment defaults used across the engine.
"""

# Quest difficulty tiers
DIFFICULTY_EASY = "easy"
DIFFICULTY_MEDIUM = "medium"
DIFFICULTY_HARD = "hard"

# Assignment types
ASSIGNMENT_DAILY = "daily"
ASSIGNMENT_WEEKLY = "weekly"
ASSIGNMENT_TYPES = (ASSIGNMENT_DAILY, ASSIGNMENT_WEEKLY)

# Selection mix
DAILY_QUEST_DIFFICULTY = DIFFICULTY_MEDIUM
WEEKLY_QUEST_MIX = (
    (DIFFICULTY_EASY, 2),
    (DIFFICULTY_MEDIUM, 2),
    (DIFFICULTY_HARD, 1),
)

# Seasons (meteorological, northern hemisphere)
SEASON_SPRING = "spring"
SEASON_SUMMER = "summer"
SEASON_AUTUMN = "autumn"
SEASON_WINTER = "winter"
SEASONS = (SEASON_SPRING, SEASON_SUMMER, SEASON_AUTUMN, SEASON_WINTER)
SEASON_BY_MONTH = {
    12: SEASON_WINTER, 1: SEASON_WINTER, 2: SEASON_WINTER,
    3: SEASON_SPRING, 4: SEASON_SPRING, 5: SEASON_SPRING,
    6: SEASON_SUMMER, 7: SEASON_SUMMER, 8: SEASON_SUMMER,
    9: SEASON_AUTUMN, 10: SEASON_AUTUMN, 11: SEASON_AUTUMN,
}

# Day-of-week sets (date.weekday(): Monday=0 .. Sunday=6)
DAY_SET_WEEKDAY = "weekday"
DAY_SET_WEEKEND = "weekend"
DAY_SETS = {
    DAY_SET_WEEKDAY: frozenset({0, 1, 2, 3, 4}),
    DAY_SET_WEEKEND: frozenset({5, 6}),
}

# Stored badge requirement types
REQUIREMENT_QUESTS_COMPLETED = "quests_completed"
REQUIREMENT_TOTAL_POINTS = "total_points"
REQUIREMENT_CURRENT_STREAK = "current_streak"
REQUIREMENT_LONGEST_STREAK = "streak_days"
REQUIREMENT_CATEGORY = "category_quest"
REQUIREMENT_TIME_OF_DAY = "time_of_day_quest"
REQUIREMENT_DAY_OF_WEEK = "day_of_week_quest"
REQUIREMENT_SEASONAL = "seasonal_quest"
REQUIREMENT_HOLIDAY = "holiday_quest"

# Count metrics (attribute names on UserStats)
METRIC_QUESTS_COMPLETED = "questsCompleted"
METRIC_TOTAL_POINTS = "totalPoints"
METRIC_CURRENT_STREAK = "currentStreak"
METRIC_LONGEST_STREAK = "longestStreak"
METRIC_STATS_FIELDS = {
    METRIC_QUESTS_COMPLETED: "total_quests_completed",
    METRIC_TOTAL_POINTS: "total_points",
    METRIC_CURRENT_STREAK: "current_streak_days",
    METRIC_LONGEST_STREAK: "longest_streak_days",
}
COUNT_REQUIREMENT_METRICS = {
    REQUIREMENT_QUESTS_COMPLETED: METRIC_QUESTS_COMPLETED,
    REQUIREMENT_TOTAL_POINTS: METRIC_TOTAL_POINTS,
    REQUIREMENT_CURRENT_STREAK: METRIC_CURRENT_STREAK,
    REQUIREMENT_LONGEST_STREAK: METRIC_LONGEST_STREAK,
}

# Cache
CACHE_KIND_STATS = "user_stats"
CACHE_KIND_BADGES = "user_badges"
CACHE_KIND_DAILY = "daily_quest"
CACHE_KIND_WEEKLY = "weekly_quests"
CACHE_TTL_STATS = 2 * 60
CACHE_TTL_BADGES = 5 * 60
CACHE_TTL_ASSIGNMENTS = 10 * 60
CACHE_DEFAULT_TTL = 5 * 60
CACHE_HEALTH_CHECK_INTERVAL_SECONDS = 60

# Input limits
COMPLETION_NOTES_MAX_LENGTH = 500
HISTORY_DEFAULT_LIMIT = 20
HISTORY_MAX_LIMIT = 50
HISTORY_FILTER_ALL = "all"
HISTORY_FILTER_COMPLETED = "completed"

# Environment defaults
DEFAULT_DATABASE_URL = "sqlite:///./quest_engine.db"
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/quest_engine"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"
DEFAULT_API_KEY = "your-secret-key-change-me"
CORS_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
