"""
Shared fixtures: an in-memory database per test, a quest pool and a clock
the tests can move.
"""
import os
import tempfile

os.environ.setdefault("QUEST_ENGINE_DATABASE_URL", "sqlite://")
os.environ.setdefault("QUEST_ENGINE_API_KEY", "test-api-key")
os.environ.setdefault("QUEST_ENGINE_LOG_DIR", os.path.join(tempfile.gettempdir(), "quest_engine_logs"))

import fakeredis
import pytest
from datetime import date, datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quest_engine.database import Base, enable_sqlite_transactions
from quest_engine.models import Quest, QuestCategory, UserStats
from quest_engine.cache import RedisCache
from quest_engine.services.achievement_service import AchievementOrchestrator

USER_ID = 1
OTHER_USER_ID = 2


class MovableClock:
    """Callable clock returning a fixed datetime until moved"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    enable_sqlite_transactions(test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def today():
    # A Wednesday
    return date(2026, 10, 14)


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)


@pytest.fixture
def clock(today):
    return MovableClock(datetime.combine(today, datetime.min.time()).replace(hour=10))


@pytest.fixture
def cache():
    return RedisCache(fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True))


@pytest.fixture
def orchestrator(db_session, cache, clock):
    return AchievementOrchestrator(db_session, cache=cache, clock=clock)


def add_quest(db, category, title, difficulty, points, is_active=True):
    quest = Quest(
        category_id=category.id,
        title=title,
        description=f"{title} description",
        difficulty_level=difficulty,
        points=points,
        estimated_duration_minutes=15,
        is_active=is_active
    )
    db.add(quest)
    db.flush()
    return quest


@pytest.fixture
def quest_factory(db_session):
    def _make(category, title, difficulty, points, is_active=True):
        return add_quest(db_session, category, title, difficulty, points, is_active)
    return _make


@pytest.fixture
def categories(db_session):
    result = {}
    for name in ("fitness", "social", "creative"):
        category = QuestCategory(name=name, is_active=True)
        db_session.add(category)
        result[name] = category
    db_session.commit()
    return result


@pytest.fixture
def quest_pool(db_session, categories):
    """4 easy (10 pts), 4 medium (20 pts) and 3 hard (30 pts) active quests"""
    pool = {"easy": [], "medium": [], "hard": []}
    names = list(categories)
    for difficulty, count, points in (("easy", 4, 10), ("medium", 4, 20), ("hard", 3, 30)):
        for i in range(count):
            category = categories[names[i % len(names)]]
            pool[difficulty].append(
                add_quest(db_session, category, f"{difficulty} quest {i + 1}", difficulty, points)
            )
    db_session.commit()
    return pool


@pytest.fixture
def make_stats(db_session):
    def _make(user_id=USER_ID, **fields):
        stats = UserStats(
            user_id=user_id,
            total_quests_completed=fields.get("total_quests_completed", 0),
            total_points=fields.get("total_points", 0),
            current_streak_days=fields.get("current_streak_days", 0),
            longest_streak_days=fields.get("longest_streak_days", 0),
            last_quest_completed_at=fields.get("last_quest_completed_at")
        )
        db_session.add(stats)
        db_session.commit()
        return stats
    return _make
