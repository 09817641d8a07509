"""
Tests for AchievementOrchestrator.

Tests cover:
1. Daily and weekly assignment
2. Rerolls and their limits
3. Completion: points, streaks, badges
4. Uncompletion
5. Error results (validation, not found, conflict, transient, unexpected)
6. Read views, caching and history
7. Two sessions completing or rerolling the same period
"""
import fakeredis
import pytest
from collections import Counter
from datetime import date, datetime, time, timedelta
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from quest_engine.database import Base, enable_sqlite_transactions
from quest_engine.models import (
    Badge, Quest, QuestAssignment, QuestCategory, QuestCompletion, RerollRecord,
    UserBadge, UserStats
)
from quest_engine.cache import RedisCache, cache_key
from quest_engine.exceptions import RerollLimitExceededException
from quest_engine.services.achievement_service import AchievementOrchestrator
from quest_engine.services.reroll_guard import RerollGuard
from quest_engine.repositories.assignment_repository import AssignmentRepository


def daily_assignment_id(orchestrator, user_id=1):
    result = orchestrator.assign_daily(user_id)
    assert result.ok, result
    return result.data.quest.assignment_id


def get_stats(db, user_id=1):
    return db.query(UserStats).filter(UserStats.user_id == user_id).one()


def completion_count(db, user_id=1):
    return db.query(QuestCompletion).filter(QuestCompletion.user_id == user_id).count()


def badge_progress(views):
    return {view.name: view.progress_value for view in views}


class TestAssignDaily:
    """Tests for assign_daily"""

    def test_assigns_one_medium_quest(self, orchestrator, quest_pool, today):
        """Should assign a single medium quest that expires at the end of the day"""
        result = orchestrator.assign_daily(1)

        assert result.ok
        view = result.data
        assert view.quest.difficulty == "medium"
        assert view.quest.assigned_date == today
        assert view.quest.expires_at == datetime(2026, 10, 14, 23, 59, 59, 999999)
        assert view.can_reroll is True

    def test_second_call_returns_same_assignment(self, orchestrator, db_session, quest_pool):
        """Should reuse the stored assignment instead of selecting again"""
        first = orchestrator.assign_daily(1).data
        second = orchestrator.assign_daily(1).data

        assert first.quest.assignment_id == second.quest.assignment_id
        assert db_session.query(QuestAssignment).count() == 1

    def test_explicit_date(self, orchestrator, quest_pool, today):
        """Should assign for the given day rather than today"""
        tomorrow = today + timedelta(days=1)
        result = orchestrator.assign_daily(1, tomorrow)
        assert result.data.quest.assigned_date == tomorrow

    def test_empty_pool_fails_with_conflict(self, orchestrator, categories):
        """Should fail without retry when no quest is eligible"""
        result = orchestrator.assign_daily(1)

        assert not result.ok
        assert result.error.code == "INSUFFICIENT_QUESTS"
        assert result.error.category == "conflict"
        assert result.error.retryable is False


class TestAssignWeekly:
    """Tests for assign_weekly"""

    def test_assigns_balanced_set(self, orchestrator, quest_pool):
        """Should assign 2 easy, 2 medium and 1 hard distinct quests"""
        result = orchestrator.assign_weekly(1)

        assert result.ok
        view = result.data
        assert view.week_start == date(2026, 10, 12)
        assert len(view.quests) == 5
        assert Counter(q.difficulty for q in view.quests) == {"easy": 2, "medium": 2, "hard": 1}
        assert len({q.quest_id for q in view.quests}) == 5
        assert all(q.expires_at.date() == date(2026, 10, 18) for q in view.quests)

    def test_any_day_of_week_maps_to_same_set(self, orchestrator, quest_pool):
        """Should return the same set for any day of the week"""
        first = orchestrator.assign_weekly(1, date(2026, 10, 12)).data
        second = orchestrator.assign_weekly(1, date(2026, 10, 16)).data

        assert [q.assignment_id for q in first.quests] == [q.assignment_id for q in second.quests]


class TestReroll:
    """Tests for reroll"""

    def test_daily_reroll_replaces_quest(self, orchestrator, db_session, quest_pool):
        """Should replace the daily quest with a different medium quest"""
        old = orchestrator.assign_daily(1).data.quest

        result = orchestrator.reroll(1, "daily")

        assert result.ok
        new = result.data.quest
        assert new.quest_id != old.quest_id
        assert new.difficulty == "medium"
        assert result.data.can_reroll is False
        assert db_session.query(QuestAssignment).count() == 1
        assert db_session.query(RerollRecord).count() == 1

    def test_second_reroll_same_period_is_rejected(self, orchestrator, quest_pool):
        """Should allow only one reroll per day"""
        orchestrator.assign_daily(1)
        assert orchestrator.reroll(1, "daily").ok

        result = orchestrator.reroll(1, "daily")

        assert not result.ok
        assert result.error.code == "REROLL_LIMIT_EXCEEDED"
        assert result.error.category == "conflict"
        assert orchestrator.assign_daily(1).data.can_reroll is False

    def test_reroll_after_completion_is_rejected(self, orchestrator, quest_pool):
        """Should refuse to reroll a completed daily quest"""
        assignment_id = daily_assignment_id(orchestrator)
        assert orchestrator.complete_quest(1, assignment_id).ok

        result = orchestrator.reroll(1, "daily")

        assert not result.ok
        assert result.error.code == "QUEST_ALREADY_COMPLETED"

    def test_weekly_reroll_replaces_whole_set(self, orchestrator, db_session, quest_pool):
        """Should replace all five weekly quests with none of the old ones"""
        old = orchestrator.assign_weekly(1).data

        result = orchestrator.reroll(1, "weekly")

        assert result.ok
        new = result.data
        assert len(new.quests) == 5
        assert not {q.quest_id for q in old.quests} & {q.quest_id for q in new.quests}
        assert Counter(q.difficulty for q in new.quests) == {"easy": 2, "medium": 2, "hard": 1}
        assert db_session.query(QuestAssignment).filter_by(assignment_type="weekly").count() == 5

    def test_weekly_reroll_blocked_by_one_completed_quest(self, orchestrator, quest_pool):
        """Should refuse to reroll a weekly set once any quest in it is done"""
        weekly = orchestrator.assign_weekly(1).data
        assert orchestrator.complete_quest(1, weekly.quests[2].assignment_id).ok

        result = orchestrator.reroll(1, "weekly")

        assert result.error.code == "QUEST_ALREADY_COMPLETED"

    def test_failed_reroll_leaves_everything_in_place(
        self, orchestrator, db_session, categories, quest_factory
    ):
        """Should keep the old set and the reroll budget when replacements run out"""
        fitness = categories["fitness"]
        for i in range(2):
            quest_factory(fitness, f"easy {i}", "easy", 10)
            quest_factory(fitness, f"medium {i}", "medium", 20)
        quest_factory(fitness, "hard", "hard", 30)
        db_session.commit()
        old_ids = sorted(q.assignment_id for q in orchestrator.assign_weekly(1).data.quests)

        result = orchestrator.reroll(1, "weekly")

        assert result.error.code == "INSUFFICIENT_QUESTS"
        remaining = sorted(a.id for a in db_session.query(QuestAssignment).all())
        assert remaining == old_ids
        assert db_session.query(RerollRecord).count() == 0

    def test_reroll_without_assignments(self, orchestrator, quest_pool):
        """Should report not found when nothing is assigned yet"""
        result = orchestrator.reroll(1, "daily")
        assert result.error.code == "NO_ASSIGNMENTS"
        assert result.error.category == "not_found"

    def test_unknown_type_is_validation_error(self, orchestrator, quest_pool):
        """Should reject assignment types other than daily and weekly"""
        result = orchestrator.reroll(1, "monthly")
        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.category == "validation"


class TestCompleteQuest:
    """Tests for complete_quest"""

    def test_continuing_streak(self, orchestrator, db_session, quest_pool, make_stats, yesterday):
        """Should extend a streak whose last completion was yesterday"""
        make_stats(
            total_points=100,
            current_streak_days=2,
            longest_streak_days=5,
            last_quest_completed_at=datetime.combine(yesterday, time(18, 0))
        )
        view = orchestrator.assign_daily(1).data
        db_session.get(Quest, view.quest.quest_id).points = 10
        db_session.commit()

        result = orchestrator.complete_quest(1, view.quest.assignment_id)

        assert result.ok
        assert result.data.points_earned == 10
        assert result.data.current_streak_days == 3
        assert result.data.longest_streak_days == 5
        assert result.data.total_points == 110
        stats = get_stats(db_session)
        assert (stats.current_streak_days, stats.longest_streak_days, stats.total_points) == (3, 5, 110)

    def test_second_completion_same_day(self, orchestrator, db_session, quest_pool, make_stats, yesterday, clock):
        """Second completion on one day adds points but not streak"""
        make_stats(
            current_streak_days=2,
            longest_streak_days=5,
            last_quest_completed_at=datetime.combine(yesterday, time(18, 0))
        )
        orchestrator.complete_quest(1, daily_assignment_id(orchestrator))
        before = get_stats(db_session)
        points_before, count_before = before.total_points, before.total_quests_completed

        clock.advance(hours=6)
        weekly = orchestrator.assign_weekly(1).data
        result = orchestrator.complete_quest(1, weekly.quests[0].assignment_id)

        assert result.ok
        stats = get_stats(db_session)
        assert stats.current_streak_days == 3
        assert stats.total_points == points_before + weekly.quests[0].points
        assert stats.total_quests_completed == count_before + 1

    def test_gap_resets_streak(self, orchestrator, db_session, quest_pool, make_stats, today):
        """Should restart the streak at 1 after a missed day"""
        make_stats(
            current_streak_days=4,
            longest_streak_days=4,
            last_quest_completed_at=datetime.combine(today - timedelta(days=3), time(9, 0))
        )
        result = orchestrator.complete_quest(1, daily_assignment_id(orchestrator))

        assert result.data.current_streak_days == 1
        assert result.data.longest_streak_days == 4

    def test_first_completion_creates_stats(self, orchestrator, db_session, quest_pool):
        """Should create the stats row on a user's first completion"""
        result = orchestrator.complete_quest(1, daily_assignment_id(orchestrator))

        assert result.ok
        stats = get_stats(db_session)
        assert stats.total_quests_completed == 1
        assert stats.total_points == 20
        assert stats.current_streak_days == 1
        assert stats.last_quest_completed_at == datetime(2026, 10, 14, 10, 0)

    def test_completion_captures_time_facts(self, orchestrator, db_session, quest_pool):
        """Should record time, weekday, season and notes of the completion"""
        assignment_id = daily_assignment_id(orchestrator)
        orchestrator.complete_quest(1, assignment_id, "Went for a run")

        assignment = db_session.get(QuestAssignment, assignment_id)
        assert assignment.is_completed
        assert assignment.completed_time == time(10, 0)
        assert assignment.completed_day_of_week == 2
        assert assignment.completed_season == "autumn"
        completion = db_session.query(QuestCompletion).one()
        assert completion.completion_notes == "Went for a run"
        assert completion.points_earned == 20

    def test_badge_earned_on_exact_completion(self, orchestrator, db_session, quest_pool, make_stats):
        """Should report a badge only on the completion that earns it"""
        db_session.add(Badge(name="Getting Started", requirement_type="quests_completed", requirement_value=5))
        db_session.commit()
        make_stats(total_quests_completed=4)

        first = orchestrator.complete_quest(1, daily_assignment_id(orchestrator))
        weekly = orchestrator.assign_weekly(1).data
        second = orchestrator.complete_quest(1, weekly.quests[0].assignment_id)

        assert [b.name for b in first.data.newly_earned_badges] == ["Getting Started"]
        assert second.data.newly_earned_badges == []

    def test_holiday_badge_counts_only_inside_range(self, orchestrator, db_session, quest_pool, clock):
        """Should count completions inside a year-wrapping holiday range only"""
        badge = Badge(
            name="Holiday Spirit", requirement_type="holiday_quest", requirement_value=3,
            requirement_date_start="12-20", requirement_date_end="01-05", requirement_recurring=True
        )
        db_session.add(badge)
        db_session.commit()

        clock.now = datetime(2027, 1, 2, 10, 0)
        orchestrator.complete_quest(1, daily_assignment_id(orchestrator))
        progress = db_session.query(UserBadge).filter_by(user_id=1, badge_id=badge.id).one()
        assert progress.progress_value == 1

        clock.now = datetime(2027, 1, 10, 10, 0)
        orchestrator.complete_quest(1, daily_assignment_id(orchestrator))
        db_session.expire_all()
        progress = db_session.query(UserBadge).filter_by(user_id=1, badge_id=badge.id).one()
        assert progress.progress_value == 1
        assert progress.is_completed is False

    def test_double_completion_awards_points_once(self, orchestrator, db_session, quest_pool):
        """Should award points once and reject the repeat"""
        assignment_id = daily_assignment_id(orchestrator)

        first = orchestrator.complete_quest(1, assignment_id)
        second = orchestrator.complete_quest(1, assignment_id)

        assert first.ok
        assert not second.ok
        assert second.error.code == "ALREADY_COMPLETED"
        stats = get_stats(db_session)
        assert stats.total_points == 20
        assert stats.total_quests_completed == 1
        assert completion_count(db_session) == 1

    def test_other_users_assignment_not_found(self, orchestrator, quest_pool):
        """Should not let a user complete someone else's assignment"""
        assignment_id = daily_assignment_id(orchestrator, user_id=2)

        result = orchestrator.complete_quest(1, assignment_id)

        assert result.error.code == "ASSIGNMENT_NOT_FOUND"
        assert result.error.category == "not_found"

    @pytest.mark.parametrize("assignment_id", [0, -3, "7", True, None])
    def test_invalid_assignment_id(self, orchestrator, db_session, quest_pool, assignment_id):
        """Should reject anything but a positive integer id"""
        result = orchestrator.complete_quest(1, assignment_id)

        assert result.error.code == "VALIDATION_ERROR"
        assert db_session.query(QuestCompletion).count() == 0

    def test_notes_too_long(self, orchestrator, quest_pool):
        """Should reject notes over 500 characters"""
        result = orchestrator.complete_quest(1, daily_assignment_id(orchestrator), "x" * 501)
        assert result.error.code == "VALIDATION_ERROR"

    def test_badge_failure_keeps_completion(self, orchestrator, db_session, quest_pool, monkeypatch):
        """Should keep the completion when badge evaluation fails afterwards"""
        db_session.add(Badge(name="First Steps", requirement_type="quests_completed", requirement_value=1))
        db_session.commit()

        def broken(user_id, now):
            raise RuntimeError("badge store offline")

        monkeypatch.setattr(orchestrator.badge_engine, "evaluate_and_award", broken)
        result = orchestrator.complete_quest(1, daily_assignment_id(orchestrator))

        assert result.ok
        assert result.data.newly_earned_badges == []
        assert get_stats(db_session).total_points == 20

        monkeypatch.undo()
        check = orchestrator.evaluate_badges(1)
        assert [b.name for b in check.data.newly_earned_badges] == ["First Steps"]
        assert check.data.count == 1

    def test_storage_failure_is_retryable(self, orchestrator, db_session, quest_pool, monkeypatch):
        """Should surface a locked database as a retryable failure"""
        assignment_id = daily_assignment_id(orchestrator)

        def unavailable(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(AssignmentRepository, "get_by_id", staticmethod(unavailable))
        result = orchestrator.complete_quest(1, assignment_id)

        assert result.error.code == "STORAGE_UNAVAILABLE"
        assert result.error.category == "transient"
        assert result.error.retryable is True

    def test_unexpected_error_becomes_server_error(self, orchestrator, db_session, quest_pool, monkeypatch):
        """Should roll back and report SERVER_ERROR on an unexpected exception"""
        assignment_id = daily_assignment_id(orchestrator)

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(AssignmentRepository, "mark_completed", staticmethod(explode))
        result = orchestrator.complete_quest(1, assignment_id)

        assert result.error.code == "SERVER_ERROR"
        assert db_session.query(QuestCompletion).count() == 0


class TestUncompleteQuest:
    """Tests for uncomplete_quest"""

    def test_reverses_recorded_points(self, orchestrator, db_session, quest_pool):
        """Should reverse the recorded points and keep earned badges"""
        db_session.add(Badge(name="First Steps", requirement_type="quests_completed", requirement_value=1))
        db_session.commit()
        assignment_id = daily_assignment_id(orchestrator)
        completed = orchestrator.complete_quest(1, assignment_id)
        assert [b.name for b in completed.data.newly_earned_badges] == ["First Steps"]

        # Quest value changes after completion; the recorded 20 points are reversed
        quest = db_session.get(Quest, completed.data.quest_id)
        quest.points = 50
        db_session.commit()

        result = orchestrator.uncomplete_quest(1, assignment_id)

        assert result.ok
        assert result.data.points_deducted == 20
        stats = get_stats(db_session)
        assert stats.total_points == 0
        assert stats.total_quests_completed == 0
        assert completion_count(db_session) == 0
        assert db_session.get(QuestAssignment, assignment_id).is_completed is False
        earned = db_session.query(UserBadge).filter_by(user_id=1, is_completed=True).count()
        assert earned == 1

    def test_refreshes_unearned_badge_progress(self, orchestrator, db_session, quest_pool):
        """Should drop progress of unearned badges back after an undo"""
        db_session.add_all([
            Badge(name="First Steps", requirement_type="quests_completed", requirement_value=1),
            Badge(name="Getting Started", requirement_type="quests_completed", requirement_value=5),
        ])
        db_session.commit()
        assignment_id = daily_assignment_id(orchestrator)
        orchestrator.complete_quest(1, assignment_id)
        assert badge_progress(orchestrator.get_user_badges(1).data)["Getting Started"] == 1

        orchestrator.uncomplete_quest(1, assignment_id)

        views = {view.name: view for view in orchestrator.get_user_badges(1).data}
        assert views["Getting Started"].progress_value == 0
        assert views["First Steps"].is_earned is True
        stored = db_session.query(UserBadge).join(Badge).filter(Badge.name == "Getting Started").one()
        assert stored.progress_value == 0

    def test_streak_left_untouched(self, orchestrator, db_session, quest_pool):
        """Should leave the streak as it was"""
        assignment_id = daily_assignment_id(orchestrator)
        orchestrator.complete_quest(1, assignment_id)

        orchestrator.uncomplete_quest(1, assignment_id)

        stats = get_stats(db_session)
        assert stats.current_streak_days == 1
        assert stats.longest_streak_days == 1

    def test_not_completed(self, orchestrator, quest_pool):
        """Should reject undoing an assignment that is not completed"""
        result = orchestrator.uncomplete_quest(1, daily_assignment_id(orchestrator))
        assert result.error.code == "QUEST_NOT_COMPLETED"
        assert result.error.category == "conflict"

    def test_missing_assignment(self, orchestrator, quest_pool):
        """Should report an unknown assignment as not found"""
        result = orchestrator.uncomplete_quest(1, 999)
        assert result.error.code == "ASSIGNMENT_NOT_FOUND"

    def test_can_complete_again_after_undo(self, orchestrator, db_session, quest_pool):
        """Should allow completing the same assignment again after an undo"""
        assignment_id = daily_assignment_id(orchestrator)
        orchestrator.complete_quest(1, assignment_id)
        orchestrator.uncomplete_quest(1, assignment_id)

        result = orchestrator.complete_quest(1, assignment_id)

        assert result.ok
        assert get_stats(db_session).total_points == 20
        assert completion_count(db_session) == 1


class TestStatsConsistency:
    """Tests for stats staying in line with completions over several days"""

    def test_counts_and_streaks_stay_consistent(self, orchestrator, db_session, quest_pool, clock):
        """Longest streak never drops below current and counts match completions"""
        for day in range(6):
            daily_id = daily_assignment_id(orchestrator)
            orchestrator.complete_quest(1, daily_id)
            if day == 2:
                orchestrator.uncomplete_quest(1, daily_id)
            if day == 3:
                # Skip a day
                clock.advance(days=1)
            clock.advance(days=1)

            stats = get_stats(db_session)
            assert stats.longest_streak_days >= stats.current_streak_days
            assert stats.total_quests_completed == completion_count(db_session)


class TestReadViews:
    """Tests for cached read views"""

    def test_daily_view_is_cached_until_mutation(self, orchestrator, cache, quest_pool, today):
        """Should serve the daily view from cache until a completion invalidates it"""
        key = cache_key("daily_quest", 1, today)
        first = orchestrator.get_daily(1).data
        assert cache.get(key)["quest"]["assignment_id"] == first.quest.assignment_id

        second = orchestrator.get_daily(1).data
        assert second == first

        orchestrator.complete_quest(1, first.quest.assignment_id)
        assert cache.get(key) is None
        after = orchestrator.get_daily(1).data

        assert after.quest.is_completed is True
        assert after.can_reroll is False

    def test_weekly_view(self, orchestrator, quest_pool):
        """Should return the five weekly quests"""
        result = orchestrator.get_weekly(1)
        assert result.ok
        assert len(result.data.quests) == 5

    def test_stats_for_new_user_are_zero(self, orchestrator, quest_pool):
        """Should return zeros for a user without stats"""
        stats = orchestrator.get_user_stats(1).data
        assert stats.total_points == 0
        assert stats.badge_count == 0

    def test_stats_include_badge_count(self, orchestrator, db_session, quest_pool):
        """Should count earned badges alongside the totals"""
        db_session.add(Badge(name="First Steps", requirement_type="quests_completed", requirement_value=1))
        db_session.commit()
        orchestrator.complete_quest(1, daily_assignment_id(orchestrator))

        stats = orchestrator.get_user_stats(1).data
        assert stats.total_quests_completed == 1
        assert stats.badge_count == 1

    def test_badge_views(self, orchestrator, db_session, quest_pool):
        """Should list every badge with progress and the earned ones separately"""
        db_session.add_all([
            Badge(name="First Steps", requirement_type="quests_completed", requirement_value=1),
            Badge(name="Getting Started", requirement_type="quests_completed", requirement_value=5),
        ])
        db_session.commit()
        orchestrator.complete_quest(1, daily_assignment_id(orchestrator))

        badges = {b.name: b for b in orchestrator.get_user_badges(1).data}
        earned = orchestrator.get_earned_badges(1).data

        assert badges["First Steps"].is_earned
        assert badges["Getting Started"].progress_value == 1
        assert [b.name for b in earned] == ["First Steps"]

    def test_evaluate_badges_is_idempotent(self, orchestrator, db_session, make_stats):
        """Should award a met badge once across repeated evaluations"""
        db_session.add(Badge(name="Point Collector", requirement_type="total_points", requirement_value=100))
        db_session.commit()
        make_stats(total_points=150)

        assert orchestrator.evaluate_badges(1).data.count == 1
        assert orchestrator.evaluate_badges(1).data.count == 0

    def test_evaluate_badges_refreshes_cached_progress(self, orchestrator, db_session, make_stats):
        """Should invalidate badge views even when nothing new is earned"""
        db_session.add(Badge(name="Point Collector", requirement_type="total_points", requirement_value=100))
        db_session.commit()
        make_stats(total_points=30)
        assert badge_progress(orchestrator.get_user_badges(1).data) == {"Point Collector": 0}

        assert orchestrator.evaluate_badges(1).data.count == 0

        assert badge_progress(orchestrator.get_user_badges(1).data) == {"Point Collector": 30}


class TestHistory:
    """Tests for get_quest_history"""

    @pytest.fixture
    def three_days(self, orchestrator, quest_pool, clock):
        ids = []
        for _ in range(3):
            ids.append(daily_assignment_id(orchestrator))
            clock.advance(days=1)
        orchestrator.complete_quest(1, ids[0])
        return ids

    def test_newest_first_with_pagination(self, orchestrator, three_days):
        """Should page newest first and report whether more rows exist"""
        result = orchestrator.get_quest_history(1, "all", 2, 0)

        page = result.data
        assert [entry.assignment_id for entry in page.history] == [three_days[2], three_days[1]]
        assert page.pagination.total == 3
        assert page.pagination.has_more is True

        last = orchestrator.get_quest_history(1, "all", 2, 2).data
        assert [entry.assignment_id for entry in last.history] == [three_days[0]]
        assert last.pagination.has_more is False

    def test_completed_filter(self, orchestrator, three_days):
        """Should list only completed assignments with the points they earned"""
        page = orchestrator.get_quest_history(1, "completed").data
        assert [entry.assignment_id for entry in page.history] == [three_days[0]]
        assert page.history[0].points_earned == 20

    @pytest.mark.parametrize("limit, expected", [(0, 1), (100, 50), (20, 20)])
    def test_limit_is_clamped(self, orchestrator, three_days, limit, expected):
        """Should clamp the page size to 1..50"""
        assert orchestrator.get_quest_history(1, "all", limit).data.pagination.limit == expected

    def test_unknown_filter(self, orchestrator, three_days):
        """Should reject filters other than all and completed"""
        assert orchestrator.get_quest_history(1, "skipped").error.code == "VALIDATION_ERROR"


class TestTwoSessions:
    """Tests for two sessions working on the same user through a file database"""

    @pytest.fixture
    def session_factory(self, tmp_path):
        file_engine = create_engine(
            f"sqlite:///{tmp_path / 'quests.db'}",
            connect_args={"check_same_thread": False}
        )
        enable_sqlite_transactions(file_engine)
        Base.metadata.create_all(bind=file_engine)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)

        setup = Session()
        category = QuestCategory(name="fitness", is_active=True)
        setup.add(category)
        setup.flush()
        for title in ("Walk", "Stretch", "Plank"):
            setup.add(Quest(category_id=category.id, title=title, difficulty_level="medium", points=20))
        setup.commit()
        setup.close()

        yield Session
        file_engine.dispose()

    @pytest.fixture
    def two_orchestrators(self, session_factory):
        clock = lambda: datetime(2026, 10, 14, 10, 0)
        shared_server = fakeredis.FakeServer()
        session_a, session_b = session_factory(), session_factory()
        first = AchievementOrchestrator(
            session_a, RedisCache(fakeredis.FakeRedis(server=shared_server, decode_responses=True)), clock
        )
        second = AchievementOrchestrator(
            session_b, RedisCache(fakeredis.FakeRedis(server=shared_server, decode_responses=True)), clock
        )
        yield first, second
        session_a.close()
        session_b.close()

    def test_same_assignment_completed_from_two_sessions(self, session_factory, two_orchestrators):
        """Should award points once when two sessions complete one assignment"""
        first, second = two_orchestrators

        # Both callers see the same uncompleted assignment
        assignment_id = first.assign_daily(1).data.quest.assignment_id
        assert second.assign_daily(1).data.quest.is_completed is False

        results = [
            first.complete_quest(1, assignment_id),
            second.complete_quest(1, assignment_id),
        ]

        assert [r.ok for r in results] == [True, False]
        assert results[1].error.code == "ALREADY_COMPLETED"

        check = session_factory()
        stats = check.query(UserStats).filter_by(user_id=1).one()
        assert stats.total_points == 20
        assert stats.total_quests_completed == 1
        assert check.query(QuestCompletion).count() == 1
        check.close()

    def test_same_period_rerolled_from_two_sessions(self, session_factory, two_orchestrators):
        """Should accept exactly one reroll when two sessions reroll one day"""
        first, second = two_orchestrators
        first.assign_daily(1)
        assert second.assign_daily(1).data.can_reroll is True

        results = [first.reroll(1, "daily"), second.reroll(1, "daily")]

        assert [r.ok for r in results] == [True, False]
        assert results[1].error.code == "REROLL_LIMIT_EXCEEDED"

        check = session_factory()
        assert check.query(RerollRecord).count() == 1
        daily = check.query(QuestAssignment).filter_by(user_id=1, assignment_type="daily").all()
        assert [a.quest_id for a in daily] == [results[0].data.quest.quest_id]
        check.close()

    def test_reroll_claim_lost_after_guard_check(self, session_factory, two_orchestrators):
        """Should reject a claim that passed the guard before the other session committed"""
        first, second = two_orchestrators
        first.assign_daily(1)
        period_key = date(2026, 10, 14)
        assert RerollGuard(second.db).can_reroll(1, "daily", period_key) is True
        second.db.rollback()

        assert first.reroll(1, "daily").ok

        with pytest.raises(RerollLimitExceededException):
            RerollGuard(second.db).record_reroll(1, "daily", period_key)
        second.db.rollback()

        check = session_factory()
        assert check.query(RerollRecord).count() == 1
        assert check.query(QuestAssignment).filter_by(user_id=1, assignment_type="daily").count() == 1
        check.close()
