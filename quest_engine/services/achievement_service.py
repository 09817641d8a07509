"""
Achievement orchestration.
Composes quest selection, the reroll guard, streak tracking and badge rules
into the user-facing operations. Every mutation is one unit of work; the badge
step after a completion runs in its own unit of work and is best-effort.

Public methods return OperationSuccess or OperationFailure and never raise.
"""
import logging
from datetime import date, datetime
from typing import Any, Callable, List, Optional
from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from quest_engine.database import TRANSIENT_ERRORS, transaction
from quest_engine.models import QuestAssignment
from quest_engine.cache import CacheGateway, NullCache, cache_key, user_pattern
from quest_engine.repositories.assignment_repository import (
    AssignmentRepository, CompletionFacts, CompletionRepository
)
from quest_engine.repositories.badge_repository import BadgeRepository
from quest_engine.repositories.stats_repository import UserStatsRepository
from quest_engine.services.badge_engine import BadgeRuleEngine
from quest_engine.services.date_service import DateService
from quest_engine.services.quest_selector import QuestSelector
from quest_engine.services.reroll_guard import RerollGuard
from quest_engine.services.streak_tracker import StreakTracker
from quest_engine.schemas import (
    AssignmentResponse,
    BadgeCheckResponse,
    BadgeProgressResponse,
    CompletionResponse,
    DailyQuestResponse,
    EarnedBadgeResponse,
    ErrorDetail,
    HistoryEntryResponse,
    HistoryResponse,
    OperationFailure,
    OperationResult,
    OperationSuccess,
    PaginationResponse,
    UncompletionResponse,
    UserStatsResponse,
    WeeklyQuestsResponse,
)
from quest_engine.constants import (
    ASSIGNMENT_DAILY,
    ASSIGNMENT_TYPES,
    ASSIGNMENT_WEEKLY,
    CACHE_KIND_BADGES,
    CACHE_KIND_DAILY,
    CACHE_KIND_STATS,
    CACHE_KIND_WEEKLY,
    CACHE_TTL_ASSIGNMENTS,
    CACHE_TTL_BADGES,
    CACHE_TTL_STATS,
    COMPLETION_NOTES_MAX_LENGTH,
    DAILY_QUEST_DIFFICULTY,
    HISTORY_DEFAULT_LIMIT,
    HISTORY_FILTER_ALL,
    HISTORY_FILTER_COMPLETED,
    HISTORY_MAX_LIMIT,
)
from quest_engine.exceptions import (
    CATEGORY_TRANSIENT,
    AlreadyCompletedException,
    AssignmentNotFoundException,
    NotCompletedException,
    QuestEngineException,
    TransientStorageException,
    ValidationException,
)

logger = logging.getLogger("quest_engine.orchestrator")

# Cached views travel as JSON and are rebuilt on a hit
DAILY_VIEW = TypeAdapter(DailyQuestResponse)
WEEKLY_VIEW = TypeAdapter(WeeklyQuestsResponse)
STATS_VIEW = TypeAdapter(UserStatsResponse)
BADGE_LIST_VIEW = TypeAdapter(List[BadgeProgressResponse])
EARNED_LIST_VIEW = TypeAdapter(List[EarnedBadgeResponse])


def _require_positive_int(field: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationException(field, f"must be a positive integer, got {value!r}")


def to_assignment_response(assignment: QuestAssignment) -> AssignmentResponse:
    quest = assignment.quest
    return AssignmentResponse(
        assignment_id=assignment.id,
        quest_id=quest.id,
        assignment_type=assignment.assignment_type,
        title=quest.title,
        description=quest.description,
        category=quest.category.name,
        difficulty=quest.difficulty_level,
        points=quest.points,
        estimated_duration_minutes=quest.estimated_duration_minutes,
        assigned_date=assignment.assigned_date,
        is_completed=assignment.is_completed,
        completed_at=assignment.completed_at,
        expires_at=assignment.expires_at
    )


class AchievementOrchestrator:
    """Facade for assignment, reroll, completion and badge operations"""

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheGateway] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.db = db
        self.cache = cache if cache is not None else NullCache()
        self.clock = clock
        self.assignment_repo = AssignmentRepository()
        self.completion_repo = CompletionRepository()
        self.stats_repo = UserStatsRepository()
        self.badge_repo = BadgeRepository()
        self.selector = QuestSelector(db)
        self.reroll_guard = RerollGuard(db)
        self.badge_engine = BadgeRuleEngine(db)

    # Result plumbing

    def _run(self, operation: str, action: Callable[[], Any]) -> OperationResult:
        try:
            return OperationSuccess(data=action())
        except QuestEngineException as e:
            return self._failure(operation, e)
        except TRANSIENT_ERRORS as e:
            self.db.rollback()
            return self._failure(operation, TransientStorageException(operation, str(e)))
        except Exception:
            self.db.rollback()
            logger.exception(f"Unexpected error during {operation}")
            return OperationFailure(error=ErrorDetail(
                code="SERVER_ERROR",
                category="internal",
                message=f"Unexpected error during {operation}",
                retryable=False
            ))

    @staticmethod
    def _failure(operation: str, error: QuestEngineException) -> OperationFailure:
        if error.category == CATEGORY_TRANSIENT:
            logger.error(f"{operation} failed: {error}")
        else:
            logger.warning(f"{operation} rejected [{error.error_code}]: {error}")
        return OperationFailure(error=ErrorDetail(
            code=error.error_code,
            category=error.category,
            message=str(error),
            retryable=error.retryable
        ))

    def _cached(self, key: str, ttl: int, view: TypeAdapter, load: Callable[[], Any]) -> Any:
        raw = self.cache.get(key)
        if raw is not None:
            return view.validate_python(raw)
        value = load()
        self.cache.set(key, view.dump_python(value, mode="json"), ttl)
        return value

    def _invalidate_user(self, user_id: int) -> None:
        self.cache.invalidate(user_pattern(user_id))

    # Assignment

    def _assign_daily(self, user_id: int, on_date: date) -> DailyQuestResponse:
        period_key = DateService.get_period_key(ASSIGNMENT_DAILY, on_date)
        with transaction(self.db, "assign_daily"):
            assignments = self.assignment_repo.get_for_period(
                self.db, user_id, ASSIGNMENT_DAILY, period_key
            )
            if not assignments:
                quest = self.selector.select_one(user_id, DAILY_QUEST_DIFFICULTY, period_key)
                self.assignment_repo.insert(
                    self.db, user_id, quest.id, ASSIGNMENT_DAILY, period_key,
                    DateService.get_expiry(ASSIGNMENT_DAILY, period_key)
                )
                assignments = self.assignment_repo.get_for_period(
                    self.db, user_id, ASSIGNMENT_DAILY, period_key
                )
                logger.info(f"Assigned daily quest {quest.id} to user {user_id} for {period_key}")
            view = DailyQuestResponse(
                quest=to_assignment_response(assignments[0]),
                can_reroll=self.reroll_guard.can_reroll(
                    user_id, ASSIGNMENT_DAILY, period_key, assignments
                )
            )
        return view

    def _assign_weekly(self, user_id: int, on_date: date) -> WeeklyQuestsResponse:
        period_key = DateService.get_period_key(ASSIGNMENT_WEEKLY, on_date)
        with transaction(self.db, "assign_weekly"):
            assignments = self.assignment_repo.get_for_period(
                self.db, user_id, ASSIGNMENT_WEEKLY, period_key
            )
            if not assignments:
                quests = self.selector.select_weekly_set(user_id, period_key)
                expires_at = DateService.get_expiry(ASSIGNMENT_WEEKLY, period_key)
                for quest in quests:
                    self.assignment_repo.insert(
                        self.db, user_id, quest.id, ASSIGNMENT_WEEKLY, period_key, expires_at
                    )
                assignments = self.assignment_repo.get_for_period(
                    self.db, user_id, ASSIGNMENT_WEEKLY, period_key
                )
                logger.info(
                    f"Assigned weekly quests {[q.id for q in quests]} to user {user_id} "
                    f"for week of {period_key}"
                )
            view = WeeklyQuestsResponse(
                quests=[to_assignment_response(a) for a in assignments],
                week_start=period_key,
                can_reroll=self.reroll_guard.can_reroll(
                    user_id, ASSIGNMENT_WEEKLY, period_key, assignments
                )
            )
        return view

    def assign_daily(self, user_id: int, on_date: Optional[date] = None) -> OperationResult:
        """
        Get the user's daily quest for a day, selecting one if absent.

        Args:
            user_id: User ID
            on_date: Day to assign for (defaults to today)
        """
        def action():
            _require_positive_int("user_id", user_id)
            return self._assign_daily(user_id, on_date or self.clock().date())
        return self._run("assign_daily", action)

    def assign_weekly(self, user_id: int, week_start: Optional[date] = None) -> OperationResult:
        """
        Get the user's weekly quest set, selecting 2 easy, 2 medium and 1 hard
        quest if absent. Any date of the week is accepted.
        """
        def action():
            _require_positive_int("user_id", user_id)
            return self._assign_weekly(user_id, week_start or self.clock().date())
        return self._run("assign_weekly", action)

    def get_daily(self, user_id: int) -> OperationResult:
        """Cached view of today's daily quest"""
        def action():
            _require_positive_int("user_id", user_id)
            today = self.clock().date()
            return self._cached(
                cache_key(CACHE_KIND_DAILY, user_id, today),
                CACHE_TTL_ASSIGNMENTS,
                DAILY_VIEW,
                lambda: self._assign_daily(user_id, today)
            )
        return self._run("get_daily", action)

    def get_weekly(self, user_id: int) -> OperationResult:
        """Cached view of this week's quest set"""
        def action():
            _require_positive_int("user_id", user_id)
            week_start = DateService.get_week_start(self.clock().date())
            return self._cached(
                cache_key(CACHE_KIND_WEEKLY, user_id, week_start),
                CACHE_TTL_ASSIGNMENTS,
                WEEKLY_VIEW,
                lambda: self._assign_weekly(user_id, week_start)
            )
        return self._run("get_weekly", action)

    # Reroll

    def reroll(self, user_id: int, assignment_type: str) -> OperationResult:
        """
        Replace the current period's uncompleted daily quest or weekly set.

        The budget is claimed first, so a concurrent second reroll fails on
        the unique reroll record. Old rows are deleted and replacements are
        selected excluding the old quest IDs, all in one unit of work.
        """
        def action():
            _require_positive_int("user_id", user_id)
            if assignment_type not in ASSIGNMENT_TYPES:
                raise ValidationException(
                    "assignment_type", f"must be one of {ASSIGNMENT_TYPES}"
                )
            today = self.clock().date()
            period_key = DateService.get_period_key(assignment_type, today)

            with transaction(self.db, "reroll"):
                old_assignments = self.reroll_guard.check_reroll(
                    user_id, assignment_type, period_key
                )
                old_ids = [a.quest_id for a in old_assignments]
                self.reroll_guard.record_reroll(user_id, assignment_type, period_key)
                self.assignment_repo.delete_for_period(
                    self.db, user_id, assignment_type, period_key
                )

                if assignment_type == ASSIGNMENT_DAILY:
                    quests = [self.selector.select_one(
                        user_id, DAILY_QUEST_DIFFICULTY, today, old_ids
                    )]
                else:
                    quests = self.selector.select_weekly_set(user_id, today, old_ids)

                expires_at = DateService.get_expiry(assignment_type, period_key)
                for quest in quests:
                    self.assignment_repo.insert(
                        self.db, user_id, quest.id, assignment_type, period_key, expires_at
                    )
                assignments = self.assignment_repo.get_for_period(
                    self.db, user_id, assignment_type, period_key
                )
                views = [to_assignment_response(a) for a in assignments]

            self._invalidate_user(user_id)
            logger.info(
                f"User {user_id} rerolled {assignment_type} quests for {period_key}: "
                f"{old_ids} -> {[q.id for q in quests]}"
            )
            if assignment_type == ASSIGNMENT_DAILY:
                return DailyQuestResponse(quest=views[0], can_reroll=False)
            return WeeklyQuestsResponse(quests=views, week_start=period_key, can_reroll=False)
        return self._run("reroll", action)

    # Completion

    def complete_quest(
        self,
        user_id: int,
        assignment_id: int,
        completion_notes: Optional[str] = None
    ) -> OperationResult:
        """
        Complete an assignment.

        The guarded update gates every later write, so of two concurrent
        calls only one awards points. Badges are evaluated afterwards; if that
        step fails the completion still stands.
        """
        def action():
            _require_positive_int("user_id", user_id)
            _require_positive_int("assignment_id", assignment_id)
            if completion_notes is not None and len(completion_notes) > COMPLETION_NOTES_MAX_LENGTH:
                raise ValidationException(
                    "completion_notes", f"must be at most {COMPLETION_NOTES_MAX_LENGTH} characters"
                )
            now = self.clock()

            with transaction(self.db, "complete_quest"):
                assignment = self.assignment_repo.get_by_id(self.db, assignment_id, user_id)
                if not assignment:
                    raise AssignmentNotFoundException(assignment_id)

                facts = CompletionFacts(
                    completed_at=now,
                    completed_time=now.time(),
                    day_of_week=now.weekday(),
                    season=DateService.get_season(now.date())
                )
                if self.assignment_repo.mark_completed(self.db, assignment_id, user_id, facts) == 0:
                    raise AlreadyCompletedException(assignment_id)

                quest = assignment.quest
                self.completion_repo.insert(
                    self.db, user_id, quest.id, assignment_id, quest.points, now, completion_notes
                )

                stats = self.stats_repo.get_or_create(self.db, user_id, lock=True)
                last_completed = stats.last_quest_completed_at
                streak = StreakTracker.advance(
                    last_completed.date() if last_completed else None,
                    now.date(),
                    stats.current_streak_days,
                    stats.longest_streak_days
                )
                stats = self.stats_repo.apply_completion(
                    self.db, stats, quest.points,
                    streak.current_streak, streak.longest_streak, now
                )
                response = CompletionResponse(
                    assignment_id=assignment_id,
                    quest_id=quest.id,
                    assignment_type=assignment.assignment_type,
                    points_earned=quest.points,
                    completed_at=now,
                    current_streak_days=stats.current_streak_days,
                    longest_streak_days=stats.longest_streak_days,
                    total_points=stats.total_points
                )

            logger.info(
                f"User {user_id} completed assignment {assignment_id} "
                f"(+{response.points_earned} points, streak {response.current_streak_days})"
            )
            response.newly_earned_badges = self._evaluate_badges_best_effort(user_id, now)
            self._invalidate_user(user_id)
            return response
        return self._run("complete_quest", action)

    def _evaluate_badges_best_effort(
        self, user_id: int, now: datetime, after: str = "completion"
    ) -> List[EarnedBadgeResponse]:
        try:
            with transaction(self.db, "badge_evaluation"):
                return self.badge_engine.evaluate_and_award(user_id, now)
        except Exception as e:
            # Stats are committed; a later evaluate_badges call catches up
            logger.warning(
                f"ConsistencyWarning: badge evaluation failed for user {user_id} "
                f"after {after}: {e}"
            )
            return []

    def uncomplete_quest(self, user_id: int, assignment_id: int) -> OperationResult:
        """
        Undo a completion.

        Points and quest count are reversed by the amount recorded on the
        completion. Streaks and earned badges are left as they are; progress
        of unearned badges is recomputed after commit.
        """
        def action():
            _require_positive_int("user_id", user_id)
            _require_positive_int("assignment_id", assignment_id)
            now = self.clock()

            with transaction(self.db, "uncomplete_quest"):
                assignment = self.assignment_repo.get_by_id(self.db, assignment_id, user_id)
                if not assignment:
                    raise AssignmentNotFoundException(assignment_id)
                if self.assignment_repo.mark_uncompleted(self.db, assignment_id, user_id) == 0:
                    raise NotCompletedException(assignment_id)

                points = self.completion_repo.delete_by_assignment(self.db, assignment_id, user_id)
                if points is None:
                    logger.warning(
                        f"Assignment {assignment_id} of user {user_id} was completed "
                        f"without a completion record, stats left unchanged"
                    )
                    points = 0
                else:
                    stats = self.stats_repo.get(self.db, user_id, lock=True)
                    if stats:
                        self.stats_repo.reverse_completion(self.db, stats, points)

                response = UncompletionResponse(
                    assignment_id=assignment_id,
                    quest_id=assignment.quest_id,
                    assignment_type=assignment.assignment_type,
                    points_deducted=points,
                    uncompleted_at=now
                )

            # Refresh progress of unearned badges; earned ones are never revoked
            self._evaluate_badges_best_effort(user_id, now, after="uncompletion")
            self._invalidate_user(user_id)
            logger.info(f"User {user_id} uncompleted assignment {assignment_id} (-{points} points)")
            return response
        return self._run("uncomplete_quest", action)

    # Badges

    def evaluate_badges(self, user_id: int) -> OperationResult:
        """Re-run badge evaluation; safe to repeat at any time"""
        def action():
            _require_positive_int("user_id", user_id)
            with transaction(self.db, "evaluate_badges"):
                earned = self.badge_engine.evaluate_and_award(user_id, self.clock())
            self._invalidate_user(user_id)
            return BadgeCheckResponse(newly_earned_badges=earned, count=len(earned))
        return self._run("evaluate_badges", action)

    def get_user_badges(self, user_id: int) -> OperationResult:
        """Every badge with the user's progress and earned flag"""
        def action():
            _require_positive_int("user_id", user_id)
            return self._cached(
                cache_key(CACHE_KIND_BADGES, user_id, "all"),
                CACHE_TTL_BADGES,
                BADGE_LIST_VIEW,
                lambda: self.badge_engine.get_badge_progress(user_id)
            )
        return self._run("get_user_badges", action)

    def get_earned_badges(self, user_id: int) -> OperationResult:
        """Badges the user has earned, most recent first"""
        def action():
            _require_positive_int("user_id", user_id)
            return self._cached(
                cache_key(CACHE_KIND_BADGES, user_id, "earned"),
                CACHE_TTL_BADGES,
                EARNED_LIST_VIEW,
                lambda: self.badge_engine.get_earned_badges(user_id)
            )
        return self._run("get_earned_badges", action)

    # Stats and history

    def _load_stats(self, user_id: int) -> UserStatsResponse:
        stats = self.stats_repo.get(self.db, user_id)
        badge_count = self.badge_repo.count_earned(self.db, user_id)
        if not stats:
            return UserStatsResponse(badge_count=badge_count)
        response = UserStatsResponse.model_validate(stats)
        response.badge_count = badge_count
        return response

    def get_user_stats(self, user_id: int) -> OperationResult:
        """Totals, streaks and earned badge count"""
        def action():
            _require_positive_int("user_id", user_id)
            return self._cached(
                cache_key(CACHE_KIND_STATS, user_id),
                CACHE_TTL_STATS,
                STATS_VIEW,
                lambda: self._load_stats(user_id)
            )
        return self._run("get_user_stats", action)

    def get_quest_history(
        self,
        user_id: int,
        history_filter: str = HISTORY_FILTER_ALL,
        limit: int = HISTORY_DEFAULT_LIMIT,
        offset: int = 0
    ) -> OperationResult:
        """
        Page through the user's assignments, newest first.

        Args:
            history_filter: "all" or "completed"
            limit: Page size, clamped to 1..50
            offset: Rows to skip
        """
        def action():
            _require_positive_int("user_id", user_id)
            if history_filter not in (HISTORY_FILTER_ALL, HISTORY_FILTER_COMPLETED):
                raise ValidationException(
                    "filter", f"must be '{HISTORY_FILTER_ALL}' or '{HISTORY_FILTER_COMPLETED}'"
                )
            if isinstance(limit, bool) or not isinstance(limit, int):
                raise ValidationException("limit", "must be an integer")
            if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
                raise ValidationException("offset", "must be a non-negative integer")
            page_size = min(max(limit, 1), HISTORY_MAX_LIMIT)

            rows, total = self.assignment_repo.get_history(
                self.db, user_id, history_filter == HISTORY_FILTER_COMPLETED, page_size, offset
            )
            points = self.completion_repo.get_points_by_assignment(
                self.db, [row.id for row in rows]
            )
            entries = [
                HistoryEntryResponse(
                    assignment_id=row.id,
                    quest_id=row.quest_id,
                    title=row.quest.title,
                    category=row.quest.category.name,
                    difficulty=row.quest.difficulty_level,
                    points=row.quest.points,
                    assignment_type=row.assignment_type,
                    assigned_date=row.assigned_date,
                    is_completed=row.is_completed,
                    completed_at=row.completed_at,
                    points_earned=points.get(row.id)
                )
                for row in rows
            ]
            return HistoryResponse(
                history=entries,
                pagination=PaginationResponse(
                    limit=page_size,
                    offset=offset,
                    total=total,
                    has_more=offset + len(entries) < total
                )
            )
        return self._run("get_quest_history", action)
