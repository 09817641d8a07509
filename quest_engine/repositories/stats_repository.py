"""
Stats repository - Data access layer for UserStats.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quest_engine.models import UserStats


class UserStatsRepository:
    """Repository for UserStats data access"""

    @staticmethod
    def get(db: Session, user_id: int, lock: bool = False) -> Optional[UserStats]:
        """Get stats for a user without creating them"""
        query = db.query(UserStats).filter(UserStats.user_id == user_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_or_create(db: Session, user_id: int, lock: bool = False) -> UserStats:
        """
        Get stats for a user (creates a zeroed row if not exists).

        A concurrent creator may win the insert; the savepoint keeps the outer
        transaction usable and the winner's row is returned.
        """
        stats = UserStatsRepository.get(db, user_id, lock=lock)
        if stats:
            return stats

        try:
            with db.begin_nested():
                stats = UserStats(
                    user_id=user_id,
                    total_quests_completed=0,
                    total_points=0,
                    current_streak_days=0,
                    longest_streak_days=0
                )
                db.add(stats)
        except IntegrityError:
            stats = UserStatsRepository.get(db, user_id, lock=lock)
        return stats

    @staticmethod
    def apply_completion(
        db: Session,
        stats: UserStats,
        points: int,
        current_streak: int,
        longest_streak: int,
        completed_at: datetime
    ) -> UserStats:
        """Add one completion worth `points` and store the new streak values"""
        # Increments are evaluated by the database, not from the loaded values
        stats.total_quests_completed = UserStats.total_quests_completed + 1
        stats.total_points = UserStats.total_points + points
        stats.current_streak_days = current_streak
        stats.longest_streak_days = longest_streak
        stats.last_quest_completed_at = completed_at
        db.flush()
        db.refresh(stats)
        return stats

    @staticmethod
    def reverse_completion(db: Session, stats: UserStats, points: int) -> UserStats:
        """Remove one completion worth `points`; streak fields are left as they are"""
        stats.total_quests_completed = case(
            (UserStats.total_quests_completed > 0, UserStats.total_quests_completed - 1),
            else_=0
        )
        stats.total_points = UserStats.total_points - points
        db.flush()
        db.refresh(stats)
        return stats
