"""
Badge repository - Data access layer for Badge and UserBadge models.
Award writes are guarded so an earned badge is never reset or reported twice.
"""
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quest_engine.models import Badge, UserBadge


class BadgeRepository:
    """Repository for Badge data access"""

    @staticmethod
    def get_by_name(db: Session, name: str) -> Optional[Badge]:
        """Get badge by name"""
        return db.query(Badge).filter(Badge.name == name).first()

    @staticmethod
    def get_pending_for_user(db: Session, user_id: int) -> List[Badge]:
        """Get badges the user has not earned yet"""
        earned = select(UserBadge.badge_id).where(
            UserBadge.user_id == user_id,
            UserBadge.is_completed == True
        )
        return db.query(Badge).filter(
            Badge.id.notin_(earned)
        ).order_by(Badge.id).all()

    @staticmethod
    def get_all_with_progress(db: Session, user_id: int) -> List[Tuple[Badge, Optional[UserBadge]]]:
        """Get every badge paired with the user's progress row, if any"""
        return db.query(Badge, UserBadge).outerjoin(
            UserBadge,
            (UserBadge.badge_id == Badge.id) & (UserBadge.user_id == user_id)
        ).order_by(Badge.id).all()

    @staticmethod
    def get_earned(db: Session, user_id: int) -> List[Tuple[Badge, UserBadge]]:
        """Get the badges a user has earned, most recent first"""
        return db.query(Badge, UserBadge).join(
            UserBadge, UserBadge.badge_id == Badge.id
        ).filter(
            UserBadge.user_id == user_id,
            UserBadge.is_completed == True
        ).order_by(UserBadge.earned_at.desc(), Badge.id).all()

    @staticmethod
    def count_earned(db: Session, user_id: int) -> int:
        """Count badges a user has earned"""
        return db.query(UserBadge).filter(
            UserBadge.user_id == user_id,
            UserBadge.is_completed == True
        ).count()


class UserBadgeRepository:
    """Repository for UserBadge data access"""

    @staticmethod
    def ensure_row(db: Session, user_id: int, badge_id: int) -> None:
        """
        Make sure a (user, badge) progress row exists.

        The insert runs in a savepoint; losing a race against the unique
        constraint leaves the other writer's row in place.
        """
        exists = db.query(UserBadge.id).filter(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge_id
        ).first()
        if exists:
            return
        try:
            with db.begin_nested():
                db.add(UserBadge(
                    user_id=user_id,
                    badge_id=badge_id,
                    progress_value=0,
                    is_completed=False
                ))
        except IntegrityError:
            pass

    @staticmethod
    def update_progress(db: Session, user_id: int, badge_id: int, progress: int) -> int:
        """Store progress on a not-yet-earned badge, returns row count"""
        return db.query(UserBadge).filter(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge_id,
            UserBadge.is_completed == False
        ).update(
            {UserBadge.progress_value: progress},
            synchronize_session=False
        )

    @staticmethod
    def award(
        db: Session,
        user_id: int,
        badge_id: int,
        progress: int,
        earned_at: datetime
    ) -> bool:
        """
        Mark a badge as earned.

        Returns:
            True only for the caller whose update flipped the row to earned
        """
        updated = db.query(UserBadge).filter(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge_id,
            UserBadge.is_completed == False
        ).update(
            {
                UserBadge.is_completed: True,
                UserBadge.earned_at: earned_at,
                UserBadge.progress_value: progress,
            },
            synchronize_session=False
        )
        return updated == 1
