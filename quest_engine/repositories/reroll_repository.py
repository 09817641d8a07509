"""
Reroll repository - Data access layer for RerollRecord.
A row for (user, type, period) means that period's reroll budget is spent.
"""
from datetime import date
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quest_engine.models import RerollRecord


class RerollRepository:
    """Repository for RerollRecord data access"""

    @staticmethod
    def exists(db: Session, user_id: int, assignment_type: str, period_key: date) -> bool:
        """Check whether the user already rerolled this period"""
        return db.query(RerollRecord.id).filter(
            RerollRecord.user_id == user_id,
            RerollRecord.assignment_type == assignment_type,
            RerollRecord.reroll_date == period_key
        ).first() is not None

    @staticmethod
    def insert(db: Session, user_id: int, assignment_type: str, period_key: date) -> bool:
        """
        Record a reroll.

        Returns:
            True if the row was inserted, False if one already existed
        """
        try:
            with db.begin_nested():
                db.add(RerollRecord(
                    user_id=user_id,
                    assignment_type=assignment_type,
                    reroll_date=period_key
                ))
        except IntegrityError:
            return False
        return True
