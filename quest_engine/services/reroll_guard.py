"""
Reroll guard.
Enforces at most one reroll per assignment type per period, and never once a
quest of that period's set is completed.
"""
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from quest_engine.models import QuestAssignment
from quest_engine.repositories.assignment_repository import AssignmentRepository
from quest_engine.repositories.reroll_repository import RerollRepository
from quest_engine.exceptions import (
    NoAssignmentsException,
    QuestAlreadyCompletedException,
    RerollLimitExceededException,
)


class RerollGuard:
    """Service guarding the reroll budget"""

    def __init__(self, db: Session):
        self.db = db
        self.reroll_repo = RerollRepository()
        self.assignment_repo = AssignmentRepository()

    def can_reroll(
        self,
        user_id: int,
        assignment_type: str,
        period_key: date,
        assignments: Optional[List[QuestAssignment]] = None
    ) -> bool:
        """
        Check if a reroll is currently allowed.

        Args:
            user_id: User ID
            assignment_type: "daily" or "weekly"
            period_key: Period key of the set
            assignments: The period's assignments, if already loaded

        Returns:
            True if no reroll was recorded and no assignment is completed
        """
        if self.reroll_repo.exists(self.db, user_id, assignment_type, period_key):
            return False
        if assignments is None:
            assignments = self.assignment_repo.get_for_period(
                self.db, user_id, assignment_type, period_key
            )
        return not any(a.is_completed for a in assignments)

    def check_reroll(
        self,
        user_id: int,
        assignment_type: str,
        period_key: date
    ) -> List[QuestAssignment]:
        """
        Verify a reroll is allowed and return the assignments it will replace.

        Raises:
            RerollLimitExceededException: Already rerolled this period
            NoAssignmentsException: Nothing assigned for the period
            QuestAlreadyCompletedException: A quest of the set is completed
        """
        if self.reroll_repo.exists(self.db, user_id, assignment_type, period_key):
            raise RerollLimitExceededException(assignment_type, period_key)

        assignments = self.assignment_repo.get_for_period(
            self.db, user_id, assignment_type, period_key
        )
        if not assignments:
            raise NoAssignmentsException(assignment_type, period_key)
        if any(a.is_completed for a in assignments):
            raise QuestAlreadyCompletedException(assignment_type)
        return assignments

    def record_reroll(self, user_id: int, assignment_type: str, period_key: date) -> None:
        """
        Spend the reroll budget for the period.

        A conflicting insert means a concurrent reroll already won.

        Raises:
            RerollLimitExceededException: The record already existed
        """
        inserted = self.reroll_repo.insert(self.db, user_id, assignment_type, period_key)
        if not inserted:
            raise RerollLimitExceededException(assignment_type, period_key)
