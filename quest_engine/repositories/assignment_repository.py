"""
Assignment repository - Data access layer for QuestAssignment and QuestCompletion.
Handles period lookups, guarded completion updates and completion records.

Writes only flush; the caller's unit of work commits.
"""
from datetime import date, datetime, time
from typing import List, NamedTuple, Optional, Tuple
from sqlalchemy.orm import Session, joinedload

from quest_engine.models import Quest, QuestAssignment, QuestCategory, QuestCompletion


class CompletionFacts(NamedTuple):
    """When and under which conditions an assignment was completed"""
    completed_at: datetime
    completed_time: time
    day_of_week: int
    season: str


class CompletionFact(NamedTuple):
    """One completed assignment as seen by badge rules"""
    category: str
    completed_at: datetime
    completed_time: Optional[time]
    day_of_week: Optional[int]
    season: Optional[str]


class AssignmentRepository:
    """Repository for QuestAssignment data access"""

    @staticmethod
    def get_by_id(db: Session, assignment_id: int, user_id: int) -> Optional[QuestAssignment]:
        """Get an assignment owned by the user, refreshed from the database"""
        return db.query(QuestAssignment).populate_existing().filter(
            QuestAssignment.id == assignment_id,
            QuestAssignment.user_id == user_id
        ).first()

    @staticmethod
    def get_for_period(
        db: Session,
        user_id: int,
        assignment_type: str,
        period_key: date
    ) -> List[QuestAssignment]:
        """Get the user's assignments of a type for a period key"""
        return db.query(QuestAssignment).options(
            joinedload(QuestAssignment.quest).joinedload(Quest.category)
        ).filter(
            QuestAssignment.user_id == user_id,
            QuestAssignment.assignment_type == assignment_type,
            QuestAssignment.assigned_date == period_key
        ).order_by(QuestAssignment.id).all()

    @staticmethod
    def insert(
        db: Session,
        user_id: int,
        quest_id: int,
        assignment_type: str,
        period_key: date,
        expires_at: Optional[datetime] = None
    ) -> QuestAssignment:
        """Create a new assignment"""
        assignment = QuestAssignment(
            user_id=user_id,
            quest_id=quest_id,
            assignment_type=assignment_type,
            assigned_date=period_key,
            expires_at=expires_at,
            is_completed=False
        )
        db.add(assignment)
        db.flush()
        return assignment

    @staticmethod
    def delete_for_period(
        db: Session,
        user_id: int,
        assignment_type: str,
        period_key: date
    ) -> int:
        """Delete the user's uncompleted assignments for a period, returns row count"""
        return db.query(QuestAssignment).filter(
            QuestAssignment.user_id == user_id,
            QuestAssignment.assignment_type == assignment_type,
            QuestAssignment.assigned_date == period_key,
            QuestAssignment.is_completed == False
        ).delete(synchronize_session="fetch")

    @staticmethod
    def mark_completed(
        db: Session,
        assignment_id: int,
        user_id: int,
        facts: CompletionFacts
    ) -> int:
        """
        Flip an assignment from not completed to completed.

        The WHERE clause includes is_completed = false, so of two concurrent
        callers only one sees an affected row.

        Returns:
            Number of rows affected (0 or 1)
        """
        return db.query(QuestAssignment).filter(
            QuestAssignment.id == assignment_id,
            QuestAssignment.user_id == user_id,
            QuestAssignment.is_completed == False
        ).update(
            {
                QuestAssignment.is_completed: True,
                QuestAssignment.completed_at: facts.completed_at,
                QuestAssignment.completed_time: facts.completed_time,
                QuestAssignment.completed_day_of_week: facts.day_of_week,
                QuestAssignment.completed_season: facts.season,
            },
            synchronize_session=False
        )

    @staticmethod
    def mark_uncompleted(db: Session, assignment_id: int, user_id: int) -> int:
        """Flip a completed assignment back to not completed, returns row count"""
        return db.query(QuestAssignment).filter(
            QuestAssignment.id == assignment_id,
            QuestAssignment.user_id == user_id,
            QuestAssignment.is_completed == True
        ).update(
            {
                QuestAssignment.is_completed: False,
                QuestAssignment.completed_at: None,
                QuestAssignment.completed_time: None,
                QuestAssignment.completed_day_of_week: None,
                QuestAssignment.completed_season: None,
            },
            synchronize_session=False
        )

    @staticmethod
    def get_history(
        db: Session,
        user_id: int,
        completed_only: bool,
        limit: int,
        offset: int
    ) -> Tuple[List[QuestAssignment], int]:
        """Get a page of the user's assignments, newest first, with the total count"""
        query = db.query(QuestAssignment).filter(QuestAssignment.user_id == user_id)
        if completed_only:
            query = query.filter(QuestAssignment.is_completed == True)
        total = query.count()
        rows = query.options(
            joinedload(QuestAssignment.quest).joinedload(Quest.category)
        ).order_by(
            QuestAssignment.assigned_date.desc(),
            QuestAssignment.completed_at.desc(),
            QuestAssignment.id.desc()
        ).offset(offset).limit(limit).all()
        return rows, total


class CompletionRepository:
    """Repository for QuestCompletion data access"""

    @staticmethod
    def insert(
        db: Session,
        user_id: int,
        quest_id: int,
        assignment_id: int,
        points_earned: int,
        completed_at: datetime,
        completion_notes: Optional[str] = None
    ) -> QuestCompletion:
        """Record a completion with a snapshot of the points earned"""
        completion = QuestCompletion(
            user_id=user_id,
            quest_id=quest_id,
            assignment_id=assignment_id,
            points_earned=points_earned,
            completed_at=completed_at,
            completion_notes=completion_notes
        )
        db.add(completion)
        db.flush()
        return completion

    @staticmethod
    def delete_by_assignment(db: Session, assignment_id: int, user_id: int) -> Optional[int]:
        """
        Delete the completion of an assignment.

        Returns:
            The points recorded on the deleted completion, or None if there was none
        """
        completion = db.query(QuestCompletion).filter(
            QuestCompletion.assignment_id == assignment_id,
            QuestCompletion.user_id == user_id
        ).first()
        if not completion:
            return None
        points = completion.points_earned
        db.delete(completion)
        db.flush()
        return points

    @staticmethod
    def get_points_by_assignment(db: Session, assignment_ids: List[int]) -> dict:
        """Map assignment ID to recorded points for the given assignments"""
        if not assignment_ids:
            return {}
        rows = db.query(
            QuestCompletion.assignment_id, QuestCompletion.points_earned
        ).filter(QuestCompletion.assignment_id.in_(assignment_ids)).all()
        return {assignment_id: points for assignment_id, points in rows}

    @staticmethod
    def get_completion_facts(db: Session, user_id: int) -> List[CompletionFact]:
        """Get the category and timing of every completion of a user"""
        rows = db.query(
            QuestCategory.name,
            QuestCompletion.completed_at,
            QuestAssignment.completed_time,
            QuestAssignment.completed_day_of_week,
            QuestAssignment.completed_season
        ).select_from(QuestCompletion).join(
            QuestAssignment, QuestAssignment.id == QuestCompletion.assignment_id
        ).join(
            Quest, Quest.id == QuestCompletion.quest_id
        ).join(
            QuestCategory, QuestCategory.id == Quest.category_id
        ).filter(
            QuestCompletion.user_id == user_id
        ).all()
        return [CompletionFact(*row) for row in rows]
