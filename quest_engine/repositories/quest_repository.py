"""
Quest repository - Data access layer for Quest and QuestCategory models.
Quests and categories are shared reference data; this layer only reads them.
"""
from typing import Iterable, List
from sqlalchemy.orm import Session, joinedload

from quest_engine.models import Quest, QuestCategory


class QuestRepository:
    """Repository for Quest data access"""

    @staticmethod
    def get_eligible_quests(
        db: Session,
        difficulty: str,
        exclude_ids: Iterable[int] = ()
    ) -> List[Quest]:
        """
        Get active quests of a difficulty whose category is active.

        Args:
            db: Database session
            difficulty: Difficulty tier to match
            exclude_ids: Quest IDs that must not be returned

        Returns:
            Eligible quests ordered by ID
        """
        query = db.query(Quest).join(QuestCategory).options(
            joinedload(Quest.category)
        ).filter(
            Quest.is_active == True,
            QuestCategory.is_active == True,
            Quest.difficulty_level == difficulty
        )
        excluded = list(exclude_ids)
        if excluded:
            query = query.filter(Quest.id.notin_(excluded))
        return query.order_by(Quest.id).all()
