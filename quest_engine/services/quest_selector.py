"""
Quest selection service.
Picks quests for a user deterministically per (user, date) so a page refresh
shows the same candidate before it is persisted, while different users and
different days get different rankings.
"""
import hashlib
import logging
from datetime import date
from typing import Iterable, List
from sqlalchemy.orm import Session

from quest_engine.models import Quest
from quest_engine.repositories.quest_repository import QuestRepository
from quest_engine.constants import WEEKLY_QUEST_MIX
from quest_engine.exceptions import InsufficientQuestsException

logger = logging.getLogger("quest_engine.selector")


class QuestSelector:
    """Service for ranking and picking eligible quests"""

    def __init__(self, db: Session):
        self.db = db
        self.quest_repo = QuestRepository()

    @staticmethod
    def rank_key(quest_id: int, user_id: int, on_date: date) -> int:
        """
        Deterministic ranking key for a quest.

        This is a seeded hash, not a source of secure randomness.
        """
        seed = f"{user_id}:{on_date.isoformat()}:{quest_id}".encode("utf-8")
        digest = hashlib.blake2b(seed, digest_size=8).digest()
        return int.from_bytes(digest, "big")

    def rank(self, quests: List[Quest], user_id: int, on_date: date) -> List[Quest]:
        """Order quests by ranking key, ties broken by quest ID"""
        return sorted(
            quests,
            key=lambda quest: (self.rank_key(quest.id, user_id, on_date), quest.id)
        )

    def select_many(
        self,
        user_id: int,
        difficulty: str,
        count: int,
        on_date: date,
        exclude_ids: Iterable[int] = ()
    ) -> List[Quest]:
        """
        Select the top `count` eligible quests of a difficulty.

        Raises:
            InsufficientQuestsException: If fewer than `count` quests are eligible
        """
        candidates = self.quest_repo.get_eligible_quests(self.db, difficulty, exclude_ids)
        if len(candidates) < count:
            logger.warning(
                f"Quest pool too small for user {user_id}: "
                f"{difficulty} needs {count}, has {len(candidates)}"
            )
            raise InsufficientQuestsException(difficulty, count, len(candidates))
        return self.rank(candidates, user_id, on_date)[:count]

    def select_one(
        self,
        user_id: int,
        difficulty: str,
        on_date: date,
        exclude_ids: Iterable[int] = ()
    ) -> Quest:
        """Select the top-ranked eligible quest of a difficulty"""
        return self.select_many(user_id, difficulty, 1, on_date, exclude_ids)[0]

    def select_weekly_set(
        self,
        user_id: int,
        on_date: date,
        exclude_ids: Iterable[int] = ()
    ) -> List[Quest]:
        """
        Select a balanced weekly set: 2 easy, 2 medium, 1 hard.

        No quest is picked twice and none from exclude_ids is picked. Either
        the whole set is returned or InsufficientQuestsException is raised.
        """
        excluded = set(exclude_ids)
        selected: List[Quest] = []

        for difficulty, count in WEEKLY_QUEST_MIX:
            picked = self.select_many(user_id, difficulty, count, on_date, excluded)
            selected.extend(picked)
            excluded.update(quest.id for quest in picked)

        return selected
