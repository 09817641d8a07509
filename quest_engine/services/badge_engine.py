"""
Badge rule engine.
Evaluates every badge a user has not earned yet and awards the ones whose
requirement is met. Awards are at-most-once and never revoked.
"""
import logging
from datetime import datetime
from typing import List
from sqlalchemy.orm import Session

from quest_engine.repositories.assignment_repository import CompletionRepository
from quest_engine.repositories.badge_repository import BadgeRepository, UserBadgeRepository
from quest_engine.repositories.stats_repository import UserStatsRepository
from quest_engine.services.badge_rules import compute_progress, is_met, requirement_from_badge
from quest_engine.schemas import BadgeProgressResponse, EarnedBadgeResponse
from quest_engine.exceptions import BadgeRequirementException

logger = logging.getLogger("quest_engine.badges")


class BadgeRuleEngine:
    """Service evaluating badge requirements for one user"""

    def __init__(self, db: Session):
        self.db = db
        self.badge_repo = BadgeRepository()
        self.user_badge_repo = UserBadgeRepository()
        self.stats_repo = UserStatsRepository()
        self.completion_repo = CompletionRepository()

    def evaluate_and_award(self, user_id: int, now: datetime) -> List[EarnedBadgeResponse]:
        """
        Evaluate all pending badges and award those that are met.

        Runs inside the caller's unit of work. Badges with a malformed
        requirement are skipped with a warning.

        Args:
            user_id: User ID
            now: Award timestamp

        Returns:
            Badges that transitioned to earned during this call
        """
        pending = self.badge_repo.get_pending_for_user(self.db, user_id)
        if not pending:
            return []

        stats = self.stats_repo.get(self.db, user_id)
        facts = self.completion_repo.get_completion_facts(self.db, user_id)
        newly_earned = []

        for badge in pending:
            try:
                requirement = requirement_from_badge(badge)
            except BadgeRequirementException as e:
                logger.warning(f"Skipping badge '{badge.name}': {e}")
                continue

            progress = compute_progress(requirement, stats, facts)
            self.user_badge_repo.ensure_row(self.db, user_id, badge.id)

            if not is_met(requirement, progress):
                self.user_badge_repo.update_progress(self.db, user_id, badge.id, progress)
                continue

            # Only the writer that flips the row reports the award
            if self.user_badge_repo.award(self.db, user_id, badge.id, progress, now):
                logger.info(f"User {user_id} earned badge '{badge.name}' ({progress}/{requirement.threshold})")
                newly_earned.append(EarnedBadgeResponse(
                    id=badge.id,
                    name=badge.name,
                    description=badge.description,
                    icon=badge.icon,
                    requirement_type=badge.requirement_type,
                    requirement_value=badge.requirement_value,
                    progress_value=progress,
                    earned_at=now
                ))

        return newly_earned

    def get_badge_progress(self, user_id: int) -> List[BadgeProgressResponse]:
        """Get every badge with the user's stored progress and earned flag"""
        rows = self.badge_repo.get_all_with_progress(self.db, user_id)
        return [
            BadgeProgressResponse(
                id=badge.id,
                name=badge.name,
                description=badge.description,
                icon=badge.icon,
                requirement_type=badge.requirement_type,
                requirement_value=badge.requirement_value,
                progress_value=user_badge.progress_value if user_badge else 0,
                is_earned=bool(user_badge and user_badge.is_completed),
                earned_at=user_badge.earned_at if user_badge else None
            )
            for badge, user_badge in rows
        ]

    def get_earned_badges(self, user_id: int) -> List[EarnedBadgeResponse]:
        """Get the badges a user has earned, most recent first"""
        rows = self.badge_repo.get_earned(self.db, user_id)
        return [
            EarnedBadgeResponse(
                id=badge.id,
                name=badge.name,
                description=badge.description,
                icon=badge.icon,
                requirement_type=badge.requirement_type,
                requirement_value=badge.requirement_value,
                progress_value=user_badge.progress_value,
                earned_at=user_badge.earned_at
            )
            for badge, user_badge in rows
        ]
