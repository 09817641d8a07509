from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Time, ForeignKey, Text,
    UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from datetime import datetime

from quest_engine.database import Base


class QuestCategory(Base):
    __tablename__ = "quest_category"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)

    quests = relationship("Quest", back_populates="category")


class Quest(Base):
    __tablename__ = "quest"
    __table_args__ = (
        Index("idx_quest_active_difficulty", "is_active", "difficulty_level"),
    )

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("quest_category.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    difficulty_level = Column(String(10), nullable=False)  # easy, medium, hard
    points = Column(Integer, nullable=False)
    estimated_duration_minutes = Column(Integer, nullable=True)
    # Logical deletion only: rows referenced by assignments are never removed
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    category = relationship("QuestCategory", back_populates="quests")


class QuestAssignment(Base):
    __tablename__ = "user_quest_assignment"
    __table_args__ = (
        Index("idx_assignment_user_type_date", "user_id", "assignment_type", "assigned_date"),
        Index("idx_assignment_user_completed", "user_id", "is_completed"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    quest_id = Column(Integer, ForeignKey("quest.id"), nullable=False)
    assignment_type = Column(String(10), nullable=False)  # daily, weekly
    assigned_date = Column(Date, nullable=False)  # Period key: the day, or the Monday
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Completion facts, captured at completion time for badge rules
    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    completed_time = Column(Time, nullable=True)
    completed_day_of_week = Column(Integer, nullable=True)  # Monday=0 .. Sunday=6
    completed_season = Column(String(10), nullable=True)

    quest = relationship("Quest")


class QuestCompletion(Base):
    __tablename__ = "user_quest_completion"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    quest_id = Column(Integer, ForeignKey("quest.id"), nullable=False)
    assignment_id = Column(
        Integer, ForeignKey("user_quest_assignment.id"), nullable=False, unique=True
    )
    completion_notes = Column(String(500), nullable=True)
    points_earned = Column(Integer, nullable=False)  # Snapshot of quest points
    completed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    quest = relationship("Quest")
    assignment = relationship("QuestAssignment")


class UserStats(Base):
    __tablename__ = "user_stats"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, unique=True, index=True)
    total_quests_completed = Column(Integer, default=0, nullable=False)
    total_points = Column(Integer, default=0, nullable=False)
    current_streak_days = Column(Integer, default=0, nullable=False)
    longest_streak_days = Column(Integer, default=0, nullable=False)
    last_quest_completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Badge(Base):
    __tablename__ = "badge"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    icon = Column(String(20), nullable=True)

    # Requirement definition, parsed into a typed requirement by services.badge_rules
    requirement_type = Column(String(30), nullable=False)
    requirement_value = Column(Integer, nullable=False)  # Threshold
    requirement_category = Column(String(50), nullable=True)
    requirement_time_start = Column(Time, nullable=True)
    requirement_time_end = Column(Time, nullable=True)
    requirement_days = Column(String(10), nullable=True)  # weekday, weekend
    requirement_season = Column(String(10), nullable=True)
    requirement_date_start = Column(String(5), nullable=True)  # MM-DD
    requirement_date_end = Column(String(5), nullable=True)  # MM-DD
    requirement_recurring = Column(Boolean, default=True, nullable=False)
    requirement_year = Column(Integer, nullable=True)  # Only for non-recurring ranges

    created_at = Column(DateTime, default=datetime.utcnow)


class UserBadge(Base):
    __tablename__ = "user_badge"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge_user_badge"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    badge_id = Column(Integer, ForeignKey("badge.id"), nullable=False)
    progress_value = Column(Integer, default=0, nullable=False)
    # Monotonic: once true it is never reset
    is_completed = Column(Boolean, default=False, nullable=False)
    earned_at = Column(DateTime, nullable=True)

    badge = relationship("Badge")


class RerollRecord(Base):
    __tablename__ = "user_reroll_log"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "assignment_type", "reroll_date", name="uq_reroll_user_type_date"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False)
    assignment_type = Column(String(10), nullable=False)
    reroll_date = Column(Date, nullable=False)  # Period key of the rerolled set
    created_at = Column(DateTime, default=datetime.utcnow)
