from pydantic import BaseModel, Field
from datetime import datetime, date
from typing import Any, List, Literal, Optional, Union

from quest_engine.constants import COMPLETION_NOTES_MAX_LENGTH


# Request schemas
class CompleteQuestRequest(BaseModel):
    assignment_id: int = Field(..., ge=1)
    completion_notes: Optional[str] = Field(None, max_length=COMPLETION_NOTES_MAX_LENGTH)


class UncompleteQuestRequest(BaseModel):
    assignment_id: int = Field(..., ge=1)


# Quest / assignment views
class AssignmentResponse(BaseModel):
    assignment_id: int
    quest_id: int
    assignment_type: str
    title: str
    description: Optional[str] = None
    category: str
    difficulty: str
    points: int
    estimated_duration_minutes: Optional[int] = None
    assigned_date: date
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class DailyQuestResponse(BaseModel):
    quest: AssignmentResponse
    can_reroll: bool


class WeeklyQuestsResponse(BaseModel):
    quests: List[AssignmentResponse]
    week_start: date
    can_reroll: bool


# Badge views
class EarnedBadgeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    requirement_type: str
    requirement_value: int
    progress_value: int
    earned_at: Optional[datetime] = None


class BadgeProgressResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    requirement_type: str
    requirement_value: int
    progress_value: int = 0
    is_earned: bool = False
    earned_at: Optional[datetime] = None


class BadgeCheckResponse(BaseModel):
    newly_earned_badges: List[EarnedBadgeResponse]
    count: int


# Completion views
class CompletionResponse(BaseModel):
    assignment_id: int
    quest_id: int
    assignment_type: str
    points_earned: int
    completed_at: datetime
    current_streak_days: int
    longest_streak_days: int
    total_points: int
    newly_earned_badges: List[EarnedBadgeResponse] = []


class UncompletionResponse(BaseModel):
    assignment_id: int
    quest_id: int
    assignment_type: str
    points_deducted: int
    uncompleted_at: datetime


# Stats views
class UserStatsResponse(BaseModel):
    total_quests_completed: int = 0
    total_points: int = 0
    current_streak_days: int = 0
    longest_streak_days: int = 0
    badge_count: int = 0
    last_quest_completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# History views
class HistoryEntryResponse(BaseModel):
    assignment_id: int
    quest_id: int
    title: str
    category: str
    difficulty: str
    points: int
    assignment_type: str
    assigned_date: date
    is_completed: bool
    completed_at: Optional[datetime] = None
    points_earned: Optional[int] = None


class PaginationResponse(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class HistoryResponse(BaseModel):
    history: List[HistoryEntryResponse]
    pagination: PaginationResponse


# Operation results
class ErrorDetail(BaseModel):
    code: str
    category: str
    message: str
    retryable: bool = False


class OperationSuccess(BaseModel):
    ok: Literal[True] = True
    data: Any = None


class OperationFailure(BaseModel):
    ok: Literal[False] = False
    error: ErrorDetail


OperationResult = Union[OperationSuccess, OperationFailure]
