"""
Quest and user HTTP routes.
Thin adapter: each handler calls one orchestrator operation and maps a
failure result to an HTTP status by its error category.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from quest_engine.auth import get_current_user_id, verify_api_key
from quest_engine.cache import get_cache
from quest_engine.database import get_db
from quest_engine.services.achievement_service import AchievementOrchestrator
from quest_engine.schemas import (
    BadgeCheckResponse,
    CompleteQuestRequest,
    CompletionResponse,
    DailyQuestResponse,
    HistoryResponse,
    OperationResult,
    UncompleteQuestRequest,
    UncompletionResponse,
    UserStatsResponse,
    WeeklyQuestsResponse,
)
from quest_engine.constants import HISTORY_DEFAULT_LIMIT, HISTORY_FILTER_ALL
from quest_engine.exceptions import (
    CATEGORY_CONFLICT,
    CATEGORY_NOT_FOUND,
    CATEGORY_TRANSIENT,
    CATEGORY_VALIDATION,
    InsufficientQuestsException,
)

STATUS_BY_CATEGORY = {
    CATEGORY_VALIDATION: status.HTTP_400_BAD_REQUEST,
    CATEGORY_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CATEGORY_CONFLICT: status.HTTP_409_CONFLICT,
    CATEGORY_TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
}

quests_router = APIRouter(prefix="/api/quests", tags=["quests"])
user_router = APIRouter(prefix="/api/user", tags=["user"])


def get_orchestrator(
    db: Session = Depends(get_db),
    cache=Depends(get_cache)
) -> AchievementOrchestrator:
    return AchievementOrchestrator(db, cache)


def unwrap(result: OperationResult):
    """Return the success payload or raise the matching HTTPException"""
    if result.ok:
        return result.data
    error = result.error
    if error.code == InsufficientQuestsException.error_code:
        # An exhausted quest pool is a server-side data problem, not a caller error
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        status_code = STATUS_BY_CATEGORY.get(error.category, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(status_code=status_code, detail=error.model_dump())


@quests_router.get("/daily", response_model=DailyQuestResponse)
def get_daily_quest(
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    """Get today's daily quest, assigning one if needed."""
    return unwrap(orchestrator.get_daily(user_id))


@quests_router.get("/weekly", response_model=WeeklyQuestsResponse)
def get_weekly_quests(
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    """Get this week's quests, assigning a set if needed."""
    return unwrap(orchestrator.get_weekly(user_id))


@quests_router.post("/{assignment_type}/reroll")
def reroll_quests(
    assignment_type: str,
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    """Replace the daily quest or weekly set once per period."""
    return unwrap(orchestrator.reroll(user_id, assignment_type))


@quests_router.post("/complete", response_model=CompletionResponse)
def complete_quest(
    request: CompleteQuestRequest,
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    return unwrap(orchestrator.complete_quest(
        user_id, request.assignment_id, request.completion_notes
    ))


@quests_router.post("/uncomplete", response_model=UncompletionResponse)
def uncomplete_quest(
    request: UncompleteQuestRequest,
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    return unwrap(orchestrator.uncomplete_quest(user_id, request.assignment_id))


@quests_router.get("/history", response_model=HistoryResponse)
def get_quest_history(
    filter: str = Query(HISTORY_FILTER_ALL),
    limit: int = Query(HISTORY_DEFAULT_LIMIT),
    offset: int = Query(0),
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    """Paginated assignment history, newest first."""
    return unwrap(orchestrator.get_quest_history(user_id, filter, limit, offset))


@user_router.get("/stats", response_model=UserStatsResponse)
def get_user_stats(
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    return unwrap(orchestrator.get_user_stats(user_id))


@user_router.get("/badges")
def get_user_badges(
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    """All badges with progress."""
    return unwrap(orchestrator.get_user_badges(user_id))


@user_router.get("/badges/earned")
def get_earned_badges(
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    return unwrap(orchestrator.get_earned_badges(user_id))


@user_router.post("/badges/check", response_model=BadgeCheckResponse)
def check_badges(
    user_id: int = Depends(get_current_user_id),
    orchestrator: AchievementOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key)
):
    """Re-evaluate badges and report any newly earned."""
    return unwrap(orchestrator.evaluate_badges(user_id))
