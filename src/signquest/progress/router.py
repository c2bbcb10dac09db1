"""Progress API endpoints: overview, unlock checks, watch tracking, category quizzes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.dependencies import get_current_user_id, get_db, get_redis_dep
from signquest.progress.schemas import (
    CategoryQuizRequest,
    CategoryQuizResult,
    LessonCompletionResult,
    MarkWatchedRequest,
    ProgressOverview,
    UnlockStatus,
)
from signquest.progress.service import ProgressService

router = APIRouter(prefix="/api/v1/progress", tags=["Progress"])


@router.get("", response_model=ProgressOverview)
async def get_overview(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> ProgressOverview:
    return await ProgressService(db, redis).get_progress_overview(user_id)


@router.post("/initialize", status_code=204)
async def initialize(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> None:
    """Unlock the first level, category and lesson for a new learner."""
    await ProgressService(db, redis).initialize_progress(user_id)


@router.get("/levels/{level_id}/unlocked", response_model=UnlockStatus)
async def level_unlocked(
    level_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> UnlockStatus:
    unlocked = await ProgressService(db, redis).is_level_unlocked(user_id, level_id)
    return UnlockStatus(node_type="level", node_id=level_id, unlocked=unlocked)


@router.get("/categories/{category_id}/unlocked", response_model=UnlockStatus)
async def category_unlocked(
    category_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> UnlockStatus:
    unlocked = await ProgressService(db, redis).is_category_unlocked(user_id, category_id)
    return UnlockStatus(node_type="category", node_id=category_id, unlocked=unlocked)


@router.get("/lessons/{lesson_id}/unlocked", response_model=UnlockStatus)
async def lesson_unlocked(
    lesson_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> UnlockStatus:
    unlocked = await ProgressService(db, redis).is_lesson_unlocked(user_id, lesson_id)
    return UnlockStatus(node_type="lesson", node_id=lesson_id, unlocked=unlocked)


@router.post("/lessons/{lesson_id}/watched", response_model=LessonCompletionResult)
async def mark_watched(
    lesson_id: str,
    body: MarkWatchedRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> LessonCompletionResult:
    """Record a watched video; completing the lesson unlocks the next one."""
    return await ProgressService(db, redis).mark_watched(user_id, lesson_id, body.video_id)


@router.post("/categories/{category_id}/quiz", response_model=CategoryQuizResult)
async def record_quiz(
    category_id: str,
    body: CategoryQuizRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> CategoryQuizResult:
    return await ProgressService(db, redis).record_category_quiz(user_id, category_id, body.score)
