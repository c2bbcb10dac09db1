"""Gamification API endpoints: ledger, sessions, streaks, hearts, achievements.

Consumables (refills, boosts, freezes, amulets, repairs) are bought through the shop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.dependencies import get_current_user_id, get_db, get_redis_dep
from signquest.gamification import ledger, streak_service
from signquest.gamification.achievement_service import get_user_achievements
from signquest.gamification.schemas import (
    AchievementResponse,
    AchievementsResponse,
    ApplySessionRequest,
    HeartsStatusResponse,
    SessionResultResponse,
    StatsResponse,
    StreakInfoResponse,
)
from signquest.gamification.session_service import SessionApplicator

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Ledger snapshot, after passive energy/heart regeneration."""
    return await ledger.get_or_create_stats(db, user_id, redis)


@router.post("/sessions", response_model=SessionResultResponse)
async def apply_session(
    body: ApplySessionRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return await SessionApplicator(db, redis).apply_session(
        user_id,
        correct=body.correct,
        total=body.total,
        passed=body.passed,
        skill_id=body.skill_id,
        lesson_id=body.lesson_id,
        category_id=body.category_id,
        score=body.score,
    )


# ── Streak ──


@router.get("/streak", response_model=StreakInfoResponse)
async def get_streak(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    stats = await ledger.get_or_create_stats(db, user_id, redis)
    return StreakInfoResponse(**streak_service.get_streak_info(stats))


@router.post("/streak/activity", response_model=StreakInfoResponse)
async def record_activity(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    await streak_service.record_activity(db, redis, user_id)
    stats = await ledger.reload_stats(db, user_id)
    return StreakInfoResponse(**streak_service.get_streak_info(stats))


# ── Hearts ──


@router.get("/hearts", response_model=HeartsStatusResponse)
async def get_hearts(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    stats = await ledger.get_or_create_stats(db, user_id, redis)
    return HeartsStatusResponse(**ledger.hearts_status(stats))


@router.post("/hearts/practice", response_model=HeartsStatusResponse)
async def practice_heart(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Earn a heart back by finishing a practice round."""
    stats = await ledger.gain_heart_from_practice(db, redis, user_id)
    return HeartsStatusResponse(**ledger.hearts_status(stats))


# ── Achievements ──


@router.get("/achievements", response_model=AchievementsResponse)
async def list_achievements(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    items = [AchievementResponse(**item) for item in await get_user_achievements(db, user_id)]
    return AchievementsResponse(achievements=items, total_unlocked=sum(1 for a in items if a.unlocked))
