"""Skill mastery API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.dependencies import get_current_user_id, get_db, get_redis_dep
from signquest.mastery import service
from signquest.mastery.schemas import (
    LegendaryAttemptRequest,
    MasteryOverviewResponse,
    PracticeRequest,
    PracticeResponse,
    SkillProgressResponse,
)

router = APIRouter(prefix="/api/v1/mastery", tags=["Mastery"])


@router.get("", response_model=MasteryOverviewResponse)
async def get_overview(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_mastery_overview(db, user_id)


@router.get("/skills/{skill_id}", response_model=SkillProgressResponse)
async def get_skill(
    skill_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_skill_progress(db, user_id, skill_id)


@router.post("/skills/{skill_id}/practice", response_model=PracticeResponse)
async def practice(
    skill_id: str,
    body: PracticeRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    result = await service.practice_skill(db, redis, user_id, skill_id, body.xp, body.mistakes)
    return PracticeResponse(
        progress=SkillProgressResponse.model_validate(result.progress),
        leveled_up=result.leveled_up,
        new_crown_level=result.new_crown_level,
        xp_reward=result.xp_reward,
    )


@router.post("/skills/{skill_id}/legendary", response_model=SkillProgressResponse)
async def attempt_legendary(
    skill_id: str,
    body: LegendaryAttemptRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Record a legendary challenge attempt. 409 when the skill is not eligible."""
    return await service.attempt_legendary(db, user_id, skill_id, body.passed)
