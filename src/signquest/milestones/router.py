"""Streak milestone API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.dependencies import get_current_user_id, get_db, get_redis_dep
from signquest.milestones import service
from signquest.milestones.schemas import MilestoneClaimResponse, MilestoneProgressResponse, MilestoneResponse

router = APIRouter(prefix="/api/v1/milestones", tags=["Milestones"])


@router.get("", response_model=list[MilestoneResponse])
async def list_milestones(db: AsyncSession = Depends(get_db)):
    return await service.get_all_milestones(db)


@router.get("/progress", response_model=MilestoneProgressResponse)
async def get_progress(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_progress(db, user_id)


@router.get("/claimable", response_model=list[MilestoneResponse])
async def get_claimable(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_claimable(db, user_id)


@router.post("/{day}/claim", response_model=MilestoneClaimResponse)
async def claim_milestone(
    day: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Claim a milestone. Ineligible claims answer ``claimed: false`` rather than an error."""
    result = await service.claim(db, redis, user_id, day)
    if result is None:
        return MilestoneClaimResponse(claimed=False)
    return MilestoneClaimResponse(
        claimed=True,
        milestone=MilestoneResponse.model_validate(result["milestone"]),
        gems_awarded=result["gems_awarded"],
        xp_boost_applied=result["xp_boost_applied"],
        streak_freeze_awarded=result["streak_freeze_awarded"],
        badge_awarded=result["badge_awarded"],
    )
