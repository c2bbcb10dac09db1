"""Pydantic response models for streak milestone endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class MilestoneResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: int
    title: str
    description: str
    celebration_message: str
    reward: dict[str, Any]


class MilestoneProgressResponse(BaseModel):
    current_streak: int
    next_milestone: MilestoneResponse | None = None
    claimed_milestones: list[int]
    claimable_milestones: list[MilestoneResponse]


class MilestoneClaimResponse(BaseModel):
    claimed: bool
    milestone: MilestoneResponse | None = None
    gems_awarded: int = 0
    xp_boost_applied: bool = False
    streak_freeze_awarded: bool = False
    badge_awarded: str | None = None
