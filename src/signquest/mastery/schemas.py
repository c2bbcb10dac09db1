"""Pydantic models for mastery endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SkillProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    skill_id: str
    crown_level: int
    current_xp: int
    total_xp: int
    xp_to_next_crown: int
    mistake_count: int
    practice_count: int
    last_practiced_at: datetime | None = None
    is_legendary: bool
    legendary_attempts: int
    first_crown_at: datetime | None = None
    last_crown_at: datetime | None = None


class MasteryOverviewResponse(BaseModel):
    total_crowns: int
    skills_mastered: int
    legendary_skills: int
    total_skills: int
    skills_by_level: dict[int, int]
    recent_progress: list[SkillProgressResponse]


class PracticeRequest(BaseModel):
    xp: int = Field(ge=0, le=1000)
    mistakes: int = Field(default=0, ge=0)


class PracticeResponse(BaseModel):
    progress: SkillProgressResponse
    leveled_up: bool
    new_crown_level: int | None = None
    xp_reward: int = 0


class LegendaryAttemptRequest(BaseModel):
    passed: bool
