"""Pydantic models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

# --- Ledger ---


class StatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    xp: int
    all_time_xp: int
    weekly_xp: int
    gems: int
    energy: int
    hearts: int
    streak_count: int
    best_streak: int
    last_active_at: datetime | None = None
    streak_freeze_active: bool
    weekend_amulet_active: bool
    xp_boost_multiplier: float
    xp_boost_expires_at: datetime | None = None
    current_league_tier: str
    total_crowns: int
    skills_mastered: int
    total_correct: int
    total_sessions: int
    daily_goal_xp: int
    daily_goal_progress: int
    claimed_streak_milestones: list[int] = []


class HeartsStatusResponse(BaseModel):
    hearts: int
    max_hearts: int
    can_continue: bool
    seconds_until_next_heart: int | None = None
    practice_hearts_earned: int = 0


# --- Sessions ---


class ApplySessionRequest(BaseModel):
    correct: int = Field(ge=0)
    total: int = Field(ge=1)
    passed: bool
    skill_id: str | None = Field(default=None, max_length=64)
    lesson_id: str | None = Field(default=None, max_length=64)
    category_id: str | None = Field(default=None, max_length=64)
    score: float | None = Field(default=None, ge=0, le=100)

    @model_validator(mode="after")
    def _correct_within_total(self) -> ApplySessionRequest:
        if self.correct > self.total:
            raise ValueError("correct cannot exceed total")
        return self


class SessionResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    xp_gained: int
    energy_delta: int
    hearts_lost: int
    streak_count: int
    gems_gained: int
    xp: int
    energy: int
    hearts: int
    achievements_unlocked: list[str] = []
    mastery_leveled_up: bool = False
    quests_completed: list[int] = []
    daily_goal_reached: bool = False


# --- Streak ---


class StreakInfoResponse(BaseModel):
    current_streak: int
    best_streak: int
    last_active_at: datetime | None = None
    streak_freeze_active: bool
    streak_freeze_expires_at: datetime | None = None
    weekend_amulet_active: bool
    next_milestone: int | None = None
    repairable: bool = False


# --- Achievements ---


class AchievementResponse(BaseModel):
    code: str
    title: str
    description: str
    tier: str
    xp_reward: int
    gem_reward: int
    unlocked: bool
    unlocked_at: datetime | None = None


class AchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]
    total_unlocked: int
