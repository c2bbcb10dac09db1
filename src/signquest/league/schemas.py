"""Pydantic response models for league endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    rank: int | None = None
    weekly_xp: int
    joined_at: datetime


class LeagueStatusResponse(BaseModel):
    tier: str
    tier_name: str
    session_id: int
    start_date: datetime
    end_date: datetime
    seconds_remaining: int
    rank: int | None = None
    weekly_xp: int
    participant_count: int
    promotion_threshold: int
    max_promotions: int
    demotion_threshold: int
    leaderboard: list[LeaderboardEntry]


class LeagueHistoryEntry(BaseModel):
    session_id: int
    tier: str
    start_date: datetime
    end_date: datetime
    is_archived: bool
    rank: int | None = None
    weekly_xp: int
    promoted: bool
    demoted: bool


class LeagueHistoryResponse(BaseModel):
    history: list[LeagueHistoryEntry]
