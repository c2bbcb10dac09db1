"""Pydantic response models for quest endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class QuestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quest_type: str
    title: str
    description: str
    target: int
    progress: int
    reward: int
    status: str
    expires_at: datetime
    completed_at: datetime | None = None
    claimed_at: datetime | None = None


class QuestListResponse(BaseModel):
    quests: list[QuestResponse]
