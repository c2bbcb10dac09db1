"""Daily quest API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.dependencies import get_current_user_id, get_db
from signquest.quests import service
from signquest.quests.schemas import QuestListResponse, QuestResponse

router = APIRouter(prefix="/api/v1/quests", tags=["Quests"])


@router.get("", response_model=QuestListResponse)
async def list_quests(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    quests = await service.get_user_quests(db, user_id)
    return QuestListResponse(quests=[QuestResponse.model_validate(q) for q in quests])


@router.post("/generate", response_model=QuestListResponse)
async def generate_quests(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Expire stale quests and top the user up to today's quest cap."""
    quests = await service.generate_daily(db, user_id)
    return QuestListResponse(quests=[QuestResponse.model_validate(q) for q in quests])


@router.post("/{quest_id}/claim", response_model=QuestResponse)
async def claim_quest(
    quest_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await service.claim(db, user_id, quest_id)
