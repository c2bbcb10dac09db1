"""League API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.dependencies import get_current_user_id, get_db
from signquest.league import service
from signquest.league.schemas import LeaderboardEntry, LeagueHistoryEntry, LeagueHistoryResponse, LeagueStatusResponse

router = APIRouter(prefix="/api/v1/league", tags=["League"])


@router.get("", response_model=LeagueStatusResponse)
async def get_status(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Current weekly session for the user's tier, joining it if needed."""
    return await service.get_user_league_status(db, user_id)


@router.get("/sessions/{session_id}/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    session_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    _user_id: int = Depends(get_current_user_id),
):
    return await service.get_leaderboard(db, session_id, limit)


@router.get("/history", response_model=LeagueHistoryResponse)
async def get_history(
    limit: int = Query(10, ge=1, le=52),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await service.get_league_history(db, user_id, limit)
    return LeagueHistoryResponse(history=[LeagueHistoryEntry(**row) for row in rows])
