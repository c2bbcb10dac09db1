"""Gem shop API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.dependencies import get_current_user_id, get_db, get_redis_dep
from signquest.shop import service
from signquest.shop.schemas import PurchaseRequest, PurchaseResponse, PurchaseResultResponse, ShopItemResponse

router = APIRouter(prefix="/api/v1/shop", tags=["Shop"])


@router.get("/items", response_model=list[ShopItemResponse])
async def list_items(db: AsyncSession = Depends(get_db)):
    return await service.get_all_items(db)


@router.post("/purchase", response_model=PurchaseResultResponse)
async def purchase(
    body: PurchaseRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Spend gems on an item. A short balance answers 402, an item that cannot apply 409."""
    bought, stats = await service.purchase_item(db, redis, user_id, body.shop_item_id)
    return PurchaseResultResponse(
        purchase=PurchaseResponse.model_validate(bought),
        gems=stats.gems,
        energy=stats.energy,
        hearts=stats.hearts,
        streak_count=stats.streak_count,
        streak_freeze_active=stats.streak_freeze_active,
        weekend_amulet_active=stats.weekend_amulet_active,
        xp_boost_multiplier=stats.xp_boost_multiplier,
        xp_boost_expires_at=stats.xp_boost_expires_at,
    )


@router.get("/purchases", response_model=list[PurchaseResponse])
async def list_purchases(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_user_purchases(db, user_id)
