"""Pydantic models for shop endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class ShopItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    item_type: str
    name: str
    description: str
    price_gems: int
    effect_config: dict[str, Any]
    stock_limit: int


class PurchaseRequest(BaseModel):
    shop_item_id: int


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    shop_item_id: int
    gems_spent: int
    purchase_metadata: dict[str, Any]
    created_at: datetime


class PurchaseResultResponse(BaseModel):
    purchase: PurchaseResponse
    gems: int
    energy: int
    hearts: int
    streak_count: int
    streak_freeze_active: bool
    weekend_amulet_active: bool
    xp_boost_multiplier: float
    xp_boost_expires_at: datetime | None = None
