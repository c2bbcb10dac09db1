"""Gem shop: the item catalogue and purchases.

A purchase debits the price with a conditional UPDATE (the balance must cover
it), applies the item's effect and logs the purchase in one transaction. An
effect that cannot apply, such as a heart refill at full hearts or a repair
with no broken streak, rolls the purchase back with the gems untouched.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.db.models import Purchase, ShopItem, UserStats
from signquest.errors import InsufficientResourceError, InvalidStateError, NotFoundError, SignquestError
from signquest.events.channel import EventChannel
from signquest.events.schemas import DomainEvent, HeartGained
from signquest.gamification import ledger, streak_service

logger = logging.getLogger(__name__)

STREAK_FREEZE = "streak_freeze"
ENERGY_REFILL = "energy_refill"
HEART_REFILL = "heart_refill"
XP_BOOST = "xp_boost"
WEEKEND_AMULET = "weekend_amulet"
TIMER_BOOST = "timer_boost"
STREAK_REPAIR = "streak_repair"


async def get_all_items(db: AsyncSession) -> list[ShopItem]:
    result = await db.execute(
        select(ShopItem)
        .where(ShopItem.is_active.is_(True))
        .order_by(ShopItem.item_type, ShopItem.price_gems)
    )
    return list(result.scalars())


async def get_item(db: AsyncSession, item_id: int) -> ShopItem:
    item = await db.get(ShopItem, item_id)
    if item is None or not item.is_active:
        raise NotFoundError("Shop item not found")
    return item


async def get_user_purchases(db: AsyncSession, user_id: int, limit: int = 50) -> list[Purchase]:
    result = await db.execute(
        select(Purchase)
        .where(Purchase.user_id == user_id)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .limit(limit)
    )
    return list(result.scalars())


async def purchase_item(
    db: AsyncSession,
    redis: object,
    user_id: int,
    item_id: int,
    now: datetime | None = None,
) -> tuple[Purchase, UserStats]:
    """Buy one shop item and apply its effect.

    Raises NotFoundError for an unknown or retired item, InvalidStateError when
    it is sold out or its effect cannot apply, and InsufficientResourceError
    when the gem balance is short.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    item = await get_item(db, item_id)
    stats = await ledger.get_or_create_stats(db, user_id, redis, now)

    try:
        if item.stock_limit >= 0:
            sold = await db.scalar(
                select(func.count()).select_from(Purchase).where(Purchase.shop_item_id == item.id)
            )
            if sold >= item.stock_limit:
                raise InvalidStateError(f"{item.name} is out of stock")

        if not await ledger.spend_gems(db, stats, item.price_gems):
            raise InsufficientResourceError(f"{item.name} costs {item.price_gems} gems")

        events = await apply_item_effect(db, stats, item, now)

        purchase = Purchase(
            user_id=user_id,
            shop_item_id=item.id,
            gems_spent=item.price_gems,
            purchase_metadata={
                "item_type": item.item_type,
                "item_code": item.code,
                "effect_config": item.effect_config or {},
            },
            created_at=now,
        )
        db.add(purchase)
        await db.commit()
    except SignquestError:
        await db.rollback()
        raise

    logger.info("User %s bought %s for %d gems", user_id, item.code, item.price_gems)
    channel = EventChannel(redis)
    for event in events:
        await channel.publish(event)
    return purchase, stats


async def apply_item_effect(
    db: AsyncSession,
    stats: UserStats,
    item: ShopItem,
    now: datetime,
) -> list[DomainEvent]:
    """Apply a purchased item to the ledger. Does not commit.

    Returns the events to publish after the purchase commits.
    """
    config = item.effect_config or {}

    if item.item_type == STREAK_FREEZE:
        await streak_service.activate_streak_freeze(db, stats, now, config.get("duration_hours"))
    elif item.item_type == ENERGY_REFILL:
        if not await ledger.refill_energy(db, stats, config.get("energy_amount"), now):
            raise InvalidStateError("Energy is already full")
    elif item.item_type == HEART_REFILL:
        gained = await ledger.refill_hearts(db, stats, config.get("heart_amount"))
        if not gained:
            raise InvalidStateError("Hearts are already full")
        return [HeartGained(user_id=stats.user_id, hearts_remaining=stats.hearts, source="purchase")]
    elif item.item_type == XP_BOOST:
        await ledger.apply_xp_boost(
            db, stats,
            float(config.get("xp_multiplier", 1.5)),
            int(config.get("duration_minutes", 60)),
            now,
        )
    elif item.item_type == WEEKEND_AMULET:
        if stats.weekend_amulet_active:
            raise InvalidStateError("Weekend amulet is already active")
        await streak_service.activate_weekend_amulet(db, stats)
    elif item.item_type == STREAK_REPAIR:
        return [await streak_service.repair_streak(db, stats, now)]
    elif item.item_type == TIMER_BOOST:
        # Applied by the quiz client; the purchase record is the entitlement.
        pass
    else:
        raise InvalidStateError(f"Unknown shop item type: {item.item_type}")
    return []
