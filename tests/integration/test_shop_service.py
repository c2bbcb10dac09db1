"""Gem shop: catalogue, conditional debit and item effects."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from signquest.db.models import Purchase, ShopItem
from signquest.errors import InsufficientResourceError, InvalidStateError, NotFoundError
from signquest.gamification.ledger import reload_stats
from signquest.shop import service as shop
from tests.conftest import NOW, add_stats, published


async def item_id(db, code: str) -> int:
    return (await db.execute(select(ShopItem.id).where(ShopItem.code == code))).scalar_one()


async def purchase_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(Purchase))).scalar_one()


class TestCatalogue:
    """Test the seeded item list."""

    @pytest.mark.asyncio
    async def test_default_items(self, db_session):
        items = await shop.get_all_items(db_session)

        by_code = {item.code: item for item in items}
        assert len(items) == 7
        assert by_code["heart_refill"].price_gems == 15
        assert by_code["streak_repair"].price_gems == 50
        assert by_code["xp_boost_1h"].effect_config == {"xp_multiplier": 1.5, "duration_minutes": 60}

    @pytest.mark.asyncio
    async def test_retired_item_is_not_found(self, db_session):
        target = await item_id(db_session, "timer_boost")
        item = await db_session.get(ShopItem, target)
        item.is_active = False
        await db_session.commit()

        assert "timer_boost" not in {i.code for i in await shop.get_all_items(db_session)}
        with pytest.raises(NotFoundError):
            await shop.get_item(db_session, target)


class TestPurchase:
    """Test debit, effect and purchase log as one unit."""

    @pytest.mark.asyncio
    async def test_heart_refill(self, db_session, redis):
        await add_stats(db_session, gems=40, hearts=0, last_heart_lost_at=NOW)

        purchase, stats = await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "heart_refill"), NOW)

        assert (stats.gems, stats.hearts) == (25, 5)
        assert stats.last_heart_lost_at is None
        assert purchase.gems_spent == 15
        assert purchase.purchase_metadata["item_code"] == "heart_refill"
        assert published(redis, "heart.gained") == [{"userId": 1, "heartsRemaining": 5, "source": "purchase"}]

    @pytest.mark.asyncio
    async def test_short_balance_changes_nothing(self, db_session, redis):
        await add_stats(db_session, gems=14, hearts=0, last_heart_lost_at=NOW)

        with pytest.raises(InsufficientResourceError):
            await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "heart_refill"), NOW)

        stats = await reload_stats(db_session, 1)
        assert (stats.gems, stats.hearts) == (14, 0)
        assert await purchase_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_effect_that_cannot_apply_refunds(self, db_session, redis):
        await add_stats(db_session, gems=100, streak_count=6, best_streak=6, last_active_at=NOW)

        with pytest.raises(InvalidStateError):
            await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "streak_repair"), NOW)

        stats = await reload_stats(db_session, 1)
        assert stats.gems == 100
        assert await purchase_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_full_hearts_are_not_sold(self, db_session, redis):
        await add_stats(db_session, gems=100)

        with pytest.raises(InvalidStateError):
            await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "heart_refill"), NOW)

        assert (await reload_stats(db_session, 1)).gems == 100

    @pytest.mark.asyncio
    async def test_streak_repair(self, db_session, redis):
        await add_stats(
            db_session, gems=60, streak_count=1, best_streak=9,
            last_active_at=NOW - timedelta(hours=3), streak_lost_at=NOW - timedelta(hours=3),
        )

        _, stats = await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "streak_repair"), NOW)

        assert (stats.gems, stats.streak_count) == (10, 9)
        assert published(redis, "streak.maintained")[0]["currentStreak"] == 9

    @pytest.mark.asyncio
    async def test_xp_boost(self, db_session, redis):
        await add_stats(db_session, gems=20)

        _, stats = await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "xp_boost_1h"), NOW)

        assert stats.gems == 0
        assert stats.xp_boost_multiplier == 1.5
        assert stats.xp_boost_expires_at == NOW + timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_energy_refill(self, db_session, redis):
        await add_stats(db_session, gems=15, energy=4, energy_regen_at=NOW)

        _, stats = await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "energy_refill"), NOW)

        assert (stats.gems, stats.energy) == (0, 25)
        assert stats.energy_regen_at is None

    @pytest.mark.asyncio
    async def test_freeze_and_amulet(self, db_session, redis):
        await add_stats(db_session, gems=40)

        await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "streak_freeze"), NOW)
        _, stats = await shop.purchase_item(db_session, redis, 1, await item_id(db_session, "weekend_amulet"), NOW)

        assert stats.gems == 0
        assert stats.streak_freeze_active
        assert stats.streak_freeze_expires_at == NOW + timedelta(hours=24)
        assert stats.weekend_amulet_active
        assert len(await shop.get_user_purchases(db_session, 1)) == 2

    @pytest.mark.asyncio
    async def test_stock_limit(self, db_session, redis):
        target = await item_id(db_session, "timer_boost")
        item = await db_session.get(ShopItem, target)
        item.stock_limit = 1
        await db_session.commit()
        await add_stats(db_session, gems=30)

        await shop.purchase_item(db_session, redis, 1, target, NOW)
        with pytest.raises(InvalidStateError):
            await shop.purchase_item(db_session, redis, 1, target, NOW)

        assert (await reload_stats(db_session, 1)).gems == 20

    @pytest.mark.asyncio
    async def test_unknown_item(self, db_session, redis):
        with pytest.raises(NotFoundError):
            await shop.purchase_item(db_session, redis, 1, 9999, NOW)
