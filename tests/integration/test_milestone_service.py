"""Streak milestone claim tests."""

from __future__ import annotations

from datetime import timedelta

import pytest

from signquest.gamification.ledger import reload_stats
from signquest.milestones import service as milestones
from tests.conftest import NOW, add_stats, published


class TestClaimable:
    """Test which milestones can be claimed."""

    @pytest.mark.asyncio
    async def test_reached_and_unclaimed(self, db_session):
        await add_stats(db_session, streak_count=15, claimed_streak_milestones=[3])

        claimable = await milestones.get_claimable(db_session, 1)

        assert [m.day for m in claimable] == [7, 14]

    @pytest.mark.asyncio
    async def test_unknown_user_has_none(self, db_session):
        assert await milestones.get_claimable(db_session, 99) == []

    @pytest.mark.asyncio
    async def test_progress_points_at_next(self, db_session):
        await add_stats(db_session, streak_count=8, claimed_streak_milestones=[7, 3])

        progress = await milestones.get_progress(db_session, 1)

        assert progress["next_milestone"].day == 14
        assert progress["claimed_milestones"] == [3, 7]
        assert progress["claimable_milestones"] == []


class TestClaim:
    """Test reward application and single-claim semantics."""

    @pytest.mark.asyncio
    async def test_week_milestone_rewards(self, db_session, redis):
        await add_stats(db_session, streak_count=7, last_active_at=NOW)

        result = await milestones.claim(db_session, redis, 1, 7, NOW)

        stats = await reload_stats(db_session, 1)
        assert result["gems_awarded"] == 15
        assert result["xp_boost_applied"] and not result["streak_freeze_awarded"]
        assert stats.gems == 15
        assert stats.xp_boost_multiplier == 1.5
        assert stats.xp_boost_expires_at == NOW + timedelta(minutes=30)
        assert stats.claimed_streak_milestones == [7]
        assert stats.last_claimed_streak_milestone == 7

    @pytest.mark.asyncio
    async def test_second_claim_is_rejected(self, db_session, redis):
        await add_stats(db_session, streak_count=7, last_active_at=NOW)

        await milestones.claim(db_session, redis, 1, 7, NOW)
        again = await milestones.claim(db_session, redis, 1, 7, NOW)

        assert again is None
        assert (await reload_stats(db_session, 1)).gems == 15

    @pytest.mark.asyncio
    async def test_streak_too_short(self, db_session, redis):
        await add_stats(db_session, streak_count=6, last_active_at=NOW)

        assert await milestones.claim(db_session, redis, 1, 7, NOW) is None

    @pytest.mark.asyncio
    async def test_unknown_day(self, db_session, redis):
        await add_stats(db_session, streak_count=50, last_active_at=NOW)

        assert await milestones.claim(db_session, redis, 1, 8, NOW) is None

    @pytest.mark.asyncio
    async def test_freeze_reward(self, db_session, redis):
        await add_stats(db_session, streak_count=14, last_active_at=NOW)

        result = await milestones.claim(db_session, redis, 1, 14, NOW)

        stats = await reload_stats(db_session, 1)
        assert result["streak_freeze_awarded"]
        assert stats.streak_freeze_active
        assert stats.streak_freezes_used == 1

    @pytest.mark.asyncio
    async def test_month_milestone_awards_badge(self, db_session, redis):
        await add_stats(db_session, streak_count=30, last_active_at=NOW)

        result = await milestones.claim(db_session, redis, 1, 30, NOW)

        assert result["badge_awarded"] == "MONTHLY_MASTER"
        assert published(redis, "achievement.unlocked")[0]["achievementCode"] == "MONTHLY_MASTER"
