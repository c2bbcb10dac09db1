"""Streak persistence tests: activity, repair and freezes."""

from __future__ import annotations

from datetime import timedelta

import pytest

from signquest.db.models import UserStats
from signquest.errors import InvalidStateError
from signquest.gamification import streak_service
from signquest.gamification.ledger import reload_stats
from tests.conftest import NOW, add_stats, published


class TestRecordActivity:
    """Test the standalone activity ping."""

    @pytest.mark.asyncio
    async def test_first_activity_starts_streak(self, db_session, redis):
        update = await streak_service.record_activity(db_session, redis, 1, NOW)

        assert update.current_streak == 1 and update.maintained
        assert published(redis, "streak.maintained") == [{"userId": 1, "currentStreak": 1, "bestStreak": 1}]

    @pytest.mark.asyncio
    async def test_break_marks_repairable(self, db_session, redis):
        await add_stats(db_session, streak_count=9, best_streak=9, last_active_at=NOW - timedelta(hours=30))

        update = await streak_service.record_activity(db_session, redis, 1, NOW)

        assert update.broken and update.repairable
        assert published(redis, "streak.broken") == [{"userId": 1, "previousStreak": 9}]

    @pytest.mark.asyncio
    async def test_freeze_is_consumed(self, db_session, redis):
        await add_stats(
            db_session, streak_count=4, best_streak=4, last_active_at=NOW - timedelta(hours=30),
            streak_freeze_active=True, streak_freeze_expires_at=NOW + timedelta(hours=1),
        )

        update = await streak_service.record_activity(db_session, redis, 1, NOW)
        stats = await reload_stats(db_session, 1)

        assert update.current_streak == 5 and update.freeze_consumed
        assert stats.streak_freeze_active is False
        assert stats.streak_freeze_expires_at is None


class TestRepairStreak:
    """Test repair eligibility and the restored value."""

    @pytest.mark.asyncio
    async def test_restores_best_streak(self, db_session):
        stats = await add_stats(
            db_session, streak_count=1, best_streak=12,
            last_active_at=NOW - timedelta(hours=2), streak_lost_at=NOW - timedelta(hours=2),
        )

        event = await streak_service.repair_streak(db_session, stats, NOW)
        await db_session.commit()

        assert stats.streak_count == 12
        assert stats.streak_lost_at is None
        assert (event.user_id, event.current_streak) == (1, 12)

    @pytest.mark.asyncio
    async def test_restores_at_least_two(self, db_session):
        stats = await add_stats(db_session, streak_count=1, best_streak=1, streak_lost_at=NOW - timedelta(hours=1))

        await streak_service.repair_streak(db_session, stats, NOW)

        assert (stats.streak_count, stats.best_streak) == (2, 2)

    @pytest.mark.asyncio
    async def test_window_closes_after_a_day(self, db_session):
        stats = await add_stats(db_session, streak_count=1, best_streak=8, streak_lost_at=NOW - timedelta(hours=24))

        with pytest.raises(InvalidStateError):
            await streak_service.repair_streak(db_session, stats, NOW)

    @pytest.mark.asyncio
    async def test_nothing_to_repair(self, db_session):
        stats = await add_stats(db_session, streak_count=6, best_streak=6, last_active_at=NOW)

        with pytest.raises(InvalidStateError):
            await streak_service.repair_streak(db_session, stats, NOW)


class TestProtection:
    """Test freeze and amulet activation."""

    @pytest.mark.asyncio
    async def test_activate_freeze(self, db_session):
        stats = await add_stats(db_session)

        await streak_service.activate_streak_freeze(db_session, stats, NOW)
        await db_session.commit()

        assert stats.streak_freeze_active
        assert stats.streak_freeze_expires_at == NOW + timedelta(hours=24)
        assert stats.streak_freezes_used == 1

    @pytest.mark.asyncio
    async def test_activate_amulet(self, db_session):
        stats = await add_stats(db_session)

        await streak_service.activate_weekend_amulet(db_session, stats)
        await db_session.commit()

        assert stats.weekend_amulet_active

    def test_info_reports_next_milestone(self):
        stats = UserStats(
            streak_count=8, best_streak=10, last_active_at=NOW, streak_lost_at=None,
            streak_freeze_active=False, streak_freeze_expires_at=None, weekend_amulet_active=False,
        )

        info = streak_service.get_streak_info(stats, NOW)

        assert info["next_milestone"] == 30
        assert info["repairable"] is False
