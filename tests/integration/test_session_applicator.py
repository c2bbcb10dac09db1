"""Completed-session application: core ledger mutation plus side effects."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from signquest.db.models import LeagueParticipant, SkillProgress
from signquest.errors import InsufficientResourceError, InvalidInputError
from signquest.gamification import achievement_service
from signquest.gamification.ledger import reload_stats
from signquest.gamification.session_service import SessionApplicator
from tests.conftest import NOW, add_stats, published

YESTERDAY_EVENING = NOW - timedelta(hours=16)


class TestApplySession:
    """Test the XP, resource and streak outcome of one session."""

    @pytest.mark.asyncio
    async def test_reference_session(self, db_session, redis):
        await add_stats(db_session, streak_count=5, best_streak=5, last_active_at=YESTERDAY_EVENING)

        result = await SessionApplicator(db_session, redis).apply_session(1, 8, 10, True, lesson_id="lesson-1", now=NOW)

        assert result.xp_gained == 125
        assert result.streak_count == 6
        assert (result.hearts_lost, result.hearts) == (2, 3)
        assert (result.energy_delta, result.energy) == (-2, 23)
        assert result.gems_gained == 1
        assert result.daily_goal_reached

    @pytest.mark.asyncio
    async def test_events_are_published_after_commit(self, db_session, redis):
        await add_stats(db_session, streak_count=5, best_streak=5, last_active_at=YESTERDAY_EVENING)

        await SessionApplicator(db_session, redis).apply_session(1, 8, 10, True, lesson_id="lesson-1", now=NOW)

        xp_events = published(redis, "xp.gained")
        assert xp_events[0]["xpAmount"] == 125 and xp_events[0]["source"] == "session"
        assert published(redis, "lesson.completed")[0]["lessonId"] == "lesson-1"
        assert published(redis, "streak.maintained")[0]["currentStreak"] == 6
        assert published(redis, "heart.lost")[0]["heartsRemaining"] == 3
        assert len(published(redis, "daily.goal_reached")) == 1

    @pytest.mark.asyncio
    async def test_energy_clamps_at_zero(self, db_session, redis):
        await add_stats(db_session, energy=2)

        result = await SessionApplicator(db_session, redis).apply_session(1, 7, 10, True, now=NOW)

        assert result.energy_delta == -3
        assert result.energy == 0
        assert result.hearts == 2

    @pytest.mark.asyncio
    async def test_failed_session_has_no_lesson_event(self, db_session, redis):
        await add_stats(db_session)

        result = await SessionApplicator(db_session, redis).apply_session(1, 3, 10, False, now=NOW)

        # The streak bonus uses the streak held before this session.
        assert result.xp_gained == 30
        assert published(redis, "lesson.completed") == []

    @pytest.mark.asyncio
    async def test_no_hearts_blocks_session(self, db_session, redis):
        await add_stats(db_session, hearts=0, last_heart_lost_at=NOW - timedelta(minutes=5))

        with pytest.raises(InsufficientResourceError):
            await SessionApplicator(db_session, redis).apply_session(1, 5, 5, True, now=NOW)

    @pytest.mark.asyncio
    async def test_rejects_inconsistent_counts(self, db_session, redis):
        with pytest.raises(InvalidInputError):
            await SessionApplicator(db_session, redis).apply_session(1, 6, 5, True, now=NOW)

    @pytest.mark.asyncio
    async def test_boost_multiplies_xp(self, db_session, redis):
        await add_stats(db_session, xp_boost_multiplier=2.0, xp_boost_expires_at=NOW + timedelta(minutes=5))

        result = await SessionApplicator(db_session, redis).apply_session(1, 2, 2, False, now=NOW)

        assert result.xp_gained == 40


class TestSessionSideEffects:
    """Test league, mastery and achievement side effects."""

    @pytest.mark.asyncio
    async def test_weekly_xp_is_tracked_once(self, db_session, redis):
        await add_stats(db_session, streak_count=5, best_streak=5, last_active_at=YESTERDAY_EVENING)

        await SessionApplicator(db_session, redis).apply_session(1, 8, 10, True, now=NOW)

        stats = await reload_stats(db_session, 1)
        participant = (await db_session.execute(
            select(LeagueParticipant).where(LeagueParticipant.user_id == 1)
        )).scalar_one()
        assert stats.weekly_xp == 125
        assert participant.weekly_xp == 125
        # Session XP plus the two achievement rewards, each counted once.
        assert stats.all_time_xp == 145

    @pytest.mark.asyncio
    async def test_achievements_unlock_once(self, db_session, redis):
        await add_stats(db_session, streak_count=5, best_streak=5, last_active_at=YESTERDAY_EVENING)
        applicator = SessionApplicator(db_session, redis)

        first = await applicator.apply_session(1, 8, 10, True, now=NOW)
        second = await applicator.apply_session(1, 8, 10, True, now=NOW + timedelta(minutes=10))

        assert sorted(first.achievements_unlocked) == ["FIRST_QUIZ_PASS", "STREAK_3_DAYS"]
        assert second.achievements_unlocked == []

    @pytest.mark.asyncio
    async def test_perfect_session_unlocks_perfect_score(self, db_session, redis):
        await add_stats(db_session)

        result = await SessionApplicator(db_session, redis).apply_session(1, 5, 5, True, now=NOW)

        assert "PERFECT_SCORE" in result.achievements_unlocked

    @pytest.mark.asyncio
    async def test_skill_xp_and_crown(self, db_session, redis):
        await add_stats(db_session)

        result = await SessionApplicator(db_session, redis).apply_session(
            1, 5, 6, True, skill_id="alphabet", now=NOW,
        )

        progress = (await db_session.execute(
            select(SkillProgress).where(SkillProgress.user_id == 1, SkillProgress.skill_id == "alphabet")
        )).scalar_one()
        assert result.mastery_leveled_up
        assert progress.crown_level == 1
        assert progress.mistake_count == 1
        assert published(redis, "crown.leveled_up")[0]["toLevel"] == 1

    @pytest.mark.asyncio
    async def test_perfect_session_on_fresh_ledger_with_skill(self, db_session, redis):
        result = await SessionApplicator(db_session, redis).apply_session(
            1, 10, 10, True, skill_id="alphabet", now=NOW,
        )

        stats = await reload_stats(db_session, 1)
        assert result.xp_gained == 120
        assert (result.hearts_lost, result.hearts, result.energy) == (0, 5, 25)
        assert (stats.total_correct, stats.total_sessions, stats.streak_count) == (10, 1, 1)
        assert result.mastery_leveled_up
        assert "PERFECT_SCORE" in result.achievements_unlocked

    @pytest.mark.asyncio
    async def test_failing_award_leaves_other_awards(self, db_session, redis, monkeypatch):
        award = achievement_service.award_achievement

        async def award_or_fail(db, user_id, code, metadata=None, now=None):
            if code == "FIRST_QUIZ_PASS":
                raise RuntimeError("award store unavailable")
            return await award(db, user_id, code, metadata, now)

        monkeypatch.setattr(achievement_service, "award_achievement", award_or_fail)
        await add_stats(db_session)

        result = await SessionApplicator(db_session, redis).apply_session(1, 5, 5, True, now=NOW)

        assert result.achievements_unlocked == ["PERFECT_SCORE"]
        held = await achievement_service.get_user_achievements(db_session, 1)
        assert {a["code"] for a in held if a["unlocked"]} == {"PERFECT_SCORE"}
        assert (await reload_stats(db_session, 1)).total_sessions == 1
