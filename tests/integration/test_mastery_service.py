"""Skill crowns and legendary challenge tests."""

from __future__ import annotations

import pytest

from signquest.db.models import SkillProgress
from signquest.errors import InvalidInputError, InvalidStateError
from signquest.gamification.ledger import reload_stats
from signquest.mastery import service as mastery
from tests.conftest import NOW, add_stats, published


async def _skill(db, **fields) -> SkillProgress:
    values = {"user_id": 1, "skill_id": "numbers"}
    values.update(fields)
    progress = SkillProgress(**values)
    db.add(progress)
    await db.commit()
    return progress


class TestAddSkillXP:
    """Test XP accumulation and crown thresholds."""

    @pytest.mark.asyncio
    async def test_below_threshold(self, db_session):
        await add_stats(db_session)

        result = await mastery.add_skill_xp(db_session, 1, "numbers", 50, now=NOW)

        assert not result.leveled_up
        assert result.progress.xp_to_next_crown == 10
        assert result.events == []

    @pytest.mark.asyncio
    async def test_crossing_threshold_levels_up_once(self, db_session):
        await add_stats(db_session)
        await mastery.add_skill_xp(db_session, 1, "numbers", 50, now=NOW)

        result = await mastery.add_skill_xp(db_session, 1, "numbers", 20, now=NOW)
        await db_session.commit()

        assert result.leveled_up and result.new_crown_level == 1
        assert result.xp_reward == 10
        assert result.progress.first_crown_at == NOW
        names = [e.event_name for e in result.events]
        assert names == ["crown.leveled_up", "xp.gained"]
        assert result.events[1].xp_amount == 10
        assert (await reload_stats(db_session, 1)).total_crowns == 1

    @pytest.mark.asyncio
    async def test_large_award_moves_one_level(self, db_session):
        await add_stats(db_session)

        result = await mastery.add_skill_xp(db_session, 1, "numbers", 500, now=NOW)

        assert result.progress.crown_level == 1
        assert result.progress.total_xp == 500

    @pytest.mark.asyncio
    async def test_fifth_crown_masters_skill(self, db_session):
        await add_stats(db_session, total_crowns=4)
        await _skill(db_session, crown_level=4, total_xp=290, current_xp=290)

        result = await mastery.add_skill_xp(db_session, 1, "numbers", 20, now=NOW)
        await db_session.commit()

        stats = await reload_stats(db_session, 1)
        assert result.new_crown_level == 5
        assert result.progress.xp_to_next_crown == 0
        assert (stats.total_crowns, stats.skills_mastered) == (5, 1)

    @pytest.mark.asyncio
    async def test_rejects_negative_xp(self, db_session):
        with pytest.raises(InvalidInputError):
            await mastery.add_skill_xp(db_session, 1, "numbers", -5, now=NOW)


class TestPractice:
    """Test standalone practice rounds."""

    @pytest.mark.asyncio
    async def test_practice_counts_and_publishes(self, db_session, redis):
        result = await mastery.practice_skill(db_session, redis, 1, "numbers", 60, mistakes=2, now=NOW)

        assert result.progress.practice_count == 1
        assert result.progress.mistake_count == 2
        assert published(redis, "crown.leveled_up")[0]["skillId"] == "numbers"
        assert published(redis, "xp.gained")[0]["source"] == "crown_level_up"


class TestLegendary:
    """Test the legendary challenge gate and attempts."""

    @pytest.mark.asyncio
    async def test_failed_attempt_is_counted(self, db_session):
        await _skill(db_session, crown_level=5, total_xp=520)

        progress = await mastery.attempt_legendary(db_session, 1, "numbers", passed=False, now=NOW)

        assert progress.legendary_attempts == 1
        assert not progress.is_legendary

    @pytest.mark.asyncio
    async def test_pass_marks_legendary_without_mastery_count(self, db_session):
        await add_stats(db_session, skills_mastered=1)
        await _skill(db_session, crown_level=5, total_xp=520)

        progress = await mastery.attempt_legendary(db_session, 1, "numbers", passed=True, now=NOW)

        assert progress.is_legendary
        assert progress.legendary_completed_at == NOW
        assert (await reload_stats(db_session, 1)).skills_mastered == 1
        with pytest.raises(InvalidStateError):
            await mastery.attempt_legendary(db_session, 1, "numbers", passed=True, now=NOW)

    @pytest.mark.asyncio
    async def test_not_available_below_max_crown(self, db_session):
        await _skill(db_session, crown_level=3, total_xp=600)

        with pytest.raises(InvalidStateError):
            await mastery.attempt_legendary(db_session, 1, "numbers", passed=True, now=NOW)


class TestOverview:
    """Test the mastery summary."""

    @pytest.mark.asyncio
    async def test_counts_by_level(self, db_session):
        await add_stats(db_session, total_crowns=6)
        await _skill(db_session, skill_id="a", crown_level=5, total_xp=520, is_legendary=True)
        await _skill(db_session, skill_id="b", crown_level=1, total_xp=70)
        await _skill(db_session, skill_id="c", crown_level=0, total_xp=10)

        overview = await mastery.get_mastery_overview(db_session, 1)

        assert overview["total_skills"] == 3
        assert overview["legendary_skills"] == 1
        assert overview["skills_by_level"][5] == 1
        assert overview["total_crowns"] == 6
