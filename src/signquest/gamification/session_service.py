"""Session applicator: turns one finished learning session into ledger mutations and events.

The core mutation (XP, gems, energy, hearts, counters and streak) commits as
one unit. League, mastery, quests and achievements then run as independent
best-effort steps: each commits on its own, and a failure is logged and rolled
back without touching the core result.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from signquest.config import get_settings
from signquest.errors import InsufficientResourceError, InvalidInputError
from signquest.events.channel import EventChannel
from signquest.events.schemas import DailyGoalReached, DomainEvent, HeartLost, LessonCompleted, XPGained
from signquest.gamification import achievement_service
from signquest.gamification.ledger import (
    active_xp_multiplier,
    apply_energy_delta,
    credit_xp,
    get_or_create_stats,
    lose_hearts,
    record_session_counters,
    reload_stats,
)
from signquest.gamification.streak_service import streak_events, update_streak
from signquest.league import service as league
from signquest.mastery import service as mastery
from signquest.quests import service as quests

logger = logging.getLogger(__name__)

XP_PER_CORRECT = 10
PASS_BONUS_XP = 20
STREAK_BONUS_PER_DAY = 5
MAX_STREAK_BONUS = 50


def session_xp(correct: int, passed: bool, streak: int, multiplier: float = 1.0) -> int:
    """XP for a session: per-answer XP, pass bonus and a capped streak bonus, boosted."""
    base = correct * XP_PER_CORRECT
    if passed:
        base += PASS_BONUS_XP
    base += min(streak * STREAK_BONUS_PER_DAY, MAX_STREAK_BONUS)
    return math.floor(base * multiplier)


@dataclass
class SessionResult:
    xp_gained: int
    energy_delta: int
    hearts_lost: int
    streak_count: int
    gems_gained: int
    xp: int
    energy: int
    hearts: int
    achievements_unlocked: list[str] = field(default_factory=list)
    mastery_leveled_up: bool = False
    quests_completed: list[int] = field(default_factory=list)
    daily_goal_reached: bool = False


class SessionApplicator:
    """Applies completed sessions for one database session and event channel."""

    def __init__(self, db: AsyncSession, redis: object) -> None:
        self.db = db
        self.redis = redis
        self.channel = EventChannel(redis)

    async def apply_session(
        self,
        user_id: int,
        correct: int,
        total: int,
        passed: bool,
        skill_id: str | None = None,
        lesson_id: str | None = None,
        category_id: str | None = None,
        score: float | None = None,
        now: datetime | None = None,
    ) -> SessionResult:
        if total < 1 or correct < 0 or correct > total:
            raise InvalidInputError("Expected 0 <= correct <= total and total >= 1")
        if now is None:
            now = datetime.now(timezone.utc)

        stats = await get_or_create_stats(self.db, user_id, self.redis, now)
        if stats.hearts <= 0:
            raise InsufficientResourceError("No hearts left; refill or wait for regeneration")

        # --- Core mutation (single commit) ---
        xp = session_xp(correct, passed, stats.streak_count, active_xp_multiplier(stats, now))
        wrong = total - correct

        gems = await credit_xp(self.db, stats, xp)
        await record_session_counters(self.db, stats, correct)
        await apply_energy_delta(self.db, stats, -wrong, now)
        hearts_lost = await lose_hearts(self.db, stats, wrong, now)
        streak = await update_streak(self.db, stats, now)
        await self.db.commit()

        result = SessionResult(
            xp_gained=xp,
            energy_delta=-wrong,
            hearts_lost=hearts_lost,
            streak_count=stats.streak_count,
            gems_gained=gems,
            xp=stats.xp,
            energy=stats.energy,
            hearts=stats.hearts,
        )
        logger.info(
            "Applied session for user %s: %d/%d correct, +%d XP, -%d hearts",
            user_id, correct, total, xp, hearts_lost,
        )

        events: list[DomainEvent] = [
            XPGained(
                user_id=user_id, xp_amount=xp, source="session",
                metadata={"lessonId": lesson_id, "skillId": skill_id, "correct": correct, "total": total},
            ),
        ]
        if passed:
            events.append(LessonCompleted(
                user_id=user_id, lesson_id=lesson_id, category_id=category_id,
                xp_gained=xp, passed=True, score=score,
            ))
        events += streak_events(user_id, streak)
        if hearts_lost:
            events.append(HeartLost(user_id=user_id, hearts_remaining=stats.hearts, reason="wrong_answer"))

        # --- Best-effort side effects ---
        await self._step(
            "league", user_id,
            lambda: league.update_weekly_xp(self.db, user_id, xp, now, credit_all_time=False),
        )

        if skill_id is not None:
            skill = await self._step(
                "mastery", user_id,
                lambda: mastery.add_skill_xp(self.db, user_id, skill_id, xp, mistakes=wrong, now=now),
            )
            if skill is not None:
                result.mastery_leveled_up = skill.leveled_up
                events += skill.events

        async def _quests() -> list:
            completed = await quests.handle_xp_gained(self.db, user_id, xp, now)
            if passed:
                completed += await quests.handle_lesson_completed(self.db, user_id, now)
            return completed

        completed = await self._step("quests", user_id, _quests)
        if completed:
            result.quests_completed = [q.id for q in completed]
            events += quests.quest_events(completed)

        # Awards commit one by one, so a failing award never takes the others with it.
        fresh = await reload_stats(self.db, user_id)
        unlocked = await achievement_service.check_session_achievements(
            self.db, fresh, correct, total, passed, now,
        )
        if unlocked:
            result.achievements_unlocked = [a.code for a in unlocked]
            events += [achievement_service.achievement_event(user_id, a) for a in unlocked]

        stats = await reload_stats(self.db, user_id)
        if stats.daily_goal_progress >= stats.daily_goal_xp:
            result.daily_goal_reached = True
            events.append(DailyGoalReached(
                user_id=user_id, daily_goal_xp=stats.daily_goal_xp, reward=get_settings().daily_goal_gem_reward,
            ))
        result.xp = stats.xp
        result.energy = stats.energy
        result.hearts = stats.hearts
        await self.db.commit()

        for event in events:
            await self.channel.publish(event)
        return result

    async def _step(self, name: str, user_id: int, run: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await run()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.warning("Session step %s failed for user %s", name, user_id, exc_info=True)
            return None
        return value
