"""Streak milestone rewards, claimable once per day threshold."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.config import get_settings
from signquest.db.models import StreakMilestone, UserStats
from signquest.errors import ConflictError
from signquest.events.channel import EventChannel
from signquest.gamification.achievement_service import achievement_event, award_achievement
from signquest.gamification.ledger import add_gems, extend_xp_boost, get_or_create_stats, save_stats
from signquest.gamification.streak_service import activate_freeze

logger = logging.getLogger(__name__)


async def get_all_milestones(db: AsyncSession) -> list[StreakMilestone]:
    result = await db.execute(
        select(StreakMilestone).where(StreakMilestone.is_active.is_(True)).order_by(StreakMilestone.day)
    )
    return list(result.scalars().all())


def _claimable(milestones: list[StreakMilestone], stats: UserStats) -> list[StreakMilestone]:
    claimed = set(stats.claimed_streak_milestones or [])
    return [m for m in milestones if m.day <= stats.streak_count and m.day not in claimed]


async def get_claimable(db: AsyncSession, user_id: int) -> list[StreakMilestone]:
    """Milestones the user's streak has reached but not yet claimed."""
    stats = (
        await db.execute(
            select(UserStats).where(UserStats.user_id == user_id).execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if stats is None:
        return []
    return _claimable(await get_all_milestones(db), stats)


async def get_progress(db: AsyncSession, user_id: int) -> dict:
    stats = (
        await db.execute(
            select(UserStats).where(UserStats.user_id == user_id).execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    milestones = await get_all_milestones(db)
    streak = stats.streak_count if stats else 0
    return {
        "current_streak": streak,
        "next_milestone": next((m for m in milestones if m.day > streak), None),
        "claimed_milestones": sorted(stats.claimed_streak_milestones or []) if stats else [],
        "claimable_milestones": _claimable(milestones, stats) if stats else [],
    }


async def claim(
    db: AsyncSession,
    redis: object,
    user_id: int,
    day: int,
    now: datetime | None = None,
) -> dict | None:
    """Apply a milestone's rewards.

    Returns None, without raising, when the milestone is missing or inactive,
    was already claimed, or the streak has not reached ``day``. A concurrent
    claim of the same milestone loses on the ledger version check and also
    gets None.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    milestone = (
        await db.execute(
            select(StreakMilestone).where(StreakMilestone.day == day, StreakMilestone.is_active.is_(True))
        )
    ).scalar_one_or_none()
    if milestone is None:
        return None

    stats = await get_or_create_stats(db, user_id, redis, now)
    claimed = list(stats.claimed_streak_milestones or [])
    if day in claimed or stats.streak_count < day:
        return None

    reward = milestone.reward or {}
    boost_applied = False
    freeze_awarded = False
    if reward.get("xp_boost_multiplier") and reward.get("xp_boost_duration_minutes"):
        extend_xp_boost(stats, float(reward["xp_boost_multiplier"]), int(reward["xp_boost_duration_minutes"]), now)
        boost_applied = True
    if reward.get("streak_freeze"):
        activate_freeze(stats, get_settings().streak_freeze_hours, now)
        freeze_awarded = True
    # New list: in-place mutation of a JSON column is not tracked.
    stats.claimed_streak_milestones = [*claimed, day]
    stats.last_claimed_streak_milestone = max(stats.last_claimed_streak_milestone or 0, day)

    try:
        await save_stats(db, stats)
    except ConflictError:
        logger.info("Concurrent claim of milestone %d for user %s rejected", day, user_id)
        return None

    gems = int(reward.get("gems") or 0)
    await add_gems(db, stats, gems)

    badge = None
    if reward.get("special_badge"):
        badge = await award_achievement(db, user_id, reward["special_badge"], {"milestone_day": day}, now)
    await db.commit()
    logger.info("User %s claimed the %d-day milestone", user_id, day)

    if badge is not None:
        await EventChannel(redis).publish(achievement_event(user_id, badge))

    return {
        "milestone": milestone,
        "reward": reward,
        "gems_awarded": gems,
        "xp_boost_applied": boost_applied,
        "streak_freeze_awarded": freeze_awarded,
        "badge_awarded": badge.code if badge else None,
    }
