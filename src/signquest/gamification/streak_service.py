"""Daily activity streaks with freeze / weekend-amulet protection.

Transitions are keyed by hours since the last activity:

    < 24h, same UTC day      -> unchanged
    < 24h, next day          -> +1 (maintained)
    24-48h, protected        -> +1, a freeze is consumed, an amulet is kept
    24-48h, unprotected      -> reset to 1 (broken, repairable for 24h)
    >= 48h, amulet           -> +1, amulet consumed
    >= 48h, no amulet        -> reset to 1 (broken)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from signquest.config import get_settings
from signquest.db.models import UserStats
from signquest.errors import InvalidStateError
from signquest.events.channel import EventChannel
from signquest.events.schemas import DomainEvent, StreakBroken, StreakMaintained
from signquest.gamification.ledger import get_or_create_stats, save_stats

logger = logging.getLogger(__name__)

DAILY_RESET = timedelta(hours=24)
PROTECTION_WINDOW = timedelta(hours=48)
REPAIR_WINDOW = timedelta(hours=24)
STREAK_MILESTONES = [7, 30, 100, 365]


@dataclass
class StreakUpdate:
    current_streak: int
    best_streak: int
    maintained: bool = False
    broken: bool = False
    previous_streak: int = 0
    milestone_reached: int | None = None
    freeze_consumed: bool = False
    amulet_consumed: bool = False
    repairable: bool = False


def evaluate_streak(
    streak_count: int,
    best_streak: int,
    last_active_at: datetime | None,
    freeze_active: bool,
    amulet_active: bool,
    now: datetime,
) -> StreakUpdate:
    """Pure streak transition for one activity at ``now``."""
    if last_active_at is None:
        return StreakUpdate(current_streak=1, best_streak=max(best_streak, 1), maintained=True)

    elapsed = now - last_active_at

    if elapsed < DAILY_RESET:
        if last_active_at.date() == now.date():
            return StreakUpdate(current_streak=streak_count, best_streak=best_streak)
        return _increment(streak_count, best_streak)

    if elapsed < PROTECTION_WINDOW:
        if freeze_active or amulet_active:
            update = _increment(streak_count, best_streak)
            update.freeze_consumed = freeze_active
            return update
        return StreakUpdate(
            current_streak=1, best_streak=best_streak,
            broken=True, previous_streak=streak_count, repairable=True,
        )

    if amulet_active:
        update = _increment(streak_count, best_streak)
        update.amulet_consumed = True
        return update
    return StreakUpdate(current_streak=1, best_streak=best_streak, broken=True, previous_streak=streak_count)


def _increment(streak_count: int, best_streak: int) -> StreakUpdate:
    current = streak_count + 1
    return StreakUpdate(
        current_streak=current,
        best_streak=max(best_streak, current),
        maintained=True,
        milestone_reached=current if current in STREAK_MILESTONES else None,
    )


def streak_events(user_id: int, update: StreakUpdate) -> list[DomainEvent]:
    """Events to publish once the streak change is committed."""
    if update.broken:
        return [StreakBroken(user_id=user_id, previous_streak=update.previous_streak)]
    if update.maintained:
        return [StreakMaintained(
            user_id=user_id, current_streak=update.current_streak, best_streak=update.best_streak,
        )]
    return []


async def update_streak(db: AsyncSession, stats: UserStats, now: datetime) -> StreakUpdate:
    """Advance the streak for an activity at ``now``. Flushes, does not commit."""
    update = evaluate_streak(
        stats.streak_count,
        stats.best_streak,
        stats.last_active_at,
        stats.streak_freeze_active,
        stats.weekend_amulet_active,
        now,
    )
    stats.streak_count = update.current_streak
    stats.best_streak = update.best_streak
    stats.last_active_at = now
    if update.freeze_consumed:
        stats.streak_freeze_active = False
        stats.streak_freeze_expires_at = None
    if update.amulet_consumed:
        stats.weekend_amulet_active = False
    if update.broken:
        stats.streak_lost_at = now if update.repairable else None
    elif update.maintained:
        stats.streak_lost_at = None
    await save_stats(db, stats)

    if update.broken:
        logger.info("Streak broken for user %s (was %d)", stats.user_id, update.previous_streak)
    elif update.milestone_reached:
        logger.info("User %s reached a %d-day streak", stats.user_id, update.milestone_reached)
    return update


async def record_activity(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> StreakUpdate:
    """Standalone activity ping (outside a learning session)."""
    if now is None:
        now = datetime.now(timezone.utc)
    stats = await get_or_create_stats(db, user_id, redis, now)
    update = await update_streak(db, stats, now)
    await db.commit()
    channel = EventChannel(redis)
    for event in streak_events(user_id, update):
        await channel.publish(event)
    return update


async def repair_streak(db: AsyncSession, stats: UserStats, now: datetime) -> StreakMaintained:
    """Restore a streak broken in the 24-48h window, within 24h of the break.

    The streak comes back as ``max(2, best_streak)``. Flushes, does not commit;
    returns the event to publish once the caller has committed.
    """
    if not can_repair(stats, now):
        raise InvalidStateError("No recently broken streak to repair")

    stats.streak_count = max(2, stats.best_streak)
    stats.best_streak = max(stats.best_streak, stats.streak_count)
    stats.streak_lost_at = None
    stats.last_active_at = now
    await save_stats(db, stats)
    logger.info("Repaired streak for user %s to %d", stats.user_id, stats.streak_count)
    return StreakMaintained(user_id=stats.user_id, current_streak=stats.streak_count, best_streak=stats.best_streak)


def can_repair(stats: UserStats, now: datetime) -> bool:
    return (
        stats.streak_count == 1
        and stats.streak_lost_at is not None
        and now - stats.streak_lost_at < REPAIR_WINDOW
    )


def activate_freeze(stats: UserStats, hours: int, now: datetime) -> None:
    """Arm a streak freeze on ``stats``; the caller persists it."""
    stats.streak_freeze_active = True
    stats.streak_freeze_expires_at = now + timedelta(hours=hours)
    stats.streak_freezes_used += 1


async def activate_streak_freeze(
    db: AsyncSession,
    stats: UserStats,
    now: datetime,
    hours: int | None = None,
) -> None:
    """Arm a freeze for ``hours`` (default from settings). Flushes, does not commit."""
    activate_freeze(stats, hours or get_settings().streak_freeze_hours, now)
    await save_stats(db, stats)


async def activate_weekend_amulet(db: AsyncSession, stats: UserStats) -> None:
    """Arm the weekend amulet. Flushes, does not commit."""
    stats.weekend_amulet_active = True
    await save_stats(db, stats)


def get_streak_info(stats: UserStats, now: datetime | None = None) -> dict:
    """Streak summary with the next day-milestone and repair eligibility."""
    if now is None:
        now = datetime.now(timezone.utc)
    next_milestone = next((m for m in STREAK_MILESTONES if m > stats.streak_count), None)
    return {
        "current_streak": stats.streak_count,
        "best_streak": max(stats.best_streak, stats.streak_count),
        "last_active_at": stats.last_active_at,
        "streak_freeze_active": stats.streak_freeze_active,
        "streak_freeze_expires_at": stats.streak_freeze_expires_at,
        "weekend_amulet_active": stats.weekend_amulet_active,
        "next_milestone": next_milestone,
        "repairable": can_repair(stats, now),
    }
