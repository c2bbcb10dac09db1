"""Stats ledger: the canonical per-learner record of the game economy.

Hot fields (xp, gems, energy, hearts) are only changed through bounded,
conditional UPDATE statements so concurrent sessions for the same learner
cannot clobber each other. Every such statement bumps ``version`` so that ORM
flushes of a stale copy fail instead of overwriting.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import case, literal, null, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from signquest.config import get_settings
from signquest.db.models import UserStats
from signquest.db.types import UTCDateTime
from signquest.db.upsert import insert_ignore
from signquest.errors import ConflictError, InvalidInputError
from signquest.events.channel import EventChannel
from signquest.events.schemas import HeartGained, HeartLost
from signquest.gamification.regeneration import compute_regen, time_until_next

logger = logging.getLogger(__name__)


def _bounded(column, delta: int, cap: int):  # type: ignore[no-untyped-def]
    """SQL expression for ``clamp(column + delta, 0, cap)``."""
    return case(
        (column + delta > cap, cap),
        (column + delta < 0, 0),
        else_=column + delta,
    )


async def _load(db: AsyncSession, user_id: int) -> UserStats:
    result = await db.execute(
        select(UserStats)
        .where(UserStats.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def reload_stats(db: AsyncSession, user_id: int) -> UserStats:
    """Re-read the ledger row, discarding any stale in-session copy."""
    return await _load(db, user_id)


async def save_stats(db: AsyncSession, stats: UserStats) -> None:
    """Flush whole-aggregate edits; a concurrent change surfaces as ConflictError."""
    # Read before the flush: a rollback expires every attribute.
    user_id = stats.user_id
    try:
        await db.flush()
    except StaleDataError:
        await db.rollback()
        raise ConflictError(f"Stats for user {user_id} changed concurrently; retry") from None


async def get_or_create_stats(
    db: AsyncSession,
    user_id: int,
    redis: object = None,
    now: datetime | None = None,
) -> UserStats:
    """Fetch the ledger row, creating it on first access, then apply passive regeneration.

    Creation is a single INSERT ... ON CONFLICT DO NOTHING, so concurrent
    first access never produces duplicates. Commits.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    settings = get_settings()

    created = await insert_ignore(
        db,
        UserStats,
        {
            "user_id": user_id,
            "energy": settings.max_energy,
            "hearts": settings.max_hearts,
            "daily_goal_xp": settings.default_daily_goal_xp,
            "current_league_tier": "bronze",
            "claimed_streak_milestones": [],
        },
        ["user_id"],
    )
    if created:
        logger.info("Created stats ledger for user %s", user_id)

    stats = await _load(db, user_id)
    _, hearts_gained = await regenerate(db, stats, now)
    await db.commit()

    if hearts_gained:
        await EventChannel(redis).publish(
            HeartGained(user_id=user_id, hearts_remaining=stats.hearts, source="regeneration"),
        )
    return stats


# ---------------------------------------------------------------------------
# Regeneration
# ---------------------------------------------------------------------------


async def regenerate(db: AsyncSession, stats: UserStats, now: datetime) -> tuple[int, int]:
    """Apply passive energy and heart recovery. Returns (energy_gained, hearts_gained)."""
    settings = get_settings()
    energy = await _regenerate_field(
        db, stats, "energy", "energy_regen_at",
        settings.max_energy, timedelta(minutes=settings.energy_regen_minutes), now,
    )
    hearts = await _regenerate_field(
        db, stats, "hearts", "last_heart_lost_at",
        settings.max_hearts, timedelta(hours=settings.heart_regen_hours), now,
    )
    return energy, hearts


async def _regenerate_field(
    db: AsyncSession,
    stats: UserStats,
    field: str,
    anchor_field: str,
    cap: int,
    interval: timedelta,
    now: datetime,
) -> int:
    observed_anchor = getattr(stats, anchor_field)
    regen = compute_regen(getattr(stats, field), cap, observed_anchor, interval, now)
    if regen.gained == 0 and regen.anchor == observed_anchor:
        return 0

    column = getattr(UserStats, field)
    anchor_column = getattr(UserStats, anchor_field)
    # Guarded on the observed anchor: a concurrent reader that already applied
    # this window makes our statement match zero rows.
    anchor_guard = anchor_column.is_(None) if observed_anchor is None else anchor_column == observed_anchor
    result = await db.execute(
        update(UserStats)
        .where(UserStats.id == stats.id, anchor_guard)
        .values({
            field: _bounded(column, regen.gained, cap),
            anchor_field: regen.anchor,
            "version": UserStats.version + 1,
        })
        .execution_options(synchronize_session=False)
    )
    await db.refresh(stats)
    return regen.gained if result.rowcount else 0


# ---------------------------------------------------------------------------
# XP, gems, energy
# ---------------------------------------------------------------------------


def gems_for_xp(old_xp: int, new_xp: int) -> int:
    """One gem per 100-XP boundary crossed."""
    return new_xp // 100 - old_xp // 100


async def credit_xp(
    db: AsyncSession,
    stats: UserStats,
    amount: int,
    daily_goal: bool = True,
) -> int:
    """Add XP (and all-time XP) atomically, awarding gems for crossed hundreds.

    Returns the gems awarded. Does not commit.
    """
    if amount <= 0:
        return 0
    values = {
        "xp": UserStats.xp + amount,
        "all_time_xp": UserStats.all_time_xp + amount,
        "version": UserStats.version + 1,
    }
    if daily_goal:
        values["daily_goal_progress"] = UserStats.daily_goal_progress + amount
    await db.execute(
        update(UserStats)
        .where(UserStats.id == stats.id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    # The row stays locked by our UPDATE until commit, so this read sees our increment.
    await db.refresh(stats)
    gems = gems_for_xp(stats.xp - amount, stats.xp)
    if gems:
        await add_gems(db, stats, gems)
    return gems


async def record_session_counters(db: AsyncSession, stats: UserStats, correct: int) -> None:
    """Count one finished session and its correct answers. Does not commit."""
    await db.execute(
        update(UserStats)
        .where(UserStats.id == stats.id)
        .values(
            total_correct=UserStats.total_correct + correct,
            total_sessions=UserStats.total_sessions + 1,
            version=UserStats.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(stats)


async def add_gems(db: AsyncSession, stats: UserStats, amount: int, refresh: bool = True) -> None:
    """Credit gems atomically. Does not commit."""
    if amount == 0:
        return
    await db.execute(
        update(UserStats)
        .where(UserStats.id == stats.id)
        .values(gems=UserStats.gems + amount, version=UserStats.version + 1)
        .execution_options(synchronize_session=False)
    )
    if refresh:
        await db.refresh(stats)


async def spend_gems(db: AsyncSession, stats: UserStats, amount: int) -> bool:
    """Debit gems only if the balance covers ``amount``. Does not commit.

    Returns False, leaving the balance untouched, when it does not.
    """
    if amount < 0:
        raise InvalidInputError("Gem price cannot be negative")
    result = await db.execute(
        update(UserStats)
        .where(UserStats.id == stats.id, UserStats.gems >= amount)
        .values(gems=UserStats.gems - amount, version=UserStats.version + 1)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(stats)
    return bool(result.rowcount)


async def apply_energy_delta(db: AsyncSession, stats: UserStats, delta: int, now: datetime) -> None:
    """Change energy by ``delta`` clamped to [0, cap].

    A loss starts the regeneration clock, a gain that reaches the cap clears it.
    """
    if delta == 0:
        return
    cap = get_settings().max_energy
    values = {
        "energy": _bounded(UserStats.energy, delta, cap),
        "version": UserStats.version + 1,
    }
    if delta < 0:
        values["energy_regen_at"] = case(
            (UserStats.energy_regen_at.is_(None), literal(now, UTCDateTime())),
            else_=UserStats.energy_regen_at,
        )
    else:
        values["energy_regen_at"] = case(
            (UserStats.energy + delta >= cap, null()),
            else_=UserStats.energy_regen_at,
        )
    await db.execute(
        update(UserStats)
        .where(UserStats.id == stats.id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(stats)


async def refill_energy(db: AsyncSession, stats: UserStats, amount: int | None, now: datetime) -> int:
    """Top up energy, by default to the cap. Returns the energy gained. Does not commit."""
    cap = get_settings().max_energy
    if amount is not None and amount <= 0:
        raise InvalidInputError("Refill amount must be positive")
    before = stats.energy
    if before >= cap:
        return 0
    await apply_energy_delta(db, stats, cap if amount is None else amount, now)
    return stats.energy - before


# ---------------------------------------------------------------------------
# Hearts
# ---------------------------------------------------------------------------


async def lose_hearts(db: AsyncSession, stats: UserStats, count: int, now: datetime) -> int:
    """Lose up to ``count`` hearts, one conditional decrement at a time.

    Stops as soon as the learner is out of hearts. Returns the number actually
    lost. Does not commit.
    """
    lost = 0
    for _ in range(count):
        result = await db.execute(
            update(UserStats)
            .where(UserStats.id == stats.id, UserStats.hearts > 0)
            .values(hearts=UserStats.hearts - 1, last_heart_lost_at=now, version=UserStats.version + 1)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            break
        lost += 1
    if lost:
        await db.refresh(stats)
    return lost


async def lose_heart(
    db: AsyncSession,
    redis: object,
    user_id: int,
    reason: str = "wrong_answer",
    now: datetime | None = None,
) -> UserStats:
    """Lose a single heart outside of a session (e.g. a failed practice question)."""
    if now is None:
        now = datetime.now(timezone.utc)
    stats = await get_or_create_stats(db, user_id, redis, now)
    lost = await lose_hearts(db, stats, 1, now)
    await db.commit()
    if lost:
        await EventChannel(redis).publish(
            HeartLost(user_id=user_id, hearts_remaining=stats.hearts, reason=reason),
        )
    return stats


async def refill_hearts(db: AsyncSession, stats: UserStats, amount: int | None = None) -> int:
    """Top up hearts, by default to the cap. Returns the hearts gained. Does not commit."""
    if amount is not None and amount <= 0:
        raise InvalidInputError("Refill amount must be positive")
    return await _add_hearts(db, stats, get_settings().max_hearts if amount is None else amount)


async def gain_heart_from_practice(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> UserStats:
    """Award one heart for a completed practice round."""
    stats = await get_or_create_stats(db, user_id, redis, now)
    gained = await _add_hearts(db, stats, 1, practice=True)
    await db.commit()
    if gained:
        await EventChannel(redis).publish(
            HeartGained(user_id=user_id, hearts_remaining=stats.hearts, source="practice"),
        )
    return stats


async def _add_hearts(db: AsyncSession, stats: UserStats, amount: int, practice: bool = False) -> int:
    cap = get_settings().max_hearts
    before = stats.hearts
    if before >= cap:
        return 0
    values = {
        "hearts": _bounded(UserStats.hearts, amount, cap),
        "last_heart_lost_at": case(
            (UserStats.hearts + amount >= cap, null()),
            else_=UserStats.last_heart_lost_at,
        ),
        "version": UserStats.version + 1,
    }
    if practice:
        values["practice_hearts_earned"] = UserStats.practice_hearts_earned + 1
    await db.execute(
        update(UserStats)
        .where(UserStats.id == stats.id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(stats)
    return stats.hearts - before


def hearts_status(stats: UserStats, now: datetime | None = None) -> dict:
    """Hearts summary including the wait until the next regenerated heart."""
    if now is None:
        now = datetime.now(timezone.utc)
    settings = get_settings()
    wait = time_until_next(
        stats.hearts, settings.max_hearts, stats.last_heart_lost_at,
        timedelta(hours=settings.heart_regen_hours), now,
    )
    return {
        "hearts": stats.hearts,
        "max_hearts": settings.max_hearts,
        "can_continue": stats.hearts > 0,
        "seconds_until_next_heart": int(wait.total_seconds()) if wait is not None else None,
        "practice_hearts_earned": stats.practice_hearts_earned,
    }


# ---------------------------------------------------------------------------
# XP boost
# ---------------------------------------------------------------------------


def active_xp_multiplier(stats: UserStats, now: datetime | None = None) -> float:
    """The boost multiplier if a boost is running, else 1.0."""
    if now is None:
        now = datetime.now(timezone.utc)
    if stats.xp_boost_expires_at is not None and now < stats.xp_boost_expires_at:
        return stats.xp_boost_multiplier or 1.0
    return 1.0


def extend_xp_boost(stats: UserStats, multiplier: float, duration_minutes: int, now: datetime) -> None:
    """Start a boost, or extend a running one keeping the larger multiplier. Mutates ``stats``."""
    duration = timedelta(minutes=duration_minutes)
    if stats.xp_boost_expires_at is not None and now < stats.xp_boost_expires_at:
        stats.xp_boost_expires_at = stats.xp_boost_expires_at + duration
        stats.xp_boost_multiplier = max(stats.xp_boost_multiplier or 1.0, multiplier)
    else:
        stats.xp_boost_expires_at = now + duration
        stats.xp_boost_multiplier = multiplier


async def apply_xp_boost(
    db: AsyncSession,
    stats: UserStats,
    multiplier: float,
    duration_minutes: int,
    now: datetime,
) -> None:
    """Start or extend an XP boost window. Flushes, does not commit."""
    if multiplier < 1 or duration_minutes <= 0:
        raise InvalidInputError("Boost needs a multiplier >= 1 and a positive duration")
    extend_xp_boost(stats, multiplier, duration_minutes, now)
    await save_stats(db, stats)
