"""Per-skill crown levels and the legendary challenge gate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.db.models import SkillProgress, UserStats
from signquest.db.upsert import insert_ignore
from signquest.errors import InvalidInputError, InvalidStateError
from signquest.events.channel import EventChannel
from signquest.events.schemas import CrownLeveledUp, DomainEvent, XPGained
from signquest.gamification.ledger import get_or_create_stats
from signquest.quests import service as quests

logger = logging.getLogger(__name__)

# Cumulative total XP required for each crown level.
CROWN_THRESHOLDS = [0, 60, 120, 180, 240, 300]
MAX_CROWN = 5
LEGENDARY_XP_REQUIREMENT = 500
CROWN_BONUS_PER_LEVEL = 10


@dataclass
class SkillXPResult:
    progress: SkillProgress
    leveled_up: bool = False
    new_crown_level: int | None = None
    xp_reward: int = 0
    events: list[DomainEvent] = field(default_factory=list)


def xp_to_next_crown(crown_level: int, total_xp: int) -> int:
    if crown_level >= MAX_CROWN:
        return 0
    return CROWN_THRESHOLDS[crown_level + 1] - total_xp


async def get_or_create_skill_progress(db: AsyncSession, user_id: int, skill_id: str) -> SkillProgress:
    await insert_ignore(
        db,
        SkillProgress,
        {"user_id": user_id, "skill_id": skill_id, "xp_to_next_crown": CROWN_THRESHOLDS[1]},
        ["user_id", "skill_id"],
    )
    result = await db.execute(
        select(SkillProgress)
        .where(SkillProgress.user_id == user_id, SkillProgress.skill_id == skill_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def add_skill_xp(
    db: AsyncSession,
    user_id: int,
    skill_id: str,
    xp: int,
    mistakes: int = 0,
    is_practice: bool = False,
    now: datetime | None = None,
) -> SkillXPResult:
    """Accumulate skill XP and advance at most one crown level.

    Level-up evaluation runs once per call, so an award that overshoots two
    thresholds still moves a single step; the next call catches up. Returns the
    events to publish after commit. Does not commit.
    """
    if xp < 0 or mistakes < 0:
        raise InvalidInputError("Skill XP and mistakes must be non-negative")
    if now is None:
        now = datetime.now(timezone.utc)

    progress = await get_or_create_skill_progress(db, user_id, skill_id)
    old_level = progress.crown_level
    progress.total_xp += xp
    progress.current_xp += xp
    progress.mistake_count += mistakes
    if is_practice:
        progress.practice_count += 1
    progress.last_practiced_at = now

    result = SkillXPResult(progress=progress)
    if old_level < MAX_CROWN and progress.total_xp >= CROWN_THRESHOLDS[old_level + 1]:
        new_level = old_level + 1
        progress.crown_level = new_level
        if progress.first_crown_at is None:
            progress.first_crown_at = now
        progress.last_crown_at = now

        reward = new_level * CROWN_BONUS_PER_LEVEL
        values = {"total_crowns": UserStats.total_crowns + 1, "version": UserStats.version + 1}
        if new_level == MAX_CROWN:
            values["skills_mastered"] = UserStats.skills_mastered + 1
        await db.execute(
            update(UserStats)
            .where(UserStats.user_id == user_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )

        result.leveled_up = True
        result.new_crown_level = new_level
        result.xp_reward = reward
        result.events = [
            CrownLeveledUp(
                user_id=user_id, skill_id=skill_id, from_level=old_level, to_level=new_level, xp_reward=reward,
            ),
            XPGained(
                user_id=user_id, xp_amount=reward, source="crown_level_up",
                metadata={"skillId": skill_id, "crownLevel": new_level},
            ),
        ]
        logger.info("User %s reached crown %d on skill %s", user_id, new_level, skill_id)

    progress.xp_to_next_crown = xp_to_next_crown(progress.crown_level, progress.total_xp)
    await db.flush()
    return result


async def practice_skill(
    db: AsyncSession,
    redis: object,
    user_id: int,
    skill_id: str,
    xp: int,
    mistakes: int = 0,
    now: datetime | None = None,
) -> SkillXPResult:
    """Standalone practice round: skill XP plus the practice quests."""
    await get_or_create_stats(db, user_id, redis, now)
    result = await add_skill_xp(db, user_id, skill_id, xp, mistakes, is_practice=True, now=now)
    completed = await quests.handle_practice_completed(db, user_id, perfect=mistakes == 0, now=now)
    await db.commit()

    channel = EventChannel(redis)
    for event in result.events + quests.quest_events(completed):
        await channel.publish(event)
    return result


def can_unlock_legendary(progress: SkillProgress) -> bool:
    return (
        progress.crown_level == MAX_CROWN
        and progress.total_xp >= LEGENDARY_XP_REQUIREMENT
        and not progress.is_legendary
    )


async def attempt_legendary(
    db: AsyncSession,
    user_id: int,
    skill_id: str,
    passed: bool,
    now: datetime | None = None,
) -> SkillProgress:
    """Record a legendary challenge attempt; ``passed`` marks the skill legendary."""
    progress = await get_or_create_skill_progress(db, user_id, skill_id)
    if not can_unlock_legendary(progress):
        raise InvalidStateError("Legendary challenge not available for this skill")

    progress.legendary_attempts += 1
    if passed:
        progress.is_legendary = True
        progress.legendary_completed_at = now or datetime.now(timezone.utc)
        logger.info("User %s completed the legendary challenge for %s", user_id, skill_id)
    await db.commit()
    return progress


async def get_skill_progress(db: AsyncSession, user_id: int, skill_id: str) -> SkillProgress:
    progress = await get_or_create_skill_progress(db, user_id, skill_id)
    await db.commit()
    return progress


async def get_mastery_overview(db: AsyncSession, user_id: int) -> dict:
    stats = (
        await db.execute(
            select(UserStats).where(UserStats.user_id == user_id).execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()

    by_level = await db.execute(
        select(SkillProgress.crown_level, func.count())
        .where(SkillProgress.user_id == user_id)
        .group_by(SkillProgress.crown_level)
    )
    skills_by_level = {level: 0 for level in range(MAX_CROWN + 1)}
    for level, count in by_level.all():
        skills_by_level[level] = count

    legendary = await db.execute(
        select(func.count())
        .select_from(SkillProgress)
        .where(SkillProgress.user_id == user_id, SkillProgress.is_legendary.is_(True))
    )
    recent = await db.execute(
        select(SkillProgress)
        .where(SkillProgress.user_id == user_id)
        .order_by(SkillProgress.last_practiced_at.desc())
        .limit(10)
    )

    return {
        "total_crowns": stats.total_crowns if stats else 0,
        "skills_mastered": stats.skills_mastered if stats else 0,
        "legendary_skills": legendary.scalar_one(),
        "total_skills": sum(skills_by_level.values()),
        "skills_by_level": skills_by_level,
        "recent_progress": list(recent.scalars()),
    }
