"""Daily quests: issuance, progress accumulation and reward claims.

Quests move forward only: pending -> in_progress -> completed -> claimed, or
to expired once ``expires_at`` passes without a claim.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.config import get_settings
from signquest.db.models import DailyQuest, QuestTemplate
from signquest.errors import InvalidStateError, NotFoundError
from signquest.events.schemas import QuestCompleted
from signquest.gamification.ledger import add_gems, get_or_create_stats

logger = logging.getLogger(__name__)

# Quest types
EARN_XP = "earn_xp"
COMPLETE_LESSONS = "complete_lessons"
PRACTICE_SKILL = "practice_skill"
MAINTAIN_STREAK = "maintain_streak"
PERFECT_PRACTICE = "perfect_practice"
COMPLETE_QUIZ = "complete_quiz"

# Statuses
PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
CLAIMED = "claimed"
EXPIRED = "expired"

ACTIVE_STATUSES = (PENDING, IN_PROGRESS)


def quest_target(template: QuestTemplate, rng: random.Random | None = None) -> int:
    """Random target within the template's range, else its default."""
    if template.target_min is not None and template.target_max is not None:
        return (rng or random).randint(template.target_min, template.target_max)
    return template.default_target or 1


def format_description(description: str, target: int) -> str:
    return description.replace("{{target}}", str(target))


async def expire_stale_quests(
    db: AsyncSession,
    user_id: int | None = None,
    now: datetime | None = None,
) -> int:
    """Mark unclaimed quests past their expiry as expired. All users when ``user_id`` is None."""
    if now is None:
        now = datetime.now(timezone.utc)
    stmt = (
        update(DailyQuest)
        .where(DailyQuest.expires_at < now, DailyQuest.status.notin_([CLAIMED, EXPIRED]))
        .values(status=EXPIRED)
        .execution_options(synchronize_session=False)
    )
    if user_id is not None:
        stmt = stmt.where(DailyQuest.user_id == user_id)
    result = await db.execute(stmt)
    return result.rowcount or 0


async def _active_quests(
    db: AsyncSession,
    user_id: int,
    now: datetime,
    quest_type: str | None = None,
) -> list[DailyQuest]:
    stmt = (
        select(DailyQuest)
        .where(
            DailyQuest.user_id == user_id,
            DailyQuest.status.in_(ACTIVE_STATUSES),
            DailyQuest.expires_at > now,
        )
        .order_by(DailyQuest.id)
        .execution_options(populate_existing=True)
    )
    if quest_type is not None:
        stmt = stmt.where(DailyQuest.quest_type == quest_type)
    result = await db.execute(stmt)
    return list(result.scalars())


async def generate_daily(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[DailyQuest]:
    """Top the user up to the daily quest cap. Returns every active quest."""
    if now is None:
        now = datetime.now(timezone.utc)
    cap = get_settings().max_daily_quests

    await expire_stale_quests(db, user_id, now)
    existing = await _active_quests(db, user_id, now)
    if len(existing) >= cap:
        await db.commit()
        return existing

    templates = await db.execute(
        select(QuestTemplate)
        .where(QuestTemplate.is_active.is_(True))
        .order_by(QuestTemplate.priority.desc(), QuestTemplate.id)
    )
    taken = {q.quest_type for q in existing}
    available = [t for t in templates.scalars() if t.quest_type not in taken]

    created = []
    for template in available[: cap - len(existing)]:
        target = quest_target(template, rng)
        quest = DailyQuest(
            user_id=user_id,
            quest_type=template.quest_type,
            title=template.title,
            description=format_description(template.description, target),
            target=target,
            progress=0,
            reward=template.default_reward,
            status=PENDING,
            expires_at=now + timedelta(hours=template.default_expiration_hours),
            created_at=now,
        )
        db.add(quest)
        created.append(quest)

    await db.commit()
    if created:
        logger.info("Issued %d daily quests to user %s", len(created), user_id)
    return existing + created


async def update_progress(
    db: AsyncSession,
    user_id: int,
    quest_type: str,
    delta: int,
    now: datetime | None = None,
) -> list[DailyQuest]:
    """Add ``delta`` to the user's active quests of ``quest_type``.

    Progress is capped at the target. Returns the quests completed by this
    call. Flushes, does not commit.
    """
    if delta <= 0:
        return []
    if now is None:
        now = datetime.now(timezone.utc)

    completed = []
    for quest in await _active_quests(db, user_id, now, quest_type):
        quest.progress += delta
        quest.status = IN_PROGRESS
        if quest.progress >= quest.target:
            quest.progress = quest.target
            quest.status = COMPLETED
            quest.completed_at = now
            completed.append(quest)
    await db.flush()
    return completed


def quest_events(quests: list[DailyQuest]) -> list[QuestCompleted]:
    return [
        QuestCompleted(user_id=q.user_id, quest_id=q.id, quest_type=q.quest_type, reward=q.reward)
        for q in quests
    ]


async def claim(
    db: AsyncSession,
    user_id: int,
    quest_id: int,
    now: datetime | None = None,
) -> DailyQuest:
    """Claim a completed quest's gem reward exactly once."""
    if now is None:
        now = datetime.now(timezone.utc)
    stats = await get_or_create_stats(db, user_id, now=now)

    result = await db.execute(
        update(DailyQuest)
        .where(DailyQuest.id == quest_id, DailyQuest.user_id == user_id, DailyQuest.status == COMPLETED)
        .values(status=CLAIMED, claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    quest = (
        await db.execute(
            select(DailyQuest)
            .where(DailyQuest.id == quest_id, DailyQuest.user_id == user_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()

    if quest is None:
        raise NotFoundError("Quest not found")
    if not result.rowcount:
        raise InvalidStateError(f"Quest is {quest.status}, not completed")

    await add_gems(db, stats, quest.reward)
    await db.commit()
    logger.info("User %s claimed quest %s for %d gems", user_id, quest_id, quest.reward)
    return quest


async def get_user_quests(db: AsyncSession, user_id: int, now: datetime | None = None) -> list[DailyQuest]:
    """Unexpired quests that are still in play or waiting to be claimed."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        select(DailyQuest)
        .where(
            DailyQuest.user_id == user_id,
            DailyQuest.status.in_([PENDING, IN_PROGRESS, COMPLETED]),
            DailyQuest.expires_at > now,
        )
        .order_by(DailyQuest.created_at.desc(), DailyQuest.id.desc())
    )
    return list(result.scalars())


# ---------------------------------------------------------------------------
# Event hooks
# ---------------------------------------------------------------------------


async def handle_xp_gained(db: AsyncSession, user_id: int, xp_amount: int, now: datetime | None = None):
    return await update_progress(db, user_id, EARN_XP, xp_amount, now)


async def handle_lesson_completed(db: AsyncSession, user_id: int, now: datetime | None = None):
    completed = await update_progress(db, user_id, COMPLETE_LESSONS, 1, now)
    completed += await update_progress(db, user_id, COMPLETE_QUIZ, 1, now)
    return completed


async def handle_practice_completed(
    db: AsyncSession,
    user_id: int,
    perfect: bool = False,
    now: datetime | None = None,
):
    completed = await update_progress(db, user_id, PRACTICE_SKILL, 1, now)
    if perfect:
        completed += await update_progress(db, user_id, PERFECT_PRACTICE, 1, now)
    return completed


async def handle_streak_maintained(db: AsyncSession, user_id: int, now: datetime | None = None):
    return await update_progress(db, user_id, MAINTAIN_STREAK, 1, now)
