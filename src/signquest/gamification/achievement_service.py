"""Achievement unlocks with duplicate prevention and reward crediting."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.db.models import AchievementDefinition, UserAchievement, UserStats
from signquest.db.upsert import insert_ignore
from signquest.events.schemas import AchievementUnlocked
from signquest.gamification.ledger import add_gems, credit_xp, reload_stats

logger = logging.getLogger(__name__)

STREAK_ACHIEVEMENTS = [
    ("STREAK_3_DAYS", 3),
    ("STREAK_7_DAYS", 7),
    ("STREAK_14_DAYS", 14),
    ("STREAK_30_DAYS", 30),
]

TOTAL_CORRECT_ACHIEVEMENTS = [
    ("TOTAL_CORRECT_100", 100),
    ("TOTAL_CORRECT_300", 300),
    ("TOTAL_CORRECT_600", 600),
]


async def get_achievement_by_code(db: AsyncSession, code: str) -> AchievementDefinition | None:
    result = await db.execute(
        select(AchievementDefinition).where(
            AchievementDefinition.code == code,
            AchievementDefinition.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def award_achievement(
    db: AsyncSession,
    user_id: int,
    code: str,
    metadata: dict | None = None,
    now: datetime | None = None,
) -> AchievementDefinition | None:
    """Unlock an achievement for a user.

    Returns the definition when newly unlocked, None if already held or the
    code is unknown. The unlock row is inserted with ON CONFLICT DO NOTHING so
    two concurrent awards credit the reward once. Does not commit.
    """
    definition = await get_achievement_by_code(db, code)
    if definition is None:
        logger.warning("Achievement not found: %s", code)
        return None

    created = await insert_ignore(
        db,
        UserAchievement,
        {
            "user_id": user_id,
            "achievement_id": definition.id,
            "unlocked_at": now or datetime.now(timezone.utc),
            "achievement_metadata": metadata or {},
        },
        ["user_id", "achievement_id"],
    )
    if not created:
        return None

    if definition.xp_reward or definition.gem_reward:
        stats = await reload_stats(db, user_id)
        await credit_xp(db, stats, definition.xp_reward, daily_goal=False)
        await add_gems(db, stats, definition.gem_reward)

    logger.info("User %s unlocked achievement %s", user_id, code)
    return definition


def achievement_event(user_id: int, definition: AchievementDefinition) -> AchievementUnlocked:
    return AchievementUnlocked(
        user_id=user_id,
        achievement_id=definition.id,
        achievement_code=definition.code,
        tier=definition.tier,
        xp_reward=definition.xp_reward,
        gem_reward=definition.gem_reward,
    )


def session_achievement_codes(
    stats: UserStats,
    correct: int,
    total: int,
    passed: bool,
) -> list[tuple[str, dict]]:
    """Achievement codes (with unlock metadata) a session makes the user eligible for."""
    codes: list[tuple[str, dict]] = []
    for code, days in STREAK_ACHIEVEMENTS:
        if stats.streak_count >= days:
            codes.append((code, {"streak": stats.streak_count}))
    for code, threshold in TOTAL_CORRECT_ACHIEVEMENTS:
        if stats.total_correct >= threshold:
            codes.append((code, {"total_correct": stats.total_correct}))
    if passed:
        codes.append(("FIRST_QUIZ_PASS", {}))
        if correct == total:
            codes.append(("PERFECT_SCORE", {"correct": correct, "total": total}))
    return codes


async def check_session_achievements(
    db: AsyncSession,
    stats: UserStats,
    correct: int,
    total: int,
    passed: bool,
    now: datetime | None = None,
) -> list[AchievementDefinition]:
    """Evaluate the streak, total-correct and per-session achievements.

    Each award commits on its own. A failing award is rolled back and logged,
    and the remaining ones still run. Already-held ones are skipped.
    """
    user_id = stats.user_id
    awarded = []
    for code, metadata in session_achievement_codes(stats, correct, total, passed):
        try:
            definition = await award_achievement(db, user_id, code, metadata, now)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.warning("Awarding %s to user %s failed", code, user_id, exc_info=True)
            continue
        if definition is not None:
            awarded.append(definition)
    return awarded


async def get_user_achievements(db: AsyncSession, user_id: int) -> list[dict]:
    """All active achievements with the user's unlock state."""
    definitions = await db.execute(
        select(AchievementDefinition)
        .where(AchievementDefinition.is_active.is_(True))
        .order_by(AchievementDefinition.sort_order)
    )
    unlocked = await db.execute(select(UserAchievement).where(UserAchievement.user_id == user_id))
    by_id = {ua.achievement_id: ua for ua in unlocked.scalars()}

    items = []
    for definition in definitions.scalars():
        ua = by_id.get(definition.id)
        items.append({
            "code": definition.code,
            "title": definition.title,
            "description": definition.description,
            "tier": definition.tier,
            "xp_reward": definition.xp_reward,
            "gem_reward": definition.gem_reward,
            "unlocked": ua is not None,
            "unlocked_at": ua.unlocked_at if ua else None,
        })
    return items
