"""ORM models for content, learner progress and the game economy.

Content tables are authored elsewhere and only read here. Every per-user table
carries a compound unique key so that first-access creation can use
INSERT ... ON CONFLICT DO NOTHING.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from signquest.db.base import Base
from signquest.db.types import BigIntPK, JSONType, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Content hierarchy (read-only)
# ---------------------------------------------------------------------------


class Level(Base):
    """Maps to the 'levels' table."""

    __tablename__ = "levels"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Category(Base):
    """Maps to the 'categories' table."""

    __tablename__ = "categories"
    __table_args__ = (Index("idx_categories_level_order", "level_id", "sort_order"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    level_id: Mapped[str] = mapped_column(String(64), ForeignKey("levels.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Lesson(Base):
    """Maps to the 'lessons' table."""

    __tablename__ = "lessons"
    __table_args__ = (Index("idx_lessons_category_order", "category_id", "sort_order"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    category_id: Mapped[str] = mapped_column(String(64), ForeignKey("categories.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class LessonVideo(Base):
    """Maps to the 'lesson_videos' table.

    Only videos flagged ``is_for_lesson`` count towards lesson completion; the
    rest are supplementary material.
    """

    __tablename__ = "lesson_videos"
    __table_args__ = (Index("idx_lesson_videos_lesson", "lesson_id", "sort_order"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    lesson_id: Mapped[str] = mapped_column(String(64), ForeignKey("lessons.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_for_lesson: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# ---------------------------------------------------------------------------
# Learner progress
# ---------------------------------------------------------------------------


class LevelProgress(Base):
    """Maps to the 'level_progress' table."""

    __tablename__ = "level_progress"
    __table_args__ = (UniqueConstraint("user_id", "level_id", name="uq_level_progress_user_level"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    level_id: Mapped[str] = mapped_column(String(64), ForeignKey("levels.id"), nullable=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    all_categories_completed: Mapped[bool] = mapped_column(Boolean, default=False)


class CategoryProgress(Base):
    """Maps to the 'category_progress' table."""

    __tablename__ = "category_progress"
    __table_args__ = (UniqueConstraint("user_id", "category_id", name="uq_category_progress_user_category"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    category_id: Mapped[str] = mapped_column(String(64), ForeignKey("categories.id"), nullable=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    final_quiz_best_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    final_quiz_passed: Mapped[bool] = mapped_column(Boolean, default=False)


class LessonProgress(Base):
    """Maps to the 'lesson_progress' table."""

    __tablename__ = "lesson_progress"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_lesson_progress_user_lesson"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    lesson_id: Mapped[str] = mapped_column(String(64), ForeignKey("lessons.id"), nullable=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    watched_videos: Mapped[list[str]] = mapped_column(JSONType, default=list)
    all_videos_watched: Mapped[bool] = mapped_column(Boolean, default=False)
    # Bumped by every write of watched_videos; writes are compare-and-set on it.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


# ---------------------------------------------------------------------------
# Stats ledger
# ---------------------------------------------------------------------------


class UserStats(Base):
    """Maps to the 'user_stats' table. One canonical row per learner.

    ``version`` is the optimistic-concurrency counter: ORM flushes are guarded by
    it, and bulk UPDATEs on hot fields bump it explicitly.
    """

    __tablename__ = "user_stats"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)

    xp: Mapped[int] = mapped_column(Integer, default=0)
    all_time_xp: Mapped[int] = mapped_column(Integer, default=0)
    weekly_xp: Mapped[int] = mapped_column(Integer, default=0)
    gems: Mapped[int] = mapped_column(Integer, default=0)

    energy: Mapped[int] = mapped_column(Integer, default=25)
    energy_regen_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    hearts: Mapped[int] = mapped_column(Integer, default=5)
    last_heart_lost_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    practice_hearts_earned: Mapped[int] = mapped_column(Integer, default=0)

    streak_count: Mapped[int] = mapped_column(Integer, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_active_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    streak_lost_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    streak_freeze_active: Mapped[bool] = mapped_column(Boolean, default=False)
    streak_freeze_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    streak_freezes_used: Mapped[int] = mapped_column(Integer, default=0)
    weekend_amulet_active: Mapped[bool] = mapped_column(Boolean, default=False)

    xp_boost_multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    xp_boost_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    current_league_tier: Mapped[str] = mapped_column(String(16), default="bronze")
    total_crowns: Mapped[int] = mapped_column(Integer, default=0)
    skills_mastered: Mapped[int] = mapped_column(Integer, default=0)
    total_correct: Mapped[int] = mapped_column(Integer, default=0)
    total_sessions: Mapped[int] = mapped_column(Integer, default=0)

    daily_goal_xp: Mapped[int] = mapped_column(Integer, default=50)
    daily_goal_progress: Mapped[int] = mapped_column(Integer, default=0)

    claimed_streak_milestones: Mapped[list[int]] = mapped_column(JSONType, default=list)
    last_claimed_streak_milestone: Mapped[int | None] = mapped_column(Integer, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class SkillProgress(Base):
    """Maps to the 'skill_progress' table."""

    __tablename__ = "skill_progress"
    __table_args__ = (UniqueConstraint("user_id", "skill_id", name="uq_skill_progress_user_skill"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    skill_id: Mapped[str] = mapped_column(String(64), nullable=False)
    crown_level: Mapped[int] = mapped_column(Integer, default=0)
    current_xp: Mapped[int] = mapped_column(Integer, default=0)
    total_xp: Mapped[int] = mapped_column(Integer, default=0)
    xp_to_next_crown: Mapped[int] = mapped_column(Integer, default=60)
    mistake_count: Mapped[int] = mapped_column(Integer, default=0)
    practice_count: Mapped[int] = mapped_column(Integer, default=0)
    last_practiced_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_legendary: Mapped[bool] = mapped_column(Boolean, default=False)
    legendary_attempts: Mapped[int] = mapped_column(Integer, default=0)
    legendary_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    first_crown_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_crown_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


class QuestTemplate(Base):
    """Maps to the 'quest_templates' table (reference data)."""

    __tablename__ = "quest_templates"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    quest_type: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    default_target: Mapped[int] = mapped_column(Integer, nullable=False)
    default_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    default_expiration_hours: Mapped[int] = mapped_column(Integer, default=24)
    target_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class DailyQuest(Base):
    """Maps to the 'daily_quests' table."""

    __tablename__ = "daily_quests"
    __table_args__ = (Index("idx_daily_quests_user_status", "user_id", "status"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quest_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    target: Mapped[int] = mapped_column(Integer, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    reward: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending")
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)


# ---------------------------------------------------------------------------
# Leagues
# ---------------------------------------------------------------------------


class LeagueTier(Base):
    """Maps to the 'league_tiers' table (reference data)."""

    __tablename__ = "league_tiers"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    tier: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    min_xp_to_promote: Mapped[int] = mapped_column(Integer, nullable=False)
    max_promotions: Mapped[int] = mapped_column(Integer, nullable=False)
    demotion_threshold: Mapped[int] = mapped_column(Integer, nullable=False)


class LeagueSession(Base):
    """Maps to the 'league_sessions' table. One weekly bucket per tier."""

    __tablename__ = "league_sessions"
    __table_args__ = (UniqueConstraint("tier", "start_date", name="uq_league_sessions_tier_start"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    participant_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)


class LeagueParticipant(Base):
    """Maps to the 'league_participants' table."""

    __tablename__ = "league_participants"
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_league_participants_user_session"),
        Index("idx_league_participants_session_xp", "session_id", "weekly_xp"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    session_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("league_sessions.id"), nullable=False)
    weekly_xp: Mapped[int] = mapped_column(Integer, default=0)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    promoted: Mapped[bool] = mapped_column(Boolean, default=False)
    demoted: Mapped[bool] = mapped_column(Boolean, default=False)


# ---------------------------------------------------------------------------
# Milestones & achievements
# ---------------------------------------------------------------------------


class StreakMilestone(Base):
    """Maps to the 'streak_milestones' table (reference data)."""

    __tablename__ = "streak_milestones"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    day: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    celebration_message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reward: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class AchievementDefinition(Base):
    """Maps to the 'achievement_definitions' table (reference data)."""

    __tablename__ = "achievement_definitions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    tier: Mapped[str] = mapped_column(String(16), default="bronze")
    xp_reward: Mapped[int] = mapped_column(Integer, default=0)
    gem_reward: Mapped[int] = mapped_column(Integer, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class UserAchievement(Base):
    """Maps to the 'user_achievements' table."""

    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_achievement"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    achievement_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("achievement_definitions.id"), nullable=False,
    )
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    achievement_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)


# ---------------------------------------------------------------------------
# Gem shop
# ---------------------------------------------------------------------------


class ShopItem(Base):
    """Maps to the 'shop_items' table (reference data)."""

    __tablename__ = "shop_items"
    __table_args__ = (Index("idx_shop_items_type_active", "item_type", "is_active"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    item_type: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price_gems: Mapped[int] = mapped_column(Integer, nullable=False)
    effect_config: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    # -1 for unlimited
    stock_limit: Mapped[int] = mapped_column(Integer, default=-1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Purchase(Base):
    """Maps to the 'purchases' table."""

    __tablename__ = "purchases"
    __table_args__ = (Index("idx_purchases_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    shop_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("shop_items.id"), nullable=False, index=True,
    )
    gems_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
