"""Typed domain events.

Payloads serialise with camelCase keys (``userId``, ``xpAmount``...) so that
subscribers in other services read the same shape regardless of language.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DomainEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    event_name: ClassVar[str]

    user_id: int


class XPGained(DomainEvent):
    event_name: ClassVar[str] = "xp.gained"

    xp_amount: int
    source: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class LessonCompleted(DomainEvent):
    event_name: ClassVar[str] = "lesson.completed"

    lesson_id: str | None = None
    category_id: str | None = None
    xp_gained: int = 0
    passed: bool = True
    score: float | None = None


class StreakMaintained(DomainEvent):
    event_name: ClassVar[str] = "streak.maintained"

    current_streak: int
    best_streak: int


class StreakBroken(DomainEvent):
    event_name: ClassVar[str] = "streak.broken"

    previous_streak: int


class HeartLost(DomainEvent):
    event_name: ClassVar[str] = "heart.lost"

    hearts_remaining: int
    reason: str


class HeartGained(DomainEvent):
    event_name: ClassVar[str] = "heart.gained"

    hearts_remaining: int
    source: str


class AchievementUnlocked(DomainEvent):
    event_name: ClassVar[str] = "achievement.unlocked"

    achievement_id: int
    achievement_code: str
    tier: str | None = None
    xp_reward: int | None = None
    gem_reward: int | None = None


class LeaguePromoted(DomainEvent):
    event_name: ClassVar[str] = "league.promoted"

    from_league: str
    to_league: str
    rank: int


class LeagueDemoted(DomainEvent):
    event_name: ClassVar[str] = "league.demoted"

    from_league: str
    to_league: str
    rank: int


class CrownLeveledUp(DomainEvent):
    event_name: ClassVar[str] = "crown.leveled_up"

    skill_id: str
    from_level: int
    to_level: int
    xp_reward: int


class QuestCompleted(DomainEvent):
    event_name: ClassVar[str] = "quest.completed"

    quest_id: int
    quest_type: str
    reward: int


class DailyGoalReached(DomainEvent):
    event_name: ClassVar[str] = "daily.goal_reached"

    daily_goal_xp: int
    reward: int


EVENT_TYPES: dict[str, type[DomainEvent]] = {
    cls.event_name: cls
    for cls in (
        XPGained,
        LessonCompleted,
        StreakMaintained,
        StreakBroken,
        HeartLost,
        HeartGained,
        AchievementUnlocked,
        LeaguePromoted,
        LeagueDemoted,
        CrownLeveledUp,
        QuestCompleted,
        DailyGoalReached,
    )
}
