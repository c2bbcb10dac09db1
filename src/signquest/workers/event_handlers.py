"""Reactions to published domain events.

Runs inside the event consumer process, one database session per event.
Pub/sub delivers each event at most once per subscriber, so handlers do not
deduplicate.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from signquest.events.channel import EventChannel
from signquest.events.schemas import (
    AchievementUnlocked,
    DomainEvent,
    LeagueDemoted,
    LeaguePromoted,
    QuestCompleted,
    StreakMaintained,
    XPGained,
)
from signquest.gamification.ledger import credit_xp, get_or_create_stats
from signquest.league import service as league
from signquest.notifications.service import ACHIEVEMENT, ENTITY_ACHIEVEMENT, PROGRESS, NotificationSink
from signquest.quests import service as quests

logger = logging.getLogger(__name__)

CROWN_SOURCE = "crown_level_up"


class EventHandlers:
    """Dispatches one decoded event to the reactions registered for its type."""

    def __init__(self, db: AsyncSession, redis: object) -> None:
        self.db = db
        self.redis = redis
        self.channel = EventChannel(redis)
        self.notifications = NotificationSink(redis)

    async def handle(self, event: DomainEvent) -> None:
        if isinstance(event, XPGained):
            await self._on_xp_gained(event)
        elif isinstance(event, StreakMaintained):
            await self._on_streak_maintained(event)
        elif isinstance(event, QuestCompleted):
            await self.notifications.create(
                event.user_id, PROGRESS, "Quest complete!",
                f"Claim your {event.reward} gems.",
            )
        elif isinstance(event, AchievementUnlocked):
            await self.notifications.create(
                event.user_id, ACHIEVEMENT, "Achievement unlocked!",
                f"You earned {event.achievement_code}.",
                related_entity_type=ENTITY_ACHIEVEMENT,
                related_entity_id=event.achievement_code,
            )
        elif isinstance(event, LeaguePromoted):
            await self.notifications.create(
                event.user_id, PROGRESS, "Promoted!",
                f"You finished #{event.rank} and moved up to the {event.to_league} league.",
            )
        elif isinstance(event, LeagueDemoted):
            await self.notifications.create(
                event.user_id, PROGRESS, "League update",
                f"You dropped to the {event.to_league} league. Win it back this week!",
            )

    async def _on_xp_gained(self, event: XPGained) -> None:
        # Session XP is credited inline by the session applicator.
        if event.source != CROWN_SOURCE or event.xp_amount <= 0:
            return

        stats = await get_or_create_stats(self.db, event.user_id, self.redis)
        await credit_xp(self.db, stats, event.xp_amount)
        completed = await quests.handle_xp_gained(self.db, event.user_id, event.xp_amount)
        await self.db.commit()
        await league.update_weekly_xp(self.db, event.user_id, event.xp_amount, credit_all_time=False)
        logger.info("Credited %d crown bonus XP to user %s", event.xp_amount, event.user_id)

        for quest_event in quests.quest_events(completed):
            await self.channel.publish(quest_event)

    async def _on_streak_maintained(self, event: StreakMaintained) -> None:
        completed = await quests.handle_streak_maintained(self.db, event.user_id)
        await self.db.commit()
        for quest_event in quests.quest_events(completed):
            await self.channel.publish(quest_event)
