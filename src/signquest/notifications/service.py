"""Notification sink: hands "create notification" requests to the delivery service."""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)

NOTIFICATIONS_CHANNEL = "notifications:create"

# Notification types
PROGRESS = "PROGRESS"
ACHIEVEMENT = "ACHIEVEMENT"
UNLOCK = "UNLOCK"

# Related entity types
ENTITY_LEVEL = "LEVEL"
ENTITY_CATEGORY = "CATEGORY"
ENTITY_LESSON = "LESSON"
ENTITY_VIDEO = "VIDEO"
ENTITY_ACHIEVEMENT = "ACHIEVEMENT"


class NotificationSink:
    """One-way notification requests. Failures are logged and swallowed."""

    def __init__(self, redis: object) -> None:
        self.redis = redis

    async def create(
        self,
        user_id: int,
        notification_type: str,
        title: str,
        message: str,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
    ) -> bool:
        if self.redis is None:
            return False
        payload = {
            "userId": user_id,
            "type": notification_type,
            "title": title,
            "message": message,
        }
        if related_entity_type is not None:
            payload["relatedEntityType"] = related_entity_type
        if related_entity_id is not None:
            payload["relatedEntityId"] = related_entity_id
        try:
            await self.redis.publish(NOTIFICATIONS_CHANNEL, json.dumps(payload))  # type: ignore[attr-defined]
        except Exception:
            logger.warning("Failed to send %s notification to user %s", notification_type, user_id, exc_info=True)
            return False
        return True
