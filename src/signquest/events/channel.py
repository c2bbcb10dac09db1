"""Fire-and-forget event publication over Redis pub/sub."""

from __future__ import annotations

import json
import logging

from signquest.events.schemas import EVENT_TYPES, DomainEvent

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "events:"


def channel_for(event_name: str) -> str:
    """Redis channel carrying events of the given name, e.g. ``events:xp.gained``."""
    return f"{CHANNEL_PREFIX}{event_name}"


def parse_event(channel: str, data: str | bytes) -> DomainEvent | None:
    """Decode a pub/sub message back into its typed event. Unknown channels yield None."""
    if isinstance(data, bytes):
        data = data.decode()
    name = channel.removeprefix(CHANNEL_PREFIX)
    event_cls = EVENT_TYPES.get(name)
    if event_cls is None:
        return None
    return event_cls.model_validate(json.loads(data))


class EventChannel:
    """Publishes domain events. Publication failures never reach the caller."""

    def __init__(self, redis: object) -> None:
        self.redis = redis

    async def publish(self, event: DomainEvent) -> bool:
        """Publish one event. Returns False when it could not be delivered."""
        if self.redis is None:
            return False
        try:
            await self.redis.publish(  # type: ignore[attr-defined]
                channel_for(event.event_name),
                event.model_dump_json(by_alias=True),
            )
        except Exception:
            logger.warning("Failed to publish %s for user %s", event.event_name, event.user_id, exc_info=True)
            return False
        return True
