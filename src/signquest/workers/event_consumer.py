"""Redis pub/sub subscriber feeding domain events to the event handlers.

Usage: python -m signquest.workers.event_consumer
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal

import redis.asyncio as aioredis
from pydantic import ValidationError

from signquest.config import get_settings
from signquest.database import close_db, get_session_factory, init_db
from signquest.events.channel import CHANNEL_PREFIX, parse_event
from signquest.middleware.logging import setup_logging
from signquest.redis_client import close_redis, get_publisher, init_redis
from signquest.workers.event_handlers import EventHandlers

logger = logging.getLogger(__name__)


class EventConsumer:
    """Subscribes to every ``events:*`` channel and dispatches each message."""

    def __init__(self, redis_client: aioredis.Redis) -> None:
        self.redis = redis_client
        self._running = False

    async def dispatch(self, channel: str, data: str | bytes) -> bool:
        """Handle one raw message. Returns False when it was skipped or failed."""
        try:
            event = parse_event(channel, data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
            logger.warning("Invalid event payload on %s", channel)
            return False
        if event is None:
            return False

        async with get_session_factory()() as db:
            try:
                await EventHandlers(db, self.redis).handle(event)
            except Exception:
                await db.rollback()
                logger.exception("Failed to handle %s for user %s", event.event_name, event.user_id)
                return False
        return True

    async def run(self) -> None:
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
        logger.info("Event consumer subscribed to %s*", CHANNEL_PREFIX)

        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                channel = message.get("channel", "")
                if isinstance(channel, bytes):
                    channel = channel.decode()
                await self.dispatch(channel, message.get("data", ""))
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("Event consumer stopped")

    def stop(self) -> None:
        self._running = False


async def main() -> None:
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    await init_redis(settings)
    consumer = EventConsumer(get_publisher())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, consumer.stop)

    try:
        await consumer.run()
    finally:
        await close_redis()
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
