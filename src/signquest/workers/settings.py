"""arq worker settings for scheduled jobs.

Import path for arq CLI: arq signquest.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from signquest.config import get_settings
from signquest.database import close_db, get_session_factory, init_db
from signquest.league.service import process_rotation
from signquest.middleware.logging import setup_logging
from signquest.quests.service import expire_stale_quests
from signquest.redis_client import close_redis, get_publisher, init_redis

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    await init_redis(settings)
    ctx["events_redis"] = get_publisher()
    logger.info("Scheduled worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_redis()
    await close_db()
    logger.info("Scheduled worker shut down")


async def rotate_leagues(ctx: dict) -> dict:  # type: ignore[type-arg]
    """Close last week's league sessions. Runs Monday 00:00 UTC."""
    async with get_session_factory()() as db:
        summary = await process_rotation(db, ctx["events_redis"])
    logger.info(
        "League rotation: %d sessions, %d promoted, %d demoted",
        summary["sessions"], summary["promoted"], summary["demoted"],
    )
    return summary


async def expire_quests(ctx: dict) -> int:  # type: ignore[type-arg]
    """Expire unclaimed quests past their deadline. Runs hourly."""
    async with get_session_factory()() as db:
        count = await expire_stale_quests(db)
        await db.commit()
    if count:
        logger.info("Expired %d quests", count)
    return count


class WorkerSettings:
    """arq worker settings for league rotation and quest expiry."""

    functions = [rotate_leagues, expire_quests]
    cron_jobs = [
        cron(rotate_leagues, weekday=0, hour=0, minute=0, run_at_startup=True),
        cron(expire_quests, minute=0),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 4
