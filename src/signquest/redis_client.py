"""Redis pool shared by the event channel and the notification sink.

Events and notification requests are fire-and-forget, so request handlers get
``None`` rather than an error when the pool is down; the publishers treat a
missing client as an undelivered message.
"""

import logging

import redis.asyncio as redis

from signquest.config import Settings

logger = logging.getLogger(__name__)

_pool: redis.Redis | None = None


async def init_redis(settings: Settings) -> None:
    """Open the pool used for event and notification publication."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.redis_max_connections,
        socket_connect_timeout=settings.redis_connect_timeout,
    )
    logger.info("Redis pool ready (max %d connections)", settings.redis_max_connections)


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_publisher() -> redis.Redis | None:
    """The pool for event publishing, or None when it was never opened."""
    if _pool is None:
        logger.debug("Redis pool not initialized; events will not be published")
    return _pool


async def redis_status() -> str:
    """Readiness check result: ``ok`` or a short error description."""
    if _pool is None:
        return "error: not initialized"
    try:
        await _pool.ping()
    except redis.RedisError as exc:
        return f"error: {exc}"
    return "ok"
