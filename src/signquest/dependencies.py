"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException, status

from signquest.database import get_session as _get_session
from signquest.redis_client import get_publisher

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the publishing client, or None when Redis is unavailable."""
    yield get_publisher()


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> int:
    """Resolve the learner id injected by the upstream auth gateway."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id header") from None
    if user_id <= 0:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id header")
    return user_id
