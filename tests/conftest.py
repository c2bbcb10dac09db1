"""Shared test fixtures.

Database tests run against in-memory SQLite (one fresh database per test) with
the reference data seeded. Redis is an AsyncMock; published events are read
back from its ``publish`` calls.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from signquest.database import close_db, get_engine, get_session_factory, init_db
from signquest.db.base import Base
from signquest.db.models import Category, Lesson, LessonVideo, Level, UserStats
from signquest.gamification.seed import seed_reference_data

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Wednesday of ISO week 2026-W10.
NOW = datetime(2026, 3, 4, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema with reference data seeded."""
    await init_db(TEST_DATABASE_URL)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with get_session_factory()() as session:
        await seed_reference_data(session)
        yield session
    await close_db()


@pytest.fixture
def redis() -> AsyncMock:
    """Stand-in Redis client; ``publish`` calls are recorded."""
    return AsyncMock()


def published(redis: AsyncMock, event_name: str) -> list[dict]:
    """Payloads published on ``events:<event_name>``, in order."""
    return [
        json.loads(call.args[1])
        for call in redis.publish.await_args_list
        if call.args[0] == f"events:{event_name}"
    ]


def notifications(redis: AsyncMock) -> list[dict]:
    """Notification requests sent to the delivery service, in order."""
    return [
        json.loads(call.args[1])
        for call in redis.publish.await_args_list
        if call.args[0] == "notifications:create"
    ]


async def add_stats(db: AsyncSession, user_id: int = 1, **fields) -> UserStats:
    """Insert a ledger row with overrides, bypassing first-access defaults."""
    values = {"user_id": user_id, "energy": 25, "hearts": 5, "claimed_streak_milestones": []}
    values.update(fields)
    stats = UserStats(**values)
    db.add(stats)
    await db.commit()
    return stats


@pytest_asyncio.fixture
async def content(db_session: AsyncSession) -> AsyncSession:
    """Two levels of content.

    level-1
      cat-1: lesson-1 (vid-1, vid-2, supplementary vid-x), lesson-2 (vid-3), inactive lesson-old
      cat-2: lesson-3 (vid-4)
      inactive cat-hidden
    level-2
      cat-3: lesson-4 (vid-5)
    """
    db = db_session
    db.add_all([
        Level(id="level-1", title="Basics", sort_order=1),
        Level(id="level-2", title="Everyday Signs", sort_order=2),
    ])
    db.add_all([
        Category(id="cat-1", level_id="level-1", title="Alphabet", sort_order=1),
        Category(id="cat-hidden", level_id="level-1", title="Hidden", sort_order=2, is_active=False),
        Category(id="cat-2", level_id="level-1", title="Numbers", sort_order=3),
        Category(id="cat-3", level_id="level-2", title="Greetings", sort_order=1),
    ])
    db.add_all([
        Lesson(id="lesson-1", category_id="cat-1", title="A to M", sort_order=1),
        Lesson(id="lesson-old", category_id="cat-1", title="Retired", sort_order=2, is_active=False),
        Lesson(id="lesson-2", category_id="cat-1", title="N to Z", sort_order=3),
        Lesson(id="lesson-3", category_id="cat-2", title="One to ten", sort_order=1),
        Lesson(id="lesson-4", category_id="cat-3", title="Hello", sort_order=1),
    ])
    db.add_all([
        LessonVideo(id="vid-1", lesson_id="lesson-1", sort_order=1),
        LessonVideo(id="vid-2", lesson_id="lesson-1", sort_order=2),
        LessonVideo(id="vid-x", lesson_id="lesson-1", sort_order=3, is_for_lesson=False),
        LessonVideo(id="vid-3", lesson_id="lesson-2", sort_order=1),
        LessonVideo(id="vid-4", lesson_id="lesson-3", sort_order=1),
        LessonVideo(id="vid-5", lesson_id="lesson-4", sort_order=1),
    ])
    await db.commit()
    return db


@pytest_asyncio.fixture
async def client(content: AsyncSession, redis: AsyncMock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app, sharing the test database and the Redis mock."""
    from signquest.dependencies import get_redis_dep
    from signquest.main import create_app

    app = create_app()

    async def _redis() -> AsyncGenerator[object, None]:
        yield redis

    app.dependency_overrides[get_redis_dep] = _redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-User-Id": "42"}) as ac:
        yield ac
