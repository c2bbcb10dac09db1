"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from signquest.config import get_settings
from signquest.database import close_db, get_session_factory, init_db
from signquest.gamification.router import router as gamification_router
from signquest.gamification.seed import seed_reference_data
from signquest.health.router import router as health_router
from signquest.league.router import router as league_router
from signquest.mastery.router import router as mastery_router
from signquest.middleware import setup_middleware
from signquest.milestones.router import router as milestones_router
from signquest.progress.router import router as progress_router
from signquest.quests.router import router as quests_router
from signquest.shop.router import router as shop_router
from signquest.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings)

    # Reference data is upserted, so reseeding on every start is safe.
    try:
        async with get_session_factory()() as db:
            await seed_reference_data(db)
    except SQLAlchemyError:
        logger.warning("Reference data seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Signquest API",
        description="Progression and gamification core for the Signquest sign-language courses",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(progress_router)
    app.include_router(gamification_router)
    app.include_router(league_router)
    app.include_router(quests_router)
    app.include_router(mastery_router)
    app.include_router(milestones_router)
    app.include_router(shop_router)

    return app


app = create_app()
