"""Application factory for the inbox delivery service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from redis.asyncio import Redis

from inbox.config import get_settings
from inbox.core.hub import DeliveryHub
from inbox.db import DatabaseManager
from inbox.infra.logging_config import LoggingConfig, get_logger
from inbox.routers.events_router import events_router
from inbox.routers.messages_router import messages_router
from inbox.routers.notifications_router import notifications_router
from inbox.routers.realtime import realtime_router
from inbox.routers.system import router as system_router

logger = get_logger("main")


def _build_redis() -> Optional[Redis]:
    settings = get_settings()
    if not settings.inbox_rate_limit_per_user_per_minute:
        return None
    return Redis(host=settings.redis_host, port=settings.redis_port)


def create_app(
    testing: bool = False, db_manager: Optional[DatabaseManager] = None
) -> FastAPI:
    settings = get_settings()
    if not testing:
        LoggingConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager = db_manager or DatabaseManager()
        manager.create_all()
        app.state.db_manager = manager
        app.state.hub = DeliveryHub()
        app.state.redis = None if testing else _build_redis()
        logger.info("%s started (%s)", settings.app_name, settings.environment)
        try:
            yield
        finally:
            if app.state.redis is not None:
                await app.state.redis.aclose()
            if db_manager is None:
                manager.dispose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(system_router)
    app.include_router(messages_router)
    app.include_router(notifications_router)
    app.include_router(events_router)
    app.include_router(realtime_router)
    return app

