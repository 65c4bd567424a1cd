"""FastAPI application for the booking persistence boundary."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bistro_agent.api.routes import router
from bistro_agent.config import AppConfig, settings
from bistro_agent.db import Database

logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None, config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the booking API.

    Args:
        database: Storage handle; built from DATABASE_URL when omitted.
        config: Application config; defaults to the loaded settings.

    Returns:
        The FastAPI application. The database is initialized on startup and
        disposed on shutdown.
    """
    config = config or settings
    database = database or Database(config.backend.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s booking API...", config.restaurant.name)
        try:
            database.init()
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise
        yield
        logger.info("Shutting down booking API...")
        database.dispose()

    app = FastAPI(
        title=f"{config.restaurant.name} Bookings",
        description="Booking persistence for the reservation voice agent",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix=config.backend.api_prefix)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "app": config.restaurant.name}

    return app
