"""
FastAPI Production Application

Main entry point for the Analytics Dashboard API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from analytics_dashboard.config import get_settings
from analytics_dashboard.config.logging import configure_logging
from analytics_dashboard.database.connection import close_database, init_database
from analytics_dashboard.messaging.event_bus import KafkaEventBus, create_event_bus
from analytics_dashboard.serving.api.main import create_api_app
from analytics_dashboard.serving.cache import close_redis, init_redis

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Analytics Dashboard API", environment=settings.app_env)

    await init_database()
    logger.info("Database initialized")

    try:
        await init_redis()
        logger.info("Redis initialized")
    except Exception as e:
        logger.warning("Redis init failed, aggregation cache disabled", error=str(e))

    event_bus = create_event_bus()
    if isinstance(event_bus, KafkaEventBus):
        await event_bus.start()
        await event_bus.start_consuming()
    app.state.event_bus = event_bus
    logger.info("Event bus initialized", backend=settings.event_bus.backend)

    yield

    logger.info("Shutting down...")
    if isinstance(event_bus, KafkaEventBus):
        await event_bus.stop()
    await close_redis()
    await close_database()


app = create_api_app(lifespan=lifespan)
