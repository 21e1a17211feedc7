from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from src.novohaven.api.middlewares import setup_middlewares
from src.novohaven.api.v1.router import api_router
from src.novohaven.core.config import get_settings
from src.novohaven.core.db import (
    create_session_factory,
    dispose_engine,
    get_engine,
    run_migrations_async,
)
from src.novohaven.core.exceptions import setup_exception_handlers
from src.novohaven.core.health import setup_health_endpoint
from src.novohaven.core.logging import get_logger, setup_logging
from src.novohaven.executors.registry import build_default_registry
from src.novohaven.services import (
    AIService,
    BrightDataClient,
    ExecutionCoordinator,
    UsageService,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan - startup and shutdown."""
    settings = get_settings()
    setup_logging(settings.debug)
    logger.info(f"Starting {settings.app_name}")

    if settings.database_migrate_on_startup:
        await run_migrations_async()
        logger.info("Migrations applied")

    http_client = httpx.AsyncClient()
    ai_service = AIService(settings)
    scraping_client = BrightDataClient(settings)
    usage_service = UsageService(create_session_factory(get_engine()))

    app.state.ai_service = ai_service
    app.state.coordinator = ExecutionCoordinator()
    app.state.registry = build_default_registry(
        settings, ai_service, scraping_client, http_client, usage_service
    )

    yield

    if app.state.coordinator.in_flight_count:
        logger.warning(
            f"Shutting down with {app.state.coordinator.in_flight_count} steps still running"
        )
    logger.info("Closing connections...")
    await http_client.aclose()
    await ai_service.close()
    await scraping_client.close()
    await dispose_engine()
    logger.info("Shutdown complete")


OPENAPI_TAGS = [
    {"name": "executions", "description": "Run recipes and review their steps"},
    {"name": "assistant", "description": "Conversational workflow builder"},
    {"name": "executors", "description": "Step types and their configuration"},
]


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Recipe workflow engine with human review between steps",
        version="0.1.0",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
        docs_url="/docs" if settings.enable_openapi else None,
        redoc_url="/redoc" if settings.enable_openapi else None,
        openapi_url="/openapi.json" if settings.enable_openapi else None,
    )

    setup_exception_handlers(app)
    setup_middlewares(app, settings)
    app.include_router(api_router)
    setup_health_endpoint(app)

    return app


app = create_app()
