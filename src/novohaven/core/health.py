"""Health check endpoint with dependency validation."""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.novohaven.core.db import get_session
from src.novohaven.core.logging import get_logger

logger = get_logger(__name__)


def setup_health_endpoint(app: FastAPI) -> None:
    """Configure the health check endpoint."""

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Health check: database connectivity plus executor and in-flight step counts."""
        health_status: dict[str, Any] = {
            "status": "healthy",
            "database": "unknown",
            "executors": len(request.app.state.registry),
            "in_flight_steps": request.app.state.coordinator.in_flight_count,
        }

        try:
            async with get_session() as session:
                await session.execute(text("SELECT 1"))
            health_status["database"] = "healthy"
        except Exception as e:
            logger.warning("Database health check failed", error=str(e))
            health_status["database"] = f"unhealthy: {str(e)}"
            health_status["status"] = "unhealthy"

        status_code = 200 if health_status["status"] == "healthy" else 503
        return JSONResponse(content=health_status, status_code=status_code)
