"""Integration test fixtures.

Each test gets its own file-backed SQLite database so several sessions
(and the API's per-request sessions) see each other's commits.
"""

from collections.abc import Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from src.novohaven.api.dependencies import get_db_session
from src.novohaven.core.db import create_session_factory
from src.novohaven.executors.registry import build_default_registry
from src.novohaven.main import create_app
from src.novohaven.repositories import (
    CompanyStandardRepository,
    RecipeRepository,
    RecipeStepRepository,
    StepExecutionRepository,
    WorkflowExecutionRepository,
)
from src.novohaven.services import BrightDataClient, ExecutionCoordinator, UsageService
from src.novohaven.services.workflow_engine import WorkflowEngine

# --- Database ---


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# --- Engine collaborators ---


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def registry(settings, ai_service, http_client, session_factory):
    return build_default_registry(
        settings,
        ai_service,
        BrightDataClient(settings, http_client),
        http_client,
        UsageService(session_factory),
    )


@pytest.fixture
def coordinator():
    return ExecutionCoordinator()


@pytest.fixture
def engine_for(registry, coordinator) -> Callable[[AsyncSession], WorkflowEngine]:
    """Build a WorkflowEngine over a given session, sharing registry and coordinator."""

    def build(session: AsyncSession) -> WorkflowEngine:
        return WorkflowEngine(
            RecipeRepository(session),
            RecipeStepRepository(session),
            WorkflowExecutionRepository(session),
            StepExecutionRepository(session),
            CompanyStandardRepository(session),
            session,
            registry,
            coordinator,
        )

    return build


@pytest.fixture
def workflow_engine(engine_for, db_session) -> WorkflowEngine:
    return engine_for(db_session)


# --- API ---


@pytest.fixture
async def client(session_factory, registry, coordinator, ai_service):
    """HTTP client for the app, backed by the test database.

    ASGITransport does not run the lifespan, so app.state is filled here.
    """
    app = create_app()

    async def override_get_db_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.state.registry = registry
    app.state.coordinator = coordinator
    app.state.ai_service = ai_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
