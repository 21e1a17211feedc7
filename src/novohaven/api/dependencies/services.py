"""Service factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.novohaven.api.dependencies.app_state import AIServiceDep, Coordinator, Registry
from src.novohaven.api.dependencies.db import DBSession
from src.novohaven.api.dependencies.repositories import (
    RecipeRepo,
    RecipeStepRepo,
    StandardRepo,
    StepExecRepo,
    WorkflowExecRepo,
)
from src.novohaven.core.config import get_settings
from src.novohaven.services.workflow_assistant import WorkflowAssistant
from src.novohaven.services.workflow_engine import WorkflowEngine


def get_workflow_engine(
    recipe_repo: RecipeRepo,
    step_repo: RecipeStepRepo,
    execution_repo: WorkflowExecRepo,
    step_execution_repo: StepExecRepo,
    standard_repo: StandardRepo,
    session: DBSession,
    registry: Registry,
    coordinator: Coordinator,
) -> WorkflowEngine:
    """Get workflow engine with request-scoped repositories and process-wide collaborators."""
    return WorkflowEngine(
        recipe_repo,
        step_repo,
        execution_repo,
        step_execution_repo,
        standard_repo,
        session,
        registry,
        coordinator,
    )


def get_workflow_assistant(
    ai_service: AIServiceDep,
    registry: Registry,
    recipe_repo: RecipeRepo,
    step_repo: RecipeStepRepo,
    session: DBSession,
) -> WorkflowAssistant:
    """Get workflow assistant."""
    return WorkflowAssistant(ai_service, registry, recipe_repo, step_repo, session, get_settings())


WorkflowEngineDep = Annotated[WorkflowEngine, Depends(get_workflow_engine)]
WorkflowAssistantDep = Annotated[WorkflowAssistant, Depends(get_workflow_assistant)]
