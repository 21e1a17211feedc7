"""FastAPI dependency injection definitions.

Re-exports all dependencies.
"""

# Process-wide collaborators
from src.novohaven.api.dependencies.app_state import (
    AIServiceDep,
    Coordinator,
    Registry,
    get_ai_service,
    get_coordinator,
    get_registry,
)

# Database
from src.novohaven.api.dependencies.db import DBSession, get_db_session

# Repositories
from src.novohaven.api.dependencies.repositories import (
    RecipeRepo,
    RecipeStepRepo,
    StandardRepo,
    StepExecRepo,
    WorkflowExecRepo,
    get_company_standard_repository,
    get_recipe_repository,
    get_recipe_step_repository,
    get_step_execution_repository,
    get_workflow_execution_repository,
)

# Services
from src.novohaven.api.dependencies.services import (
    WorkflowAssistantDep,
    WorkflowEngineDep,
    get_workflow_assistant,
    get_workflow_engine,
)

# User
from src.novohaven.api.dependencies.user import CurrentUserId, get_current_user_id

__all__ = [
    # Database
    "DBSession",
    "get_db_session",
    # Process-wide collaborators
    "AIServiceDep",
    "Coordinator",
    "Registry",
    "get_ai_service",
    "get_coordinator",
    "get_registry",
    # User
    "CurrentUserId",
    "get_current_user_id",
    # Repositories
    "RecipeRepo",
    "RecipeStepRepo",
    "StandardRepo",
    "StepExecRepo",
    "WorkflowExecRepo",
    "get_company_standard_repository",
    "get_recipe_repository",
    "get_recipe_step_repository",
    "get_step_execution_repository",
    "get_workflow_execution_repository",
    # Services
    "WorkflowAssistantDep",
    "WorkflowEngineDep",
    "get_workflow_assistant",
    "get_workflow_engine",
]
