"""Repository layer - data access abstraction."""

from src.novohaven.repositories.api_usage_repository import ApiUsageRepository
from src.novohaven.repositories.base import BaseRepository
from src.novohaven.repositories.company_standard_repository import CompanyStandardRepository
from src.novohaven.repositories.recipe_repository import RecipeRepository, RecipeStepRepository
from src.novohaven.repositories.workflow_execution_repository import (
    StepExecutionRepository,
    WorkflowExecutionRepository,
)

__all__ = [
    # Base
    "BaseRepository",
    # Recipes
    "RecipeRepository",
    "RecipeStepRepository",
    # Executions
    "StepExecutionRepository",
    "WorkflowExecutionRepository",
    # Supporting data
    "ApiUsageRepository",
    "CompanyStandardRepository",
]
