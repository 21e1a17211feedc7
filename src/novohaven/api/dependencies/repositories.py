"""Repository factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.novohaven.api.dependencies.db import DBSession
from src.novohaven.repositories import (
    CompanyStandardRepository,
    RecipeRepository,
    RecipeStepRepository,
    StepExecutionRepository,
    WorkflowExecutionRepository,
)


def get_recipe_repository(session: DBSession) -> RecipeRepository:
    return RecipeRepository(session)


def get_recipe_step_repository(session: DBSession) -> RecipeStepRepository:
    return RecipeStepRepository(session)


def get_workflow_execution_repository(session: DBSession) -> WorkflowExecutionRepository:
    return WorkflowExecutionRepository(session)


def get_step_execution_repository(session: DBSession) -> StepExecutionRepository:
    return StepExecutionRepository(session)


def get_company_standard_repository(session: DBSession) -> CompanyStandardRepository:
    return CompanyStandardRepository(session)


RecipeRepo = Annotated[RecipeRepository, Depends(get_recipe_repository)]
RecipeStepRepo = Annotated[RecipeStepRepository, Depends(get_recipe_step_repository)]
WorkflowExecRepo = Annotated[
    WorkflowExecutionRepository, Depends(get_workflow_execution_repository)
]
StepExecRepo = Annotated[StepExecutionRepository, Depends(get_step_execution_repository)]
StandardRepo = Annotated[CompanyStandardRepository, Depends(get_company_standard_repository)]
