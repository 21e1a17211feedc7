"""Workflow execution schemas for API request/response."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.novohaven.schemas.recipe import StepDefinition


class StepExecutionResult(BaseModel):
    """Projection of one StepExecution."""

    step_execution_id: int
    step_id: int | None = None
    adhoc_index: int | None = None
    step_order: int
    step_name: str
    status: str
    output: Any = None
    error: str | None = None


class ExecutionResult(BaseModel):
    """Outcome of every engine operation.

    ``execution_id`` is 0 when no execution was persisted.
    """

    success: bool
    execution_id: int
    status: str
    current_step: int = 0
    step_results: list[StepExecutionResult] = Field(default_factory=list)
    error: str | None = None


class StartExecutionRequest(BaseModel):
    """Schema for starting a workflow execution."""

    recipe_id: int
    inputs: dict[str, Any] = Field(default_factory=dict)
    custom_steps: list[StepDefinition] | None = Field(
        default=None,
        description="Ad-hoc steps to run instead of the recipe's persisted steps.",
    )


class RetryStepRequest(BaseModel):
    """Schema for retrying a step, optionally with a hand-edited prompt or new inputs."""

    modified_prompt: str | None = None
    modified_inputs: dict[str, Any] | None = None


class ExecutionRead(BaseModel):
    """Schema for listing executions."""

    id: int
    recipe_id: int
    user_id: int
    status: str
    current_step: int
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None

    model_config = {"from_attributes": True}
