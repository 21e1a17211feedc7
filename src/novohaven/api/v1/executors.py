"""Executor catalogue endpoints."""

from fastapi import APIRouter

from src.novohaven.api.dependencies import Registry
from src.novohaven.models import RecipeStep
from src.novohaven.schemas.executor import (
    ExecutorRead,
    StepValidationRequest,
    StepValidationResponse,
)

router = APIRouter(prefix="/executors", tags=["executors"])


@router.get(
    "",
    response_model=list[ExecutorRead],
    summary="List executors",
    description="List every registered step type with its configuration schema.",
)
async def list_executors(registry: Registry) -> list[ExecutorRead]:
    return [executor.describe() for executor in registry.get_all()]


@router.post(
    "/validate",
    response_model=StepValidationResponse,
    summary="Validate step",
    description=(
        "Check a step definition against the executor for its type without running it. "
        "Unknown types are checked by the ai executor."
    ),
)
async def validate_step(
    data: StepValidationRequest, registry: Registry
) -> StepValidationResponse:
    executor = registry.resolve(data.step_type)
    step = RecipeStep(
        step_order=1,
        step_name="Validation",
        step_type=data.step_type,
        ai_model=data.ai_model,
        prompt_template=data.prompt_template,
        input_config=data.input_config,
        api_config=data.api_config,
        executor_config=data.executor_config,
    )
    result = executor.validate_config(step)
    return StepValidationResponse(
        executor_type=executor.type, valid=result.valid, errors=result.errors
    )
