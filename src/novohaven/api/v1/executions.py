"""Workflow execution endpoints.

Thin handlers over WorkflowEngine: start a run, review its steps
(approve, reject, retry), resume, cancel and inspect it.
"""

from typing import Annotated

from fastapi import APIRouter, Query, status

from src.novohaven.api.dependencies import (
    CurrentUserId,
    RecipeRepo,
    WorkflowEngineDep,
    WorkflowExecRepo,
)
from src.novohaven.core.exceptions import NotFoundError, ValidationError
from src.novohaven.schemas.execution import (
    ExecutionRead,
    ExecutionResult,
    RetryStepRequest,
    StartExecutionRequest,
)
from src.novohaven.schemas.pagination import PaginatedResponse

router = APIRouter(prefix="/executions", tags=["executions"])


async def _ensure_execution(execution_repo: WorkflowExecRepo, execution_id: int) -> None:
    if await execution_repo.get_by_id(execution_id) is None:
        raise NotFoundError("Execution not found")


@router.get(
    "",
    response_model=PaginatedResponse[ExecutionRead],
    summary="List executions",
    description="List the acting user's executions, newest first, with cursor-based pagination.",
    responses={
        200: {"description": "Paginated list of executions"},
    },
)
async def list_executions(
    engine: WorkflowEngineDep,
    user_id: CurrentUserId,
    cursor: Annotated[str | None, Query(description="Cursor for pagination")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Max items to return")] = 50,
) -> PaginatedResponse[ExecutionRead]:
    executions, next_cursor, has_more = await engine.list_executions(user_id, cursor, limit)
    return PaginatedResponse(
        items=[ExecutionRead.model_validate(e) for e in executions],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.post(
    "",
    response_model=ExecutionResult,
    status_code=status.HTTP_201_CREATED,
    summary="Start execution",
    description=(
        "Start a run of a recipe (or of ad-hoc custom steps) and execute its first step. "
        "The run pauses for review after every step."
    ),
    responses={
        201: {"description": "Execution created; first step ran"},
        400: {"description": "Missing required inputs or recipe has no steps"},
        404: {"description": "Recipe not found"},
    },
)
async def start_execution(
    data: StartExecutionRequest,
    engine: WorkflowEngineDep,
    recipe_repo: RecipeRepo,
    user_id: CurrentUserId,
) -> ExecutionResult:
    if await recipe_repo.get_by_id(data.recipe_id) is None:
        raise NotFoundError("Recipe not found")
    result = await engine.start_execution(
        data.recipe_id, user_id, data.inputs, custom_steps=data.custom_steps
    )
    if result.execution_id == 0:
        raise ValidationError(result.error or "Execution could not be started")
    return result


@router.get(
    "/{execution_id}",
    response_model=ExecutionResult,
    summary="Get execution status",
    description="Project an execution and the state of each of its steps.",
    responses={
        200: {"description": "Execution status"},
        404: {"description": "Execution not found"},
    },
)
async def get_execution_status(
    execution_id: int,
    engine: WorkflowEngineDep,
    execution_repo: WorkflowExecRepo,
) -> ExecutionResult:
    await _ensure_execution(execution_repo, execution_id)
    return await engine.get_execution_status(execution_id)


@router.post(
    "/{execution_id}/steps/{step_execution_id}/approve",
    response_model=ExecutionResult,
    summary="Approve step",
    description="Approve a step awaiting review and run the next pending step.",
    responses={
        200: {"description": "Step approved; see result for the next step's outcome"},
        404: {"description": "Execution not found"},
    },
)
async def approve_step(
    execution_id: int,
    step_execution_id: int,
    engine: WorkflowEngineDep,
    execution_repo: WorkflowExecRepo,
    user_id: CurrentUserId,
) -> ExecutionResult:
    await _ensure_execution(execution_repo, execution_id)
    return await engine.approve_step(execution_id, step_execution_id, user_id)


@router.post(
    "/{execution_id}/steps/{step_execution_id}/reject",
    response_model=ExecutionResult,
    summary="Reject step",
    description="Send a step back to pending and pause the execution before it.",
    responses={
        200: {"description": "Step rejected"},
        400: {"description": "Step does not belong to the execution or execution is finished"},
        404: {"description": "Execution not found"},
    },
)
async def reject_step(
    execution_id: int,
    step_execution_id: int,
    engine: WorkflowEngineDep,
    execution_repo: WorkflowExecRepo,
) -> ExecutionResult:
    await _ensure_execution(execution_repo, execution_id)
    result = await engine.reject_step(execution_id, step_execution_id)
    if not result.success:
        raise ValidationError(result.error or "Step could not be rejected")
    return result


@router.post(
    "/{execution_id}/steps/{step_execution_id}/retry",
    response_model=ExecutionResult,
    summary="Retry step",
    description=(
        "Re-run a step, optionally with a hand-edited prompt or additional inputs. "
        "The execution stays paused."
    ),
    responses={
        200: {"description": "Step re-ran; see result for its outcome"},
        404: {"description": "Execution not found"},
    },
)
async def retry_step(
    execution_id: int,
    step_execution_id: int,
    engine: WorkflowEngineDep,
    execution_repo: WorkflowExecRepo,
    user_id: CurrentUserId,
    data: RetryStepRequest | None = None,
) -> ExecutionResult:
    await _ensure_execution(execution_repo, execution_id)
    data = data or RetryStepRequest()
    return await engine.retry_step(
        execution_id,
        step_execution_id,
        user_id,
        modified_prompt=data.modified_prompt,
        modified_inputs=data.modified_inputs,
    )


@router.post(
    "/{execution_id}/resume",
    response_model=ExecutionResult,
    summary="Resume execution",
    description="Run the next pending step of a paused execution.",
    responses={
        200: {"description": "Next step ran; see result for its outcome"},
        404: {"description": "Execution not found"},
    },
)
async def resume_execution(
    execution_id: int,
    engine: WorkflowEngineDep,
    execution_repo: WorkflowExecRepo,
    user_id: CurrentUserId,
) -> ExecutionResult:
    await _ensure_execution(execution_repo, execution_id)
    return await engine.resume_execution(execution_id, user_id)


@router.post(
    "/{execution_id}/cancel",
    response_model=ExecutionResult,
    summary="Cancel execution",
    description="Cancel an unfinished execution, interrupting its in-flight step.",
    responses={
        200: {"description": "Execution cancelled"},
        400: {"description": "Execution is already finished"},
        404: {"description": "Execution not found"},
    },
)
async def cancel_execution(
    execution_id: int,
    engine: WorkflowEngineDep,
    execution_repo: WorkflowExecRepo,
) -> ExecutionResult:
    await _ensure_execution(execution_repo, execution_id)
    result = await engine.cancel_execution(execution_id)
    if not result.success:
        raise ValidationError(result.error or "Execution could not be cancelled")
    return result
