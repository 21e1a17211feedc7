"""Workflow assistant endpoints."""

from fastapi import APIRouter, status

from src.novohaven.api.dependencies import CurrentUserId, WorkflowAssistantDep
from src.novohaven.schemas.assistant import (
    AssistantResponse,
    GenerateWorkflowRequest,
    SaveWorkflowRequest,
    SaveWorkflowResponse,
)

router = APIRouter(prefix="/assistant", tags=["assistant"])


@router.post(
    "/generate",
    response_model=AssistantResponse,
    summary="Generate workflow",
    description=(
        "Continue a conversation with the workflow assistant. The reply may include a "
        "proposed workflow and follow-up suggestions."
    ),
    responses={
        200: {"description": "Assistant reply"},
        502: {"description": "No AI model available or the model call failed"},
    },
)
async def generate_workflow(
    data: GenerateWorkflowRequest,
    assistant: WorkflowAssistantDep,
    user_id: CurrentUserId,
) -> AssistantResponse:
    return await assistant.generate_workflow(data.messages, user_id)


@router.post(
    "/save",
    response_model=SaveWorkflowResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save workflow",
    description=(
        "Save a proposed workflow as a recipe. Steps sourced from a template keep the "
        "template's configuration except for the fields the proposal overrides."
    ),
    responses={
        201: {"description": "Recipe created"},
    },
)
async def save_workflow(
    data: SaveWorkflowRequest,
    assistant: WorkflowAssistantDep,
    user_id: CurrentUserId,
) -> SaveWorkflowResponse:
    recipe_id = await assistant.save_workflow_as_recipe(
        data.workflow, user_id, is_template=data.is_template
    )
    return SaveWorkflowResponse(recipe_id=recipe_id)
