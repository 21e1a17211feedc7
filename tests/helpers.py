"""Test helper functions for common data creation patterns."""

from collections.abc import Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from src.novohaven.executors.base import ExecutorContext
from src.novohaven.models import Recipe, RecipeStep, StepExecution, StepExecutionStatus
from tests.factories import RecipeFactory


def mock_transport_client(
    handler: Callable[[httpx.Request], httpx.Response], **kwargs
) -> httpx.AsyncClient:
    """An AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)


def completed_step(step_order: int, content: str) -> StepExecution:
    """A completed step execution holding ``content``."""
    return StepExecution(
        id=step_order,
        execution_id=1,
        step_id=step_order,
        step_order=step_order,
        status=StepExecutionStatus.COMPLETED.value,
        output_data={"content": content},
    )


def make_context(
    user_inputs: dict | None = None,
    step_executions: list[StepExecution] | None = None,
    **kwargs,
) -> ExecutorContext:
    """ExecutorContext for running an executor outside the engine.

    Args:
        user_inputs: Execution inputs
        step_executions: Earlier steps of the run
        **kwargs: Other ExecutorContext fields (company_standards, prompt_override)
    """
    current = StepExecution(
        id=99,
        execution_id=1,
        step_id=99,
        step_order=len(step_executions or []) + 1,
        status=StepExecutionStatus.RUNNING.value,
    )
    return ExecutorContext(
        user_id=1,
        execution_id=1,
        step_execution=current,
        user_inputs=user_inputs or {},
        step_executions=step_executions or [],
        **kwargs,
    )


async def seed_recipe(session: AsyncSession, *steps: RecipeStep, **recipe_kwargs) -> Recipe:
    """Persist a recipe and its steps, numbering the steps in the given order."""
    recipe = RecipeFactory.build(**recipe_kwargs)
    session.add(recipe)
    await session.flush()
    for order, step in enumerate(steps, 1):
        step.recipe_id = recipe.id
        step.step_order = order
        session.add(step)
    await session.commit()
    return recipe
