"""Repositories for WorkflowExecution and StepExecution entities."""

from sqlmodel import select, update

from src.novohaven.models import ExecutionStatus, StepExecution, WorkflowExecution
from src.novohaven.repositories.base import BaseRepository


class WorkflowExecutionRepository(BaseRepository[WorkflowExecution]):
    """Repository for WorkflowExecution entity."""

    model = WorkflowExecution

    async def list_by_user(
        self, user_id: int, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[WorkflowExecution], str | None, bool]:
        """List a user's executions, newest first, with cursor-based pagination."""
        query = select(WorkflowExecution).where(WorkflowExecution.user_id == user_id)
        return await self.paginate(query, cursor, limit)

    async def mark_running(self, execution_id: int, step_order: int) -> bool:
        """Move an execution onto a step unless it was cancelled meanwhile.

        Returns False when the stored status is already cancelled.
        """
        cancelled = ExecutionStatus.CANCELLED.value
        result = await self.session.execute(
            update(WorkflowExecution)
            .where(WorkflowExecution.id == execution_id)  # type: ignore[arg-type]
            .where(WorkflowExecution.status != cancelled)  # type: ignore[arg-type]
            .values(status=ExecutionStatus.RUNNING.value, current_step=step_order)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]


class StepExecutionRepository(BaseRepository[StepExecution]):
    """Repository for StepExecution entity."""

    model = StepExecution

    async def list_by_execution(self, execution_id: int) -> list[StepExecution]:
        """List an execution's step executions ordered by step_order."""
        result = await self.session.execute(
            select(StepExecution)
            .where(StepExecution.execution_id == execution_id)
            .order_by(StepExecution.step_order, StepExecution.id)
        )
        return list(result.scalars().all())
