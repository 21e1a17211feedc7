"""Workflow execution and step execution models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeAlias

from sqlalchemy import CheckConstraint, Column, Index
from sqlmodel import Field, SQLModel

from src.novohaven.models.base import JSONType, utc_now
from src.novohaven.models.enums import ExecutionStatus, StepExecutionStatus


@dataclass(frozen=True)
class PersistedStepRef:
    """Reference to a step stored in ``recipe_steps``."""

    id: int


@dataclass(frozen=True)
class AdhocStepRef:
    """Reference to an ad-hoc step stored on the execution (0-based index)."""

    index: int


StepRef: TypeAlias = PersistedStepRef | AdhocStepRef


class WorkflowExecution(SQLModel, table=True):
    """One run of a recipe against concrete inputs.

    ``input_data`` holds only user-supplied values. Ad-hoc step definitions
    used instead of the recipe's persisted steps live in ``step_overrides``.
    """

    __tablename__ = "workflow_executions"
    __table_args__ = (Index("ix_workflow_executions_user_created", "user_id", "created_at"),)

    id: int | None = Field(default=None, primary_key=True)
    recipe_id: int = Field(foreign_key="recipes.id", index=True)
    user_id: int = Field(index=True)
    status: str = Field(default=ExecutionStatus.PENDING.value, max_length=20)
    current_step: int = Field(default=0)
    input_data: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSONType, nullable=False)
    )
    step_overrides: list[dict[str, Any]] | None = Field(
        default=None, sa_column=Column(JSONType, nullable=True)
    )
    created_at: datetime = Field(default_factory=utc_now)
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)


class StepExecution(SQLModel, table=True):
    """Outcome of one step within one workflow execution.

    Exactly one of ``step_id`` (persisted step) and ``adhoc_index``
    (ad-hoc step) is set.
    """

    __tablename__ = "step_executions"
    __table_args__ = (
        Index("ix_step_executions_execution_order", "execution_id", "step_order"),
        CheckConstraint(
            "(step_id IS NULL) <> (adhoc_index IS NULL)",
            name="ck_step_executions_single_ref",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    execution_id: int = Field(foreign_key="workflow_executions.id", index=True)
    step_id: int | None = Field(default=None, foreign_key="recipe_steps.id")
    adhoc_index: int | None = Field(default=None)
    step_order: int
    status: str = Field(default=StepExecutionStatus.PENDING.value, max_length=20)
    output_data: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSONType, nullable=True)
    )
    ai_model_used: str | None = Field(default=None, max_length=100)
    prompt_used: str | None = Field(default=None)
    approved: bool = Field(default=False)
    error_message: str | None = Field(default=None, max_length=2000)
    executed_at: datetime | None = Field(default=None)

    @property
    def step_ref(self) -> StepRef:
        if self.step_id is not None:
            return PersistedStepRef(self.step_id)
        if self.adhoc_index is None:
            raise ValueError(f"Step execution {self.id} has no step reference")
        return AdhocStepRef(self.adhoc_index)

    @property
    def content(self) -> Any:
        """The stored ``content`` of the output payload, or None."""
        if not self.output_data:
            return None
        return self.output_data.get("content")
