"""Step executor contract.

Every step type (ai, scraping, script, http, transform) is a
StepExecutor. The engine looks the executor up in the registry, hands it
the step definition plus an ExecutorContext, and records whatever
ExecutorResult comes back. Executors never touch execution state.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from src.novohaven.models import (
    CompanyStandard,
    RecipeStep,
    StepExecution,
    StepExecutionStatus,
)
from src.novohaven.schemas.executor import ConfigField, ExecutorRead
from src.novohaven.services.prompt_compiler import CompileContext, stringify


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass
class ExecutorResult:
    """What an executor produced for one step."""

    success: bool
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    prompt_used: str | None = None
    model_used: str | None = None

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> "ExecutorResult":
        return cls(success=False, error=error, **kwargs)


@dataclass
class ExecutorContext:
    """Everything an executor may read while running a step.

    ``step_executions`` holds every step execution of the run (any
    status), ordered by step order. ``prompt_override`` is set on retry
    when the reviewer hand-edited the compiled prompt.
    """

    user_id: int
    execution_id: int
    step_execution: StepExecution
    user_inputs: Mapping[str, Any]
    step_executions: Sequence[StepExecution] = ()
    company_standards: Sequence[CompanyStandard] = ()
    prompt_override: str | None = None

    @property
    def completed_step_executions(self) -> list[StepExecution]:
        return [
            se for se in self.step_executions if se.status == StepExecutionStatus.COMPLETED.value
        ]

    def compile_context(self) -> CompileContext:
        return CompileContext(
            user_id=self.user_id,
            user_inputs=self.user_inputs,
            step_executions=self.step_executions,
            company_standards=self.company_standards,
        )

    def variables(self) -> dict[str, Any]:
        """User inputs plus ``step_<N>_output`` for every completed step with output."""
        variables = dict(self.user_inputs)
        for se in self.completed_step_executions:
            if se.output_data:
                content = se.output_data.get("content", se.output_data)
                variables[f"step_{se.step_order}_output"] = stringify(content)
        return variables


def merged_config(defaults: dict[str, Any], config: dict[str, Any] | None) -> dict[str, Any]:
    """Step config over executor defaults; null values keep the default."""
    merged = dict(defaults)
    for key, value in (config or {}).items():
        if value is not None:
            merged[key] = value
    return merged


class StepExecutor(ABC):
    """Base class for step executors.

    Subclasses set the four class attributes and implement the three
    methods. ``execute`` reports provider and tool failures through
    ``ExecutorResult.failure``; exceptions that escape are treated the
    same way by the engine.
    """

    type: ClassVar[str]
    display_name: ClassVar[str]
    icon: ClassVar[str]
    description: ClassVar[str]

    @abstractmethod
    def validate_config(self, step: RecipeStep) -> ValidationResult:
        """Check a step definition without running it."""

    @abstractmethod
    async def execute(self, step: RecipeStep, context: ExecutorContext) -> ExecutorResult:
        """Run the step."""

    @abstractmethod
    def get_config_schema(self) -> list[ConfigField]:
        """Describe the executor's configuration form."""

    def describe(self) -> ExecutorRead:
        return ExecutorRead(
            type=self.type,
            display_name=self.display_name,
            icon=self.icon,
            description=self.description,
            config_schema=self.get_config_schema(),
        )
