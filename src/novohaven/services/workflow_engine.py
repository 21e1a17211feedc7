"""Workflow execution engine.

Drives a WorkflowExecution through its steps one at a time. After every
step the execution pauses until a reviewer approves, rejects or retries
the step; approval advances to the next pending step.

Failure policy:
- an executor failure (returned or raised) fails the step and pauses the
  execution so the reviewer can retry it;
- unresolved template variables and missing step definitions fail the
  step and the execution;
- cancelling interrupts the in-flight step, which is recorded as failed.

Every public operation returns an ExecutionResult; domain errors are
reported through ``error`` instead of being raised.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.novohaven.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnresolvedVariableError,
    ValidationError,
)
from src.novohaven.core.logging import (
    bind_execution_context,
    clear_execution_context,
    get_logger,
)
from src.novohaven.executors.base import ExecutorContext, ExecutorResult
from src.novohaven.executors.registry import ExecutorRegistry
from src.novohaven.models import (
    AdhocStepRef,
    ExecutionStatus,
    PersistedStepRef,
    RecipeStep,
    StepExecution,
    StepExecutionStatus,
    WorkflowExecution,
)
from src.novohaven.models.base import utc_now
from src.novohaven.models.enums import TERMINAL_EXECUTION_STATUSES
from src.novohaven.repositories import (
    CompanyStandardRepository,
    RecipeRepository,
    RecipeStepRepository,
    StepExecutionRepository,
    WorkflowExecutionRepository,
)
from src.novohaven.schemas.execution import ExecutionResult, StepExecutionResult
from src.novohaven.schemas.recipe import StepDefinition
from src.novohaven.services.execution_coordinator import ExecutionCoordinator, StepCancelledError
from src.novohaven.services.prompt_compiler import find_missing_inputs, required_user_inputs

logger = get_logger(__name__)

STEP_DEFINITION_NOT_FOUND = "Step definition not found"
EXECUTION_CANCELLED = "Execution cancelled"

CANCELLABLE_STATUSES = frozenset(
    {ExecutionStatus.PENDING.value, ExecutionStatus.RUNNING.value, ExecutionStatus.PAUSED.value}
)
REVIEWABLE_STEP_STATUSES = frozenset(
    {StepExecutionStatus.FAILED.value, StepExecutionStatus.AWAITING_REVIEW.value}
)


def _error_result(
    error: str, execution: WorkflowExecution | None = None, execution_id: int = 0
) -> ExecutionResult:
    if execution is None:
        return ExecutionResult(
            success=False,
            execution_id=execution_id,
            status=ExecutionStatus.FAILED.value,
            error=error,
        )
    return ExecutionResult(
        success=False,
        execution_id=execution.id or execution_id,
        status=execution.status,
        current_step=execution.current_step,
        error=error,
    )


class WorkflowEngine:
    """Workflow execution state machine - business logic only."""

    def __init__(
        self,
        recipe_repo: RecipeRepository,
        step_repo: RecipeStepRepository,
        execution_repo: WorkflowExecutionRepository,
        step_execution_repo: StepExecutionRepository,
        standard_repo: CompanyStandardRepository,
        session: AsyncSession,
        registry: ExecutorRegistry,
        coordinator: ExecutionCoordinator,
    ):
        self.recipe_repo = recipe_repo
        self.step_repo = step_repo
        self.execution_repo = execution_repo
        self.step_execution_repo = step_execution_repo
        self.standard_repo = standard_repo
        self.session = session
        self.registry = registry
        self.coordinator = coordinator

    # --- Operations ---

    async def start_execution(
        self,
        recipe_id: int,
        user_id: int,
        inputs: dict[str, Any],
        custom_steps: list[StepDefinition] | None = None,
    ) -> ExecutionResult:
        """Create an execution of a recipe and run its first step.

        Args:
            recipe_id: Recipe to run
            user_id: Acting user; their company standards are used for compilation
            inputs: User-supplied variable values
            custom_steps: Ad-hoc steps to run instead of the recipe's own steps

        Returns:
            ExecutionResult; ``execution_id`` is 0 when nothing was persisted
        """
        recipe = await self.recipe_repo.get_by_id(recipe_id)
        if recipe is None:
            return _error_result(f"Recipe {recipe_id} not found")

        if custom_steps:
            steps = [definition.to_step(order) for order, definition in enumerate(custom_steps, 1)]
        else:
            steps = await self.step_repo.list_by_recipe(recipe_id)
        if not steps:
            return _error_result("Recipe has no steps")

        missing = find_missing_inputs(required_user_inputs(steps), inputs)
        if missing:
            logger.info("Execution refused, missing inputs", recipe_id=recipe_id, missing=missing)
            return _error_result(f"Missing required inputs: {', '.join(missing)}")

        execution = WorkflowExecution(
            recipe_id=recipe_id,
            user_id=user_id,
            status=ExecutionStatus.PENDING.value,
            current_step=0,
            input_data=dict(inputs),
            step_overrides=(
                [definition.model_dump(by_alias=True) for definition in custom_steps]
                if custom_steps
                else None
            ),
            started_at=utc_now(),
        )
        self.execution_repo.add(execution)
        await self.execution_repo.flush()

        for index, step in enumerate(steps):
            self.step_execution_repo.add(
                StepExecution(
                    execution_id=execution.id,
                    step_id=None if custom_steps else step.id,
                    adhoc_index=index if custom_steps else None,
                    step_order=step.step_order,
                    status=StepExecutionStatus.PENDING.value,
                )
            )
        await self.session.commit()
        logger.info(
            "Execution started",
            execution_id=execution.id,
            recipe_id=recipe_id,
            steps=len(steps),
            adhoc=bool(custom_steps),
        )

        async with self.coordinator.hold(execution.id):
            return await self._advance(execution)

    async def approve_step(
        self, execution_id: int, step_execution_id: int, user_id: int
    ) -> ExecutionResult:
        """Approve a step awaiting review and run the next one."""
        async with self.coordinator.hold(execution_id):
            execution = await self.execution_repo.get_by_id(execution_id)
            try:
                execution, step_execution = await self._owned_step(
                    execution,
                    step_execution_id,
                    not_found="Execution or step not found",
                    mismatch="Step does not belong to this execution",
                )
                self._ensure_active(execution)
                if step_execution.status != StepExecutionStatus.AWAITING_REVIEW.value:
                    raise InvalidStateError(
                        f"Step is not awaiting review (status: {step_execution.status})"
                    )
            except ValidationError as e:
                return _error_result(e.message, execution, execution_id)

            step_execution.approved = True
            step_execution.status = StepExecutionStatus.COMPLETED.value
            await self.session.commit()
            logger.info(
                "Step approved",
                execution_id=execution_id,
                step_order=step_execution.step_order,
                user_id=user_id,
            )
            return await self._advance(execution)

    async def reject_step(self, execution_id: int, step_execution_id: int) -> ExecutionResult:
        """Send a step back to pending and pause the execution before it."""
        async with self.coordinator.hold(execution_id):
            execution = await self.execution_repo.get_by_id(execution_id)
            try:
                execution, step_execution = await self._owned_step(
                    execution,
                    step_execution_id,
                    not_found="Step not found or does not belong to this execution",
                )
                self._ensure_active(execution)
                if step_execution.status not in REVIEWABLE_STEP_STATUSES:
                    raise InvalidStateError(
                        f"Step cannot be rejected (status: {step_execution.status})"
                    )
            except ValidationError as e:
                return _error_result(e.message, execution, execution_id)

            step_execution.status = StepExecutionStatus.PENDING.value
            step_execution.approved = False
            step_execution.error_message = None
            # Never move the cursor past a step that has not run yet
            execution.current_step = max(
                min(execution.current_step, step_execution.step_order) - 1, 0
            )
            execution.status = ExecutionStatus.PAUSED.value
            await self.session.commit()
            logger.info(
                "Step rejected", execution_id=execution_id, step_order=step_execution.step_order
            )
            return await self._result(execution)

    async def retry_step(
        self,
        execution_id: int,
        step_execution_id: int,
        user_id: int,
        modified_prompt: str | None = None,
        modified_inputs: dict[str, Any] | None = None,
    ) -> ExecutionResult:
        """Re-run one step with the same executor type.

        ``modified_inputs`` are merged into the execution's inputs and
        persisted. ``modified_prompt`` replaces the compiled prompt. The
        execution stays paused and does not advance.
        """
        async with self.coordinator.hold(execution_id):
            execution = await self.execution_repo.get_by_id(execution_id)
            try:
                execution, step_execution = await self._owned_step(
                    execution,
                    step_execution_id,
                    not_found="Execution or step not found",
                    mismatch="Step does not belong to this execution",
                )
                self._ensure_active(execution)
                if step_execution.status not in REVIEWABLE_STEP_STATUSES:
                    raise InvalidStateError(
                        f"Step cannot be retried (status: {step_execution.status})"
                    )
                step = await self._step_definition(execution, step_execution)
                if step is None:
                    raise NotFoundError(STEP_DEFINITION_NOT_FOUND)
            except ValidationError as e:
                return _error_result(e.message, execution, execution_id)

            if modified_inputs:
                execution.input_data = {**(execution.input_data or {}), **modified_inputs}
            step_execution.status = StepExecutionStatus.RUNNING.value
            step_execution.approved = False
            step_execution.error_message = None
            execution.status = ExecutionStatus.PAUSED.value
            await self.session.commit()
            logger.info(
                "Retrying step",
                execution_id=execution_id,
                step_order=step_execution.step_order,
                user_id=user_id,
                prompt_modified=modified_prompt is not None,
                inputs_modified=bool(modified_inputs),
            )

            context = await self._context(execution, step_execution, modified_prompt)
            try:
                result = await self._dispatch(execution, step, context)
            except UnresolvedVariableError as e:
                result = ExecutorResult.failure(e.message, prompt_used=e.prompt)
            except StepCancelledError:
                return await self._record_cancelled(execution, step_execution)
            return await self._record_result(execution, step_execution, result)

    async def resume_execution(self, execution_id: int, user_id: int) -> ExecutionResult:
        """Run the next pending step of a paused execution (after a reject)."""
        async with self.coordinator.hold(execution_id):
            execution = await self.execution_repo.get_by_id(execution_id)
            try:
                if execution is None:
                    raise NotFoundError("Execution not found")
                if execution.status not in (
                    ExecutionStatus.PAUSED.value,
                    ExecutionStatus.PENDING.value,
                ):
                    raise InvalidStateError(
                        f"Execution cannot be resumed (status: {execution.status})"
                    )
                for se in await self.step_execution_repo.list_by_execution(execution_id):
                    if se.status in (
                        StepExecutionStatus.AWAITING_REVIEW.value,
                        StepExecutionStatus.FAILED.value,
                    ):
                        raise InvalidStateError(
                            f"Step {se.step_order} must be approved or retried first"
                        )
            except ValidationError as e:
                return _error_result(e.message, execution, execution_id)

            logger.info("Resuming execution", execution_id=execution_id, user_id=user_id)
            return await self._advance(execution)

    async def cancel_execution(self, execution_id: int) -> ExecutionResult:
        """Cancel an unfinished execution and interrupt its in-flight step, if any.

        Does not wait for the execution lock: the lock is held for the whole
        of a running step.
        """
        execution = await self.execution_repo.get_by_id(execution_id)
        if execution is None:
            return _error_result("Execution not found", execution_id=execution_id)
        if execution.status not in CANCELLABLE_STATUSES:
            return _error_result(f"Cannot cancel execution in {execution.status} state", execution)

        execution.status = ExecutionStatus.CANCELLED.value
        execution.completed_at = utc_now()
        await self.session.commit()
        interrupted = self.coordinator.cancel(execution_id)
        logger.info("Execution cancelled", execution_id=execution_id, interrupted=interrupted)
        return await self._result(execution)

    async def get_execution_status(self, execution_id: int) -> ExecutionResult:
        """Project an execution and its steps without changing anything."""
        execution = await self.execution_repo.get_by_id(execution_id)
        if execution is None:
            return _error_result("Execution not found", execution_id=execution_id)
        return await self._result(
            execution, success=execution.status != ExecutionStatus.FAILED.value
        )

    async def list_executions(
        self, user_id: int, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[WorkflowExecution], str | None, bool]:
        """List a user's executions, newest first."""
        return await self.execution_repo.list_by_user(user_id, cursor, limit)

    # --- Advance ---

    async def _advance(self, execution: WorkflowExecution) -> ExecutionResult:
        """Run the next pending step, or complete the execution. Caller holds the lock."""
        step_executions = await self.step_execution_repo.list_by_execution(execution.id)
        pending = [se for se in step_executions if se.status == StepExecutionStatus.PENDING.value]

        if not pending:
            execution.status = ExecutionStatus.COMPLETED.value
            execution.completed_at = utc_now()
            await self.session.commit()
            logger.info("Execution completed", execution_id=execution.id)
            return await self._result(execution, step_executions=step_executions)

        step_execution = next(
            (se for se in pending if se.step_order > execution.current_step), pending[0]
        )
        step = await self._step_definition(execution, step_execution)
        if step is None:
            step_execution.status = StepExecutionStatus.FAILED.value
            step_execution.error_message = STEP_DEFINITION_NOT_FOUND
            execution.status = ExecutionStatus.FAILED.value
            await self.session.commit()
            logger.error(
                "Step definition not found",
                execution_id=execution.id,
                step_order=step_execution.step_order,
            )
            return await self._result(execution, success=False, error=STEP_DEFINITION_NOT_FOUND)

        if not await self.execution_repo.mark_running(execution.id, step_execution.step_order):
            await self.session.commit()
            await self.session.refresh(execution)
            logger.info(
                "Execution cancelled before step started",
                execution_id=execution.id,
                step_order=step_execution.step_order,
            )
            return await self._result(execution, success=False, error=EXECUTION_CANCELLED)
        step_execution.status = StepExecutionStatus.RUNNING.value
        await self.session.commit()
        await self.session.refresh(execution, attribute_names=["status", "current_step"])

        context = await self._context(execution, step_execution)
        try:
            result = await self._dispatch(execution, step, context)
        except UnresolvedVariableError as e:
            step_execution.status = StepExecutionStatus.FAILED.value
            step_execution.error_message = e.message
            step_execution.prompt_used = e.prompt
            step_execution.executed_at = utc_now()
            execution.status = ExecutionStatus.FAILED.value
            await self.session.commit()
            logger.warning(
                "Step has unresolved variables",
                execution_id=execution.id,
                step_order=step_execution.step_order,
                variables=e.variables,
            )
            return await self._result(execution, success=False, error=e.message)
        except StepCancelledError:
            return await self._record_cancelled(execution, step_execution)

        return await self._record_result(execution, step_execution, result)

    async def _dispatch(
        self, execution: WorkflowExecution, step: RecipeStep, context: ExecutorContext
    ) -> ExecutorResult:
        """Run the step on its executor.

        Exceptions other than unresolved variables and cancellation become a
        failed result.
        """
        bind_execution_context(execution.id, step.step_order)
        try:
            executor = self.registry.resolve(step.step_type)
            logger.info("Dispatching step", executor_type=executor.type, step_name=step.step_name)
            return await self.coordinator.run_step(execution.id, executor.execute(step, context))
        except (UnresolvedVariableError, StepCancelledError):
            raise
        except Exception as e:
            logger.warning("Executor raised", error_type=type(e).__name__, error=str(e))
            return ExecutorResult.failure(str(e) or type(e).__name__)
        finally:
            clear_execution_context()

    async def _record_result(
        self,
        execution: WorkflowExecution,
        step_execution: StepExecution,
        result: ExecutorResult,
    ) -> ExecutionResult:
        """Store an executor result on the step and pause the execution."""
        if await self._was_cancelled(execution):
            return await self._record_cancelled(execution, step_execution)

        step_execution.executed_at = utc_now()
        step_execution.prompt_used = result.prompt_used
        if result.success:
            step_execution.status = StepExecutionStatus.AWAITING_REVIEW.value
            step_execution.output_data = {"content": result.content, **result.metadata}
            step_execution.ai_model_used = result.model_used
            step_execution.error_message = None
        else:
            step_execution.status = StepExecutionStatus.FAILED.value
            step_execution.error_message = (result.error or "Step failed")[:2000]
        execution.status = ExecutionStatus.PAUSED.value
        await self.session.commit()

        logger.info(
            "Step finished",
            execution_id=execution.id,
            step_order=step_execution.step_order,
            step_status=step_execution.status,
            model=result.model_used,
        )
        return await self._result(execution, success=result.success, error=result.error)

    async def _record_cancelled(
        self, execution: WorkflowExecution, step_execution: StepExecution
    ) -> ExecutionResult:
        step_execution.status = StepExecutionStatus.FAILED.value
        step_execution.error_message = EXECUTION_CANCELLED
        step_execution.executed_at = utc_now()
        await self.session.commit()
        await self.session.refresh(execution)
        logger.info(
            "In-flight step cancelled",
            execution_id=execution.id,
            step_order=step_execution.step_order,
        )
        return await self._result(execution, success=False, error=EXECUTION_CANCELLED)

    async def _was_cancelled(self, execution: WorkflowExecution) -> bool:
        """Re-read the status, which another request may have set to cancelled."""
        await self.session.refresh(execution, attribute_names=["status"])
        return execution.status == ExecutionStatus.CANCELLED.value

    # --- Lookups ---

    async def _owned_step(
        self,
        execution: WorkflowExecution | None,
        step_execution_id: int,
        not_found: str,
        mismatch: str | None = None,
    ) -> tuple[WorkflowExecution, StepExecution]:
        """The execution and its step execution.

        Raises:
            NotFoundError: If either is missing, or (without ``mismatch``)
                the step belongs to another execution
            ValidationError: If the step belongs to another execution
        """
        step_execution = await self.step_execution_repo.get_by_id(step_execution_id)
        if execution is None or step_execution is None:
            raise NotFoundError(not_found)
        if step_execution.execution_id != execution.id:
            if mismatch is None:
                raise NotFoundError(not_found)
            raise ValidationError(mismatch)
        return execution, step_execution

    @staticmethod
    def _ensure_active(execution: WorkflowExecution) -> None:
        if execution.status in TERMINAL_EXECUTION_STATUSES:
            raise InvalidStateError(f"Execution is {execution.status}")

    async def _step_definition(
        self, execution: WorkflowExecution, step_execution: StepExecution
    ) -> RecipeStep | None:
        """Definition by step reference, falling back to the step order."""
        step: RecipeStep | None = None
        match step_execution.step_ref:
            case AdhocStepRef(index=index):
                step = self._adhoc_step(execution, index)
            case PersistedStepRef(id=step_id):
                step = await self.step_repo.get_by_id(step_id)
        if step is not None:
            return step

        if execution.step_overrides:
            return self._adhoc_step(execution, step_execution.step_order - 1)
        return await self.step_repo.get_by_recipe_and_order(
            execution.recipe_id, step_execution.step_order
        )

    @staticmethod
    def _adhoc_step(execution: WorkflowExecution, index: int) -> RecipeStep | None:
        overrides = execution.step_overrides or []
        if not 0 <= index < len(overrides):
            return None
        return StepDefinition.model_validate(overrides[index]).to_step(index + 1)

    async def _step_names(self, execution: WorkflowExecution) -> dict[tuple[str, int], str]:
        if execution.step_overrides:
            return {
                ("adhoc", index): StepDefinition.model_validate(override).step_name
                for index, override in enumerate(execution.step_overrides)
            }
        steps = await self.step_repo.list_by_recipe(execution.recipe_id)
        return {("step", step.id): step.step_name for step in steps if step.id is not None}

    async def _context(
        self,
        execution: WorkflowExecution,
        step_execution: StepExecution,
        prompt_override: str | None = None,
    ) -> ExecutorContext:
        return ExecutorContext(
            user_id=execution.user_id,
            execution_id=execution.id,
            step_execution=step_execution,
            user_inputs=dict(execution.input_data or {}),
            step_executions=await self.step_execution_repo.list_by_execution(execution.id),
            company_standards=await self.standard_repo.list_by_user(execution.user_id),
            prompt_override=prompt_override,
        )

    async def _result(
        self,
        execution: WorkflowExecution,
        success: bool = True,
        error: str | None = None,
        step_executions: list[StepExecution] | None = None,
    ) -> ExecutionResult:
        if step_executions is None:
            step_executions = await self.step_execution_repo.list_by_execution(execution.id)
        names = await self._step_names(execution)

        step_results = []
        for se in step_executions:
            key = ("adhoc", se.adhoc_index) if se.adhoc_index is not None else ("step", se.step_id)
            step_results.append(
                StepExecutionResult(
                    step_execution_id=se.id or 0,
                    step_id=se.step_id,
                    adhoc_index=se.adhoc_index,
                    step_order=se.step_order,
                    step_name=names.get(key, "Unknown"),
                    status=se.status,
                    output=se.content,
                    error=se.error_message,
                )
            )
        return ExecutionResult(
            success=success,
            execution_id=execution.id,
            status=execution.status,
            current_step=execution.current_step,
            step_results=step_results,
            error=error,
        )
