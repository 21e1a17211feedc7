"""Workflow engine tests against a real database.

Steps run on the mock AI model unless a test registers its own executor.
"""

import asyncio

import pytest
from sqlalchemy import select

from src.novohaven.executors.base import ExecutorResult, StepExecutor, ValidationResult
from src.novohaven.models import ExecutionStatus, StepExecution, WorkflowExecution
from src.novohaven.schemas.recipe import StepDefinition
from tests.factories import CompanyStandardFactory, RecipeStepFactory
from tests.helpers import seed_recipe

pytestmark = pytest.mark.integration


class BlockingExecutor(StepExecutor):
    """Waits until released, recording the executions it ran for."""

    type = "blocking"
    display_name = "Blocking"
    icon = "⏳"
    description = "Waits until released"

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.execution_ids: list[int] = []

    def validate_config(self, step):
        return ValidationResult()

    async def execute(self, step, context):
        self.execution_ids.append(context.execution_id)
        self.started.set()
        await self.release.wait()
        return ExecutorResult(success=True, content="late")

    def get_config_schema(self):
        return []


class FlakyExecutor(StepExecutor):
    """Raises on the first call, succeeds afterwards."""

    type = "flaky"
    display_name = "Flaky"
    icon = "🎲"
    description = "Fails once"

    def __init__(self):
        self.calls = 0

    def validate_config(self, step):
        return ValidationResult()

    async def execute(self, step, context):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("upstream unavailable")
        return ExecutorResult(success=True, content="recovered")

    def get_config_schema(self):
        return []


def _ai_step(prompt: str, **kwargs):
    return RecipeStepFactory.build(prompt_template=prompt, **kwargs)


async def _two_step_recipe(session):
    return await seed_recipe(
        session,
        _ai_step("Summarize {{topic}}", step_name="Summarize"),
        _ai_step("Expand: {{step_1_output}}", step_name="Expand"),
    )


class TestStartExecution:
    async def test_first_step_runs_and_pauses(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)

        result = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})

        assert result.success
        assert result.status == ExecutionStatus.PAUSED.value
        assert result.current_step == 1
        first, second = result.step_results
        assert first.step_name == "Summarize"
        assert first.status == "awaiting_review"
        assert first.output == "Mock response to: Summarize solar"
        assert second.status == "pending"

    async def test_one_step_execution_per_recipe_step(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        result = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})

        rows = (
            await db_session.execute(
                select(StepExecution).where(StepExecution.execution_id == result.execution_id)
            )
        ).scalars().all()
        assert sorted(row.step_order for row in rows) == [1, 2]
        assert all(row.step_id is not None and row.adhoc_index is None for row in rows)

    @pytest.mark.parametrize("inputs", [{}, {"topic": "   "}, {"topic": None}])
    async def test_missing_inputs_persist_nothing(self, workflow_engine, db_session, inputs):
        recipe = await _two_step_recipe(db_session)

        result = await workflow_engine.start_execution(recipe.id, 1, inputs)

        assert not result.success
        assert result.execution_id == 0
        assert result.error == "Missing required inputs: topic"
        executions = (await db_session.execute(select(WorkflowExecution))).scalars().all()
        assert executions == []

    async def test_unknown_recipe(self, workflow_engine):
        result = await workflow_engine.start_execution(999, 1, {})
        assert result.execution_id == 0
        assert result.error == "Recipe 999 not found"

    async def test_recipe_without_steps(self, workflow_engine, db_session):
        recipe = await seed_recipe(db_session)
        result = await workflow_engine.start_execution(recipe.id, 1, {})
        assert result.error == "Recipe has no steps"

    async def test_unknown_step_type_runs_on_ai(self, workflow_engine, db_session):
        recipe = await seed_recipe(db_session, _ai_step("Hello", step_type="unknown_x"))

        result = await workflow_engine.start_execution(recipe.id, 1, {})

        assert result.success
        assert result.step_results[0].output == "Mock response to: Hello"

    async def test_company_standards_are_injected(self, workflow_engine, db_session):
        db_session.add(CompanyStandardFactory.build(user_id=1))
        recipe = await seed_recipe(db_session, _ai_step("Write in {{brand_voice}}"))

        result = await workflow_engine.start_execution(recipe.id, 1, {})

        assert "Tone: Friendly" in result.step_results[0].output

    async def test_custom_steps_replace_recipe_steps(self, workflow_engine, db_session):
        recipe = await seed_recipe(db_session, _ai_step("Ignored"))
        custom = [
            StepDefinition(step_name="Greet", ai_model="mock", prompt_template="Hi {{name}}"),
            StepDefinition(step_name="Echo", ai_model="mock", prompt_template="{{step_1_output}}"),
        ]

        missing = await workflow_engine.start_execution(recipe.id, 1, {}, custom_steps=custom)
        assert missing.error == "Missing required inputs: name"

        result = await workflow_engine.start_execution(
            recipe.id, 1, {"name": "Ada"}, custom_steps=custom
        )
        assert [s.step_name for s in result.step_results] == ["Greet", "Echo"]
        assert [s.adhoc_index for s in result.step_results] == [0, 1]
        assert result.step_results[0].step_id is None
        assert result.step_results[0].output == "Mock response to: Hi Ada"

        approved = await workflow_engine.approve_step(
            result.execution_id, result.step_results[0].step_execution_id, 1
        )
        assert approved.step_results[1].output == "Mock response to: Mock response to: Hi Ada"


class TestReview:
    async def test_approve_through_to_completion(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})
        first, second = started.step_results

        after_first = await workflow_engine.approve_step(
            started.execution_id, first.step_execution_id, 1
        )
        assert after_first.status == ExecutionStatus.PAUSED.value
        assert after_first.current_step == 2
        assert after_first.step_results[0].status == "completed"
        assert after_first.step_results[1].output == (
            "Mock response to: Expand: Mock response to: Summarize solar"
        )

        done = await workflow_engine.approve_step(
            started.execution_id, second.step_execution_id, 1
        )
        assert done.success
        assert done.status == ExecutionStatus.COMPLETED.value
        assert [s.status for s in done.step_results] == ["completed", "completed"]

    async def test_approve_requires_awaiting_review(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})

        result = await workflow_engine.approve_step(
            started.execution_id, started.step_results[1].step_execution_id, 1
        )

        assert not result.success
        assert result.error == "Step is not awaiting review (status: pending)"

    async def test_step_of_another_execution(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        first = await workflow_engine.start_execution(recipe.id, 1, {"topic": "a"})
        other = await workflow_engine.start_execution(recipe.id, 1, {"topic": "b"})
        foreign_step = other.step_results[0].step_execution_id

        approved = await workflow_engine.approve_step(first.execution_id, foreign_step, 1)
        rejected = await workflow_engine.reject_step(first.execution_id, foreign_step)

        assert approved.error == "Step does not belong to this execution"
        assert rejected.error == "Step not found or does not belong to this execution"

    async def test_reject_then_resume_reruns_step(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})
        execution_id = started.execution_id
        first_id, second_id = (s.step_execution_id for s in started.step_results)
        await workflow_engine.approve_step(execution_id, first_id, 1)

        rejected = await workflow_engine.reject_step(execution_id, second_id)
        assert rejected.status == ExecutionStatus.PAUSED.value
        assert rejected.current_step == 1
        assert rejected.step_results[1].status == "pending"

        resumed = await workflow_engine.resume_execution(execution_id, 1)
        assert resumed.success
        assert resumed.current_step == 2
        assert resumed.step_results[1].status == "awaiting_review"

    async def test_reject_future_pending_step_is_refused(self, workflow_engine, db_session):
        recipe = await seed_recipe(
            db_session, _ai_step("One"), _ai_step("Two"), _ai_step("Three")
        )
        started = await workflow_engine.start_execution(recipe.id, 1, {})
        execution_id = started.execution_id
        first_id, _, third_id = (s.step_execution_id for s in started.step_results)

        rejected = await workflow_engine.reject_step(execution_id, third_id)
        assert not rejected.success
        assert rejected.error == "Step cannot be rejected (status: pending)"
        assert rejected.current_step == 1

        approved = await workflow_engine.approve_step(execution_id, first_id, 1)
        assert approved.current_step == 2
        assert [s.status for s in approved.step_results] == [
            "completed",
            "awaiting_review",
            "pending",
        ]

    async def test_retry_future_pending_step_is_refused(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})

        result = await workflow_engine.retry_step(
            started.execution_id, started.step_results[1].step_execution_id, 1
        )

        assert not result.success
        assert result.error == "Step cannot be retried (status: pending)"
        assert result.current_step == 1
        assert result.step_results[1].status == "pending"
        assert result.step_results[1].output is None

    async def test_resume_refused_while_awaiting_review(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})

        result = await workflow_engine.resume_execution(started.execution_id, 1)

        assert not result.success
        assert result.error == "Step 1 must be approved or retried first"

    async def test_retry_with_modified_prompt(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})
        step_id = started.step_results[0].step_execution_id

        result = await workflow_engine.retry_step(
            started.execution_id, step_id, 1, modified_prompt="Just say {{hi}}"
        )

        assert result.success
        assert result.status == ExecutionStatus.PAUSED.value
        assert result.current_step == 1
        assert result.step_results[0].output == "Mock response to: Just say {{hi}}"

    async def test_retry_with_modified_inputs(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})

        result = await workflow_engine.retry_step(
            started.execution_id,
            started.step_results[0].step_execution_id,
            1,
            modified_inputs={"topic": "wind"},
        )

        assert result.step_results[0].output == "Mock response to: Summarize wind"
        execution = await db_session.get(WorkflowExecution, started.execution_id)
        assert execution.input_data == {"topic": "wind"}

    async def test_executor_failure_pauses_and_retry_recovers(
        self, workflow_engine, db_session, registry
    ):
        flaky = FlakyExecutor()
        registry.register(flaky)
        recipe = await seed_recipe(
            db_session, RecipeStepFactory.build(step_type="flaky", prompt_template=None)
        )

        started = await workflow_engine.start_execution(recipe.id, 1, {})
        assert not started.success
        assert started.status == ExecutionStatus.PAUSED.value
        assert started.error == "upstream unavailable"
        assert started.step_results[0].status == "failed"

        resumed = await workflow_engine.resume_execution(started.execution_id, 1)
        assert resumed.error == "Step 1 must be approved or retried first"

        retried = await workflow_engine.retry_step(
            started.execution_id, started.step_results[0].step_execution_id, 1
        )
        assert retried.success
        assert retried.step_results[0].status == "awaiting_review"
        assert retried.step_results[0].output == "recovered"
        assert flaky.calls == 2

    async def test_unresolved_step_reference_fails_execution(self, workflow_engine, db_session):
        recipe = await seed_recipe(db_session, _ai_step("Use {{step_3_output}}"))

        result = await workflow_engine.start_execution(recipe.id, 1, {})

        assert not result.success
        assert result.status == ExecutionStatus.FAILED.value
        assert "step_3_output" in result.error
        assert result.step_results[0].status == "failed"


class TestTerminalStates:
    async def _completed(self, workflow_engine, db_session):
        recipe = await seed_recipe(db_session, _ai_step("Hello"))
        started = await workflow_engine.start_execution(recipe.id, 1, {})
        step_id = started.step_results[0].step_execution_id
        await workflow_engine.approve_step(started.execution_id, step_id, 1)
        return started.execution_id, step_id

    async def test_actions_on_completed_execution_are_refused(self, workflow_engine, db_session):
        execution_id, step_id = await self._completed(workflow_engine, db_session)

        approve = await workflow_engine.approve_step(execution_id, step_id, 1)
        retry = await workflow_engine.retry_step(execution_id, step_id, 1)
        reject = await workflow_engine.reject_step(execution_id, step_id)
        resume = await workflow_engine.resume_execution(execution_id, 1)
        cancel = await workflow_engine.cancel_execution(execution_id)

        assert approve.error == retry.error == reject.error == "Execution is completed"
        assert resume.error == "Execution cannot be resumed (status: completed)"
        assert cancel.error == "Cannot cancel execution in completed state"
        status = await workflow_engine.get_execution_status(execution_id)
        assert status.status == ExecutionStatus.COMPLETED.value

    async def test_cancel_paused_execution(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})

        cancelled = await workflow_engine.cancel_execution(started.execution_id)
        resumed = await workflow_engine.resume_execution(started.execution_id, 1)

        assert cancelled.success
        assert cancelled.status == ExecutionStatus.CANCELLED.value
        assert resumed.error == "Execution cannot be resumed (status: cancelled)"

    async def test_cancel_interrupts_in_flight_step(self, registry, engine_for, session_factory):
        blocking = BlockingExecutor()
        registry.register(blocking)
        async with session_factory() as session:
            recipe = await seed_recipe(
                session, RecipeStepFactory.build(step_type="blocking", prompt_template=None)
            )

        async with session_factory() as runner_session, session_factory() as cancel_session:
            run = asyncio.create_task(engine_for(runner_session).start_execution(recipe.id, 1, {}))
            await asyncio.wait_for(blocking.started.wait(), timeout=5)
            execution_id = blocking.execution_ids[0]

            cancelled = await engine_for(cancel_session).cancel_execution(execution_id)
            result = await asyncio.wait_for(run, timeout=5)

        assert cancelled.status == ExecutionStatus.CANCELLED.value
        assert not result.success
        assert result.status == ExecutionStatus.CANCELLED.value
        assert result.error == "Execution cancelled"
        assert result.step_results[0].status == "failed"
        assert result.step_results[0].error == "Execution cancelled"


    async def test_cancel_before_step_starts_is_kept(
        self, registry, engine_for, session_factory, monkeypatch
    ):
        blocking = BlockingExecutor()
        registry.register(blocking)
        async with session_factory() as session:
            recipe = await seed_recipe(
                session, RecipeStepFactory.build(step_type="blocking", prompt_template=None)
            )

        async with session_factory() as runner_session, session_factory() as cancel_session:
            runner = engine_for(runner_session)
            lookup = runner._step_definition

            async def cancel_then_lookup(execution, step_execution):
                await engine_for(cancel_session).cancel_execution(execution.id)
                return await lookup(execution, step_execution)

            monkeypatch.setattr(runner, "_step_definition", cancel_then_lookup)
            result = await runner.start_execution(recipe.id, 1, {})

        assert blocking.execution_ids == []
        assert result.status == ExecutionStatus.CANCELLED.value
        assert result.error == "Execution cancelled"
        assert result.step_results[0].status == "pending"
        async with session_factory() as session:
            stored = await engine_for(session).get_execution_status(result.execution_id)
        assert stored.status == ExecutionStatus.CANCELLED.value


class TestLocks:
    async def test_released_after_completion(self, workflow_engine, db_session, coordinator):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})
        for step in started.step_results:
            await workflow_engine.approve_step(started.execution_id, step.step_execution_id, 1)

        status = await workflow_engine.get_execution_status(started.execution_id)
        assert status.status == ExecutionStatus.COMPLETED.value
        assert len(coordinator._locks) == 0

    async def test_released_after_failure_and_cancel(
        self, workflow_engine, db_session, coordinator
    ):
        failing = await seed_recipe(db_session, _ai_step("Use {{step_3_output}}"))
        failed = await workflow_engine.start_execution(failing.id, 1, {})
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})
        await workflow_engine.cancel_execution(started.execution_id)

        assert failed.status == ExecutionStatus.FAILED.value
        assert coordinator._locks == {}

    async def test_unknown_ids_leave_no_lock(self, workflow_engine, coordinator):
        await workflow_engine.approve_step(404, 404, 1)
        await workflow_engine.reject_step(405, 405)
        await workflow_engine.retry_step(406, 406, 1)
        await workflow_engine.resume_execution(407, 1)

        assert coordinator._locks == {}


class TestStatus:
    async def test_unknown_execution(self, workflow_engine):
        result = await workflow_engine.get_execution_status(404)
        assert not result.success
        assert result.execution_id == 404
        assert result.error == "Execution not found"

    async def test_projection_is_read_only(self, workflow_engine, db_session):
        recipe = await _two_step_recipe(db_session)
        started = await workflow_engine.start_execution(recipe.id, 1, {"topic": "solar"})

        first = await workflow_engine.get_execution_status(started.execution_id)
        second = await workflow_engine.get_execution_status(started.execution_id)

        assert first == second
        assert first.status == ExecutionStatus.PAUSED.value
        assert [s.step_name for s in first.step_results] == ["Summarize", "Expand"]
