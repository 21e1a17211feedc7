"""HTTP API tests over the full app with a test database."""

import pytest

from tests.factories import RecipeStepFactory
from tests.helpers import seed_recipe

pytestmark = pytest.mark.integration

USER = {"X-User-Id": "7"}


@pytest.fixture
async def recipe(session_factory):
    async with session_factory() as session:
        return await seed_recipe(
            session,
            RecipeStepFactory.build(step_name="Summarize", prompt_template="Summarize {{topic}}"),
            RecipeStepFactory.build(step_name="Expand", prompt_template="{{step_1_output}}"),
        )


class TestExecutionsApi:
    async def test_start_approve_and_status(self, client, recipe):
        response = await client.post(
            "/api/v1/executions",
            json={"recipe_id": recipe.id, "inputs": {"topic": "tea"}},
            headers=USER,
        )
        assert response.status_code == 201
        started = response.json()
        assert started["status"] == "paused"
        first_step = started["step_results"][0]
        assert first_step["output"] == "Mock response to: Summarize tea"

        execution_id = started["execution_id"]
        response = await client.post(
            f"/api/v1/executions/{execution_id}/steps/{first_step['step_execution_id']}/approve",
            headers=USER,
        )
        assert response.status_code == 200
        assert response.json()["current_step"] == 2

        response = await client.get(f"/api/v1/executions/{execution_id}")
        assert response.status_code == 200
        statuses = [s["status"] for s in response.json()["step_results"]]
        assert statuses == ["completed", "awaiting_review"]

        response = await client.get("/api/v1/executions", headers=USER)
        listing = response.json()
        assert [item["id"] for item in listing["items"]] == [execution_id]
        assert listing["items"][0]["user_id"] == 7
        assert listing["has_more"] is False

    async def test_unknown_recipe(self, client):
        response = await client.post("/api/v1/executions", json={"recipe_id": 999})
        assert response.status_code == 404
        assert response.json()["detail"] == "Recipe not found"

    async def test_missing_inputs(self, client, recipe):
        response = await client.post("/api/v1/executions", json={"recipe_id": recipe.id})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required inputs: topic"

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("get", "/api/v1/executions/999"),
            ("post", "/api/v1/executions/999/resume"),
            ("post", "/api/v1/executions/999/cancel"),
            ("post", "/api/v1/executions/999/steps/1/approve"),
        ],
    )
    async def test_unknown_execution(self, client, method, path):
        response = await client.request(method.upper(), path)
        assert response.status_code == 404
        assert response.json()["detail"] == "Execution not found"

    async def test_cancel_twice(self, client, recipe):
        started = (
            await client.post(
                "/api/v1/executions", json={"recipe_id": recipe.id, "inputs": {"topic": "x"}}
            )
        ).json()
        path = f"/api/v1/executions/{started['execution_id']}/cancel"

        first = await client.post(path)
        second = await client.post(path)

        assert first.status_code == 200
        assert first.json()["status"] == "cancelled"
        assert second.status_code == 400
        assert second.json()["detail"] == "Cannot cancel execution in cancelled state"

    async def test_retry_with_modified_prompt(self, client, recipe):
        started = (
            await client.post(
                "/api/v1/executions", json={"recipe_id": recipe.id, "inputs": {"topic": "x"}}
            )
        ).json()
        step_id = started["step_results"][0]["step_execution_id"]

        response = await client.post(
            f"/api/v1/executions/{started['execution_id']}/steps/{step_id}/retry",
            json={"modified_prompt": "Edited"},
        )

        assert response.status_code == 200
        assert response.json()["step_results"][0]["output"] == "Mock response to: Edited"


class TestExecutorsApi:
    async def test_list(self, client):
        response = await client.get("/api/v1/executors")
        assert response.status_code == 200
        types = {executor["type"] for executor in response.json()}
        assert types == {"ai", "scraping", "script", "http", "transform"}

    async def test_validate(self, client):
        response = await client.post(
            "/api/v1/executors/validate",
            json={"step_type": "transform", "executor_config": {"transform_type": "bogus"}},
        )
        body = response.json()
        assert body["executor_type"] == "transform"
        assert body["valid"] is False
        assert body["errors"]

    async def test_validate_unknown_type_uses_ai(self, client):
        response = await client.post(
            "/api/v1/executors/validate",
            json={"step_type": "unknown_x", "ai_model": "mock", "prompt_template": "Hi"},
        )
        assert response.json()["executor_type"] == "ai"


class TestAssistantApi:
    async def test_generate_without_messages(self, client):
        response = await client.post("/api/v1/assistant/generate", json={"messages": []})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Please describe the workflow you want to create."
        assert len(body["suggestions"]) == 3

    async def test_generate_with_mock_model(self, client):
        response = await client.post(
            "/api/v1/assistant/generate",
            json={"messages": [{"role": "user", "content": "Summarize reviews"}]},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"].startswith("Mock response to: Summarize reviews")
        assert body["workflow"] is None

    async def test_save(self, client):
        workflow = {
            "name": "Saved",
            "steps": [{"step_name": "Only", "ai_model": "mock", "prompt_template": "Hi"}],
            "requiredInputs": [],
        }
        response = await client.post(
            "/api/v1/assistant/save", json={"workflow": workflow}, headers=USER
        )
        assert response.status_code == 201
        assert response.json()["recipe_id"] > 0


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["database"] == "healthy"
    assert body["executors"] == 5
    assert body["in_flight_steps"] == 0
