"""Saving assistant proposals as recipes, merging template-sourced steps."""

import pytest

from src.novohaven.repositories import RecipeRepository, RecipeStepRepository
from src.novohaven.schemas.assistant import GeneratedStep, GeneratedWorkflow, RequiredInput
from src.novohaven.services.workflow_assistant import WorkflowAssistant
from tests.factories import RecipeStepFactory
from tests.helpers import seed_recipe

pytestmark = pytest.mark.integration


@pytest.fixture
def assistant(ai_service, registry, db_session, settings):
    return WorkflowAssistant(
        ai_service,
        registry,
        RecipeRepository(db_session),
        RecipeStepRepository(db_session),
        db_session,
        settings,
    )


@pytest.fixture
async def template(db_session):
    return await seed_recipe(
        db_session,
        RecipeStepFactory.build(
            step_name="Analyze",
            ai_model="m1",
            prompt_template="Template prompt",
            generation_config={"temperature": 0.2},
            input_config={"variables": {"reviews": {"type": "textarea"}}},
        ),
        name="Review Analysis",
        is_template=True,
    )


async def test_list_templates_only_returns_templates(assistant, template, db_session):
    await seed_recipe(db_session, RecipeStepFactory.build(), name="Private")

    templates = await assistant.list_templates()

    assert [(t.id, t.name, t.step_types) for t in templates] == [
        (template.id, "Review Analysis", ["ai"])
    ]


async def test_save_merges_template_steps(assistant, template, db_session):
    workflow = GeneratedWorkflow(
        name="My Reviews",
        description="Scrape then analyze",
        steps=[
            GeneratedStep(
                step_type="scraping",
                step_name="Scrape",
                executor_config={"platform": "amazon"},
            ),
            GeneratedStep(
                step_name="Renamed",
                ai_model="gpt-4o",
                prompt_template="Analyze {{step_1_output}}",
                from_template_id=template.id,
                from_step_order=1,
                override_fields=["prompt_template", "made_up_field"],
            ),
            GeneratedStep(
                step_name="Summarize",
                ai_model="mock",
                prompt_template="Summarize {{notes}}",
                from_template_id=template.id,
                from_step_order=9,
            ),
        ],
        required_inputs=[
            RequiredInput(name="product_urls", type="url_list"),
            RequiredInput(name="notes", type="textarea", description="Reviewer notes"),
        ],
    )

    recipe_id = await assistant.save_workflow_as_recipe(workflow, user_id=5)

    recipe = await RecipeRepository(db_session).get_by_id(recipe_id)
    assert recipe.name == "My Reviews"
    assert recipe.created_by == 5
    assert not recipe.is_template

    scrape, merged, scratch = await RecipeStepRepository(db_session).list_by_recipe(recipe_id)
    assert [s.step_order for s in (scrape, merged, scratch)] == [1, 2, 3]

    assert scrape.input_config == {
        "variables": {"product_urls": {"type": "url_list", "description": ""}}
    }

    assert merged.step_name == "Analyze"
    assert merged.ai_model == "m1"
    assert merged.prompt_template == "Analyze {{step_1_output}}"
    assert merged.generation_config == {"temperature": 0.2}
    assert merged.input_config == {"variables": {"reviews": {"type": "textarea"}}}

    assert scratch.step_name == "Summarize"
    assert scratch.ai_model == "mock"
    assert scratch.input_config == {
        "variables": {"notes": {"type": "textarea", "description": "Reviewer notes"}}
    }


async def test_save_as_template(assistant, db_session):
    workflow = GeneratedWorkflow(name="Shared", steps=[GeneratedStep(prompt_template="Hi")])

    recipe_id = await assistant.save_workflow_as_recipe(workflow, user_id=1, is_template=True)

    recipe = await RecipeRepository(db_session).get_by_id(recipe_id)
    assert recipe.is_template
    (step,) = await RecipeStepRepository(db_session).list_by_recipe(recipe_id)
    assert step.ai_model is None
    assert step.input_config is None
