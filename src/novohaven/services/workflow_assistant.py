"""Conversational workflow builder.

The assistant turns a chat conversation into a proposed workflow. The
system prompt lists the executors, the available models and the shared
templates. When the model asks for template details with a
``template-request`` block, the requested templates' step configurations
are sent back in a second call. Saving a proposal merges
template-sourced steps with their template so only the fields the model
explicitly overrode change.
"""

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.novohaven.core.config import Settings
from src.novohaven.core.exceptions import AssistantError
from src.novohaven.core.logging import get_logger
from src.novohaven.executors.base import StepExecutor
from src.novohaven.executors.registry import ExecutorRegistry
from src.novohaven.models import Recipe, RecipeStep, StepType
from src.novohaven.repositories import RecipeRepository, RecipeStepRepository
from src.novohaven.schemas.assistant import (
    AssistantResponse,
    ConversationMessage,
    GeneratedStep,
    GeneratedWorkflow,
    RequiredInput,
)
from src.novohaven.services.ai_service import AIService, ModelInfo

logger = get_logger(__name__)

PREFERRED_MODELS = ("claude-opus-4-5", "gpt-4o", "gemini-2.5-pro", "gemini-2.5-flash")

FORMAT_REMINDER = (
    "\n\n[IMPORTANT: If you generate a workflow, you MUST include a ```workflow-json code "
    "block with the complete JSON structure. Do not omit it.]"
)

STARTER_SUGGESTIONS = [
    "Analyze product reviews from Amazon and generate improvement suggestions",
    "Research competitors and create a comparison report",
    "Scrape reviews, clean the data, and generate marketing copy",
]

TEMPLATE_REQUEST_PATTERN = re.compile(r"```template-request\s*\n?([\s\S]*?)\n?\s*```")
SUGGESTIONS_PATTERN = re.compile(
    r"(?:suggestions?|refinements?|ideas?|建议|优化)[:\s：]*\n"
    r"((?:\s*[-\d.]+[.、)）]\s*.+\n?)+)",
    re.IGNORECASE,
)
_LIST_MARKER = re.compile(r"^\s*[-\d.]+[.、)）]\s*")

# Proposal field name -> RecipeStep attribute a template-sourced step may override
OVERRIDABLE_FIELDS = {
    "step_name": "step_name",
    "step_type": "step_type",
    "ai_model": "ai_model",
    "prompt_template": "prompt_template",
    "output_format": "output_format",
    "model_config": "generation_config",
    "generation_config": "generation_config",
    "api_config": "api_config",
    "executor_config": "executor_config",
}


@dataclass(frozen=True)
class ExtractionStrategy:
    """One way of finding the workflow JSON in a reply."""

    name: str
    pattern: re.Pattern[str]
    strip_from_message: bool


EXTRACTION_STRATEGIES = (
    ExtractionStrategy(
        "workflow-json fence", re.compile(r"```workflow-json\s*\n?([\s\S]*?)\n?\s*```"), True
    ),
    ExtractionStrategy("json fence", re.compile(r"```json\s*\n?([\s\S]*?)\n?\s*```"), True),
    # Raw JSON is left in the message; stripping it could remove prose around it
    ExtractionStrategy(
        "raw object",
        re.compile(r'(\{[\s\S]*"name"\s*:[\s\S]*"steps"\s*:\s*\[[\s\S]*\][\s\S]*\})'),
        False,
    ),
)


@dataclass(frozen=True)
class TemplateSummary:
    id: int
    name: str
    description: str | None
    step_types: list[str]


def select_model(available: Sequence[ModelInfo]) -> str:
    """First preferred model that is available, else any text model.

    Raises:
        AssistantError: If no text model is available.
    """
    available_ids = {model.id for model in available}
    for model_id in PREFERRED_MODELS:
        if model_id in available_ids:
            return model_id
    for model in available:
        if not model.supports_image_generation:
            return model.id
    raise AssistantError("No AI models available. Please configure at least one AI provider.")


def _describe_executor(executor: StepExecutor) -> str:
    fields = "\n".join(
        f"    - {field.name} ({field.type}{', required' if field.required else ''}): "
        f"{field.help_text or field.label}"
        for field in executor.get_config_schema()
    )
    return (
        f'  - **{executor.display_name}** (type: "{executor.type}", icon: {executor.icon}): '
        f"{executor.description}\n    Config fields:\n{fields}"
    )


def _describe_templates(templates: Sequence[TemplateSummary]) -> str:
    if not templates:
        return ""
    listing = "\n".join(
        f"  - Template ID {t.id}: {t.name} — {t.description or 'No description'} — "
        f"Steps: [{', '.join(t.step_types)}]"
        for t in templates
    )
    return f"""

## Available Templates

Templates are tested, reusable workflows. ALWAYS check templates first before designing steps \
from scratch. This is MANDATORY: if a template covers part of the user's goal, build on it.

Templates:
{listing}

To see a template's full step configuration, reply with ONLY a template-request block listing \
the template IDs you need:

```template-request
[1, 2]
```

You will then receive the full configurations. When a step comes from a template, include \
"from_template_id" (the template ID) and "from_step_order" (the step's order in the template) \
on that step. List in "override_fields" only the fields you changed (for example \
["prompt_template"]); every other field is kept exactly as the template defines it."""


def build_system_prompt(
    executors: Sequence[StepExecutor],
    models: Sequence[ModelInfo],
    templates: Sequence[TemplateSummary] = (),
) -> str:
    """System prompt describing executors, models, variables and templates."""
    executor_lines = "\n\n".join(_describe_executor(e) for e in executors)
    text_models = "\n".join(
        f"  - {m.id} ({m.name}, {m.provider}, max {m.max_tokens} tokens"
        f"{', supports vision' if m.supports_vision else ''})"
        for m in models
        if not m.supports_image_generation
    )
    image_models = "\n".join(
        f"  - {m.id} ({m.name})" for m in models if m.supports_image_generation
    )
    image_section = f"Image generation models:\n{image_models}" if image_models else ""

    return f"""You are an AI Workflow Builder assistant. You help users create multi-step \
workflows by understanding their goals and generating structured workflow configurations.

## Your Capabilities

You can create workflows using these step types:

{executor_lines}

## Available AI Models

Text/Analysis models:
{text_models}

{image_section}

## Variable System

Workflows support variables for data flow between steps:
- **User inputs**: `{{{{variable_name}}}}` prompts the user for input when running the workflow
- **Step outputs**: `{{{{step_N_output}}}}` references the output of step N (1-indexed)
- **Company standards**: `{{{{company_voice}}}}`, `{{{{company_platform}}}}`, \
`{{{{company_image}}}}` are resolved from the user's saved standards{_describe_templates(templates)}

## Instructions

1. **Respond in the user's language.**

2. **When the user describes a goal**, ask clarifying questions if it is too vague, otherwise \
generate a complete workflow.

3. **When generating a workflow**, respond with a short explanation of what you created and a \
JSON workflow block wrapped in ```workflow-json ... ``` fences.

4. **Choose the right step type for each task:**
   - "ai" for text generation, analysis, summarization, translation
   - "scraping" for fetching product reviews from URLs
   - "http" for calling external APIs
   - "script" for custom data processing or calculations
   - "transform" for format conversion (CSV/JSON), field mapping, filtering

5. **For AI steps**, write focused prompt templates with variable placeholders where needed. \
Keep prompts concise.

6. **For non-AI steps**, provide a complete executor_config with all required fields.

7. **When suggesting refinements**, offer 2-3 specific ideas under a "Suggestions:" list.

## Workflow JSON Format

```workflow-json
{{
  "name": "Workflow Name",
  "description": "Brief description",
  "steps": [
    {{
      "step_name": "Step Name",
      "step_type": "ai",
      "ai_model": "model-id",
      "prompt_template": "Complete prompt with {{{{variables}}}}",
      "output_format": "text",
      "executor_config": {{}}
    }}
  ],
  "requiredInputs": [
    {{ "name": "variable_name", "type": "text", "description": "What this input is for" }}
  ]
}}
```

Input types for requiredInputs: "text", "textarea", "url_list", "image", "file"

Always chain step outputs: if step 2 needs step 1's output, use `{{{{step_1_output}}}}` in \
step 2's prompt.

CRITICAL: When you generate a workflow, you MUST include a ```workflow-json code block with the \
complete JSON. NEVER skip the JSON block when generating a workflow."""


def try_parse_workflow(text: str) -> GeneratedWorkflow | None:
    """Parse a workflow proposal, filling step defaults. None if it is not one."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or not data.get("name"):
        return None
    if not isinstance(data.get("steps"), list):
        return None

    steps = []
    for i, raw in enumerate(data["steps"], 1):
        if not isinstance(raw, dict):
            return None
        steps.append(
            {
                **raw,
                "step_name": raw.get("step_name") or f"Step {i}",
                "step_type": raw.get("step_type") or StepType.AI.value,
                "ai_model": raw.get("ai_model") or "",
                "prompt_template": raw.get("prompt_template") or "",
                "output_format": raw.get("output_format") or "text",
                "override_fields": raw.get("override_fields") or [],
            }
        )
    try:
        return GeneratedWorkflow.model_validate(
            {**data, "steps": steps, "requiredInputs": data.get("requiredInputs") or []}
        )
    except PydanticValidationError:
        return None


def parse_template_request(content: str) -> list[int] | None:
    """Template IDs from a ``template-request`` block; None unless it is a JSON list of ints."""
    match = TEMPLATE_REQUEST_PATTERN.search(content)
    if not match:
        return None
    try:
        ids = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    if not isinstance(ids, list) or not ids:
        return None
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
        return None
    return ids


def extract_suggestions(message: str) -> list[str] | None:
    match = SUGGESTIONS_PATTERN.search(message)
    if not match:
        return None
    lines = [_LIST_MARKER.sub("", line).strip() for line in match.group(1).split("\n")]
    return [line for line in lines if line] or None


def parse_assistant_response(content: str) -> AssistantResponse:
    """Split a reply into message, workflow, suggestions and template request."""
    message = content
    workflow = None
    for strategy in EXTRACTION_STRATEGIES:
        match = strategy.pattern.search(content)
        if not match:
            continue
        workflow = try_parse_workflow(match.group(1))
        if workflow is None:
            continue
        logger.debug("Workflow extracted", strategy=strategy.name, steps=len(workflow.steps))
        if strategy.strip_from_message:
            message = strategy.pattern.sub("", content, count=1).strip()
        break

    if workflow is None:
        logger.warning(
            "No workflow JSON extracted from reply",
            length=len(content),
            has_workflow_json_fence="```workflow-json" in content,
            has_json_fence="```json" in content,
        )

    return AssistantResponse(
        message=message,
        workflow=workflow,
        suggestions=extract_suggestions(message),
        template_request=parse_template_request(content),
    )


def _template_step_config(step: RecipeStep) -> dict[str, Any]:
    return {
        "step_order": step.step_order,
        "step_name": step.step_name,
        "step_type": step.step_type,
        "ai_model": step.ai_model,
        "prompt_template": step.prompt_template,
        "output_format": step.output_format,
        "model_config": step.generation_config,
        "input_config": step.input_config,
        "api_config": step.api_config,
        "executor_config": step.executor_config,
    }


def _input_config(
    step: GeneratedStep, required_inputs: Sequence[RequiredInput]
) -> dict[str, Any] | None:
    """``variables`` for the required inputs a from-scratch step uses."""
    haystack = (step.prompt_template or "") + json.dumps(step.executor_config or {})
    variables = {
        required.name: {"type": required.type, "description": required.description}
        for required in required_inputs
        if f"{{{{{required.name}}}}}" in haystack
        or (step.step_type == StepType.SCRAPING.value and required.type == "url_list")
    }
    return {"variables": variables} if variables else None


class WorkflowAssistant:
    """Generates workflow proposals and saves them as recipes."""

    def __init__(
        self,
        ai_service: AIService,
        registry: ExecutorRegistry,
        recipe_repo: RecipeRepository,
        step_repo: RecipeStepRepository,
        session: AsyncSession,
        settings: Settings,
    ):
        self.ai_service = ai_service
        self.registry = registry
        self.recipe_repo = recipe_repo
        self.step_repo = step_repo
        self.session = session
        self.settings = settings

    async def list_templates(self) -> list[TemplateSummary]:
        summaries = []
        for recipe in await self.recipe_repo.list_templates():
            steps = await self.step_repo.list_by_recipe(recipe.id)
            summaries.append(
                TemplateSummary(
                    id=recipe.id,
                    name=recipe.name,
                    description=recipe.description,
                    step_types=[step.step_type for step in steps],
                )
            )
        return summaries

    async def generate_workflow(
        self, messages: Sequence[ConversationMessage], user_id: int
    ) -> AssistantResponse:
        """Answer the conversation, proposing a workflow when the model produces one.

        Raises:
            AssistantError: If no model is available or a model call fails.
        """
        if not messages:
            return AssistantResponse(
                message="Please describe the workflow you want to create.",
                suggestions=list(STARTER_SUGGESTIONS),
            )

        available = self.ai_service.get_available_models()
        model = select_model(available)
        templates = await self.list_templates()
        system_prompt = build_system_prompt(self.registry.get_all(), available, templates)

        api_messages = [{"role": m.role, "content": m.content} for m in messages]
        if api_messages[-1]["role"] == "user":
            api_messages[-1]["content"] += FORMAT_REMINDER

        logger.info(
            "Generating workflow",
            user_id=user_id,
            model=model,
            messages=len(messages),
            templates=len(templates),
        )
        content = await self._call(model, system_prompt, api_messages)
        parsed = parse_assistant_response(content)
        if not parsed.template_request:
            return parsed

        details = await self._template_details(parsed.template_request)
        if not details:
            logger.info("Requested templates have no steps", template_ids=parsed.template_request)
            return parsed

        logger.info("Sending template details", template_ids=parsed.template_request)
        follow_up = [
            *api_messages,
            {"role": "assistant", "content": content},
            {"role": "user", "content": details + FORMAT_REMINDER},
        ]
        return parse_assistant_response(await self._call(model, system_prompt, follow_up))

    async def _call(self, model: str, system_prompt: str, messages: list[dict[str, str]]) -> str:
        response = await self.ai_service.call_ai_by_model(
            model,
            "",
            {
                "temperature": self.settings.assistant_temperature,
                "max_tokens": self.settings.assistant_max_tokens,
                "system_message": system_prompt,
                "messages": messages,
            },
        )
        if not response.success:
            logger.error("Assistant model call failed", model=model, error=response.error)
            raise AssistantError(response.error or "AI generation failed")
        return response.content

    async def _template_details(self, template_ids: list[int]) -> str:
        """Full step configurations of the requested templates; empty if none have steps."""
        blocks = []
        for template_id in template_ids:
            template = await self.recipe_repo.get_by_id(template_id)
            steps = await self.step_repo.list_by_recipe(template_id)
            if template is None or not steps:
                continue
            step_blocks = "\n\n".join(
                f"Step {step.step_order}: {step.step_name} ({step.step_type})\n"
                f"```json\n{json.dumps(_template_step_config(step), indent=2)}\n```"
                for step in steps
            )
            blocks.append(f"### Template ID {template_id}: {template.name}\n\n{step_blocks}")
        if not blocks:
            return ""
        return (
            "Here are the full configurations of the requested templates:\n\n"
            + "\n\n".join(blocks)
            + "\n\nNow generate the workflow. For every step based on a template step, set "
            '"from_template_id" and "from_step_order", and list only the fields you changed in '
            '"override_fields".'
        )

    async def save_workflow_as_recipe(
        self, workflow: GeneratedWorkflow, user_id: int, is_template: bool = False
    ) -> int:
        """Persist a proposal as a recipe and return its id."""
        recipe = Recipe(
            name=workflow.name,
            description=workflow.description or None,
            created_by=user_id,
            is_template=is_template,
        )
        self.recipe_repo.add(recipe)
        await self.recipe_repo.flush()

        merged = 0
        for order, proposed in enumerate(workflow.steps, 1):
            step = await self._merge_step(proposed)
            if step is None:
                step = self._scratch_step(proposed, workflow.required_inputs)
            else:
                merged += 1
            step.recipe_id = recipe.id
            step.step_order = order
            self.step_repo.add(step)

        await self.session.commit()
        logger.info(
            "Workflow saved as recipe",
            recipe_id=recipe.id,
            user_id=user_id,
            steps=len(workflow.steps),
            template_steps=merged,
            is_template=is_template,
        )
        return recipe.id

    async def _merge_step(self, proposed: GeneratedStep) -> RecipeStep | None:
        """Template step with only ``override_fields`` taken from the proposal.

        None when the step is not template-sourced or the template step is missing.
        """
        if not proposed.is_template_sourced:
            return None
        template_step = await self.step_repo.get_by_recipe_and_order(
            proposed.from_template_id, proposed.from_step_order
        )
        if template_step is None:
            logger.warning(
                "Template step not found, using proposed values",
                template_id=proposed.from_template_id,
                step_order=proposed.from_step_order,
            )
            return None

        step = RecipeStep(
            step_order=template_step.step_order,
            step_name=template_step.step_name,
            step_type=template_step.step_type,
            ai_model=template_step.ai_model,
            prompt_template=template_step.prompt_template,
            output_format=template_step.output_format,
            generation_config=template_step.generation_config,
            input_config=template_step.input_config,
            api_config=template_step.api_config,
            executor_config=template_step.executor_config,
        )
        for field in proposed.override_fields:
            attribute = OVERRIDABLE_FIELDS.get(field)
            if attribute is None:
                logger.debug("Ignoring override of unknown field", field=field)
                continue
            setattr(step, attribute, getattr(proposed, attribute))
        return step

    @staticmethod
    def _scratch_step(
        proposed: GeneratedStep, required_inputs: Sequence[RequiredInput]
    ) -> RecipeStep:
        return RecipeStep(
            step_order=0,
            step_name=proposed.step_name,
            step_type=proposed.step_type or StepType.AI.value,
            ai_model=proposed.ai_model or None,
            prompt_template=proposed.prompt_template or None,
            output_format=proposed.output_format or "text",
            generation_config=proposed.generation_config,
            input_config=_input_config(proposed, required_inputs),
            api_config=proposed.api_config,
            executor_config=proposed.executor_config,
        )
