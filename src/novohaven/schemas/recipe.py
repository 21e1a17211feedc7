"""Step definition schemas shared by the engine and the assistant."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.novohaven.models import RecipeStep

CONFIG_FIELDS = ("generation_config", "input_config", "api_config", "executor_config")


class StepDefinition(BaseModel):
    """A step definition supplied inline rather than loaded from a recipe.

    Config blocks may arrive as JSON strings (the format older clients
    store them in) and are parsed into objects.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    step_name: str = Field(default="Untitled step", max_length=200)
    step_type: str = "ai"
    ai_model: str | None = None
    prompt_template: str | None = None
    output_format: str = "text"
    generation_config: dict[str, Any] | None = Field(default=None, alias="model_config")
    input_config: dict[str, Any] | None = None
    api_config: dict[str, Any] | None = None
    executor_config: dict[str, Any] | None = None

    @field_validator(*CONFIG_FIELDS, mode="before")
    @classmethod
    def parse_json_string(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v.strip():
                return None
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON config: {e.msg}") from e
            return parsed if isinstance(parsed, dict) else None
        return v

    def to_step(self, step_order: int) -> RecipeStep:
        """Build a transient (never persisted) RecipeStep at ``step_order``."""
        return RecipeStep(
            id=None,
            recipe_id=None,
            step_order=step_order,
            step_name=self.step_name,
            step_type=self.step_type or "ai",
            ai_model=self.ai_model,
            prompt_template=self.prompt_template,
            output_format=self.output_format or "text",
            generation_config=self.generation_config,
            input_config=self.input_config,
            api_config=self.api_config,
            executor_config=self.executor_config,
        )
