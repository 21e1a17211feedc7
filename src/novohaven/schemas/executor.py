"""Executor introspection schemas."""

from typing import Any, Literal

from pydantic import BaseModel

ConfigFieldType = Literal["text", "textarea", "select", "number", "boolean", "json", "code"]


class ConfigFieldOption(BaseModel):
    value: str
    label: str


class ConfigField(BaseModel):
    """One field of an executor's configuration form. Advisory only."""

    name: str
    label: str
    type: ConfigFieldType
    required: bool = False
    default_value: Any = None
    options: list[ConfigFieldOption] | None = None
    language: str | None = None
    help_text: str | None = None


class ExecutorRead(BaseModel):
    type: str
    display_name: str
    icon: str
    description: str
    config_schema: list[ConfigField]


class StepValidationRequest(BaseModel):
    """A step definition to check against its executor, without running it."""

    step_type: str = "ai"
    ai_model: str | None = None
    prompt_template: str | None = None
    input_config: dict[str, Any] | None = None
    api_config: dict[str, Any] | None = None
    executor_config: dict[str, Any] | None = None


class StepValidationResponse(BaseModel):
    executor_type: str
    valid: bool
    errors: list[str]
