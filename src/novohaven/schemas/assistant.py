"""Workflow assistant schemas."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class RequiredInput(BaseModel):
    name: str
    type: str = "text"  # text, textarea, url_list, image, file
    description: str = ""


class GeneratedStep(BaseModel):
    """A proposed step: from scratch, or sourced from a template step.

    Template-sourced steps carry ``from_template_id`` and
    ``from_step_order``; only fields named in ``override_fields`` may
    differ from the template when saved.
    """

    model_config = ConfigDict(populate_by_name=True)

    step_name: str = ""
    step_type: str = "ai"
    ai_model: str | None = ""
    prompt_template: str | None = ""
    output_format: str = "text"
    executor_config: dict[str, Any] | None = None
    api_config: dict[str, Any] | None = None
    generation_config: dict[str, Any] | None = Field(default=None, alias="model_config")
    from_template_id: int | None = None
    from_step_order: int | None = None
    override_fields: list[str] = Field(default_factory=list)

    @property
    def is_template_sourced(self) -> bool:
        return self.from_template_id is not None and self.from_step_order is not None


class GeneratedWorkflow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    steps: list[GeneratedStep]
    required_inputs: list[RequiredInput] = Field(default_factory=list, alias="requiredInputs")


class AssistantResponse(BaseModel):
    message: str
    workflow: GeneratedWorkflow | None = None
    suggestions: list[str] | None = None
    template_request: list[int] | None = None


class GenerateWorkflowRequest(BaseModel):
    messages: list[ConversationMessage] = Field(default_factory=list)


class SaveWorkflowRequest(BaseModel):
    workflow: GeneratedWorkflow
    is_template: bool = False


class SaveWorkflowResponse(BaseModel):
    recipe_id: int
