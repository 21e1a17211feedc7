"""AI model executor."""

from src.novohaven.core.exceptions import UnresolvedVariableError
from src.novohaven.executors.base import (
    ExecutorContext,
    ExecutorResult,
    StepExecutor,
    ValidationResult,
)
from src.novohaven.models import RecipeStep
from src.novohaven.schemas.executor import ConfigField, ConfigFieldOption
from src.novohaven.services.ai_service import AIService
from src.novohaven.services.prompt_compiler import PromptCompiler


class AIExecutor(StepExecutor):
    type = "ai"
    display_name = "AI Model"
    icon = "🤖"
    description = "Execute a prompt using an AI language model (OpenAI, Anthropic, Google)"

    def __init__(self, ai_service: AIService, compiler: PromptCompiler | None = None):
        self.ai_service = ai_service
        self.compiler = compiler or PromptCompiler()

    def validate_config(self, step: RecipeStep) -> ValidationResult:
        result = ValidationResult()
        if not step.ai_model:
            result.errors.append("AI model is required")
        if not step.prompt_template:
            result.errors.append("Prompt template is required")
        return result

    async def execute(self, step: RecipeStep, context: ExecutorContext) -> ExecutorResult:
        """Compile the step prompt and send it to the step's model.

        A reviewer-edited prompt (``context.prompt_override``) is sent as is;
        compilation then only contributes attached images.

        Raises:
            UnresolvedVariableError: If the template references inputs or
                steps that cannot be resolved.
        """
        compiled = self.compiler.compile(step.prompt_template, context.compile_context())
        if context.prompt_override is None and compiled.unresolved_variables:
            raise UnresolvedVariableError(compiled.unresolved_variables, compiled.text)

        prompt = compiled.text if context.prompt_override is None else context.prompt_override
        config = dict(step.generation_config or {})
        if compiled.images:
            config["images"] = [image.to_dict() for image in compiled.images]

        response = await self.ai_service.call_ai_by_model(step.ai_model, prompt, config)
        if not response.success:
            return ExecutorResult.failure(
                response.error or "AI call failed",
                prompt_used=prompt,
                model_used=step.ai_model,
            )

        return ExecutorResult(
            success=True,
            content=response.content,
            metadata={
                "model": response.model,
                "usage": response.usage,
                "generated_images": response.generated_images,
            },
            prompt_used=prompt,
            model_used=response.model,
        )

    def get_config_schema(self) -> list[ConfigField]:
        return [
            ConfigField(
                name="ai_model",
                label="AI Model",
                type="select",
                required=True,
                options=[
                    ConfigFieldOption(value=m.id, label=m.name)
                    for m in self.ai_service.get_available_models()
                ],
                help_text="Select the AI model to use for this step",
            ),
            ConfigField(
                name="prompt_template",
                label="Prompt Template",
                type="textarea",
                required=True,
                help_text=(
                    "Use {{variable_name}} for user inputs and {{step_N_output}} "
                    "for previous step results"
                ),
            ),
            ConfigField(
                name="output_format",
                label="Output Format",
                type="select",
                required=True,
                default_value="text",
                options=[
                    ConfigFieldOption(value="text", label="Text"),
                    ConfigFieldOption(value="json", label="JSON"),
                    ConfigFieldOption(value="markdown", label="Markdown"),
                    ConfigFieldOption(value="image", label="Image"),
                ],
            ),
            ConfigField(
                name="temperature",
                label="Temperature",
                type="number",
                default_value=0.7,
                help_text="Controls randomness (0-2). Lower = more deterministic.",
            ),
            ConfigField(
                name="max_tokens",
                label="Max Tokens",
                type="number",
                default_value=4096,
                help_text="Maximum number of tokens in the response",
            ),
        ]
