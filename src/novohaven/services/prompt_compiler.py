"""Prompt compilation: resolves ``{{variable}}`` tokens in step templates.

Three kinds of variables are recognised:

- ``step_<N>_output``: the stored content of the step at order N
- company standards (``brand_voice``, ``amazon_requirements``, ...)
- anything else is a user input supplied when the execution started

Compilation is pure: everything it needs (inputs, step executions and
the user's company standards) is passed in the context.
"""

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.novohaven.models import CompanyStandard, RecipeStep, StepExecution, StepExecutionStatus
from src.novohaven.services.standards import (
    StandardResolver,
    StandardVariable,
    format_standard,
    keyword_resolver,
    match_standard_variable,
    standard_placeholder,
)

VARIABLE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")
STEP_OUTPUT_PATTERN = re.compile(r"^step_(\d+)_output$")
_BASE64_PREFIX = re.compile(r"^[A-Za-z0-9+/=]+$")

_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")


class VariableKind(str, Enum):
    USER_INPUT = "user_input"
    PREVIOUS_STEP = "previous_step"
    COMPANY_STANDARD = "company_standard"


@dataclass(frozen=True)
class ParsedVariable:
    name: str
    full_match: str
    kind: VariableKind
    step_number: int | None = None
    standard: StandardVariable | None = None


@dataclass(frozen=True)
class ImageData:
    """An image lifted out of user inputs and attached to the model call."""

    base64: str
    media_type: str

    def to_dict(self) -> dict[str, str]:
        return {"base64": self.base64, "media_type": self.media_type}


@dataclass
class CompileContext:
    user_id: int
    user_inputs: Mapping[str, Any]
    step_executions: Sequence[StepExecution] = ()
    company_standards: Sequence[CompanyStandard] = ()


@dataclass
class CompiledPrompt:
    text: str
    unresolved_variables: list[str] = field(default_factory=list)
    images: list[ImageData] = field(default_factory=list)


def classify_variable(name: str, full_match: str = "") -> ParsedVariable:
    """Classify a trimmed variable name."""
    full_match = full_match or f"{{{{{name}}}}}"
    step_match = STEP_OUTPUT_PATTERN.match(name)
    if step_match:
        return ParsedVariable(
            name, full_match, VariableKind.PREVIOUS_STEP, step_number=int(step_match.group(1))
        )
    standard = match_standard_variable(name)
    if standard is not None:
        return ParsedVariable(name, full_match, VariableKind.COMPANY_STANDARD, standard=standard)
    return ParsedVariable(name, full_match, VariableKind.USER_INPUT)


def extract_variables(template: str | None) -> list[ParsedVariable]:
    """Return every variable occurrence in ``template``, in order."""
    if not template:
        return []
    return [
        classify_variable(match.group(1).strip(), match.group(0))
        for match in VARIABLE_PATTERN.finditer(template)
    ]


def user_input_variables(template: str | None) -> list[str]:
    """Names of user-input variables in ``template``, deduplicated in order."""
    names = (v.name for v in extract_variables(template) if v.kind is VariableKind.USER_INPUT)
    return list(dict.fromkeys(names))


def required_user_inputs(steps: Iterable[RecipeStep]) -> list[str]:
    """User inputs referenced by the prompt templates of ``steps``."""
    required: dict[str, None] = {}
    for step in steps:
        for name in user_input_variables(step.prompt_template):
            required[name] = None
    return list(required)


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def find_missing_inputs(required: Iterable[str], inputs: Mapping[str, Any]) -> list[str]:
    """Required names that are absent or blank after stripping."""
    return [name for name in required if is_blank(inputs.get(name))]


def is_image_data(value: Any) -> bool:
    """True for data URLs and for long strings that look like raw base64."""
    if not isinstance(value, str):
        return False
    if value.startswith("data:image/"):
        return True
    return len(value) > 100 and bool(_BASE64_PREFIX.match(value[:100]))


def media_type_of(value: str) -> str:
    for media_type in _MEDIA_TYPES:
        if value.startswith(f"data:{media_type}"):
            return media_type
    return "image/jpeg"


def stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def step_output_text(step_execution: StepExecution) -> str | None:
    """Text of a step's stored output: ``content``, else ``output``, else the payload."""
    data = step_execution.output_data
    if not data:
        return None
    for key in ("content", "output"):
        if data.get(key):
            return stringify(data[key])
    return json.dumps(data)


class PromptCompiler:
    """Resolves template variables against a CompileContext."""

    def __init__(self, resolver: StandardResolver = keyword_resolver):
        self.resolver = resolver

    def compile(self, template: str | None, context: CompileContext) -> CompiledPrompt:
        """Compile ``template``.

        Each occurrence is resolved independently. Missing user inputs and
        references to steps that do not exist are reported in
        ``unresolved_variables``; everything else always resolves to text.
        """
        result = CompiledPrompt(text="")
        unresolved: dict[str, None] = {}

        def replace(match: re.Match[str]) -> str:
            variable = classify_variable(match.group(1).strip(), match.group(0))
            if variable.kind is VariableKind.PREVIOUS_STEP:
                return self._resolve_step(variable, context, unresolved)
            if variable.standard is not None:
                return self._resolve_standard(variable.standard, context)
            return self._resolve_user_input(variable, context, unresolved, result.images)

        result.text = VARIABLE_PATTERN.sub(replace, template or "")
        result.unresolved_variables = list(unresolved)
        return result

    def _resolve_user_input(
        self,
        variable: ParsedVariable,
        context: CompileContext,
        unresolved: dict[str, None],
        images: list[ImageData],
    ) -> str:
        value = context.user_inputs.get(variable.name)
        if is_image_data(value):
            images.append(ImageData(base64=value, media_type=media_type_of(value)))
            return f"[See attached image: {variable.name}]"
        if value is None or value == "":
            unresolved[variable.name] = None
            return f'[User input "{variable.name}" required]'
        return stringify(value)

    def _resolve_step(
        self, variable: ParsedVariable, context: CompileContext, unresolved: dict[str, None]
    ) -> str:
        number = variable.step_number
        step_execution = next(
            (se for se in context.step_executions if se.step_order == number), None
        )
        if step_execution is None:
            unresolved[variable.name] = None
            return f"[Output from step {number} not found]"
        if step_execution.status != StepExecutionStatus.COMPLETED.value:
            return f"[Step {number} has not completed yet]"
        text = step_output_text(step_execution)
        if text is None:
            return f"[Step {number} produced no output]"
        return text

    def _resolve_standard(self, variable: StandardVariable, context: CompileContext) -> str:
        standard = self.resolver(variable, context.company_standards)
        if standard is None:
            return standard_placeholder(variable)
        return format_standard(standard)
