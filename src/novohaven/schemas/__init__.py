"""API and service schemas."""

from src.novohaven.schemas.assistant import (
    AssistantResponse,
    ConversationMessage,
    GeneratedStep,
    GeneratedWorkflow,
    RequiredInput,
)
from src.novohaven.schemas.execution import (
    ExecutionRead,
    ExecutionResult,
    RetryStepRequest,
    StartExecutionRequest,
    StepExecutionResult,
)
from src.novohaven.schemas.executor import ConfigField, ConfigFieldOption, ExecutorRead
from src.novohaven.schemas.pagination import PaginatedResponse
from src.novohaven.schemas.recipe import StepDefinition

__all__ = [
    # Assistant
    "AssistantResponse",
    "ConversationMessage",
    "GeneratedStep",
    "GeneratedWorkflow",
    "RequiredInput",
    # Execution
    "ExecutionRead",
    "ExecutionResult",
    "RetryStepRequest",
    "StartExecutionRequest",
    "StepExecutionResult",
    # Executors
    "ConfigField",
    "ConfigFieldOption",
    "ExecutorRead",
    # Shared
    "PaginatedResponse",
    "StepDefinition",
]
