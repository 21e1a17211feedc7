"""Shared enums for models."""

from enum import Enum


class ExecutionStatus(str, Enum):
    """Workflow execution lifecycle."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepExecutionStatus(str, Enum):
    """Status of one step within an execution."""

    PENDING = "pending"
    RUNNING = "running"
    AWAITING_REVIEW = "awaiting_review"
    COMPLETED = "completed"
    FAILED = "failed"


class StepType(str, Enum):
    """Executor tag declared on a recipe step."""

    AI = "ai"
    SCRAPING = "scraping"
    SCRIPT = "script"
    HTTP = "http"
    TRANSFORM = "transform"


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"
    IMAGE = "image"


class StandardType(str, Enum):
    """Company standard sub-types; each formats its content differently."""

    VOICE = "voice"
    PLATFORM = "platform"
    IMAGE = "image"


# Executions in these states accept no further human actions
TERMINAL_EXECUTION_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED.value, ExecutionStatus.FAILED.value, ExecutionStatus.CANCELLED.value}
)
