"""Model exports.

Import from here: `from src.novohaven.models import Recipe, RecipeStep`
"""

# Enums
from src.novohaven.models.enums import (
    ExecutionStatus,
    OutputFormat,
    StandardType,
    StepExecutionStatus,
    StepType,
)

# Tables
from src.novohaven.models.execution import (
    AdhocStepRef,
    PersistedStepRef,
    StepExecution,
    StepRef,
    WorkflowExecution,
)
from src.novohaven.models.recipe import Recipe, RecipeStep
from src.novohaven.models.standard import CompanyStandard
from src.novohaven.models.usage import ApiUsage

__all__ = [
    # Enums
    "ExecutionStatus",
    "OutputFormat",
    "StandardType",
    "StepExecutionStatus",
    "StepType",
    # Step references
    "AdhocStepRef",
    "PersistedStepRef",
    "StepRef",
    # Tables
    "ApiUsage",
    "CompanyStandard",
    "Recipe",
    "RecipeStep",
    "StepExecution",
    "WorkflowExecution",
]
