"""Recipe and recipe step models."""

from datetime import datetime
from typing import Any

from sqlalchemy import Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from src.novohaven.models.base import JSONType, utc_now
from src.novohaven.models.enums import OutputFormat, StepType


class Recipe(SQLModel, table=True):
    """A named, ordered pipeline of steps. Templates are shared building blocks."""

    __tablename__ = "recipes"
    __table_args__ = (Index("ix_recipes_created_by_template", "created_by", "is_template"),)

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    created_by: int = Field(index=True)
    is_template: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class RecipeStep(SQLModel, table=True):
    """One stage of a recipe.

    Immutable once created. ``generation_config`` is stored in the
    ``model_config`` column; the attribute is renamed because pydantic
    reserves ``model_config``.
    """

    __tablename__ = "recipe_steps"
    __table_args__ = (
        UniqueConstraint("recipe_id", "step_order", name="uq_recipe_steps_recipe_order"),
    )

    id: int | None = Field(default=None, primary_key=True)
    recipe_id: int | None = Field(default=None, foreign_key="recipes.id", index=True)
    step_order: int
    step_name: str = Field(max_length=200)
    step_type: str = Field(default=StepType.AI.value, max_length=20)
    ai_model: str | None = Field(default=None, max_length=100)
    prompt_template: str | None = Field(default=None)
    output_format: str = Field(default=OutputFormat.TEXT.value, max_length=20)
    generation_config: dict[str, Any] | None = Field(
        default=None, sa_column=Column("model_config", JSONType, nullable=True)
    )
    input_config: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSONType, nullable=True)
    )
    api_config: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSONType, nullable=True)
    )
    executor_config: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSONType, nullable=True)
    )
    created_at: datetime = Field(default_factory=utc_now)
