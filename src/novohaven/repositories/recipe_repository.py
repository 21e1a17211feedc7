"""Repositories for Recipe and RecipeStep entities."""

from sqlmodel import select

from src.novohaven.models import Recipe, RecipeStep
from src.novohaven.repositories.base import BaseRepository


class RecipeRepository(BaseRepository[Recipe]):
    """Repository for Recipe entity."""

    model = Recipe

    async def list_templates(self) -> list[Recipe]:
        """List every recipe flagged as a template, oldest first."""
        result = await self.session.execute(
            select(Recipe).where(Recipe.is_template == True).order_by(Recipe.id)  # noqa: E712
        )
        return list(result.scalars().all())


class RecipeStepRepository(BaseRepository[RecipeStep]):
    """Repository for RecipeStep entity."""

    model = RecipeStep

    async def list_by_recipe(self, recipe_id: int) -> list[RecipeStep]:
        """List a recipe's steps ordered by step_order."""
        result = await self.session.execute(
            select(RecipeStep)
            .where(RecipeStep.recipe_id == recipe_id)
            .order_by(RecipeStep.step_order)
        )
        return list(result.scalars().all())

    async def get_by_recipe_and_order(self, recipe_id: int, step_order: int) -> RecipeStep | None:
        result = await self.session.execute(
            select(RecipeStep).where(
                RecipeStep.recipe_id == recipe_id,
                RecipeStep.step_order == step_order,
            )
        )
        return result.scalar_one_or_none()
