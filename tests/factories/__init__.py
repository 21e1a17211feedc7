"""Test factories for generating test data.

Re-exports all factories for convenient imports:
    from tests.factories import RecipeFactory, RecipeStepFactory, ...
"""

from tests.factories.base import BaseFactory, utc_now
from tests.factories.recipe import CompanyStandardFactory, RecipeFactory, RecipeStepFactory

__all__ = [
    # Base
    "BaseFactory",
    "utc_now",
    # Recipes
    "RecipeFactory",
    "RecipeStepFactory",
    # Standards
    "CompanyStandardFactory",
]
