"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import ProductType
from .product import Product, RawMaterial, ManufacturedProduct
from .recipe import Recipe, RecipeIngredient
from .recipe_version import RecipeVersion

__all__ = [
    "Base",
    "BaseModel",
    "ProductType",
    # Products (single-table inheritance)
    "Product",
    "RawMaterial",
    "ManufacturedProduct",
    # Recipes
    "Recipe",
    "RecipeIngredient",
    "RecipeVersion",
]
