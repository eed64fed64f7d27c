"""
Recipe models for manufactured products.

This module contains:
- Recipe: Bill of materials that defines a manufactured product's cost
- RecipeIngredient: One ingredient line (any product) with a quantity multiplier
"""

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from .base import BaseModel, ExactDecimal


class Recipe(BaseModel):
    """
    Recipe model.

    Each manufactured product owns at most one recipe (product_id is unique).
    Ingredients may be raw materials or other manufactured products, so
    recipes form a graph that the cost engine walks recursively.

    Attributes:
        product_id: Foreign key to the owning ManufacturedProduct
        name: Recipe name
        version: Incremented on every saved change to the ingredient list
        total_cost: Cached cost; written only by the cost engine
        is_active: Whether the recipe is in use
    """

    __tablename__ = "recipes"

    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    name = Column(String(200), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    total_cost = Column(ExactDecimal, nullable=False, default=Decimal("0"))
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    product = relationship("ManufacturedProduct", back_populates="recipe")

    recipe_ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="RecipeIngredient.id",
    )

    versions = relationship(
        "RecipeVersion",
        back_populates="recipe",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="RecipeVersion.version",
    )

    __table_args__ = (
        Index("idx_recipe_product", "product_id"),
        CheckConstraint(
            "CAST(total_cost AS REAL) >= 0", name="ck_recipe_total_cost_non_negative"
        ),
        CheckConstraint("version >= 1", name="ck_recipe_version_positive"),
    )

    def __repr__(self) -> str:
        """String representation of recipe."""
        return (
            f"Recipe(id={self.id}, name='{self.name}', "
            f"version={self.version}, total_cost={self.total_cost})"
        )


class RecipeIngredient(BaseModel):
    """
    One ingredient line of a recipe.

    Attributes:
        recipe_id: Foreign key to Recipe
        product_id: Foreign key to the ingredient Product (raw or manufactured)
        quantity: Strictly positive multiplier applied to the ingredient's unit cost
    """

    __tablename__ = "recipe_ingredients"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    quantity = Column(ExactDecimal, nullable=False)

    # Relationships
    recipe = relationship("Recipe", back_populates="recipe_ingredients")
    product = relationship("Product", lazy="joined")

    __table_args__ = (
        Index("idx_recipe_ingredient_recipe", "recipe_id"),
        Index("idx_recipe_ingredient_product", "product_id"),
        CheckConstraint(
            "CAST(quantity AS REAL) > 0", name="ck_recipe_ingredient_quantity_positive"
        ),
    )

    def __repr__(self) -> str:
        """String representation of recipe ingredient."""
        return (
            f"RecipeIngredient(recipe_id={self.recipe_id}, "
            f"product_id={self.product_id}, quantity={self.quantity})"
        )
