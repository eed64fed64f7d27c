"""
Recipe Service - atomic recipe save with versioning and cost recomputation.

This service provides:
- Recipe save with replace-all-ingredients semantics
- Quantity validation before anything is persisted
- A version snapshot of the previous state on every update
- Cost recomputation through the CostAggregationService after the save
- Recipe retrieval and deletion

Save consistency: the structural save (recipe row, version snapshot,
ingredient list) commits first. The cost recomputation then runs in its own
transaction; if it fails (for example a cycle was introduced) the error is
propagated and no cost is updated, but the saved ingredients remain.
"""

from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rocafe.models import ManufacturedProduct, Recipe, RecipeIngredient
from rocafe.services.cost_service import CostAggregationService
from rocafe.services.database import Database
from rocafe.services.exceptions import (
    DatabaseError,
    InvalidQuantity,
    ProductNotFound,
    RecipeNotFound,
    ValidationError,
)
from rocafe.services.logging_utils import get_service_logger, log_operation
from rocafe.services.recipe_version_service import RecipeVersionService
from rocafe.services.repositories import (
    ProductRepository,
    RecipeIngredientRepository,
    RecipeRepository,
)
from rocafe.utils.dto_utils import cost_to_string, to_decimal

logger = get_service_logger(__name__)


def validate_ingredients_data(ingredients_data: List[Dict]) -> List[Dict]:
    """
    Validate and normalize ingredient dicts.

    Args:
        ingredients_data: List of dicts with "product_id" and "quantity"

    Returns:
        New list with quantities converted to Decimal

    Raises:
        ValidationError: If a product_id is missing
        InvalidQuantity: If a quantity is missing, not numeric, or <= 0
    """
    normalized = []
    for item in ingredients_data:
        product_id = item.get("product_id")
        if product_id is None:
            raise ValidationError(["Ingredient product_id is required"])

        raw_quantity = item.get("quantity")
        try:
            quantity = to_decimal(raw_quantity)
        except (InvalidOperation, ValueError):
            raise InvalidQuantity(product_id, raw_quantity)
        if quantity is None or not quantity.is_finite() or quantity <= 0:
            raise InvalidQuantity(product_id, raw_quantity)

        normalized.append({"product_id": product_id, "quantity": quantity})
    return normalized


class RecipeService:
    """
    Recipe save/versioning coordinator.

    Example:
        service = RecipeService(database)
        recipe = service.save_recipe(
            {"product_id": cappuccino.id, "name": "Cappuccino"},
            [{"product_id": coffee.id, "quantity": "0.1"},
             {"product_id": milk.id, "quantity": "0.2"}],
        )
        recipe.total_cost  # Decimal("1.45")
    """

    def __init__(
        self, database: Database, cost_service: Optional[CostAggregationService] = None
    ):
        self.database = database
        self.cost_service = cost_service or CostAggregationService(database)
        self.version_service = RecipeVersionService(database)
        self.products = ProductRepository()
        self.recipes = RecipeRepository()
        self.ingredients = RecipeIngredientRepository()

    # ========================================================================
    # Save
    # ========================================================================

    def save_recipe(
        self,
        recipe_data: Dict,
        ingredients_data: List[Dict],
        change_description: Optional[str] = None,
    ) -> Recipe:
        """
        Save a recipe and its full ingredient list, then recompute its cost.

        Args:
            recipe_data: Dictionary with recipe fields:
                - id: int (optional; omit to create)
                - product_id: int (the owning manufactured product)
                - name: str
                - is_active: bool (optional)
            ingredients_data: List of ingredient dicts with:
                - product_id: int
                - quantity: Decimal/str/int/float, strictly positive
            change_description: Stored on the version snapshot when an
                existing recipe is updated

        Returns:
            Saved Recipe with ingredients and recomputed total_cost

        Raises:
            ValidationError: If recipe fields are missing or the owning
                product is not a manufactured product
            InvalidQuantity: If any quantity is not strictly positive
            RecipeNotFound: If recipe_data["id"] doesn't exist
            ProductNotFound: If the owning or an ingredient product doesn't exist
            CircularReference, IngredientCostInvalid, RecipeDepthExceeded:
                From the cost recomputation (the structural save stays committed)
            DatabaseError: If database operation fails
        """
        errors = []
        if recipe_data.get("product_id") is None:
            errors.append("Recipe product_id is required")
        if not (recipe_data.get("name") or "").strip():
            errors.append("Recipe name is required")
        if errors:
            raise ValidationError(errors)

        # Nothing is persisted unless every quantity is valid
        ingredients = validate_ingredients_data(ingredients_data)

        try:
            with self.database.session_scope() as session:
                recipe_id, created = self._save_structure_impl(
                    recipe_data, ingredients, change_description, session
                )
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to save recipe", e)

        log_operation(
            logger,
            operation="save_recipe",
            outcome="created" if created else "updated",
            recipe_id=recipe_id,
            ingredient_count=len(ingredients),
        )

        total = self.cost_service.resolve_cost(recipe_id)

        recipe = self.get_recipe(recipe_id)
        log_operation(
            logger,
            operation="save_recipe",
            outcome="cost_updated",
            recipe_id=recipe_id,
            version=recipe.version,
            total_cost=cost_to_string(total),
        )
        return recipe

    def _save_structure_impl(
        self,
        recipe_data: Dict,
        ingredients: List[Dict],
        change_description: Optional[str],
        session: Session,
    ):
        """Upsert the recipe and replace its ingredients. Returns (recipe_id, created)."""
        product_id = recipe_data["product_id"]
        product = self.products.get(session, product_id)
        if product is None:
            raise ProductNotFound(product_id)
        if not isinstance(product, ManufacturedProduct):
            raise ValidationError(
                [f"Product '{product.name}' is not a manufactured product and cannot own a recipe"]
            )

        for item in ingredients:
            if self.products.get(session, item["product_id"]) is None:
                raise ProductNotFound(item["product_id"])

        if recipe_data.get("id") is not None:
            recipe = self.recipes.get(session, recipe_data["id"])
            if recipe is None:
                raise RecipeNotFound(recipe_data["id"])
        else:
            recipe = self.recipes.get_by_product_id(session, product_id)

        created = recipe is None
        if created:
            recipe = Recipe(
                product_id=product_id,
                name=recipe_data["name"].strip(),
                version=1,
                total_cost=Decimal("0"),
                is_active=recipe_data.get("is_active", True),
            )
        else:
            self.version_service.create_recipe_version(
                recipe.id, change_description, session=session
            )
            recipe.version += 1
            recipe.product_id = product_id
            recipe.name = recipe_data["name"].strip()
            if "is_active" in recipe_data:
                recipe.is_active = recipe_data["is_active"]

        recipe_id = self.recipes.upsert(session, recipe)

        self.ingredients.replace_for_recipe(
            session,
            recipe_id,
            [
                RecipeIngredient(product_id=item["product_id"], quantity=item["quantity"])
                for item in ingredients
            ],
        )
        return recipe_id, created

    def recalculate_cost(self, recipe_id: int) -> Decimal:
        """
        Recompute a recipe's cost (and its sub-recipes') without changing it.

        Raises:
            Everything CostAggregationService.resolve_cost raises
        """
        return self.cost_service.resolve_cost(recipe_id)

    # ========================================================================
    # Retrieval
    # ========================================================================

    def get_recipe(self, recipe_id: int) -> Recipe:
        """
        Retrieve a recipe by ID.

        Returns:
            Recipe instance with ingredients loaded

        Raises:
            RecipeNotFound: If recipe doesn't exist
            DatabaseError: If database operation fails
        """
        try:
            with self.database.session_scope() as session:
                recipe = self.recipes.get(session, recipe_id)
                if recipe is None:
                    raise RecipeNotFound(recipe_id)

                # Eagerly load relationships to avoid lazy loading issues
                for ri in recipe.recipe_ingredients:
                    _ = ri.product
                _ = recipe.product

                return recipe

        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to retrieve recipe {recipe_id}", e)

    def get_recipe_by_product(self, product_id: int) -> Optional[Recipe]:
        """
        Retrieve the recipe owned by a manufactured product.

        Returns:
            Recipe instance, or None if the product has no recipe
        """
        try:
            with self.database.session_scope() as session:
                recipe = self.recipes.get_by_product_id(session, product_id)
                if recipe is not None:
                    for ri in recipe.recipe_ingredients:
                        _ = ri.product
                return recipe

        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to retrieve recipe for product {product_id}", e)

    def get_recipe_ingredients(self, recipe_id: int) -> List[RecipeIngredient]:
        """
        Get a recipe's ingredient rows with their products loaded.

        Raises:
            RecipeNotFound: If recipe doesn't exist
        """
        try:
            with self.database.session_scope() as session:
                if self.recipes.get(session, recipe_id) is None:
                    raise RecipeNotFound(recipe_id)
                return self.ingredients.get_by_recipe_id(session, recipe_id)

        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to retrieve ingredients for recipe {recipe_id}", e)

    def get_recipe_with_ingredients(self, recipe_id: int) -> Dict:
        """
        Get a recipe as a dictionary with its ingredient lines.

        Returns:
            Dict of recipe fields plus "ingredients": list of dicts with
            product_id, product_name, product_type and quantity
        """
        try:
            with self.database.session_scope() as session:
                recipe = self.recipes.get(session, recipe_id)
                if recipe is None:
                    raise RecipeNotFound(recipe_id)

                result = recipe.to_dict()
                result["ingredients"] = [
                    {
                        "id": ri.id,
                        "product_id": ri.product_id,
                        "product_name": ri.product.name,
                        "product_type": ri.product.product_type,
                        "quantity": str(ri.quantity),
                    }
                    for ri in self.ingredients.get_by_recipe_id(session, recipe_id)
                ]
                return result

        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to retrieve recipe {recipe_id}", e)

    # ========================================================================
    # Deletion
    # ========================================================================

    def delete_recipe(self, recipe_id: int) -> bool:
        """
        Delete a recipe, its ingredients and its version history.

        The owning product's manufacturing cost cache is cleared. Recipes that
        use the product as an ingredient fail their next cost resolution
        until it gets a new recipe.

        Returns:
            True if deleted successfully

        Raises:
            RecipeNotFound: If recipe doesn't exist
            DatabaseError: If database operation fails
        """
        try:
            with self.database.session_scope() as session:
                recipe = self.recipes.get(session, recipe_id)
                if recipe is None:
                    raise RecipeNotFound(recipe_id)

                product = recipe.product
                if product is not None:
                    product.manufacturing_cost = None

                self.recipes.delete(session, recipe_id)

        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to delete recipe {recipe_id}", e)

        log_operation(logger, operation="delete_recipe", outcome="success", recipe_id=recipe_id)
        return True
