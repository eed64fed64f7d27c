"""
Cost Aggregation Service - recursive recipe cost resolution.

A recipe's cost is the sum of ``quantity * unit_cost`` over its ingredients.
Raw materials contribute their purchase cost; manufactured products
contribute the cost of their own recipe, resolved recursively. The
ingredient graph may contain cycles, which are detected at resolution time.

Every resolution runs inside one transaction:
- total_cost is written for every recipe visited (not only the root)
- any failure (missing record, invalid cost, cycle, depth bound) aborts
  the traversal and the enclosing transaction rolls back, so no partial
  cost update is ever visible

Session Management Pattern:
- Public methods accept session=None
- If session provided, run inside the caller's transaction (the caller
  must roll back on error)
- If session is None, open a new session via database.session_scope()
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rocafe.models import ManufacturedProduct, Product, RawMaterial, Recipe
from rocafe.services.database import Database
from rocafe.services.exceptions import (
    CircularReference,
    DatabaseError,
    IngredientCostInvalid,
    ProductNotFound,
    RecipeDepthExceeded,
    RecipeNotFound,
    ServiceError,
)
from rocafe.services.logging_utils import get_service_logger, log_operation
from rocafe.services.repositories import (
    ProductRepository,
    RecipeIngredientRepository,
    RecipeRepository,
)
from rocafe.utils.config import get_config
from rocafe.utils.constants import ZERO_COST
from rocafe.utils.dto_utils import cost_to_string, to_decimal

logger = get_service_logger(__name__)


@dataclass
class CostTraversal:
    """
    State owned by one top-level resolution.

    Attributes:
        max_depth: Deepest allowed sub-recipe nesting
        visiting: Recipes on the current call stack (cycle detection)
        path: Same recipes in visiting order (cycle diagnostics)
        resolved: Costs already computed in this traversal
    """

    max_depth: int
    visiting: Set[int] = field(default_factory=set)
    path: List[int] = field(default_factory=list)
    resolved: Dict[int, Decimal] = field(default_factory=dict)

    def enter(self, recipe_id: int) -> None:
        self.visiting.add(recipe_id)
        self.path.append(recipe_id)

    def leave(self, recipe_id: int) -> None:
        self.visiting.discard(recipe_id)
        if self.path and self.path[-1] == recipe_id:
            self.path.pop()

    def cycle_path(self, recipe_id: int) -> List[int]:
        """Recipe ids from the first visit of recipe_id back to itself."""
        start = self.path.index(recipe_id)
        return self.path[start:] + [recipe_id]

    @property
    def depth(self) -> int:
        return len(self.path)


class CostAggregationService:
    """
    Computes and persists recipe costs.

    Example:
        service = CostAggregationService(database)
        total = service.resolve_cost(recipe_id)
    """

    def __init__(self, database: Database, max_depth: Optional[int] = None):
        self.database = database
        self.max_depth = max_depth if max_depth is not None else get_config().max_recipe_depth
        self.products = ProductRepository()
        self.recipes = RecipeRepository()
        self.ingredients = RecipeIngredientRepository()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_cost(self, recipe_id: int, session: Optional[Session] = None) -> Decimal:
        """
        Compute a recipe's total cost and persist it with every sub-recipe cost.

        Args:
            recipe_id: Root recipe
            session: Optional session for transaction sharing

        Returns:
            Total cost as Decimal

        Raises:
            RecipeNotFound: If the root or a referenced sub-recipe is missing
            ProductNotFound: If an ingredient references a missing product
            IngredientCostInvalid: If a raw material has no usable cost or a
                manufactured ingredient has no recipe
            CircularReference: If a recipe contains itself
            RecipeDepthExceeded: If nesting exceeds max_depth
            DatabaseError: If the store fails
        """
        if session is not None:
            return self._resolve_root(recipe_id, session)

        try:
            with self.database.session_scope() as session:
                return self._resolve_root(recipe_id, session)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to resolve cost for recipe {recipe_id}", e)

    def resolve_all(self, session: Optional[Session] = None) -> Dict[int, Decimal]:
        """
        Recompute every recipe's cost in one transaction.

        Shared sub-recipes are resolved once. Used after raw material
        purchase costs change.

        Returns:
            Mapping of recipe id to total cost
        """
        if session is not None:
            return self._resolve_all_impl(session)

        try:
            with self.database.session_scope() as session:
                return self._resolve_all_impl(session)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to resolve all recipe costs", e)

    def get_cost_breakdown(self, recipe_id: int, session: Optional[Session] = None) -> Dict:
        """
        Per-ingredient breakdown of a recipe's cached cost.

        Read-only: uses the cached purchase/manufacturing costs and never
        triggers a resolution.

        Returns:
            Dict with recipe fields, "ingredients" lines and "is_complete"
            (False when some ingredient has no known unit cost)
        """
        if session is not None:
            return self._get_cost_breakdown_impl(recipe_id, session)

        try:
            with self.database.session_scope() as session:
                return self._get_cost_breakdown_impl(recipe_id, session)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to get cost breakdown for recipe {recipe_id}", e)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _resolve_root(self, recipe_id: int, session: Session) -> Decimal:
        traversal = CostTraversal(max_depth=self.max_depth)
        try:
            total = self._resolve(recipe_id, session, traversal)
        except ServiceError as e:
            log_operation(
                logger,
                operation="resolve_cost",
                outcome=type(e).__name__,
                level=logging.WARNING,
                recipe_id=recipe_id,
                error=str(e),
            )
            raise

        log_operation(
            logger,
            operation="resolve_cost",
            outcome="success",
            recipe_id=recipe_id,
            total_cost=cost_to_string(total),
            recipes_updated=len(traversal.resolved),
        )
        return total

    def _resolve_all_impl(self, session: Session) -> Dict[int, Decimal]:
        traversal = CostTraversal(max_depth=self.max_depth)
        results = {}
        for recipe in self.recipes.get_all(session):
            results[recipe.id] = self._resolve(recipe.id, session, traversal)

        log_operation(
            logger,
            operation="resolve_all",
            outcome="success",
            recipes_updated=len(results),
        )
        return results

    def _resolve(self, recipe_id: int, session: Session, traversal: CostTraversal) -> Decimal:
        recipe = self.recipes.get(session, recipe_id)
        if recipe is None:
            raise RecipeNotFound(recipe_id)

        if recipe_id in traversal.visiting:
            raise CircularReference(recipe_id, traversal.cycle_path(recipe_id))

        if recipe_id in traversal.resolved:
            return traversal.resolved[recipe_id]

        if traversal.depth >= traversal.max_depth:
            raise RecipeDepthExceeded(recipe_id, traversal.max_depth)

        traversal.enter(recipe_id)
        try:
            total = ZERO_COST
            for ingredient in self.ingredients.get_by_recipe_id(session, recipe_id):
                product = self.products.get(session, ingredient.product_id)
                if product is None:
                    raise ProductNotFound(ingredient.product_id)

                unit_cost = self._unit_cost(product, session, traversal)
                total += to_decimal(ingredient.quantity) * unit_cost

            self.recipes.update_total_cost(session, recipe, total)
        finally:
            traversal.leave(recipe_id)

        traversal.resolved[recipe_id] = total
        logger.debug(f"Recipe {recipe_id} ({recipe.name}) resolved to {total}")
        return total

    def _unit_cost(self, product: Product, session: Session, traversal: CostTraversal) -> Decimal:
        if isinstance(product, RawMaterial):
            return self._purchase_cost(product)

        if isinstance(product, ManufacturedProduct):
            sub_recipe_id = product.recipe_id
            if sub_recipe_id is None:
                raise IngredientCostInvalid(
                    product.name, "manufactured product has no recipe", product.id
                )
            return self._resolve(sub_recipe_id, session, traversal)

        raise IngredientCostInvalid(
            product.name, f"unknown product type '{product.product_type}'", product.id
        )

    @staticmethod
    def _purchase_cost(product: RawMaterial) -> Decimal:
        """Raw material unit cost. Zero is valid; unset or negative is not."""
        cost = to_decimal(product.purchase_cost)
        if cost is None:
            raise IngredientCostInvalid(product.name, "purchase cost is not set", product.id)
        if cost < 0:
            raise IngredientCostInvalid(
                product.name, f"purchase cost {cost} is negative", product.id
            )
        return cost

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _get_cost_breakdown_impl(self, recipe_id: int, session: Session) -> Dict:
        recipe: Optional[Recipe] = self.recipes.get(session, recipe_id)
        if recipe is None:
            raise RecipeNotFound(recipe_id)

        lines = []
        is_complete = True
        for ingredient in self.ingredients.get_by_recipe_id(session, recipe_id):
            product = self.products.get(session, ingredient.product_id)
            if product is None:
                raise ProductNotFound(ingredient.product_id)

            quantity = to_decimal(ingredient.quantity)
            unit_cost = to_decimal(product.unit_cost)
            if unit_cost is None:
                is_complete = False
                line_cost = None
            else:
                line_cost = quantity * unit_cost

            lines.append(
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "product_type": product.product_type,
                    "quantity": str(quantity),
                    "unit_cost": cost_to_string(unit_cost) if unit_cost is not None else None,
                    "line_cost": cost_to_string(line_cost) if line_cost is not None else None,
                }
            )

        return {
            "recipe_id": recipe.id,
            "recipe_name": recipe.name,
            "version": recipe.version,
            "total_cost": cost_to_string(recipe.total_cost),
            "ingredients": lines,
            "is_complete": is_complete,
        }
