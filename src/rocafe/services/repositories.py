"""
Typed record accessors over a caller-owned session.

Repositories never open or commit transactions. Every method takes the
session of the enclosing ``Database.session_scope()`` so multi-step
operations (ingredient replace, cost traversal) run in one transaction.

Operations:
- get(session, id)                 -> record or None
- get_all(session, **filters)      -> list of records (ordered by id)
- upsert(session, record)          -> id
- delete(session, id)              -> bool
"""

from decimal import Decimal
from typing import Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from rocafe.models import (
    BaseModel,
    ManufacturedProduct,
    Product,
    Recipe,
    RecipeIngredient,
    RecipeVersion,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


class Repository(Generic[ModelT]):
    """Generic CRUD accessor for one model class."""

    model: Type[ModelT]

    def get(self, session: Session, record_id: int) -> Optional[ModelT]:
        return session.get(self.model, record_id)

    def get_all(self, session: Session, **filters) -> List[ModelT]:
        stmt = select(self.model).filter_by(**filters).order_by(self.model.id)
        return list(session.scalars(stmt).all())

    def upsert(self, session: Session, record: ModelT) -> int:
        """
        Insert a new record or update an existing one.

        A record without an id is inserted. A record with an id is merged
        into the session (inserted if no row with that id exists yet).

        Returns:
            The record's id
        """
        if record.id is None or record in session:
            session.add(record)
        else:
            record = session.merge(record)
        session.flush()
        return record.id

    def delete(self, session: Session, record_id: int) -> bool:
        """Delete by id. Returns False if the record did not exist."""
        record = self.get(session, record_id)
        if record is None:
            return False
        session.delete(record)
        session.flush()
        return True


class ProductRepository(Repository[Product]):
    model = Product


class RecipeRepository(Repository[Recipe]):
    model = Recipe

    def get_by_product_id(self, session: Session, product_id: int) -> Optional[Recipe]:
        stmt = select(Recipe).where(Recipe.product_id == product_id)
        return session.scalars(stmt).first()

    def update_total_cost(self, session: Session, recipe: Recipe, total_cost: Decimal) -> None:
        """
        Write a recipe's cached cost with a narrow UPDATE.

        Only ``total_cost`` (and the owning product's ``manufacturing_cost``
        cache) is touched; other pending changes on the recipe row are left
        alone.
        """
        session.execute(
            update(Recipe)
            .where(Recipe.id == recipe.id)
            .values(total_cost=total_cost)
            .execution_options(synchronize_session="fetch")
        )
        session.execute(
            update(ManufacturedProduct)
            .where(ManufacturedProduct.id == recipe.product_id)
            .values(manufacturing_cost=total_cost)
            .execution_options(synchronize_session="fetch")
        )


class RecipeIngredientRepository(Repository[RecipeIngredient]):
    model = RecipeIngredient

    def get_by_recipe_id(self, session: Session, recipe_id: int) -> List[RecipeIngredient]:
        stmt = (
            select(RecipeIngredient)
            .where(RecipeIngredient.recipe_id == recipe_id)
            .order_by(RecipeIngredient.id)
        )
        return list(session.scalars(stmt).unique().all())

    def delete_by_recipe_id(self, session: Session, recipe_id: int) -> int:
        """Delete every ingredient row of a recipe. Returns the row count."""
        result = session.execute(
            delete(RecipeIngredient)
            .where(RecipeIngredient.recipe_id == recipe_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def replace_for_recipe(
        self, session: Session, recipe_id: int, ingredients: Iterable[RecipeIngredient]
    ) -> List[RecipeIngredient]:
        """
        Replace a recipe's whole ingredient list.

        Deletes all existing rows, then inserts the given ones stamped with
        ``recipe_id``.
        """
        self.delete_by_recipe_id(session, recipe_id)

        inserted = []
        for ingredient in ingredients:
            ingredient.recipe_id = recipe_id
            session.add(ingredient)
            inserted.append(ingredient)
        session.flush()

        # The loaded collection no longer matches the table
        recipe = session.get(Recipe, recipe_id)
        if recipe is not None:
            session.expire(recipe, ["recipe_ingredients"])

        return inserted


class RecipeVersionRepository(Repository[RecipeVersion]):
    model = RecipeVersion

    def get_by_recipe_id(self, session: Session, recipe_id: int) -> List[RecipeVersion]:
        """Versions of a recipe, newest first."""
        stmt = (
            select(RecipeVersion)
            .where(RecipeVersion.recipe_id == recipe_id)
            .order_by(RecipeVersion.version.desc(), RecipeVersion.id.desc())
        )
        return list(session.scalars(stmt).all())
