"""
Recipe Version Service - append-only snapshots of prior recipe states.

Provides snapshot creation and retrieval. NO UPDATE METHODS.
A snapshot captures a recipe and its full ingredient list immediately
before a saved change, so earlier costings can be reconstructed.

Session Management Pattern:
- All public methods accept session=None
- If session provided, use it directly
- If session is None, create a new session via database.session_scope()
"""

import json
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rocafe.models import Recipe, RecipeIngredient, RecipeVersion
from rocafe.services.database import Database
from rocafe.services.exceptions import DatabaseError, RecipeNotFound
from rocafe.services.logging_utils import get_service_logger, log_operation
from rocafe.services.repositories import (
    RecipeIngredientRepository,
    RecipeRepository,
    RecipeVersionRepository,
)
from rocafe.utils.datetime_utils import utc_now
from rocafe.utils.dto_utils import decimal_to_json

logger = get_service_logger(__name__)

DEFAULT_CHANGE_DESCRIPTION = "Recipe updated"


def build_recipe_snapshot(recipe: Recipe, ingredients: List[RecipeIngredient]) -> Dict:
    """
    Serialize a recipe and its ingredient list.

    Decimals are stored as strings so the snapshot keeps full precision.
    """
    recipe_data = {
        "id": recipe.id,
        "product_id": recipe.product_id,
        "name": recipe.name,
        "version": recipe.version,
        "total_cost": decimal_to_json(recipe.total_cost),
        "is_active": recipe.is_active,
    }

    ingredients_data = [
        {
            "product_id": ri.product_id,
            "product_name": ri.product.name if ri.product else "Unknown",
            "quantity": decimal_to_json(ri.quantity),
        }
        for ri in ingredients
    ]

    return {"recipe": recipe_data, "ingredients": ingredients_data}


def _version_to_dict(version: RecipeVersion) -> Dict:
    return {
        "id": version.id,
        "recipe_id": version.recipe_id,
        "version": version.version,
        "change_description": version.change_description,
        "modified_at": version.modified_at.isoformat() if version.modified_at else None,
        "previous_data": version.get_previous_data(),
    }


class RecipeVersionService:
    """Creates and reads RecipeVersion rows."""

    def __init__(self, database: Database):
        self.database = database
        self.recipes = RecipeRepository()
        self.ingredients = RecipeIngredientRepository()
        self.versions = RecipeVersionRepository()

    def create_recipe_version(
        self,
        recipe_id: int,
        change_description: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Dict:
        """
        Snapshot a recipe's current stored state.

        The snapshot records the recipe's current version number. Bumping
        the recipe's own version is the caller's job.

        Args:
            recipe_id: Recipe to snapshot
            change_description: Description of the change about to be applied
            session: Optional session for transaction sharing

        Returns:
            dict with the version row data

        Raises:
            RecipeNotFound: If the recipe does not exist
            DatabaseError: If the store fails
        """
        if session is not None:
            return self._create_recipe_version_impl(recipe_id, change_description, session)

        try:
            with self.database.session_scope() as session:
                return self._create_recipe_version_impl(recipe_id, change_description, session)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to create version for recipe {recipe_id}", e)

    def _create_recipe_version_impl(
        self, recipe_id: int, change_description: Optional[str], session: Session
    ) -> Dict:
        recipe = self.recipes.get(session, recipe_id)
        if recipe is None:
            raise RecipeNotFound(recipe_id)

        snapshot = build_recipe_snapshot(
            recipe, self.ingredients.get_by_recipe_id(session, recipe_id)
        )

        version = RecipeVersion(
            recipe_id=recipe_id,
            version=recipe.version,
            previous_data=json.dumps(snapshot),
            change_description=change_description or DEFAULT_CHANGE_DESCRIPTION,
            modified_at=utc_now(),
        )
        session.add(version)
        session.flush()  # Get ID without committing

        log_operation(
            logger,
            operation="create_recipe_version",
            outcome="success",
            recipe_id=recipe_id,
            version=version.version,
        )
        return _version_to_dict(version)

    def get_recipe_versions(self, recipe_id: int, session: Optional[Session] = None) -> List[Dict]:
        """
        Get all versions of a recipe, newest first.

        Args:
            recipe_id: Recipe to get history for
            session: Optional session

        Returns:
            List of version dicts
        """
        if session is not None:
            return [_version_to_dict(v) for v in self.versions.get_by_recipe_id(session, recipe_id)]

        try:
            with self.database.session_scope() as session:
                return [
                    _version_to_dict(v) for v in self.versions.get_by_recipe_id(session, recipe_id)
                ]
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to retrieve versions for recipe {recipe_id}", e)

    def get_recipe_version(
        self, version_id: int, session: Optional[Session] = None
    ) -> Optional[Dict]:
        """
        Get a single version by ID.

        Returns:
            Version dict or None if not found
        """
        if session is not None:
            version = self.versions.get(session, version_id)
            return _version_to_dict(version) if version else None

        try:
            with self.database.session_scope() as session:
                version = self.versions.get(session, version_id)
                return _version_to_dict(version) if version else None
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to retrieve recipe version {version_id}", e)
