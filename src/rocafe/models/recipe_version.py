"""
RecipeVersion model for the append-only recipe change log.

Each row stores a JSON snapshot of a recipe and its ingredient list as it
was immediately before a saved change. Rows are never updated; an ORM hook
rejects any attempt to flush a modification.
"""

import json

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, event
from sqlalchemy.orm import relationship

from .base import BaseModel
from rocafe.utils.datetime_utils import utc_now


class RecipeVersion(BaseModel):
    """
    Immutable snapshot of a prior recipe state.

    Attributes:
        recipe_id: FK to the recipe the snapshot belongs to
        version: Recipe version number captured by the snapshot
        previous_data: JSON string with recipe fields and ingredient list
        change_description: Human description of the change that followed
        modified_at: When the change was applied
    """

    __tablename__ = "recipe_versions"

    recipe_id = Column(
        Integer,
        ForeignKey("recipes.id", ondelete="CASCADE"),
        nullable=False,
    )
    version = Column(Integer, nullable=False)
    previous_data = Column(Text, nullable=False)
    change_description = Column(Text, nullable=False)
    modified_at = Column(DateTime, nullable=False, default=utc_now)

    recipe = relationship("Recipe", back_populates="versions")

    __table_args__ = (
        Index("idx_recipe_version_recipe", "recipe_id"),
        Index("idx_recipe_version_recipe_version", "recipe_id", "version"),
    )

    def get_previous_data(self) -> dict:
        """
        Parse and return the snapshot data from JSON.

        Returns:
            Dictionary with "recipe" and "ingredients" keys.
            Empty dict if previous_data is None or invalid JSON.
        """
        if not self.previous_data:
            return {}
        try:
            return json.loads(self.previous_data)
        except json.JSONDecodeError:
            return {}

    def __repr__(self) -> str:
        """String representation of recipe version."""
        return (
            f"RecipeVersion(id={self.id}, recipe_id={self.recipe_id}, "
            f"version={self.version})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Convert version to dictionary with parsed snapshot data."""
        result = super().to_dict(include_relationships)
        result["previous_data_parsed"] = self.get_previous_data()
        return result


@event.listens_for(RecipeVersion, "before_update")
def _reject_recipe_version_update(mapper, connection, target):
    """Recipe versions are append-only."""
    raise ValueError(f"RecipeVersion {target.id} is immutable and cannot be modified")
