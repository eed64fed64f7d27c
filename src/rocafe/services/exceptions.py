"""Service layer exception classes for Rocafe.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── RecipeNotFound
    ├── ProductNotFound
    ├── ValidationError
    │   ├── InvalidQuantity
    │   └── IngredientCostInvalid
    ├── CircularReference
    ├── RecipeDepthExceeded
    ├── DatabaseError
    └── BackupError
        ├── SourceNotFound
        ├── BackupFileNotFound
        ├── BackupInvalid
        ├── PreRestoreBackupFailed
        └── RestoreFailed
            └── RestoreRollbackFailed
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


# ============================================================================
# Not found
# ============================================================================


class RecipeNotFound(ServiceError):
    """Raised when a recipe cannot be found by ID.

    Example:
        >>> raise RecipeNotFound(12)
        RecipeNotFound: Recipe with ID 12 not found
    """

    def __init__(self, recipe_id: int):
        self.recipe_id = recipe_id
        super().__init__(f"Recipe with ID {recipe_id} not found")


class ProductNotFound(ServiceError):
    """Raised when a product cannot be found by ID.

    Example:
        >>> raise ProductNotFound(123)
        ProductNotFound: Product with ID 123 not found
    """

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


# ============================================================================
# Validation
# ============================================================================


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class InvalidQuantity(ValidationError):
    """Raised when a recipe ingredient quantity is not strictly positive.

    Args:
        product_id: Ingredient product with the bad quantity
        quantity: The rejected quantity
    """

    def __init__(self, product_id: Optional[int], quantity):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(
            [f"Ingredient quantity must be greater than zero "
             f"(product {product_id}, quantity {quantity})"]
        )


class IngredientCostInvalid(ValidationError):
    """Raised when an ingredient has no usable unit cost.

    Covers a raw material with an unset or negative purchase cost and a
    manufactured product with no recipe.

    Args:
        product_name: Name of the offending product
        reason: Why the cost is unusable
    """

    def __init__(self, product_name: str, reason: str, product_id: Optional[int] = None):
        self.product_name = product_name
        self.product_id = product_id
        self.reason = reason
        super().__init__([f"Ingredient '{product_name}' has an invalid cost: {reason}"])


# ============================================================================
# Graph integrity
# ============================================================================


class CircularReference(ServiceError):
    """Raised when a recipe directly or transitively contains itself.

    Args:
        recipe_id: Recipe that was re-entered
        path: Recipe IDs along the cycle, first and last equal

    Example:
        >>> raise CircularReference(3, [3, 7, 3])
        CircularReference: Circular reference detected in recipe 3: 3 -> 7 -> 3
    """

    def __init__(self, recipe_id: int, path: Optional[Sequence[int]] = None):
        self.recipe_id = recipe_id
        self.path = list(path) if path else [recipe_id]
        cycle = " -> ".join(str(step) for step in self.path)
        super().__init__(f"Circular reference detected in recipe {recipe_id}: {cycle}")


class RecipeDepthExceeded(ServiceError):
    """Raised when sub-recipe nesting exceeds the configured maximum depth."""

    def __init__(self, recipe_id: int, max_depth: int):
        self.recipe_id = recipe_id
        self.max_depth = max_depth
        super().__init__(
            f"Recipe {recipe_id} exceeds the maximum sub-recipe depth of {max_depth}"
        )


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


# ============================================================================
# Backup / restore
# ============================================================================


PathLike = Union[str, Path]


class BackupError(ServiceError):
    """Base class for backup and restore failures."""

    pass


class SourceNotFound(BackupError):
    """Raised when the live database file to back up does not exist."""

    def __init__(self, path: PathLike):
        self.path = Path(path)
        super().__init__(f"Database file not found: {path}")


class BackupFileNotFound(BackupError):
    """Raised when a backup file selected for restore does not exist."""

    def __init__(self, path: PathLike):
        self.path = Path(path)
        super().__init__(f"Backup file not found: {path}")


class BackupInvalid(BackupError):
    """Raised when a backup file fails the integrity check."""

    def __init__(self, path: PathLike, reason: Optional[str] = None):
        self.path = Path(path)
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Backup file is invalid: {path}{detail}")


class PreRestoreBackupFailed(BackupError):
    """Raised when the live database could not be moved to safety.

    The live database has not been touched when this is raised.
    """

    def __init__(self, path: PathLike, original_error: Exception = None):
        self.path = Path(path)
        self.original_error = original_error
        super().__init__(
            f"Could not create pre-restore safety copy at {path}: {original_error}"
        )


class RestoreFailed(BackupError):
    """Raised when copying a backup into place failed.

    Attributes:
        backup_path: Backup that was being restored
        safety_path: Where the pre-restore copy of the live database is
        original_error: The copy failure
        recovered: True if the pre-restore copy was moved back into place
    """

    recovered = True

    def __init__(
        self,
        backup_path: PathLike,
        safety_path: Optional[PathLike],
        original_error: Exception = None,
    ):
        self.backup_path = Path(backup_path)
        self.safety_path = Path(safety_path) if safety_path is not None else None
        self.original_error = original_error
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        return (
            f"Restore from {self.backup_path} failed ({self.original_error}); "
            f"the previous database was put back in place"
        )


class RestoreRollbackFailed(RestoreFailed):
    """Raised when a failed restore could not be rolled back.

    The system has no live database. The pre-restore copy at
    ``safety_path`` must be moved back by hand.
    """

    recovered = False

    def __init__(
        self,
        backup_path: PathLike,
        safety_path: Optional[PathLike],
        original_error: Exception = None,
        rollback_error: Exception = None,
    ):
        self.rollback_error = rollback_error
        super().__init__(backup_path, safety_path, original_error)

    def _build_message(self) -> str:
        return (
            f"CRITICAL: restore from {self.backup_path} failed ({self.original_error}) "
            f"and rollback failed ({self.rollback_error}). No live database is in place; "
            f"recover it manually from {self.safety_path}"
        )
