"""Tests for the service exception hierarchy."""

from pathlib import Path

import pytest

from rocafe.services.exceptions import (
    BackupError,
    BackupFileNotFound,
    BackupInvalid,
    CircularReference,
    DatabaseError,
    IngredientCostInvalid,
    InvalidQuantity,
    PreRestoreBackupFailed,
    ProductNotFound,
    RecipeDepthExceeded,
    RecipeNotFound,
    RestoreFailed,
    RestoreRollbackFailed,
    ServiceError,
    SourceNotFound,
    ValidationError,
)


@pytest.mark.parametrize(
    "error",
    [
        RecipeNotFound(1),
        ProductNotFound(2),
        ValidationError(["bad"]),
        InvalidQuantity(3, "0"),
        IngredientCostInvalid("Milk", "purchase cost is not set"),
        CircularReference(4, [4, 5, 4]),
        RecipeDepthExceeded(6, 50),
        DatabaseError("boom"),
        SourceNotFound("/tmp/x.sqlite"),
        BackupFileNotFound("/tmp/y.sqlite"),
        BackupInvalid("/tmp/z.sqlite", "bad header"),
        PreRestoreBackupFailed("/tmp/p.sqlite", OSError("denied")),
        RestoreFailed("/tmp/b.sqlite", "/tmp/s.sqlite", OSError("full")),
        RestoreRollbackFailed("/tmp/b.sqlite", "/tmp/s.sqlite", OSError("full"), OSError("ro")),
    ],
)
def test_everything_is_a_service_error(error):
    assert isinstance(error, ServiceError)


def test_validation_subclasses():
    assert issubclass(InvalidQuantity, ValidationError)
    assert issubclass(IngredientCostInvalid, ValidationError)


def test_backup_subclasses():
    for cls in (SourceNotFound, BackupFileNotFound, BackupInvalid, PreRestoreBackupFailed):
        assert issubclass(cls, BackupError)
    assert issubclass(RestoreRollbackFailed, RestoreFailed)


def test_recipe_not_found_message():
    error = RecipeNotFound(12)

    assert error.recipe_id == 12
    assert str(error) == "Recipe with ID 12 not found"


def test_validation_error_joins_messages():
    error = ValidationError(["Name is required", "Quantity must be positive"])

    assert error.errors == ["Name is required", "Quantity must be positive"]
    assert str(error) == "Validation failed: Name is required; Quantity must be positive"


def test_circular_reference_path():
    error = CircularReference(3, [3, 7, 3])

    assert error.path == [3, 7, 3]
    assert str(error) == "Circular reference detected in recipe 3: 3 -> 7 -> 3"


def test_circular_reference_without_path():
    assert CircularReference(9).path == [9]


def test_ingredient_cost_invalid_fields():
    error = IngredientCostInvalid("Saffron", "purchase cost is not set", product_id=11)

    assert error.product_name == "Saffron"
    assert error.product_id == 11
    assert "Saffron" in str(error)


def test_database_error_keeps_original():
    original = RuntimeError("locked")
    error = DatabaseError("Failed to save recipe", original)

    assert error.original_error is original
    assert str(error) == "Database error: Failed to save recipe"


def test_backup_paths_are_paths():
    assert BackupInvalid("/tmp/z.sqlite").path == Path("/tmp/z.sqlite")
    assert BackupInvalid("/tmp/z.sqlite").reason is None


def test_restore_failed_is_recoverable():
    error = RestoreFailed("/tmp/b.sqlite", "/tmp/s.sqlite", OSError("full"))

    assert error.recovered is True
    assert error.safety_path == Path("/tmp/s.sqlite")
    assert "put back" in str(error)


def test_restore_rollback_failed_is_critical():
    rollback_error = OSError("read-only")
    error = RestoreRollbackFailed("/tmp/b.sqlite", "/tmp/s.sqlite", OSError("full"), rollback_error)

    assert error.recovered is False
    assert error.rollback_error is rollback_error
    assert str(error).startswith("CRITICAL:")
    assert "/tmp/s.sqlite" in str(error)
