"""Tests for the recipe save/versioning coordinator.

Covers:
- Create and update with replace-all-ingredients semantics
- Quantity validation before any persistence
- Version snapshot and bump on update
- Cost recomputation after save and error propagation
- Retrieval and deletion
"""

from decimal import Decimal

import pytest

from rocafe.models import (
    ManufacturedProduct,
    RawMaterial,
    Recipe,
    RecipeIngredient,
    RecipeVersion,
)
from rocafe.services.exceptions import (
    CircularReference,
    InvalidQuantity,
    ProductNotFound,
    RecipeNotFound,
    ValidationError,
)
from rocafe.services.recipe_service import RecipeService, validate_ingredients_data


@pytest.fixture
def recipe_service(test_db):
    return RecipeService(test_db)


@pytest.fixture
def pantry(make_raw_material, make_manufactured):
    """Coffee, Milk, Cocoa and an empty Mocha product."""
    return {
        "coffee_id": make_raw_material("Coffee", "10.50"),
        "milk_id": make_raw_material("Milk", "2.00"),
        "cocoa_id": make_raw_material("Cocoa", "8.00"),
        "mocha_id": make_manufactured("Mocha", sale_price="6.00"),
    }


def _stored_ingredients(database, recipe_id):
    with database.session_scope() as session:
        rows = session.query(RecipeIngredient).filter_by(recipe_id=recipe_id).all()
        return sorted((row.product_id, row.quantity) for row in rows)


class TestSaveRecipeCreate:
    """Tests for creating a recipe."""

    def test_create_computes_cost(self, recipe_service, pantry):
        recipe = recipe_service.save_recipe(
            {"product_id": pantry["mocha_id"], "name": "Mocha"},
            [
                {"product_id": pantry["coffee_id"], "quantity": "0.1"},
                {"product_id": pantry["milk_id"], "quantity": "0.2"},
            ],
        )

        assert recipe.id is not None
        assert recipe.version == 1
        assert recipe.total_cost == Decimal("1.45")
        assert len(recipe.recipe_ingredients) == 2

    def test_create_writes_no_version_snapshot(self, test_db, recipe_service, pantry):
        recipe = recipe_service.save_recipe(
            {"product_id": pantry["mocha_id"], "name": "Mocha"},
            [{"product_id": pantry["coffee_id"], "quantity": "0.1"}],
        )

        with test_db.session_scope() as session:
            assert session.query(RecipeVersion).filter_by(recipe_id=recipe.id).count() == 0

    def test_float_quantities_are_exact(self, recipe_service, pantry):
        recipe = recipe_service.save_recipe(
            {"product_id": pantry["mocha_id"], "name": "Mocha"},
            [
                {"product_id": pantry["coffee_id"], "quantity": 0.1},
                {"product_id": pantry["milk_id"], "quantity": 0.2},
            ],
        )

        assert recipe.total_cost == Decimal("1.45")

    def test_tiny_quantity_is_stored_exactly(
        self, test_db, recipe_service, make_raw_material, pantry
    ):
        """Quantities finer than four decimal places keep every digit."""
        salt_id = make_raw_material("Salt", "100.00")

        recipe = recipe_service.save_recipe(
            {"product_id": pantry["mocha_id"], "name": "Mocha"},
            [{"product_id": salt_id, "quantity": "0.00004"}],
        )

        assert recipe.total_cost == Decimal("0.004")
        assert _stored_ingredients(test_db, recipe.id) == [(salt_id, Decimal("0.00004"))]

    def test_owner_must_be_manufactured(self, recipe_service, pantry):
        with pytest.raises(ValidationError) as exc_info:
            recipe_service.save_recipe(
                {"product_id": pantry["coffee_id"], "name": "Coffee?"},
                [{"product_id": pantry["milk_id"], "quantity": "1"}],
            )

        assert "not a manufactured product" in str(exc_info.value)

    def test_missing_owner(self, recipe_service, pantry):
        with pytest.raises(ProductNotFound):
            recipe_service.save_recipe(
                {"product_id": 99999, "name": "Ghost"},
                [{"product_id": pantry["milk_id"], "quantity": "1"}],
            )

    def test_missing_ingredient_product(self, test_db, recipe_service, pantry):
        with pytest.raises(ProductNotFound) as exc_info:
            recipe_service.save_recipe(
                {"product_id": pantry["mocha_id"], "name": "Mocha"},
                [{"product_id": 88888, "quantity": "1"}],
            )

        assert exc_info.value.product_id == 88888
        with test_db.session_scope() as session:
            assert session.query(Recipe).count() == 0

    def test_name_required(self, recipe_service, pantry):
        with pytest.raises(ValidationError) as exc_info:
            recipe_service.save_recipe({"product_id": pantry["mocha_id"], "name": "  "}, [])

        assert "name is required" in str(exc_info.value)


class TestSaveRecipeUpdate:
    """Tests for updating an existing recipe."""

    @pytest.fixture
    def mocha_recipe(self, recipe_service, pantry):
        return recipe_service.save_recipe(
            {"product_id": pantry["mocha_id"], "name": "Mocha"},
            [
                {"product_id": pantry["coffee_id"], "quantity": "0.1"},
                {"product_id": pantry["milk_id"], "quantity": "0.2"},
            ],
        )

    def test_replaces_all_ingredients(self, test_db, recipe_service, pantry, mocha_recipe):
        recipe_service.save_recipe(
            {"id": mocha_recipe.id, "product_id": pantry["mocha_id"], "name": "Mocha"},
            [{"product_id": pantry["cocoa_id"], "quantity": "0.25"}],
        )

        assert _stored_ingredients(test_db, mocha_recipe.id) == [
            (pantry["cocoa_id"], Decimal("0.25"))
        ]

    def test_update_recomputes_cost(self, recipe_service, pantry, mocha_recipe):
        updated = recipe_service.save_recipe(
            {"id": mocha_recipe.id, "product_id": pantry["mocha_id"], "name": "Mocha"},
            [
                {"product_id": pantry["coffee_id"], "quantity": "0.1"},
                {"product_id": pantry["cocoa_id"], "quantity": "0.05"},
            ],
        )

        # 1.05 + 0.40
        assert updated.total_cost == Decimal("1.45")
        assert [ri.product.name for ri in updated.recipe_ingredients] == ["Coffee", "Cocoa"]

    def test_update_bumps_version_and_snapshots_previous_state(
        self, test_db, recipe_service, pantry, mocha_recipe
    ):
        updated = recipe_service.save_recipe(
            {"id": mocha_recipe.id, "product_id": pantry["mocha_id"], "name": "Mocha v2"},
            [{"product_id": pantry["cocoa_id"], "quantity": "0.25"}],
            change_description="Swap coffee and milk for cocoa",
        )

        assert updated.version == 2
        assert updated.name == "Mocha v2"

        versions = recipe_service.version_service.get_recipe_versions(mocha_recipe.id)
        assert len(versions) == 1
        snapshot = versions[0]
        assert snapshot["version"] == 1
        assert snapshot["change_description"] == "Swap coffee and milk for cocoa"
        previous = snapshot["previous_data"]
        assert previous["recipe"]["name"] == "Mocha"
        assert Decimal(previous["recipe"]["total_cost"]) == Decimal("1.45")
        assert sorted(i["product_name"] for i in previous["ingredients"]) == ["Coffee", "Milk"]

    def test_save_without_id_updates_products_recipe(
        self, test_db, recipe_service, pantry, mocha_recipe
    ):
        """A product owns one recipe; saving again for it updates that recipe."""
        updated = recipe_service.save_recipe(
            {"product_id": pantry["mocha_id"], "name": "Mocha"},
            [{"product_id": pantry["milk_id"], "quantity": "1"}],
        )

        assert updated.id == mocha_recipe.id
        assert updated.version == 2
        with test_db.session_scope() as session:
            assert session.query(Recipe).count() == 1

    def test_unknown_recipe_id(self, recipe_service, pantry):
        with pytest.raises(RecipeNotFound):
            recipe_service.save_recipe(
                {"id": 4321, "product_id": pantry["mocha_id"], "name": "Mocha"},
                [{"product_id": pantry["milk_id"], "quantity": "1"}],
            )

    @pytest.mark.parametrize("bad_quantity", ["0", "-0.5", 0, -1, None, "abc", "NaN"])
    def test_invalid_quantity_leaves_ingredients_unchanged(
        self, test_db, recipe_service, pantry, mocha_recipe, bad_quantity
    ):
        before = _stored_ingredients(test_db, mocha_recipe.id)

        with pytest.raises(InvalidQuantity):
            recipe_service.save_recipe(
                {"id": mocha_recipe.id, "product_id": pantry["mocha_id"], "name": "Mocha"},
                [
                    {"product_id": pantry["cocoa_id"], "quantity": "0.25"},
                    {"product_id": pantry["milk_id"], "quantity": bad_quantity},
                ],
            )

        assert _stored_ingredients(test_db, mocha_recipe.id) == before
        assert recipe_service.get_recipe(mocha_recipe.id).version == 1

    def test_cycle_propagates_but_structure_is_saved(
        self, test_db, recipe_service, pantry, make_manufactured
    ):
        """The save commits; the cost run fails and leaves costs untouched."""
        syrup_id = make_manufactured("Syrup")
        syrup = recipe_service.save_recipe(
            {"product_id": syrup_id, "name": "Syrup"},
            [{"product_id": pantry["milk_id"], "quantity": "1"}],
        )
        mocha = recipe_service.save_recipe(
            {"product_id": pantry["mocha_id"], "name": "Mocha"},
            [{"product_id": syrup_id, "quantity": "1"}],
        )

        with pytest.raises(CircularReference):
            recipe_service.save_recipe(
                {"id": syrup.id, "product_id": syrup_id, "name": "Syrup"},
                [{"product_id": pantry["mocha_id"], "quantity": "1"}],
            )

        assert _stored_ingredients(test_db, syrup.id) == [(pantry["mocha_id"], Decimal("1"))]
        assert recipe_service.get_recipe(syrup.id).total_cost == Decimal("2.00")
        assert recipe_service.get_recipe(mocha.id).total_cost == Decimal("2.00")


class TestValidateIngredientsData:
    """Tests for validate_ingredients_data."""

    def test_normalizes_quantities(self):
        result = validate_ingredients_data([{"product_id": 1, "quantity": 0.1}])

        assert result == [{"product_id": 1, "quantity": Decimal("0.1")}]

    def test_missing_product_id(self):
        with pytest.raises(ValidationError):
            validate_ingredients_data([{"quantity": "1"}])

    def test_error_carries_offending_item(self):
        with pytest.raises(InvalidQuantity) as exc_info:
            validate_ingredients_data([{"product_id": 7, "quantity": "-2"}])

        assert exc_info.value.product_id == 7
        assert exc_info.value.quantity == "-2"


class TestRetrievalAndDeletion:
    """Tests for get/delete operations."""

    @pytest.fixture
    def saved(self, recipe_service, pantry):
        return recipe_service.save_recipe(
            {"product_id": pantry["mocha_id"], "name": "Mocha"},
            [
                {"product_id": pantry["coffee_id"], "quantity": "0.1"},
                {"product_id": pantry["milk_id"], "quantity": "0.2"},
            ],
        )

    def test_get_recipe_not_found(self, recipe_service):
        with pytest.raises(RecipeNotFound):
            recipe_service.get_recipe(999)

    def test_get_recipe_by_product(self, recipe_service, pantry, saved):
        recipe = recipe_service.get_recipe_by_product(pantry["mocha_id"])

        assert recipe.id == saved.id
        assert recipe_service.get_recipe_by_product(pantry["coffee_id"]) is None

    def test_get_recipe_ingredients(self, recipe_service, saved):
        ingredients = recipe_service.get_recipe_ingredients(saved.id)

        assert [ri.product.name for ri in ingredients] == ["Coffee", "Milk"]

    def test_get_recipe_with_ingredients(self, recipe_service, saved):
        result = recipe_service.get_recipe_with_ingredients(saved.id)

        assert result["name"] == "Mocha"
        assert Decimal(result["total_cost"]) == Decimal("1.45")
        assert [i["product_name"] for i in result["ingredients"]] == ["Coffee", "Milk"]
        assert result["ingredients"][0]["product_type"] == "raw_material"

    def test_recalculate_cost_after_price_change(self, test_db, recipe_service, pantry, saved):
        with test_db.session_scope() as session:
            session.get(RawMaterial, pantry["coffee_id"]).purchase_cost = Decimal("20.00")

        assert recipe_service.recalculate_cost(saved.id) == Decimal("2.40")

    def test_delete_recipe(self, test_db, recipe_service, pantry, saved):
        assert recipe_service.delete_recipe(saved.id) is True

        with test_db.session_scope() as session:
            assert session.get(Recipe, saved.id) is None
            assert session.query(RecipeIngredient).filter_by(recipe_id=saved.id).count() == 0
            product = session.get(ManufacturedProduct, pantry["mocha_id"])
            assert product.manufacturing_cost is None
            assert product.recipe_id is None

    def test_delete_missing_recipe(self, recipe_service):
        with pytest.raises(RecipeNotFound):
            recipe_service.delete_recipe(999)
