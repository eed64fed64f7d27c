"""Pytest configuration and fixtures for Rocafe tests."""

from decimal import Decimal

import pytest

from rocafe.models import ManufacturedProduct, RawMaterial, Recipe, RecipeIngredient
from rocafe.services.backup_service import BackupService
from rocafe.services.database import Database
from rocafe.utils.config import (
    ENV_VAR_BACKUP_RETENTION,
    ENV_VAR_DATA_DIR,
    ENV_VAR_DB_TIMEOUT,
    ENV_VAR_ENVIRONMENT,
    ENV_VAR_MAX_RECIPE_DEPTH,
    reset_config,
)
from rocafe.utils.dto_utils import to_decimal


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config singleton at a temporary data directory.

    Keeps every test away from ~/Documents/Rocafe and from tunables set in
    the developer's environment.
    """
    monkeypatch.setenv(ENV_VAR_DATA_DIR, str(tmp_path / "rocafe-data"))
    for env_var in (
        ENV_VAR_ENVIRONMENT,
        ENV_VAR_BACKUP_RETENTION,
        ENV_VAR_MAX_RECIPE_DEPTH,
        ENV_VAR_DB_TIMEOUT,
    ):
        monkeypatch.delenv(env_var, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean in-memory database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the Database handle to the test
    4. Drops all tables after the test completes
    """
    database = Database.from_url("sqlite:///:memory:")
    database.create_tables()

    yield database

    database.drop_tables()
    database.dispose()


@pytest.fixture
def make_raw_material(test_db):
    """Factory: create a raw material and return its id."""

    def _make(name, purchase_cost=None, sale_price=None):
        with test_db.session_scope() as session:
            product = RawMaterial(
                name=name,
                purchase_cost=to_decimal(purchase_cost),
                sale_price=to_decimal(sale_price),
            )
            session.add(product)
            session.flush()
            return product.id

    return _make


@pytest.fixture
def make_manufactured(test_db):
    """Factory: create a manufactured product (no recipe) and return its id."""

    def _make(name, sale_price=None):
        with test_db.session_scope() as session:
            product = ManufacturedProduct(name=name, sale_price=to_decimal(sale_price))
            session.add(product)
            session.flush()
            return product.id

    return _make


@pytest.fixture
def make_recipe(test_db):
    """Factory: insert a recipe and its ingredient rows directly.

    Bypasses RecipeService so tests can build any graph, cycles included.

    Args:
        product_id: Owning manufactured product
        ingredients: List of (product_id, quantity) tuples, inserted in order
        total_cost: Initial cached cost
    """

    def _make(product_id, ingredients, name=None, total_cost=Decimal("0")):
        with test_db.session_scope() as session:
            recipe = Recipe(
                product_id=product_id,
                name=name or f"Recipe for product {product_id}",
                version=1,
                total_cost=to_decimal(total_cost),
            )
            session.add(recipe)
            session.flush()
            for ingredient_product_id, quantity in ingredients:
                session.add(
                    RecipeIngredient(
                        recipe_id=recipe.id,
                        product_id=ingredient_product_id,
                        quantity=to_decimal(quantity),
                    )
                )
                # Flush per row so ids follow the given order
                session.flush()
            return recipe.id

    return _make


@pytest.fixture
def cappuccino(make_raw_material, make_manufactured, make_recipe):
    """Coffee 10.50 x 0.1 + Milk 2.00 x 0.2 = 1.45."""
    coffee_id = make_raw_material("Coffee", "10.50")
    milk_id = make_raw_material("Milk", "2.00")
    product_id = make_manufactured("Cappuccino", sale_price="5.00")
    recipe_id = make_recipe(product_id, [(coffee_id, "0.1"), (milk_id, "0.2")], "Cappuccino")
    return {
        "coffee_id": coffee_id,
        "milk_id": milk_id,
        "product_id": product_id,
        "recipe_id": recipe_id,
    }


@pytest.fixture
def cake(make_raw_material, make_manufactured, make_recipe):
    """Dough (Flour 1.50 x 0.5 + Sugar 2.50 x 0.2 = 1.25) and
    Cake (Dough x 1.0 + Icing 5.00 x 0.5 = 3.75)."""
    flour_id = make_raw_material("Flour", "1.50")
    sugar_id = make_raw_material("Sugar", "2.50")
    icing_id = make_raw_material("Icing", "5.00")
    dough_product_id = make_manufactured("Dough")
    cake_product_id = make_manufactured("Cake", sale_price="10.00")
    dough_recipe_id = make_recipe(
        dough_product_id, [(flour_id, "0.5"), (sugar_id, "0.2")], "Dough"
    )
    cake_recipe_id = make_recipe(
        cake_product_id, [(dough_product_id, "1.0"), (icing_id, "0.5")], "Cake"
    )
    return {
        "flour_id": flour_id,
        "sugar_id": sugar_id,
        "icing_id": icing_id,
        "dough_product_id": dough_product_id,
        "cake_product_id": cake_product_id,
        "dough_recipe_id": dough_recipe_id,
        "cake_recipe_id": cake_recipe_id,
    }


# ============================================================================
# File-backed database (backup/restore)
# ============================================================================


@pytest.fixture
def live_db_path(tmp_path):
    path = tmp_path / "live" / "rocafe.sqlite"
    path.parent.mkdir(parents=True)
    return path


@pytest.fixture
def file_db(live_db_path):
    """A Database backed by a real file, with tables created."""
    database = Database.from_url(f"sqlite:///{live_db_path}")
    database.create_tables()

    yield database

    database.dispose()


@pytest.fixture
def backup_dir(tmp_path):
    return tmp_path / "backups"


@pytest.fixture
def backup_service(file_db, live_db_path, backup_dir):
    """BackupService over the file-backed database, keeping 3 automatic backups."""
    return BackupService(
        database_path=live_db_path,
        backup_dir=backup_dir,
        retention_count=3,
        database=file_db,
    )
